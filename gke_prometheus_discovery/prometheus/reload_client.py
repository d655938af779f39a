"""REST client for the Prometheus lifecycle reload endpoint."""

from __future__ import annotations

import logging

import requests

from ..config import PrometheusConfig
from ..exceptions import ReloadError

logger = logging.getLogger(__name__)


class PrometheusReloadClient:
    """Thin wrapper around ``POST /-/reload``."""

    def __init__(self, config: PrometheusConfig):
        self._url = f"{config.base_url.rstrip('/')}{config.reload_path}"
        self._session = requests.Session()
        self._session.verify = config.verify_ssl
        self._timeout = config.timeout

    @property
    def url(self) -> str:
        return self._url

    def reload(self) -> None:
        """Ask Prometheus to re-read its configuration. Raises ReloadError on failure."""
        logger.debug("POST %s", self._url)
        try:
            resp = self._session.post(
                self._url, data=b"", headers={"Content-Type": "text/plain"}, timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ReloadError(f"Reload request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise ReloadError(
                f"HTTP {resp.status_code} on POST {self._url}: {resp.text}",
                status_code=resp.status_code,
                response_body=resp.text,
            )
