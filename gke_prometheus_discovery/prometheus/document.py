"""Loads, merges and writes the Prometheus configuration document."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from ..exceptions import PersistenceError
from .credentials import atomic_write
from .targets import TargetGroup

logger = logging.getLogger(__name__)

SCRAPE_CONFIGS = "scrape_configs"
DISCOVERY_SOURCES = "kubernetes_sd_configs"


def is_managed(entry: Any) -> bool:
    """True if a scrape config entry declares at least one kubernetes_sd_configs source.

    Everything else belongs to the operator and is carried over verbatim.
    """
    if not isinstance(entry, Mapping):
        return False
    sources = entry.get(DISCOVERY_SOURCES)
    return isinstance(sources, list) and len(sources) > 0


def merge_scrape_configs(document: Mapping[str, Any], groups: Iterable[TargetGroup]) -> dict[str, Any]:
    """Return a new document whose managed entries are exactly ``groups``.

    Foreign entries keep their content and relative order and come first;
    every other top-level key is passed through. ``document`` is not modified.
    """
    existing = document.get(SCRAPE_CONFIGS) or []
    foreign = [entry for entry in existing if not is_managed(entry)]
    managed = [group.to_scrape_config() for group in groups]

    logger.info(
        "Merged scrape configs: %d foreign kept, %d managed replaced by %d",
        len(foreign), len(existing) - len(foreign), len(managed),
    )

    merged = dict(document)
    merged[SCRAPE_CONFIGS] = foreign + managed
    return merged


def load_document(path: str | Path) -> dict[str, Any]:
    """Read the Prometheus config. An empty file yields an empty document."""
    path = Path(path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as exc:
        raise PersistenceError(f"Could not read Prometheus config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise PersistenceError(f"Prometheus config {path} is not valid YAML: {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise PersistenceError(f"Prometheus config {path} must be a YAML mapping")
    if not isinstance(raw.get(SCRAPE_CONFIGS) or [], list):
        raise PersistenceError(f"Prometheus config {path}: {SCRAPE_CONFIGS} must be a list")
    return raw


def dump_document(document: Mapping[str, Any]) -> str:
    return yaml.safe_dump(dict(document), default_flow_style=False, sort_keys=False)


def write_document(path: str | Path, document: Mapping[str, Any]) -> None:
    """Serialize in full, then replace the file atomically."""
    try:
        text = dump_document(document)
    except yaml.YAMLError as exc:
        raise PersistenceError(f"Could not serialize Prometheus config: {exc}") from exc
    path = Path(path)
    atomic_write(path, text.encode("utf-8"))
    logger.debug("Wrote Prometheus config", extra={"path": str(path)})
