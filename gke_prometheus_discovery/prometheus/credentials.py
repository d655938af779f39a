"""Certificate store: decodes cluster TLS material and writes it where Prometheus reads it."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..discovery.models import ClusterRecord
from ..exceptions import CredentialDecodeError, PersistenceError

logger = logging.getLogger(__name__)

CERT_FILE_MODE = 0o644
KEY_FILE_MODE = 0o600


@dataclass(frozen=True)
class CredentialPaths:
    """Absolute paths of one cluster's materialized TLS files."""

    ca_file: str
    cert_file: str
    key_file: str

    def as_tls_config(self) -> dict[str, str]:
        return {"ca_file": self.ca_file, "cert_file": self.cert_file, "key_file": self.key_file}


def atomic_write(path: Path, data: bytes, mode: int = CERT_FILE_MODE) -> None:
    """Write ``data`` to ``path`` through a temp file in the same directory.

    Readers see either the old file or the complete new one.
    Raises PersistenceError on any OS error.
    """
    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PersistenceError(f"Could not write {path}: {exc}") from exc


class CredentialStore:
    """Materializes ``{name}-ca.pem``, ``{name}-cert.pem`` and ``{name}-key.pem`` per cluster."""

    def __init__(self, directory: str | Path):
        self._directory = Path(directory).absolute()

    @property
    def directory(self) -> Path:
        return self._directory

    def ensure_directory(self) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Could not create certificate store {self._directory}: {exc}") from exc

    def paths_for(self, cluster_name: str) -> CredentialPaths:
        return CredentialPaths(
            ca_file=str(self._directory / f"{cluster_name}-ca.pem"),
            cert_file=str(self._directory / f"{cluster_name}-cert.pem"),
            key_file=str(self._directory / f"{cluster_name}-key.pem"),
        )

    def materialize(self, record: ClusterRecord) -> CredentialPaths:
        """Decode and write all three files for ``record``.

        Every field is decoded before anything is written, so a
        CredentialDecodeError leaves the store untouched for that cluster.
        """
        ca = _decode(record.name, "ca_certificate", record.auth.ca_certificate)
        cert = _decode(record.name, "client_certificate", record.auth.client_certificate)
        key = _decode(record.name, "client_key", record.auth.client_key)

        paths = self.paths_for(record.name)
        atomic_write(Path(paths.ca_file), ca)
        atomic_write(Path(paths.cert_file), cert)
        atomic_write(Path(paths.key_file), key, mode=KEY_FILE_MODE)
        logger.debug("Materialized credentials for %s", record.name, extra={"cluster": record.name})
        return paths

    def remove(self, cluster_name: str) -> None:
        """Delete a cluster's files. Files already gone are ignored."""
        paths = self.paths_for(cluster_name)
        for name in (paths.ca_file, paths.cert_file, paths.key_file):
            try:
                os.unlink(name)
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise PersistenceError(f"Could not remove {name}: {exc}") from exc
        logger.info("Removed credentials of %s", cluster_name, extra={"cluster": cluster_name})

    @staticmethod
    def read(path: str | Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            raise PersistenceError(f"Could not read {path}: {exc}") from exc


def _decode(cluster: str, field_name: str, value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CredentialDecodeError(cluster, field_name) from exc
