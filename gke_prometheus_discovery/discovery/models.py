"""Data models for discovered GKE clusters and the name-keyed discovery set."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterAuth:
    """Master auth material as reported by GKE (certificate fields are base64 text)."""

    ca_certificate: str = ""
    client_certificate: str = ""
    client_key: str = ""
    username: str = ""
    password: str = ""

    @property
    def has_basic_auth(self) -> bool:
        return bool(self.username)


@dataclass(frozen=True)
class ClusterRecord:
    """Snapshot of one cluster at fetch time. ``name`` is the identity key."""

    name: str
    endpoint: str  # host or IP of the master, no scheme
    auth: ClusterAuth
    location: str = ""
    status: str = "RUNNING"

    @property
    def api_server(self) -> str:
        """URL handed to Prometheus' kubernetes_sd_configs."""
        return f"https://{self.endpoint}"


# Name -> record. Replaced wholesale on commit, never mutated in place.
DiscoverySet = Dict[str, ClusterRecord]


def index_clusters(records: Iterable[ClusterRecord]) -> DiscoverySet:
    """Build a DiscoverySet keyed by cluster name. The first record for a name wins."""
    clusters: DiscoverySet = {}
    for record in records:
        if record.name in clusters:
            logger.warning(
                "Duplicate cluster name %s (location %s), keeping the record from %s",
                record.name, record.location, clusters[record.name].location,
                extra={"cluster": record.name},
            )
            continue
        clusters[record.name] = record
    return clusters
