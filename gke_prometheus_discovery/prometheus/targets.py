"""Builds one Prometheus kubernetes_sd scrape config per (cluster, role)."""

from __future__ import annotations

import copy
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..discovery.models import ClusterRecord
from ..exceptions import ConfigError
from .credentials import CredentialPaths

logger = logging.getLogger(__name__)

JOB_NAME_TEMPLATE = "kubernetes_{cluster}_{role}"


class Role(str, enum.Enum):
    """Prometheus Kubernetes SD roles. Declaration order is the output order."""

    NODE = "node"
    SERVICE = "service"
    POD = "pod"
    ENDPOINTS = "endpoints"
    ENDPOINTSLICE = "endpointslice"
    INGRESS = "ingress"


_ROLE_ORDER = {role: index for index, role in enumerate(Role)}

# Role -> relabel_configs, ordered by Role declaration order
RoleTable = dict[Role, list[dict[str, Any]]]

DEFAULT_ROLE_RULES: RoleTable = {
    Role.NODE: [
        {"action": "labelmap", "regex": "__meta_kubernetes_node_label_(.+)"},
    ],
    Role.POD: [
        {
            "source_labels": ["__meta_kubernetes_pod_annotation_prometheus_io_scrape"],
            "action": "keep",
            "regex": "true",
        },
        {
            "source_labels": ["__meta_kubernetes_pod_annotation_prometheus_io_path"],
            "action": "replace",
            "target_label": "__metrics_path__",
            "regex": "(.+)",
        },
        {
            "source_labels": ["__address__", "__meta_kubernetes_pod_annotation_prometheus_io_port"],
            "action": "replace",
            "regex": "([^:]+)(?::\\d+)?;(\\d+)",
            "replacement": "$1:$2",
            "target_label": "__address__",
        },
        {"action": "labelmap", "regex": "__meta_kubernetes_pod_label_(.+)"},
        {"source_labels": ["__meta_kubernetes_namespace"], "action": "replace", "target_label": "kubernetes_namespace"},
        {"source_labels": ["__meta_kubernetes_pod_name"], "action": "replace", "target_label": "kubernetes_pod_name"},
    ],
    Role.ENDPOINTS: [
        {
            "source_labels": ["__meta_kubernetes_service_annotation_prometheus_io_scrape"],
            "action": "keep",
            "regex": "true",
        },
        {
            "source_labels": ["__meta_kubernetes_service_annotation_prometheus_io_scheme"],
            "action": "replace",
            "target_label": "__scheme__",
            "regex": "(https?)",
        },
        {
            "source_labels": ["__meta_kubernetes_service_annotation_prometheus_io_path"],
            "action": "replace",
            "target_label": "__metrics_path__",
            "regex": "(.+)",
        },
        {"action": "labelmap", "regex": "__meta_kubernetes_service_label_(.+)"},
        {"source_labels": ["__meta_kubernetes_namespace"], "action": "replace", "target_label": "kubernetes_namespace"},
        {"source_labels": ["__meta_kubernetes_service_name"], "action": "replace", "target_label": "kubernetes_name"},
    ],
    Role.SERVICE: [
        {
            "source_labels": ["__meta_kubernetes_service_annotation_prometheus_io_probe"],
            "action": "keep",
            "regex": "true",
        },
        {"action": "labelmap", "regex": "__meta_kubernetes_service_label_(.+)"},
        {"source_labels": ["__meta_kubernetes_namespace"], "target_label": "kubernetes_namespace"},
        {"source_labels": ["__meta_kubernetes_service_name"], "target_label": "kubernetes_name"},
    ],
}


def parse_role_rules(raw: Mapping[str, Any]) -> RoleTable:
    """Validate a ``role name -> relabel rules`` mapping from configuration."""
    if not isinstance(raw, Mapping):
        raise ConfigError("prometheus.roles must be a mapping of role name to relabel rules")
    table: RoleTable = {}
    for name, rules in raw.items():
        try:
            role = Role(name)
        except ValueError:
            valid = ", ".join(r.value for r in Role)
            raise ConfigError(f"Unknown discovery role '{name}' (valid roles: {valid})") from None
        if rules is None:
            rules = []
        if not isinstance(rules, list) or not all(isinstance(r, dict) for r in rules):
            raise ConfigError(f"prometheus.roles.{name} must be a list of relabel rule mappings")
        table[role] = rules
    return dict(sorted(table.items(), key=lambda item: _ROLE_ORDER[item[0]]))


@dataclass(frozen=True)
class TargetGroup:
    """One scrape config entry targeting one cluster with one discovery role."""

    job_name: str
    role: Role
    api_servers: tuple[str, ...]
    tls: CredentialPaths
    basic_auth: tuple[str, str] | None = None
    relabel_configs: list[dict[str, Any]] = field(default_factory=list)

    def to_scrape_config(self) -> dict[str, Any]:
        """Render as a Prometheus ``scrape_configs`` entry."""
        entry: dict[str, Any] = {
            "job_name": self.job_name,
            "kubernetes_sd_configs": [
                {
                    "api_servers": list(self.api_servers),
                    "role": self.role.value,
                    "tls_config": self.tls.as_tls_config(),
                },
            ],
        }
        if self.basic_auth is not None:
            entry["basic_auth"] = {"username": self.basic_auth[0], "password": self.basic_auth[1]}
        if self.relabel_configs:
            # Fresh copies per entry: shared objects would be dumped as YAML anchors
            entry["relabel_configs"] = copy.deepcopy(self.relabel_configs)
        return entry


def build_target_groups(
    clusters: Mapping[str, ClusterRecord],
    credentials: Mapping[str, CredentialPaths],
    role_rules: RoleTable | None = None,
) -> list[TargetGroup]:
    """Build target groups sorted by cluster name, then by role order.

    ``clusters`` maps name -> ClusterRecord and ``credentials`` maps name ->
    CredentialPaths. Clusters with no materialized credentials are left out.
    """
    table = DEFAULT_ROLE_RULES if role_rules is None else role_rules
    roles = sorted(table, key=lambda r: _ROLE_ORDER[r])

    groups: list[TargetGroup] = []
    seen: set[str] = set()
    for name in sorted(clusters):
        paths = credentials.get(name)
        if paths is None:
            logger.debug("No credentials for %s, leaving it out", name, extra={"cluster": name})
            continue
        record = clusters[name]
        basic_auth = (record.auth.username, record.auth.password) if record.auth.has_basic_auth else None
        for role in roles:
            job_name = JOB_NAME_TEMPLATE.format(cluster=name, role=role.value)
            if job_name in seen:
                raise ValueError(f"Duplicate scrape job name {job_name}")
            seen.add(job_name)
            groups.append(TargetGroup(
                job_name=job_name,
                role=role,
                api_servers=(record.api_server,),
                tls=paths,
                basic_auth=basic_auth,
                relabel_configs=table[role],
            ))

    logger.debug("Built %d target groups", len(groups))
    return groups
