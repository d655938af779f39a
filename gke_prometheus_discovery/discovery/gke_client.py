"""GKE cluster manager client for discovering running clusters of a project."""

from __future__ import annotations

import logging

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import container_v1

from ..config import GCPConfig
from ..exceptions import DirectoryError
from .models import ClusterAuth, ClusterRecord

logger = logging.getLogger(__name__)

# "-" matches every zone and region of the project
ALL_LOCATIONS = "-"


class GKEClient:
    """Lists GKE clusters using application-default credentials."""

    def __init__(self, gcp_config: GCPConfig):
        self._config = gcp_config
        try:
            self._clusters = container_v1.ClusterManagerClient()
        except auth_exceptions.DefaultCredentialsError as exc:
            raise DirectoryError(f"No application-default credentials for GKE: {exc}") from exc

    def list_clusters(self, project_id: str) -> list[ClusterRecord]:
        """Return every RUNNING cluster in the project across all locations."""
        parent = f"projects/{project_id}/locations/{ALL_LOCATIONS}"
        logger.debug("Listing clusters under %s", parent)

        try:
            response = self._clusters.list_clusters(parent=parent)
        except google_exceptions.GoogleAPIError as exc:
            raise DirectoryError(f"Listing clusters for project {project_id} failed: {exc}") from exc

        if response.missing_zones:
            # GKE answered for the other locations; these are retried next cycle
            logger.warning(
                "GKE could not reach %d locations: %s",
                len(response.missing_zones), ", ".join(response.missing_zones),
            )

        records: list[ClusterRecord] = []
        for cluster in response.clusters:
            if cluster.status != container_v1.Cluster.Status.RUNNING:
                logger.debug(
                    "Skipping cluster %s in %s: status %s",
                    cluster.name, cluster.location, cluster.status.name,
                )
                continue
            if not cluster.endpoint:
                logger.warning("Cluster %s has no endpoint, skipping", cluster.name, extra={"cluster": cluster.name})
                continue
            records.append(self._to_record(cluster))

        logger.info("Discovery complete", extra={"total_clusters": len(records)})
        return records

    @staticmethod
    def _to_record(cluster: container_v1.Cluster) -> ClusterRecord:
        auth = cluster.master_auth
        return ClusterRecord(
            name=cluster.name,
            endpoint=cluster.endpoint,
            location=cluster.location,
            status=cluster.status.name,
            auth=ClusterAuth(
                ca_certificate=auth.cluster_ca_certificate,
                client_certificate=auth.client_certificate,
                client_key=auth.client_key,
                username=auth.username,
                password=auth.password,
            ),
        )
