"""Cluster discovery package: directory-client Protocol and public exports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import ClusterRecord


@runtime_checkable
class ClusterDirectoryClient(Protocol):
    """Protocol that every cluster directory client must satisfy."""

    def list_clusters(self, project_id: str) -> list[ClusterRecord]:
        """Return every running cluster of the project in one logical call.

        Raises DirectoryError on transport or permission failures.
        """
        ...
