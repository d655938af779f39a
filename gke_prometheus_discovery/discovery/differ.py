"""Discovery set diff: detects cluster additions and removals between polling cycles."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

from .models import ClusterRecord, DiscoverySet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryDiff:
    """Result of comparing the committed discovery set with a fresh fetch."""

    added: frozenset[str] = field(default_factory=frozenset)
    removed: frozenset[str] = field(default_factory=frozenset)
    changed: bool = False

    def apply(
        self,
        previous: Mapping[str, ClusterRecord] | None,
        current: Mapping[str, ClusterRecord],
    ) -> DiscoverySet:
        """Return the next discovery set: previous minus removals plus additions.

        Clusters present in both keep their previously committed record, so an
        endpoint or credential change under an unchanged name is not picked up.
        """
        merged: DiscoverySet = {
            name: record
            for name, record in (previous or {}).items()
            if name not in self.removed
        }
        for name in sorted(self.added):
            merged[name] = current[name]
        return merged


def diff_clusters(
    previous: Mapping[str, ClusterRecord] | None,
    current: Mapping[str, ClusterRecord],
) -> DiscoveryDiff:
    """Compare two discovery sets by cluster name.

    ``previous`` is None until the first successful commit; that case always
    reports a change so the managed scrape configs get rewritten on startup.
    A committed empty set is not the same: ``{}`` against an empty fetch is unchanged.
    """
    current_names = set(current)

    if previous is None:
        logger.info(
            "No committed cluster set yet, treating %d clusters as new", len(current_names),
            extra={"added": sorted(current_names)},
        )
        return DiscoveryDiff(added=frozenset(current_names), changed=True)

    previous_names = set(previous)
    added = frozenset(current_names - previous_names)
    removed = frozenset(previous_names - current_names)

    for name in sorted(added):
        logger.info("New cluster discovered: %s", name, extra={"cluster": name})
    for name in sorted(removed):
        logger.info("Cluster removed: %s", name, extra={"cluster": name})

    return DiscoveryDiff(added=added, removed=removed, changed=bool(added or removed))
