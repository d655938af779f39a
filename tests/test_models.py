"""Tests for discovery models."""

import logging

from gke_prometheus_discovery.discovery.models import ClusterAuth, ClusterRecord, index_clusters


def _cluster(name="prod", endpoint="10.0.0.1", location="europe-west1-b", username=""):
    return ClusterRecord(
        name=name,
        endpoint=endpoint,
        location=location,
        auth=ClusterAuth(username=username, password="secret" if username else ""),
    )


class TestClusterRecord:
    def test_api_server_uses_https(self):
        assert _cluster(endpoint="35.1.2.3").api_server == "https://35.1.2.3"

    def test_basic_auth_only_with_username(self):
        assert _cluster(username="admin").auth.has_basic_auth
        assert not _cluster().auth.has_basic_auth


class TestIndexClusters:
    def test_keys_by_name(self):
        clusters = index_clusters([_cluster("a"), _cluster("b")])
        assert set(clusters) == {"a", "b"}
        assert clusters["a"].name == "a"

    def test_empty(self):
        assert index_clusters([]) == {}

    def test_duplicate_name_keeps_first(self, caplog):
        first = _cluster("a", location="us-central1")
        second = _cluster("a", location="europe-west1")
        with caplog.at_level(logging.WARNING):
            clusters = index_clusters([first, second])
        assert clusters == {"a": first}
        assert "Duplicate cluster name a" in caplog.text
