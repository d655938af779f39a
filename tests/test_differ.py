"""Tests for the discovery set differ."""

from gke_prometheus_discovery.discovery.differ import DiscoveryDiff, diff_clusters
from gke_prometheus_discovery.discovery.models import ClusterAuth, ClusterRecord


def _cluster(name, endpoint="10.0.0.1"):
    return ClusterRecord(name=name, endpoint=endpoint, auth=ClusterAuth())


def _set(*names):
    return {name: _cluster(name) for name in names}


class TestDiffClusters:
    def test_first_run_everything_is_new(self):
        diff = diff_clusters(None, _set("a", "b"))
        assert diff.added == {"a", "b"}
        assert diff.removed == frozenset()
        assert diff.changed is True

    def test_first_run_with_no_clusters_still_changed(self):
        diff = diff_clusters(None, {})
        assert diff.changed is True
        assert diff.added == frozenset()

    def test_empty_previous_set_is_new(self):
        diff = diff_clusters({}, _set("a", "b"))
        assert diff == DiscoveryDiff(added=frozenset({"a", "b"}), removed=frozenset(), changed=True)

    def test_committed_empty_set_and_empty_fetch_is_unchanged(self):
        assert diff_clusters({}, {}).changed is False

    def test_added_and_removed(self):
        diff = diff_clusters(_set("a", "b"), _set("b", "c"))
        assert diff.added == {"c"}
        assert diff.removed == {"a"}
        assert diff.changed is True

    def test_identical_sets_are_unchanged_every_time(self):
        previous = _set("a", "b")
        fetched = _set("a", "b")
        assert diff_clusters(previous, fetched).changed is False
        assert diff_clusters(previous, fetched).changed is False

    def test_endpoint_change_under_same_name_is_not_detected(self):
        previous = {"a": _cluster("a", endpoint="10.0.0.1")}
        fetched = {"a": _cluster("a", endpoint="10.9.9.9")}
        assert diff_clusters(previous, fetched).changed is False

    def test_inputs_not_mutated(self):
        previous = _set("a")
        fetched = _set("b")
        diff_clusters(previous, fetched)
        assert set(previous) == {"a"}
        assert set(fetched) == {"b"}


class TestApply:
    def test_convergence_add_then_remove(self):
        known = {}
        fetched = _set("a")
        diff = diff_clusters(known, fetched)
        known = diff.apply(known, fetched)
        assert "a" in known

        diff = diff_clusters(known, {})
        assert diff.removed == {"a"}
        known = diff.apply(known, {})
        assert "a" not in known

    def test_keeps_previous_record_for_unchanged_name(self):
        old = _cluster("a", endpoint="10.0.0.1")
        previous = {"a": old}
        fetched = {"a": _cluster("a", endpoint="10.9.9.9"), "b": _cluster("b")}
        diff = diff_clusters(previous, fetched)
        merged = diff.apply(previous, fetched)
        assert merged["a"] is old
        assert merged["b"] is fetched["b"]

    def test_apply_from_nothing_committed(self):
        fetched = _set("a", "b")
        merged = diff_clusters(None, fetched).apply(None, fetched)
        assert merged == fetched
        assert merged is not fetched

    def test_apply_returns_new_mapping(self):
        previous = _set("a", "b")
        fetched = _set("b", "c")
        merged = diff_clusters(previous, fetched).apply(previous, fetched)
        assert set(merged) == {"b", "c"}
        assert set(previous) == {"a", "b"}
