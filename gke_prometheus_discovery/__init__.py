"""Keeps Prometheus kubernetes_sd scrape configs in sync with the GKE clusters of a project."""

__version__ = "0.1.0"
