"""Prometheus-side components: certificate store, target builder, config merge and reload."""
