"""Custom exception hierarchy for the GKE discovery daemon."""


class GKEDiscoveryError(Exception):
    """Base exception for all daemon errors."""


class ConfigError(GKEDiscoveryError):
    """Invalid or missing configuration."""


class DirectoryError(GKEDiscoveryError):
    """Listing clusters from the GKE API failed (transport or permission)."""


class CredentialDecodeError(GKEDiscoveryError):
    """A cluster reported credential material that is not valid base64."""

    def __init__(self, cluster: str, field_name: str, message: str = ""):
        super().__init__(message or f"Cluster {cluster}: {field_name} is not valid base64")
        self.cluster = cluster
        self.field_name = field_name


class PersistenceError(GKEDiscoveryError):
    """Reading or writing a certificate file or the Prometheus config failed."""


class ReloadError(GKEDiscoveryError):
    """Prometheus did not accept the reload request."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class TickCancelled(GKEDiscoveryError):
    """Shutdown was requested between two steps of a reconciliation tick."""
