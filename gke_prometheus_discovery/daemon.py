"""Main polling loop: one reconciliation tick per interval, with signal handling and backoff."""

from __future__ import annotations

import enum
import logging
import random
import signal
import time
from dataclasses import dataclass, field
from types import FrameType
from typing import Mapping

from .config import AppConfig
from .discovery import ClusterDirectoryClient
from .discovery.differ import DiscoveryDiff, diff_clusters
from .discovery.models import ClusterRecord, DiscoverySet, index_clusters
from .exceptions import CredentialDecodeError, PersistenceError, ReloadError, TickCancelled
from .prometheus.credentials import CredentialPaths, CredentialStore
from .prometheus.document import load_document, merge_scrape_configs, write_document
from .prometheus.reload_client import PrometheusReloadClient
from .prometheus.targets import build_target_groups, parse_role_rules

logger = logging.getLogger(__name__)


class TickState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DIFFING = "diffing"
    NO_CHANGE = "no_change"
    MATERIALIZING = "materializing"
    BUILDING = "building"
    MERGING = "merging"
    PERSISTING = "persisting"
    RELOADING = "reloading"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TickResult:
    """Outcome of one reconciliation tick."""

    state: TickState
    added: frozenset[str] = field(default_factory=frozenset)
    removed: frozenset[str] = field(default_factory=frozenset)
    skipped: frozenset[str] = field(default_factory=frozenset)
    reloaded: bool = False
    elapsed_seconds: float = 0.0


class Daemon:
    """Polling daemon: list clusters -> diff -> write certs -> merge config -> reload -> sleep.

    The committed discovery set lives only on this instance and is replaced
    after the Prometheus config has been written. A tick that raises leaves it
    and the config file exactly as they were.
    """

    def __init__(
        self,
        config: AppConfig,
        client: ClusterDirectoryClient | None = None,
        credential_store: CredentialStore | None = None,
        reload_client: PrometheusReloadClient | None = None,
    ):
        self._config = config
        self._client = client if client is not None else self._build_client(config)
        self._credentials = credential_store or CredentialStore(config.prometheus.certificate_store)
        self._reload_client = reload_client or PrometheusReloadClient(config.prometheus)
        self._role_rules = (
            parse_role_rules(config.prometheus.roles) if config.prometheus.roles is not None else None
        )
        self._known: DiscoverySet | None = None
        self._state = TickState.IDLE
        self._shutdown = False
        self._consecutive_failures = 0

    @staticmethod
    def _build_client(config: AppConfig) -> ClusterDirectoryClient:
        from .discovery.gke_client import GKEClient  # lazy import: injected clients need no GCP SDK
        return GKEClient(config.gcp)

    @property
    def known_clusters(self) -> Mapping[str, ClusterRecord] | None:
        """The committed discovery set, or None before the first successful tick."""
        return self._known

    @property
    def state(self) -> TickState:
        return self._state

    def run_once(self) -> TickResult:
        """Execute a single reconciliation tick."""
        return self._cycle()

    def run(self) -> None:
        """Run the polling loop until shutdown signal."""
        self._install_signal_handlers()
        logger.info("Daemon started, polling every %ds", self._config.polling.interval_seconds)

        while not self._shutdown:
            cycle_start = time.monotonic()

            try:
                self._cycle()
                self._consecutive_failures = 0
            except Exception:
                self._consecutive_failures += 1
                logger.exception(
                    "Cycle failed while %s (consecutive failures: %d)",
                    self._state.value, self._consecutive_failures,
                    extra={"state": self._state.value},
                )
            finally:
                self._state = TickState.IDLE

            elapsed = time.monotonic() - cycle_start
            sleep_time = self._calculate_sleep(elapsed)
            logger.debug("Sleeping %.1fs before next cycle", sleep_time)
            self._interruptible_sleep(sleep_time)

        logger.info("Daemon stopped")

    def request_shutdown(self) -> None:
        """Stop after the current step; the running tick commits nothing further."""
        self._shutdown = True

    def reset(self) -> None:
        """Forget the committed cluster set so the next tick rebuilds every managed entry."""
        logger.info("Cluster state reset, next cycle will rewrite all managed scrape configs")
        self._known = None

    # ── Reconciliation tick ─────────────────────────────────────────

    def _cycle(self) -> TickResult:
        """One full discovery-to-reload tick."""
        start = time.monotonic()
        try:
            result = self._reconcile(start)
        except TickCancelled:
            logger.info("Cycle cancelled after %s", self._state.value, extra={"state": self._state.value})
            result = TickResult(state=TickState.CANCELLED, elapsed_seconds=self._since(start))
        self._state = TickState.IDLE

        logger.info(
            "Cycle complete",
            extra={"state": result.state.value, "elapsed_seconds": result.elapsed_seconds},
        )
        return result

    def _reconcile(self, start: float) -> TickResult:
        self._enter(TickState.FETCHING)
        fetched = index_clusters(self._client.list_clusters(self._config.gcp.project))

        self._enter(TickState.DIFFING)
        diff = diff_clusters(self._known, fetched)
        if not diff.changed:
            logger.info("No difference in clusters", extra={"total_clusters": len(fetched)})
            return TickResult(state=TickState.NO_CHANGE, elapsed_seconds=self._since(start))

        candidate = diff.apply(self._known, fetched)
        logger.info(
            "Detected cluster changes",
            extra={
                "added": sorted(diff.added),
                "removed": sorted(diff.removed),
                "total_clusters": len(candidate),
            },
        )

        self._enter(TickState.MATERIALIZING)
        credentials, skipped = self._materialize(candidate, diff.added)

        self._enter(TickState.BUILDING)
        groups = build_target_groups(candidate, credentials, self._role_rules)

        self._enter(TickState.MERGING)
        document = load_document(self._config.prometheus.config_file)
        merged = merge_scrape_configs(document, groups)

        self._enter(TickState.PERSISTING)
        write_document(self._config.prometheus.config_file, merged)
        self._commit(candidate, skipped)
        self._remove_stale_credentials(diff)

        # The document is on disk; reload runs even if shutdown was requested meanwhile
        self._state = TickState.RELOADING
        reloaded = self._reload()

        self._state = TickState.DONE
        return TickResult(
            state=TickState.DONE,
            added=diff.added,
            removed=diff.removed,
            skipped=frozenset(skipped),
            reloaded=reloaded,
            elapsed_seconds=self._since(start),
        )

    def _materialize(
        self,
        clusters: Mapping[str, ClusterRecord],
        added: frozenset[str],
    ) -> tuple[dict[str, CredentialPaths], set[str]]:
        """Write credentials for every cluster. Clusters with undecodable material are skipped.

        On a write failure the files of newly added clusters are removed again
        before the error propagates, so an aborted tick leaves no orphaned certs.
        """
        self._credentials.ensure_directory()
        credentials: dict[str, CredentialPaths] = {}
        skipped: set[str] = set()
        for name in sorted(clusters):
            try:
                credentials[name] = self._credentials.materialize(clusters[name])
            except CredentialDecodeError as exc:
                logger.warning("Skipping cluster %s: %s", name, exc, extra={"cluster": name})
                skipped.add(name)
            except PersistenceError:
                self._discard_credentials(added)
                raise
        return credentials, skipped

    def _discard_credentials(self, names) -> None:
        for name in sorted(names):
            try:
                self._credentials.remove(name)
            except PersistenceError as exc:
                logger.warning("Could not clean up credentials of %s: %s", name, exc, extra={"cluster": name})

    def _commit(self, candidate: DiscoverySet, skipped: set[str]) -> None:
        """Replace the committed set. Skipped clusters stay out so the next tick retries them."""
        self._known = {name: record for name, record in candidate.items() if name not in skipped}

    def _remove_stale_credentials(self, diff: DiscoveryDiff) -> None:
        self._discard_credentials(diff.removed)

    def _reload(self) -> bool:
        logger.info("Reloading Prometheus config")
        try:
            self._reload_client.reload()
        except ReloadError as exc:
            # The config file is already updated; the next successful reload picks it up
            logger.warning("Prometheus reload failed: %s", exc)
            return False
        return True

    def _enter(self, state: TickState) -> None:
        """Move to ``state``, unless shutdown was requested since the last step."""
        if self._shutdown:
            raise TickCancelled(f"Shutdown requested before {state.value}")
        self._state = state

    @staticmethod
    def _since(start: float) -> float:
        return round(time.monotonic() - start, 2)

    # ── Scheduling ──────────────────────────────────────────────────

    def _calculate_sleep(self, elapsed: float) -> float:
        """Determine how long to sleep, applying backoff and jitter."""
        base = self._config.polling.interval_seconds

        if self._consecutive_failures > 0:
            backoff = min(
                self._config.polling.backoff_base_seconds * (2 ** (self._consecutive_failures - 1)),
                self._config.polling.max_backoff_seconds,
            )
            base = backoff

        jitter = random.uniform(0, self._config.polling.jitter_seconds)

        return max(0.0, base - elapsed + jitter)

    def _interruptible_sleep(self, seconds: float) -> None:
        """Sleep in short increments so we can respond to shutdown signals."""
        end = time.monotonic() + seconds
        while not self._shutdown and time.monotonic() < end:
            remaining = end - time.monotonic()
            time.sleep(min(remaining, 1.0))

    def _install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGHUP, self._handle_reload)

    def _handle_shutdown(self, signum: int, frame: FrameType | None) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down", sig_name)
        self.request_shutdown()

    def _handle_reload(self, signum: int, frame: FrameType | None) -> None:
        logger.info("Received SIGHUP, resetting cluster state")
        self.reset()
