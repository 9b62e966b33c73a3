"""
SyncOrchestrator -- owner of the running flag, the periodic timer, and the
public entry points of the NSI sync engine.

Contract:
    - ``start_periodic(interval)`` flips the running flag, runs once right
      away on a background thread, then every ``interval`` seconds.  A second
      call while scheduled is a no-op.
    - ``stop_periodic()`` prevents future ticks and waits for an in-flight
      run to finish.  Safe to call when idle.
    - ``run_once()`` returns an empty success when the running flag is off.
    - ``run_manual()`` runs exactly once regardless of the schedule, and
      leaves the schedule's on/off state as it found it.
    - ``run_warehouses_only()`` reconciles the warehouse feed without
      advancing the cursor.
    - Maintenance operations run under the same lock as syncs, so a reset
      never interleaves with a run.

Concurrency:
    One lock per orchestrator serializes runs.  A periodic tick that finds
    the lock held is skipped; manual, warehouse and maintenance calls wait
    for it.  Each run uses its own session from the session factory and
    commits once at the end (items and cursor together).

Non-goals:
    - NOT a distributed scheduler (one orchestrator per process).
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from sqlalchemy.orm import Session

from portal_kernel.db.engine import session_scope
from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.logging_config import get_logger

from nsi_sync.domain.types import EntityType, MaintenanceResult, SyncCursor, SyncResult
from nsi_sync.feed.client import UpstreamFeedClient
from nsi_sync.reconcilers.base import Reconciler
from nsi_sync.services.maintenance import MaintenanceService
from nsi_sync.services.sync_service import NSISyncService
from nsi_sync.services.sync_state import SyncStateStore

logger = get_logger("nsi.orchestrator")

BUSY_MESSAGE = "NSI sync already in progress"


class SyncOrchestrator:
    """Explicit, injectable replacement for a process-global sync singleton."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        feed_client: UpstreamFeedClient,
        clock: Clock | None = None,
        reconcilers: dict[EntityType, Reconciler] | None = None,
        warehouse_feed_enabled: bool = True,
        interval_seconds: float = 300.0,
        seed_warehouses_per_organization: int = 3,
    ):
        self._session_factory = session_factory
        self._feed = feed_client
        self._clock = clock or SystemClock()
        self._reconcilers = reconcilers
        self._warehouse_feed_enabled = warehouse_feed_enabled
        self._interval = interval_seconds
        self._seed_per_org = seed_warehouses_per_organization

        self._running = False
        self._scheduled = False
        self._flag_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_result: SyncResult | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        session_factory: Callable[[], Session] | None = None,
        feed_client: UpstreamFeedClient | None = None,
        clock: Clock | None = None,
    ) -> SyncOrchestrator:
        """Wire an orchestrator from ``portal_config.PortalSettings``.

        Without a session factory the module-level engine is used, so
        ``init_engine_from_url()`` must have been called.
        """
        if session_factory is None:
            from portal_kernel.db.engine import get_session_factory

            session_factory = get_session_factory()
        if feed_client is None:
            from nsi_sync.feed.client import HttpFeedClient

            feed_client = HttpFeedClient.from_settings(settings.feed)

        return cls(
            session_factory=session_factory,
            feed_client=feed_client,
            clock=clock,
            warehouse_feed_enabled=settings.feed.warehouse_feed_enabled,
            interval_seconds=settings.sync.interval_seconds,
            seed_warehouses_per_organization=settings.sync.seed_warehouses_per_organization,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_scheduled(self) -> bool:
        return self._scheduled

    @property
    def last_result(self) -> SyncResult | None:
        return self._last_result

    def current_cursor(self) -> SyncCursor | None:
        session = self._session_factory()
        try:
            return SyncStateStore(session, self._clock).latest()
        finally:
            session.close()

    def status(self) -> dict[str, Any]:
        cursor = self.current_cursor()
        return {
            "running": self._running,
            "scheduled": self._scheduled,
            "interval_seconds": self._interval,
            "cursor": cursor.to_dict() if cursor else None,
            "last_result": self._last_result.to_dict() if self._last_result else None,
        }

    # -------------------------------------------------------------------------
    # Periodic schedule
    # -------------------------------------------------------------------------

    def start_periodic(self, interval_seconds: float | None = None) -> bool:
        """Start the background schedule. Returns False if it was already running."""
        with self._flag_lock:
            if self._scheduled:
                return False
            if interval_seconds is not None:
                self._interval = interval_seconds
            self._scheduled = True
            self._running = True
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop_event, self._interval),
                name="nsi-sync-scheduler",
                daemon=True,
            )
            self._thread.start()
        logger.info("nsi_sync_scheduler_started", extra={"interval_seconds": self._interval})
        return True

    def stop_periodic(self, timeout: float = 30.0) -> None:
        """Stop future ticks; an in-flight run completes."""
        with self._flag_lock:
            self._scheduled = False
            self._running = False
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.info("nsi_sync_scheduler_stopped")

    def _run_loop(self, stop_event: threading.Event, interval: float) -> None:
        while not stop_event.is_set():
            try:
                self.run_once(trigger="scheduled", wait=False)
            except Exception:
                logger.exception("sync_tick_exception")
            stop_event.wait(timeout=interval)

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    def run_once(self, trigger: str = "scheduled", wait: bool = True) -> SyncResult:
        """One full sync if the running flag is on."""
        if not self._running:
            return SyncResult.empty()
        result = self._exclusive(
            lambda session: self._service(session).sync(trigger=trigger),
            wait=wait,
            operation="sync",
        )
        if result is None:
            logger.info("sync_tick_skipped_busy", extra={"trigger": trigger})
            return SyncResult.empty(BUSY_MESSAGE)
        return result

    def run_manual(self) -> SyncResult:
        """Force one run even when the schedule is stopped."""
        with self._flag_lock:
            self._running = True
        try:
            return self.run_once(trigger="manual")
        finally:
            with self._flag_lock:
                self._running = self._scheduled

    def run_warehouses_only(self) -> SyncResult:
        result = self._exclusive(
            lambda session: self._service(session).sync_warehouses(trigger="manual"),
            operation="sync_warehouses",
        )
        return result or SyncResult.empty(BUSY_MESSAGE)

    # Names used by the admin layer.
    manual_sync = run_manual
    manual_sync_warehouses = run_warehouses_only

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def clear_nsi_data(self) -> MaintenanceResult:
        return self._maintenance(lambda service: service.clear_nsi_data())

    def clear_portal_data(self) -> MaintenanceResult:
        return self._maintenance(lambda service: service.clear_portal_data())

    def seed_warehouses(self) -> MaintenanceResult:
        return self._maintenance(lambda service: service.seed_warehouses())

    def clear_seeded_warehouses(self) -> MaintenanceResult:
        return self._maintenance(lambda service: service.clear_seeded_warehouses())

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _service(self, session: Session) -> NSISyncService:
        return NSISyncService(
            session,
            self._feed,
            reconcilers=self._reconcilers,
            clock=self._clock,
            warehouse_feed_enabled=self._warehouse_feed_enabled,
        )

    def _exclusive(
        self,
        action: Callable[[Session], SyncResult],
        wait: bool = True,
        operation: str = "sync",
    ) -> SyncResult | None:
        """Run ``action`` in its own transaction under the run lock.

        Returns None when ``wait`` is False and another run holds the lock.
        """
        if not self._run_lock.acquire(blocking=wait):
            return None
        try:
            with session_scope(self._session_factory) as session:
                result = action(session)
        except Exception as exc:
            logger.exception("nsi_sync_failed", extra={"operation": operation})
            result = SyncResult.system_failure(str(exc) or type(exc).__name__)
        finally:
            self._run_lock.release()
        self._last_result = result
        return result

    def _maintenance(
        self,
        action: Callable[[MaintenanceService], MaintenanceResult],
    ) -> MaintenanceResult:
        with self._run_lock:
            with session_scope(self._session_factory) as session:
                service = MaintenanceService(
                    session,
                    clock=self._clock,
                    warehouses_per_organization=self._seed_per_org,
                )
                return action(service)
