"""
NSISyncService -- one synchronization run against an open session.

Flow (``sync``):
    1. Read the cursor (SyncStateStore.current_version).
    2. Fetch the general delta.  Failure -> System error result, cursor
       untouched.
    3. Fetch the warehouse delta with the same cursor.  Failure is logged
       and the run continues with the general feed alone.
    4. Merge, then order by dependency (Organization first, ...).
    5. Reconcile item by item, each inside its own SAVEPOINT; failures are
       collected by ErrorAggregator and the loop continues.
    6. Record the new cursor once, after every item was processed.

Invariants enforced:
    - Items within a run are processed sequentially in dispatch order.
    - The cursor advances on partial success; only a fetch failure keeps it.
    - The cursor never moves backwards; a regressed delta writes no run row.
    - An empty delta writes nothing.

The service never commits.  The caller (SyncOrchestrator) owns the
transaction, so item writes and the cursor row become visible together.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy.orm import Session

from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.exceptions import UpstreamFeedError
from portal_kernel.logging_config import LogContext, get_logger

from nsi_sync.domain.dispatch import order_for_dispatch
from nsi_sync.domain.merge import merge_deltas
from nsi_sync.domain.types import (
    DeltaBatch,
    DeltaItem,
    EntityType,
    SyncResult,
    WarehouseDelta,
)
from nsi_sync.feed.client import UpstreamFeedClient
from nsi_sync.reconcilers import default_reconciler_registry
from nsi_sync.reconcilers.base import Reconciler, ReconcileResult
from nsi_sync.services.error_aggregator import ErrorAggregator
from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard
from nsi_sync.services.sync_state import SyncStateStore

logger = get_logger("nsi.sync_service")

UP_TO_DATE_MESSAGE = "NSI is up to date"
NO_WAREHOUSE_CHANGES_MESSAGE = "No warehouse changes"


class NSISyncService:
    """Applies upstream NSI deltas to the reference tables."""

    def __init__(
        self,
        session: Session,
        feed_client: UpstreamFeedClient,
        reconcilers: dict[EntityType, Reconciler] | None = None,
        clock: Clock | None = None,
        warehouse_feed_enabled: bool = True,
    ):
        self._session = session
        self._feed = feed_client
        self._reconcilers = reconcilers if reconcilers is not None else default_reconciler_registry()
        self._clock = clock or SystemClock()
        self._warehouse_feed_enabled = warehouse_feed_enabled
        self._state = SyncStateStore(session, self._clock)
        self._guard = ReferentialIntegrityGuard(session)

    @property
    def state(self) -> SyncStateStore:
        return self._state

    # -------------------------------------------------------------------------
    # Full run
    # -------------------------------------------------------------------------

    def sync(self, trigger: str = "manual") -> SyncResult:
        """Run one incremental synchronization."""
        run_id = str(uuid4())
        with LogContext.bind(correlation_id=run_id, producer="nsi_sync", trigger=trigger):
            since = self._state.current_version()
            logger.info("nsi_sync_started", extra={"since_version": since})

            try:
                batch = self._feed.get_delta(since)
            except UpstreamFeedError as exc:
                logger.error("nsi_sync_failed", exc_info=True, extra={"since_version": since})
                return SyncResult.system_failure(str(exc), code=exc.code)
            except Exception as exc:
                logger.exception("nsi_sync_failed", extra={"since_version": since})
                return SyncResult.system_failure(str(exc) or type(exc).__name__)

            warehouse = self._fetch_warehouse_delta(since)
            items = merge_deltas(batch.items, warehouse)
            if not items:
                logger.info("nsi_up_to_date", extra={"version": since})
                return SyncResult.empty(UP_TO_DATE_MESSAGE, version=since)

            logger.info(
                "nsi_delta_received",
                extra={
                    "version": batch.version,
                    "general_items": len(batch.items),
                    "merged_items": len(items),
                },
            )

            aggregator = self._apply(items)
            version = self._next_version(since, batch)
            if version == batch.version:
                self._state.record_run(
                    version,
                    items_synced=aggregator.synced,
                    items_total=aggregator.total,
                    items_failed=len(aggregator.errors),
                )

            result = aggregator.report(
                version=version,
                message=f"Synced {aggregator.synced} of {aggregator.total} items",
            )
            logger.info(
                "nsi_sync_completed",
                extra={
                    "synced": result.synced,
                    "total": result.total,
                    "failed": result.failed,
                    "version": version,
                },
            )
            return result

    # -------------------------------------------------------------------------
    # Warehouse-only run
    # -------------------------------------------------------------------------

    def sync_warehouses(self, trigger: str = "manual") -> SyncResult:
        """Reconcile the warehouse feed alone.  The main cursor is not touched."""
        run_id = str(uuid4())
        with LogContext.bind(correlation_id=run_id, producer="nsi_sync", trigger=trigger):
            logger.info("warehouse_sync_started")
            try:
                delta = self._feed.get_warehouse_delta(None)
            except UpstreamFeedError as exc:
                logger.error("warehouse_sync_failed", exc_info=True)
                return SyncResult.system_failure(str(exc), code=exc.code)
            except Exception as exc:
                logger.exception("warehouse_sync_failed")
                return SyncResult.system_failure(str(exc) or type(exc).__name__)

            items = merge_deltas((), delta)
            if not items:
                logger.info("warehouse_up_to_date")
                return SyncResult.empty(NO_WAREHOUSE_CHANGES_MESSAGE)

            aggregator = self._apply(items)
            result = aggregator.report(
                message=f"Synced {aggregator.synced} of {aggregator.total} warehouses",
            )
            logger.info(
                "warehouse_sync_completed",
                extra={"synced": result.synced, "total": result.total, "failed": result.failed},
            )
            return result

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _fetch_warehouse_delta(self, since: int) -> WarehouseDelta | None:
        if not self._warehouse_feed_enabled:
            return None
        try:
            return self._feed.get_warehouse_delta(since)
        except Exception as exc:
            logger.warning(
                "warehouse_feed_failed",
                extra={"since_version": since, "error_msg": str(exc), "error_type": type(exc).__name__},
            )
            return None

    def _apply(self, items: tuple[DeltaItem, ...]) -> ErrorAggregator:
        plan = order_for_dispatch(items)
        for item in plan.skipped:
            logger.warning(
                "nsi_item_skipped_unknown_type",
                extra={"item_type": item.type, "item_id": item.id},
            )

        aggregator = ErrorAggregator()
        for entity_type, item in plan.ordered:
            reconciler = self._reconcilers.get(entity_type)
            if reconciler is None:
                logger.warning(
                    "nsi_item_skipped_unknown_type",
                    extra={"item_type": item.type, "item_id": item.id},
                )
                continue
            with LogContext.bind(entity_type=entity_type.value, entity_id=item.id or None):
                aggregator.attempt(item, lambda: self._reconcile_in_savepoint(reconciler, item))
        return aggregator

    def _reconcile_in_savepoint(self, reconciler: Reconciler, item: DeltaItem) -> ReconcileResult:
        savepoint = self._session.begin_nested()
        try:
            result = reconciler.reconcile(item, self._session, self._guard)
        except Exception:
            savepoint.rollback()
            raise
        if result.success:
            savepoint.commit()
        else:
            savepoint.rollback()
        return result

    def _next_version(self, since: int, batch: DeltaBatch) -> int:
        if batch.version < since:
            logger.warning(
                "cursor_regression_ignored",
                extra={"since_version": since, "delta_version": batch.version},
            )
            return since
        return batch.version
