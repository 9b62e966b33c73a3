"""
SyncStateStore -- persistence of the NSI cursor (``nsi_sync_state``).

Contract:
    - ``current_version()`` is the version of the latest row, 0 when none.
    - ``record_run()`` upserts the row for a version (one row per version)
      and stamps it with the injected clock.
    - ``reset()`` drops history and leaves a single version-0 row, so the
      next run fetches everything.

The store only flushes; the caller owns the transaction, so a run's cursor
row commits together with the items it describes.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.logging_config import get_logger
from portal_kernel.models.sync_state import NSISyncStateModel

from nsi_sync.domain.types import SyncCursor

logger = get_logger("nsi.sync_state")


def _to_cursor(row: NSISyncStateModel) -> SyncCursor:
    return SyncCursor(
        version=row.version,
        items_synced=row.items_synced,
        items_total=row.items_total,
        items_failed=row.items_failed,
        synced_at=row.synced_at,
    )


class SyncStateStore:
    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def latest(self) -> SyncCursor | None:
        stmt = (
            select(NSISyncStateModel)
            .order_by(
                NSISyncStateModel.synced_at.desc(),
                NSISyncStateModel.version.desc(),
            )
            .limit(1)
        )
        row = self._session.scalars(stmt).first()
        return _to_cursor(row) if row is not None else None

    def current_version(self) -> int:
        cursor = self.latest()
        return cursor.version if cursor is not None else 0

    def history(self, limit: int = 20) -> list[SyncCursor]:
        """Most recent runs first."""
        stmt = (
            select(NSISyncStateModel)
            .order_by(
                NSISyncStateModel.synced_at.desc(),
                NSISyncStateModel.version.desc(),
            )
            .limit(limit)
        )
        return [_to_cursor(row) for row in self._session.scalars(stmt)]

    def record_run(
        self,
        version: int,
        items_synced: int,
        items_total: int = 0,
        items_failed: int = 0,
    ) -> SyncCursor:
        row = self._session.scalars(
            select(NSISyncStateModel).where(NSISyncStateModel.version == version)
        ).first()
        if row is None:
            row = NSISyncStateModel(version=version)
            self._session.add(row)

        row.items_synced = items_synced
        row.items_total = items_total
        row.items_failed = items_failed
        row.synced_at = self._clock.now()
        self._session.flush()

        logger.info(
            "cursor_recorded",
            extra={"version": version, "items_synced": items_synced, "items_failed": items_failed},
        )
        return _to_cursor(row)

    def reset(self) -> SyncCursor:
        self._session.execute(delete(NSISyncStateModel))
        row = NSISyncStateModel(
            version=0,
            items_synced=0,
            items_total=0,
            items_failed=0,
            synced_at=self._clock.now(),
        )
        self._session.add(row)
        self._session.flush()
        logger.info("cursor_reset")
        return _to_cursor(row)
