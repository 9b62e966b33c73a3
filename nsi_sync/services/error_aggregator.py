"""
Error Aggregator -- collect per-item failures and keep going.

``attempt()`` is the collect-and-continue combinator: it runs one item's
action, turns a failed ReconcileResult or an unexpected exception into an
ItemError, and never lets either escape.  ``report()`` produces the run's
SyncResult.

Counting contract:
    total   = items attempted (unknown types are skipped before this point)
    synced  = attempts that succeeded
    failed  = len(errors)
    success = failed == 0
"""

from __future__ import annotations

from collections.abc import Callable

from portal_kernel.logging_config import get_logger

from nsi_sync.domain.types import DeltaItem, ItemError, SyncResult
from nsi_sync.reconcilers.base import ReconcileResult

logger = get_logger("nsi.error_aggregator")

UNHANDLED_EXCEPTION = "UNHANDLED_EXCEPTION"


class ErrorAggregator:
    def __init__(self) -> None:
        self._total = 0
        self._synced = 0
        self._errors: list[ItemError] = []

    @property
    def total(self) -> int:
        return self._total

    @property
    def synced(self) -> int:
        return self._synced

    @property
    def errors(self) -> tuple[ItemError, ...]:
        return tuple(self._errors)

    def attempt(
        self,
        item: DeltaItem,
        action: Callable[[], ReconcileResult],
    ) -> ReconcileResult:
        """Run ``action`` for ``item`` and record the outcome."""
        self._total += 1
        try:
            result = action()
        except Exception as exc:
            logger.warning(
                "nsi_item_failed",
                exc_info=True,
                extra={"error_code": UNHANDLED_EXCEPTION, "error_msg": str(exc)},
            )
            result = ReconcileResult(
                success=False,
                error=str(exc) or type(exc).__name__,
                error_code=UNHANDLED_EXCEPTION,
            )
            self._record_failure(item, result)
            return result

        if result.success:
            self._synced += 1
        else:
            logger.warning(
                "nsi_item_failed",
                extra={"error_code": result.error_code, "error_msg": result.error},
            )
            self._record_failure(item, result)
        return result

    def _record_failure(self, item: DeltaItem, result: ReconcileResult) -> None:
        self._errors.append(
            ItemError(
                type=item.type,
                id=item.id,
                name=item.display_name or None,
                message=result.error or "Unknown error",
                code=result.error_code or "ITEM_RECONCILE_FAILED",
            )
        )

    def report(self, version: int | None = None, message: str | None = None) -> SyncResult:
        failed = len(self._errors)
        return SyncResult(
            success=failed == 0,
            synced=self._synced,
            total=self._total,
            failed=failed,
            errors=tuple(self._errors),
            version=version,
            message=message,
        )
