"""
Tests for ErrorAggregator (collect-and-continue) and SyncStateStore (cursor
persistence).
"""

from portal_kernel.exceptions import MissingIdentifierError

from nsi_sync.reconcilers.base import ReconcileResult
from nsi_sync.services.error_aggregator import UNHANDLED_EXCEPTION, ErrorAggregator
from nsi_sync.services.sync_state import SyncStateStore


class TestErrorAggregator:
    def test_success_counts_as_synced(self, item):
        aggregator = ErrorAggregator()
        aggregator.attempt(item("Organization", "org-1"), lambda: ReconcileResult.ok("org-1", created=True))
        assert (aggregator.total, aggregator.synced, aggregator.errors) == (1, 1, ())

    def test_failed_result_is_collected(self, item):
        aggregator = ErrorAggregator()
        aggregator.attempt(
            item("Contract", "", name="Supply"),
            lambda: ReconcileResult.failure(MissingIdentifierError("Contract")),
        )
        error = aggregator.errors[0]
        assert error.type == "Contract"
        assert error.name == "Supply"
        assert error.code == "MISSING_IDENTIFIER"
        assert error.message == "Contract item has no id"

    def test_exception_does_not_escape(self, item, captured_logs):
        def boom() -> ReconcileResult:
            raise RuntimeError("disk full")

        aggregator = ErrorAggregator()
        result = aggregator.attempt(item("Warehouse", "wh-1", name="Main"), boom)
        aggregator.attempt(item("Warehouse", "wh-2"), lambda: ReconcileResult.ok("wh-2", created=True))

        assert not result.success
        assert aggregator.total == 2
        assert aggregator.synced == 1
        assert aggregator.errors[0].code == UNHANDLED_EXCEPTION
        assert aggregator.errors[0].message == "disk full"
        failures = [r for r in captured_logs() if r["message"] == "nsi_item_failed"]
        assert failures[0]["exc_type"] == "RuntimeError"

    def test_report(self, item):
        aggregator = ErrorAggregator()
        aggregator.attempt(item("Nomenclature", "n-1"), lambda: ReconcileResult.ok("n-1", created=False))
        aggregator.attempt(
            item("Nomenclature", ""),
            lambda: ReconcileResult.failure(MissingIdentifierError("Nomenclature")),
        )
        result = aggregator.report(version=9, message="done")
        assert result.success is False
        assert (result.synced, result.total, result.failed) == (1, 2, 1)
        assert result.version == 9
        assert result.message == "done"

    def test_empty_report_is_success(self):
        result = ErrorAggregator().report()
        assert result.success is True
        assert result.total == 0


class TestSyncStateStore:
    def test_no_rows_means_version_zero(self, session, clock):
        store = SyncStateStore(session, clock)
        assert store.latest() is None
        assert store.current_version() == 0

    def test_record_run(self, session, clock):
        store = SyncStateStore(session, clock)
        cursor = store.record_run(7, items_synced=4, items_total=5, items_failed=1)
        assert cursor.version == 7
        assert cursor.synced_at == clock.now()
        assert store.current_version() == 7

    def test_latest_is_most_recent(self, session, clock):
        store = SyncStateStore(session, clock)
        store.record_run(3, items_synced=1)
        clock.advance(60)
        store.record_run(5, items_synced=2)
        assert store.current_version() == 5
        assert [c.version for c in store.history()] == [5, 3]

    def test_record_same_version_updates_row(self, session, clock):
        store = SyncStateStore(session, clock)
        store.record_run(4, items_synced=1, items_total=1)
        clock.advance(10)
        store.record_run(4, items_synced=2, items_total=2)
        history = store.history()
        assert len(history) == 1
        assert history[0].items_synced == 2

    def test_reset_leaves_single_zero_row(self, session, clock):
        store = SyncStateStore(session, clock)
        store.record_run(3, items_synced=1)
        store.record_run(8, items_synced=1)
        clock.advance(1)
        store.reset()
        history = store.history()
        assert [c.version for c in history] == [0]
        assert store.current_version() == 0

    def test_history_limit(self, session, clock):
        store = SyncStateStore(session, clock)
        for version in range(1, 6):
            store.record_run(version, items_synced=version)
            clock.advance(1)
        assert [c.version for c in store.history(limit=2)] == [5, 4]
