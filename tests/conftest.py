"""
Pytest fixtures for the portal NSI sync test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- ``captured_logs`` for asserting on emitted JSON log events
- In-memory SQLite engine (StaticPool, foreign keys on) with all tables
- Session factory / session, deterministic clock
- ``FakeFeedClient`` and item builders for the upstream NSI feed
"""

import json
import logging
from datetime import datetime
from io import StringIO
from typing import Any, Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from portal_kernel.db.engine import build_engine, create_tables
from portal_kernel.domain.clock import DeterministicClock
from portal_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from nsi_sync.domain.types import DeltaBatch, DeltaItem, ItemData, WarehouseDelta


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture portal logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.sync()
            logs = captured_logs()
            assert any(r["message"] == "nsi_sync_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("portal")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def clock():
    # Use naive datetimes for SQLite compatibility (SQLite strips tzinfo)
    return DeterministicClock(fixed_time=datetime(2026, 2, 1, 12, 0, 0))


# =============================================================================
# Upstream feed fixtures
# =============================================================================


def make_item(
    item_type: str,
    item_id: str,
    code: str | None = None,
    name: str | None = None,
    **data: Any,
) -> DeltaItem:
    """Build a DeltaItem; keyword arguments (``type`` included) become the ``data`` bag."""
    return DeltaItem(
        type=item_type,
        id=item_id,
        code=code,
        name=name,
        data=ItemData.from_mapping(data),
    )


class FakeFeedClient:
    """In-memory UpstreamFeedClient.

    ``deltas`` maps a cursor to the DeltaBatch served for it; unknown cursors
    get an empty batch at the same version.  ``warehouse_items`` is served by
    the warehouse feed; set ``warehouse_error``/``delta_error`` to make the
    corresponding call raise.
    """

    def __init__(self) -> None:
        self.deltas: dict[int, DeltaBatch] = {}
        self.warehouse_items: list[DeltaItem] = []
        self.delta_error: Exception | None = None
        self.warehouse_error: Exception | None = None
        self.delta_calls: list[int] = []
        self.warehouse_calls: list[int | None] = []

    def serve(self, since: int, version: int, items: list[DeltaItem]) -> None:
        self.deltas[since] = DeltaBatch(version=version, items=tuple(items))

    def get_delta(self, since_version: int) -> DeltaBatch:
        self.delta_calls.append(since_version)
        if self.delta_error is not None:
            raise self.delta_error
        return self.deltas.get(since_version, DeltaBatch(version=since_version))

    def get_warehouse_delta(self, since_version: int | None = None) -> WarehouseDelta:
        self.warehouse_calls.append(since_version)
        if self.warehouse_error is not None:
            raise self.warehouse_error
        return WarehouseDelta(items=tuple(self.warehouse_items))


@pytest.fixture
def item():
    return make_item


@pytest.fixture
def feed() -> FakeFeedClient:
    return FakeFeedClient()
