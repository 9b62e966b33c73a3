"""NSI sync services (state store, guard, aggregation, runs, maintenance, scheduling)."""

from nsi_sync.services.error_aggregator import ErrorAggregator
from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard
from nsi_sync.services.maintenance import MaintenanceService
from nsi_sync.services.orchestrator import SyncOrchestrator
from nsi_sync.services.sync_service import NSISyncService
from nsi_sync.services.sync_state import SyncStateStore

__all__ = [
    "ErrorAggregator",
    "MaintenanceService",
    "NSISyncService",
    "ReferentialIntegrityGuard",
    "SyncOrchestrator",
    "SyncStateStore",
]
