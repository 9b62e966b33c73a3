"""Pure domain layer of the NSI sync engine (types, merge, dispatch). ZERO I/O."""

from nsi_sync.domain.dispatch import DispatchPlan, order_for_dispatch
from nsi_sync.domain.merge import merge_deltas
from nsi_sync.domain.types import (
    DISPATCH_ORDER,
    PLACEHOLDER_NAME,
    SYSTEM_ERROR_TYPE,
    DeltaBatch,
    DeltaItem,
    EntityType,
    ItemData,
    ItemError,
    MaintenanceResult,
    SyncCursor,
    SyncResult,
    WarehouseDelta,
)

__all__ = [
    "DISPATCH_ORDER",
    "DeltaBatch",
    "DeltaItem",
    "DispatchPlan",
    "EntityType",
    "ItemData",
    "ItemError",
    "MaintenanceResult",
    "PLACEHOLDER_NAME",
    "SYSTEM_ERROR_TYPE",
    "SyncCursor",
    "SyncResult",
    "WarehouseDelta",
    "merge_deltas",
    "order_for_dispatch",
]
