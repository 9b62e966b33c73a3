"""
Delta Merger -- combine the general feed and the warehouse-only feed.

Pure function, no I/O.  The general feed wins: a warehouse present in both
feeds is taken from the general feed, so it is reconciled once per run.
"""

from __future__ import annotations

from nsi_sync.domain.types import DeltaItem, EntityType, WarehouseDelta


def merge_deltas(
    general: tuple[DeltaItem, ...] | list[DeltaItem],
    warehouse: WarehouseDelta | None,
) -> tuple[DeltaItem, ...]:
    """Append warehouse-feed items the general feed did not carry.

    Only items of type Warehouse are taken from the warehouse feed.  Order is
    general items first (as delivered), then the extra warehouses in
    warehouse-feed order.  Duplicates inside the warehouse feed itself are
    collapsed to their first occurrence.
    """
    merged = list(general)
    if warehouse is None:
        return tuple(merged)

    seen = {item.id for item in merged}
    for item in warehouse.items:
        if item.entity_type is not EntityType.WAREHOUSE:
            continue
        if item.id in seen:
            continue
        seen.add(item.id)
        merged.append(item)
    return tuple(merged)
