"""
Dependency-Ordered Dispatcher.

Buckets merged items by entity type (arrival order kept inside a bucket) and
emits the buckets in DISPATCH_ORDER so that parents are written before the
children that reference them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from nsi_sync.domain.types import DISPATCH_ORDER, DeltaItem, EntityType


@dataclass(frozen=True)
class DispatchPlan:
    """Items in processing order, plus the ones that were skipped."""

    ordered: tuple[tuple[EntityType, DeltaItem], ...]
    skipped: tuple[DeltaItem, ...] = ()

    def __len__(self) -> int:
        return len(self.ordered)


def order_for_dispatch(items: Iterable[DeltaItem]) -> DispatchPlan:
    """Return a DispatchPlan for ``items``.

    Items with an unrecognized type land in ``skipped``; they are not errors
    and do not count towards the run total.
    """
    buckets: dict[EntityType, list[DeltaItem]] = {t: [] for t in DISPATCH_ORDER}
    skipped: list[DeltaItem] = []

    for item in items:
        entity_type = item.entity_type
        if entity_type is None:
            skipped.append(item)
            continue
        buckets[entity_type].append(item)

    ordered = tuple(
        (entity_type, item)
        for entity_type in DISPATCH_ORDER
        for item in buckets[entity_type]
    )
    return DispatchPlan(ordered=ordered, skipped=tuple(skipped))
