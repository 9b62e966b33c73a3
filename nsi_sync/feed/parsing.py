"""
Wire payload -> DeltaBatch / WarehouseDelta.

The upstream feed sends JSON objects::

    {"version": 7, "timestamp": "...", "items": [
        {"type": "Organization", "id": "...", "code": "...", "name": "...",
         "data": {...}, "updatedAt": "..."}
    ]}

The warehouse feed sends the same shape without a required ``version``.

Failure modes:
    - FeedMalformedError when the envelope is not an object, ``items`` is not
      a list, an item is not an object, or ``version`` is not an integer.
    - Items with a missing ``id`` are kept (with an empty id) so that the
      reconciler reports them as item-level failures instead of aborting the
      whole run.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from portal_kernel.exceptions import FeedMalformedError

from nsi_sync.domain.types import DeltaBatch, DeltaItem, ItemData, WarehouseDelta


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_version(value: Any, required: bool) -> int | None:
    if value is None:
        if required:
            raise FeedMalformedError("missing 'version'")
        return None
    if isinstance(value, bool):
        raise FeedMalformedError(f"'version' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise FeedMalformedError(f"'version' must be an integer, got {value!r}")


def parse_item(raw: Any, position: int) -> DeltaItem:
    if not isinstance(raw, Mapping):
        raise FeedMalformedError(f"item #{position} is not an object")

    data = raw.get("data")
    if data is not None and not isinstance(data, Mapping):
        raise FeedMalformedError(f"item #{position}: 'data' is not an object")

    return DeltaItem(
        type=_optional_text(raw.get("type")) or "",
        id=_optional_text(raw.get("id")) or "",
        code=_optional_text(raw.get("code")),
        name=_optional_text(raw.get("name")),
        data=ItemData.from_mapping(data),
    )


def _parse_items(payload: Mapping[str, Any]) -> tuple[DeltaItem, ...]:
    items = payload.get("items")
    if items is None:
        return ()
    if not isinstance(items, list):
        raise FeedMalformedError("'items' must be a list")
    return tuple(parse_item(raw, position) for position, raw in enumerate(items, start=1))


def parse_delta_batch(payload: Any) -> DeltaBatch:
    if not isinstance(payload, Mapping):
        raise FeedMalformedError("delta response is not an object")
    return DeltaBatch(
        version=_parse_version(payload.get("version"), required=True),
        items=_parse_items(payload),
        timestamp=_optional_text(payload.get("timestamp")),
    )


def parse_warehouse_delta(payload: Any) -> WarehouseDelta:
    if not isinstance(payload, Mapping):
        raise FeedMalformedError("warehouse delta response is not an object")
    return WarehouseDelta(
        items=_parse_items(payload),
        version=_parse_version(payload.get("version"), required=False),
    )
