"""
nsi_sync.domain.types -- Pure frozen dataclasses for the NSI sync engine.

ZERO I/O.  Every result type exposes ``to_dict()`` returning a plain,
JSON-serializable dict for the admin layer.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

PLACEHOLDER_NAME = "Без наименования"

SYSTEM_ERROR_TYPE = "System"


# =============================================================================
# Entity types
# =============================================================================


class EntityType(str, Enum):
    """Reference entity kinds delivered by the upstream feed."""

    ORGANIZATION = "Organization"
    COUNTERPARTY = "Counterparty"
    CONTRACT = "Contract"
    WAREHOUSE = "Warehouse"
    NOMENCLATURE = "Nomenclature"
    ACCOUNT = "Account"
    ACCOUNTING_ACCOUNT = "AccountingAccount"

    @classmethod
    def parse(cls, value: str | None) -> EntityType | None:
        """Return the member for ``value`` or None for unknown types."""
        try:
            return cls(value)
        except ValueError:
            return None


# Parents before children: Contract needs Organization and Counterparty,
# Warehouse and Account need Organization.
DISPATCH_ORDER: tuple[EntityType, ...] = (
    EntityType.ORGANIZATION,
    EntityType.COUNTERPARTY,
    EntityType.CONTRACT,
    EntityType.WAREHOUSE,
    EntityType.NOMENCLATURE,
    EntityType.ACCOUNT,
    EntityType.ACCOUNTING_ACCOUNT,
)


# =============================================================================
# Delta payload
# =============================================================================


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first(data: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = _clean(data.get(key))
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class ItemData:
    """Typed view of an item's ``data`` bag.

    Known attributes are lifted into fields; the untouched upstream mapping
    is kept in ``raw`` so unknown attributes survive schema drift and are
    persisted as-is.
    """

    code: str | None = None
    name: str | None = None
    inn: str | None = None
    organization_id: str | None = None
    counterparty_id: str | None = None
    type: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ItemData:
        data = dict(data or {})
        return cls(
            code=_first(data, "code"),
            name=_first(data, "name"),
            inn=_first(data, "inn", "INN"),
            organization_id=_first(data, "organizationId", "organization_id"),
            counterparty_id=_first(data, "counterpartyId", "counterparty_id"),
            type=_first(data, "type"),
            raw=data,
        )


@dataclass(frozen=True)
class DeltaItem:
    """One changed reference item.  Transient: lives for one sync run."""

    type: str
    id: str
    code: str | None = None
    name: str | None = None
    data: ItemData = field(default_factory=ItemData)

    @property
    def entity_type(self) -> EntityType | None:
        return EntityType.parse(self.type)

    @property
    def display_name(self) -> str:
        """Human label: name, then data.name, then code, then id."""
        return self.name or self.data.name or self.code or self.id


@dataclass(frozen=True)
class DeltaBatch:
    """General-feed response: items changed since a cursor, and the new cursor."""

    version: int
    items: tuple[DeltaItem, ...] = ()
    timestamp: str | None = None


@dataclass(frozen=True)
class WarehouseDelta:
    """Warehouse-feed response.  Its cursor is independent of DeltaBatch.version."""

    items: tuple[DeltaItem, ...] = ()
    version: int | None = None


# =============================================================================
# Sync state
# =============================================================================


@dataclass(frozen=True)
class SyncCursor:
    """Snapshot of one ``nsi_sync_state`` row."""

    version: int
    items_synced: int = 0
    items_total: int = 0
    items_failed: int = 0
    synced_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "items_synced": self.items_synced,
            "items_total": self.items_total,
            "items_failed": self.items_failed,
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
        }


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class ItemError:
    """One failed item, shown to operators as-is."""

    type: str
    id: str
    message: str
    name: str | None = None
    code: str = "ITEM_RECONCILE_FAILED"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "message": self.message,
            "code": self.code,
        }


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one sync run."""

    success: bool
    synced: int = 0
    total: int = 0
    failed: int = 0
    errors: tuple[ItemError, ...] = ()
    version: int | None = None
    message: str | None = None

    @classmethod
    def empty(cls, message: str | None = None, version: int | None = None) -> SyncResult:
        return cls(success=True, version=version, message=message)

    @classmethod
    def system_failure(cls, message: str, code: str = "SYSTEM") -> SyncResult:
        """Run aborted before any item was applied (feed unreachable, ...).

        ``failed`` stays 0: no item was attempted, the single error is
        run-scoped.
        """
        error = ItemError(type=SYSTEM_ERROR_TYPE, id="", message=message, code=code)
        return cls(success=False, errors=(error,), message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "synced": self.synced,
            "total": self.total,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
            "version": self.version,
            "message": self.message,
        }


@dataclass(frozen=True)
class MaintenanceResult:
    """Outcome of a maintenance operation."""

    operation: str
    success: bool = True
    deleted: dict[str, int] = field(default_factory=dict)
    created: dict[str, int] = field(default_factory=dict)
    organizations_preserved: int = 0
    message: str | None = None

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "success": self.success,
            "deleted": dict(self.deleted),
            "created": dict(self.created),
            "organizations_preserved": self.organizations_preserved,
            "message": self.message,
        }
