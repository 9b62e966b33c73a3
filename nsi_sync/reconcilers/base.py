"""
Reconciler protocol and ReconcileResult.

A reconciler upserts one DeltaItem into its reference table, keyed by the
upstream id.  Each call runs inside a SAVEPOINT managed by NSISyncService,
so a failed result (or an exception) rolls back only that item's writes,
stubs included.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.orm import Session

from portal_kernel.exceptions import ItemReconcileError, MissingIdentifierError

from nsi_sync.domain.types import PLACEHOLDER_NAME, DeltaItem, EntityType

if TYPE_CHECKING:
    from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard


@dataclass(frozen=True)
class ReconcileResult:
    """Result of a single reconcile attempt."""

    success: bool
    entity_id: str | None = None
    created: bool = False
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, entity_id: str, created: bool) -> ReconcileResult:
        return cls(success=True, entity_id=entity_id, created=created)

    @classmethod
    def failure(cls, exc: ItemReconcileError) -> ReconcileResult:
        return cls(success=False, error=str(exc), error_code=exc.code)


class Reconciler(Protocol):
    """Per-entity-type upsert routine."""

    @property
    def entity_type(self) -> EntityType:
        ...

    def reconcile(
        self,
        item: DeltaItem,
        session: Session,
        guard: ReferentialIntegrityGuard,
    ) -> ReconcileResult:
        """Upsert ``item``. Runs inside a SAVEPOINT."""
        ...


def resolve_name(item: DeltaItem) -> str:
    """name -> data.name -> code -> id -> placeholder; never empty."""
    return (
        item.name
        or item.data.name
        or item.code
        or item.data.code
        or item.id
        or PLACEHOLDER_NAME
    )


def resolve_code(item: DeltaItem) -> str | None:
    return item.code or item.data.code


def missing_id(item: DeltaItem) -> ReconcileResult | None:
    """Failure result when the item carries no id, else None."""
    if item.id:
        return None
    return ReconcileResult.failure(MissingIdentifierError(item.type or "Unknown"))
