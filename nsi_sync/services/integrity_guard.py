"""
Referential Integrity Guard -- make every foreign key satisfiable.

Contract:
    ``ensure_exists(kind, id)`` is a no-op when the parent row exists.
    Otherwise it inserts a minimal stub (placeholder name from the truncated
    id, ``is_stub=True``) and flushes, so the child's write cannot fail on
    the foreign key.  The parent's own reconciler later overwrites the stub
    in place when the real record arrives.

Invariants enforced:
    - Stub organizations get a namespaced code (``nsi:stub:<id>``) that can
      never collide with an upstream code.
    - Only Organization and Counterparty parents are guarded; any other kind
      raises UnsupportedReferenceKindError.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from portal_kernel.exceptions import UnsupportedReferenceKindError
from portal_kernel.logging_config import get_logger
from portal_kernel.models.reference import (
    Counterparty,
    Organization,
    synthetic_organization_code,
)

from nsi_sync.domain.types import EntityType

logger = get_logger("nsi.integrity_guard")

STUB_ID_PREFIX_LENGTH = 8

_STUB_LABELS = {
    EntityType.ORGANIZATION: "Организация",
    EntityType.COUNTERPARTY: "Контрагент",
}


def stub_name(kind: EntityType, entity_id: str) -> str:
    return f"{_STUB_LABELS[kind]} {entity_id[:STUB_ID_PREFIX_LENGTH]}"


class ReferentialIntegrityGuard:
    """Creates placeholder parents on demand within the caller's transaction."""

    def __init__(self, session: Session):
        self._session = session

    def ensure_exists(self, kind: EntityType, entity_id: str | None) -> bool:
        """Make sure ``entity_id`` of ``kind`` exists. Returns True if a stub was created."""
        if not entity_id:
            return False

        if kind is EntityType.ORGANIZATION:
            if self._session.get(Organization, entity_id) is not None:
                return False
            self._session.add(
                Organization(
                    id=entity_id,
                    code=synthetic_organization_code(entity_id, stub=True),
                    name=stub_name(kind, entity_id),
                    is_stub=True,
                )
            )
        elif kind is EntityType.COUNTERPARTY:
            if self._session.get(Counterparty, entity_id) is not None:
                return False
            self._session.add(
                Counterparty(
                    id=entity_id,
                    name=stub_name(kind, entity_id),
                    data={},
                    is_stub=True,
                )
            )
        else:
            raise UnsupportedReferenceKindError(str(kind.value))

        self._session.flush()
        logger.info("stub_created", extra={"kind": kind.value, "stub_id": entity_id})
        return True
