"""Counterparty reconciler: upsert by id; promotes stubs in place."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from portal_kernel.models.reference import Counterparty

from nsi_sync.domain.types import DeltaItem, EntityType
from nsi_sync.reconcilers.base import ReconcileResult, missing_id, resolve_name

if TYPE_CHECKING:
    from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard


class CounterpartyReconciler:
    entity_type: EntityType = EntityType.COUNTERPARTY

    def reconcile(
        self,
        item: DeltaItem,
        session: Session,
        guard: ReferentialIntegrityGuard,
    ) -> ReconcileResult:
        failure = missing_id(item)
        if failure is not None:
            return failure

        counterparty = session.get(Counterparty, item.id)
        created = counterparty is None
        if created:
            counterparty = Counterparty(id=item.id)
            session.add(counterparty)

        counterparty.name = resolve_name(item)
        counterparty.inn = item.data.inn
        counterparty.data = dict(item.data.raw)
        counterparty.is_stub = False
        session.flush()
        return ReconcileResult.ok(counterparty.id, created=created)
