"""Contract reconciler: guards organization and counterparty, then upserts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from portal_kernel.models.reference import Contract

from nsi_sync.domain.types import DeltaItem, EntityType
from nsi_sync.reconcilers.base import ReconcileResult, missing_id, resolve_name

if TYPE_CHECKING:
    from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard


class ContractReconciler:
    entity_type: EntityType = EntityType.CONTRACT

    def reconcile(
        self,
        item: DeltaItem,
        session: Session,
        guard: ReferentialIntegrityGuard,
    ) -> ReconcileResult:
        failure = missing_id(item)
        if failure is not None:
            return failure

        organization_id = item.data.organization_id
        counterparty_id = item.data.counterparty_id
        guard.ensure_exists(EntityType.ORGANIZATION, organization_id)
        guard.ensure_exists(EntityType.COUNTERPARTY, counterparty_id)

        contract = session.get(Contract, item.id)
        created = contract is None
        if created:
            contract = Contract(id=item.id)
            session.add(contract)

        contract.name = resolve_name(item)
        contract.organization_id = organization_id
        contract.counterparty_id = counterparty_id
        contract.data = dict(item.data.raw)
        session.flush()
        return ReconcileResult.ok(contract.id, created=created)
