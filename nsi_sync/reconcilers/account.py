"""Bank/cash account reconciler.  Code and type are kept when the delta omits them."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from portal_kernel.models.reference import Account

from nsi_sync.domain.types import DeltaItem, EntityType
from nsi_sync.reconcilers.base import (
    ReconcileResult,
    missing_id,
    resolve_code,
    resolve_name,
)

if TYPE_CHECKING:
    from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard


class AccountReconciler:
    entity_type: EntityType = EntityType.ACCOUNT

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
        guard.ensure_exists(EntityType.ORGANIZATION, organization_id)

        account = session.get(Account, item.id)
        created = account is None
        if created:
            account = Account(id=item.id)
            session.add(account)

        account.code = resolve_code(item) or account.code
        account.name = resolve_name(item)
        account.organization_id = organization_id
        account.type = item.data.type or account.type
        account.data = dict(item.data.raw)
        session.flush()
        return ReconcileResult.ok(account.id, created=created)
