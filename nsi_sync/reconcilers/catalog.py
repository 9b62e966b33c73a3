"""
Reconcilers for the independent catalogs: nomenclature and chart of accounts.

Neither references another table, so no guard calls are needed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from portal_kernel.models.reference import AccountingAccount, Nomenclature

from nsi_sync.domain.types import DeltaItem, EntityType
from nsi_sync.reconcilers.base import (
    ReconcileResult,
    missing_id,
    resolve_code,
    resolve_name,
)

if TYPE_CHECKING:
    from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard


class _CatalogReconciler:
    entity_type: EntityType
    model: type[Nomenclature] | type[AccountingAccount]

    def reconcile(
        self,
        item: DeltaItem,
        session: Session,
        guard: ReferentialIntegrityGuard,
    ) -> ReconcileResult:
        failure = missing_id(item)
        if failure is not None:
            return failure

        row = session.get(self.model, item.id)
        created = row is None
        if created:
            row = self.model(id=item.id)
            session.add(row)

        row.code = resolve_code(item) or row.code
        row.name = resolve_name(item)
        row.data = dict(item.data.raw)
        session.flush()
        return ReconcileResult.ok(row.id, created=created)


class NomenclatureReconciler(_CatalogReconciler):
    entity_type = EntityType.NOMENCLATURE
    model = Nomenclature


class AccountingAccountReconciler(_CatalogReconciler):
    entity_type = EntityType.ACCOUNTING_ACCOUNT
    model = AccountingAccount
