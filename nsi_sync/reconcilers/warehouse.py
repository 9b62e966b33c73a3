"""
Warehouse reconciler.

Also used on its own by the warehouse-only run.  An update without a code
keeps the stored code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from portal_kernel.models.reference import Warehouse

from nsi_sync.domain.types import DeltaItem, EntityType
from nsi_sync.reconcilers.base import (
    ReconcileResult,
    missing_id,
    resolve_code,
    resolve_name,
)

if TYPE_CHECKING:
    from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard


class WarehouseReconciler:
    entity_type: EntityType = EntityType.WAREHOUSE

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

        warehouse = session.get(Warehouse, item.id)
        created = warehouse is None
        if created:
            warehouse = Warehouse(id=item.id)
            session.add(warehouse)

        warehouse.code = resolve_code(item) or warehouse.code
        warehouse.name = resolve_name(item)
        warehouse.organization_id = organization_id
        warehouse.data = dict(item.data.raw)
        session.flush()
        return ReconcileResult.ok(warehouse.id, created=created)
