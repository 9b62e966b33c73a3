"""
MaintenanceService -- bulk resets and warehouse seeding.

Contract:
    - ``clear_nsi_data()`` deletes every synchronized reference row.
      Organizations referenced by users, documents or packages survive.
      The cursor is reset to 0 so the next run re-fetches everything.
    - ``clear_portal_data()`` additionally deletes the UH queue, documents
      and packages; organizations survive only when users reference them.
      The cursor is reset to 0.
    - ``seed_warehouses()`` gives every real organization without
      warehouses up to ``warehouses_per_organization`` (max 3) warehouses
      whose code starts with SEED_CODE_PREFIX.  Ids are derived from the
      organization id, so repeated calls create nothing new.
    - ``clear_seeded_warehouses()`` deletes only warehouses this service
      seeded: SEED_CODE_PREFIX codes with a derived id or the seeded marker.

Failure modes:
    - Any SQLAlchemyError rolls back the operation's SAVEPOINT and is
      re-raised as MaintenanceError.  Nothing is retried.

The service never commits; the caller owns the transaction.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import NAMESPACE_URL, uuid5

from sqlalchemy import delete, exists, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.exceptions import MaintenanceError
from portal_kernel.logging_config import get_logger
from portal_kernel.models.portal import (
    Document,
    DocumentPackage,
    PortalUser,
    UHQueueEntry,
)
from portal_kernel.models.reference import (
    Account,
    AccountingAccount,
    Contract,
    Counterparty,
    Nomenclature,
    Organization,
    Warehouse,
)

from nsi_sync.domain.types import MaintenanceResult
from nsi_sync.services.sync_state import SyncStateStore

logger = get_logger("nsi.maintenance")

SEED_CODE_PREFIX = "SEED-"

SEED_WAREHOUSE_NAMES: tuple[str, ...] = (
    "Основной склад",
    "Склад материалов",
    "Склад готовой продукции",
)

_SEED_NAMESPACE = uuid5(NAMESPACE_URL, "portal/nsi/seed-warehouses")

# Children first, so that no delete trips a foreign key.
_REFERENCE_TABLES = (
    Contract,
    Account,
    Warehouse,
    Nomenclature,
    AccountingAccount,
    Counterparty,
)


def seeded_warehouse_id(organization_id: str, index: int) -> str:
    return str(uuid5(_SEED_NAMESPACE, f"{organization_id}:{index}"))


def _seeded_ids(organization_id: str) -> set[str]:
    return {
        seeded_warehouse_id(organization_id, index)
        for index in range(1, len(SEED_WAREHOUSE_NAMES) + 1)
    }


class MaintenanceService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        warehouses_per_organization: int = 3,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._per_org = max(0, min(warehouses_per_organization, len(SEED_WAREHOUSE_NAMES)))

    # -------------------------------------------------------------------------
    # Resets
    # -------------------------------------------------------------------------

    def clear_nsi_data(self) -> MaintenanceResult:
        return self._guarded("clear_nsi_data", self._clear_nsi_data)

    def clear_portal_data(self) -> MaintenanceResult:
        return self._guarded("clear_portal_data", self._clear_portal_data)

    def _clear_nsi_data(self) -> MaintenanceResult:
        deleted = self._delete_reference_tables()
        deleted["organizations"] = self._delete_unreferenced_organizations(
            PortalUser.organization_id,
            Document.organization_id,
            DocumentPackage.organization_id,
        )
        return self._finish_reset("clear_nsi_data", deleted)

    def _clear_portal_data(self) -> MaintenanceResult:
        deleted: dict[str, int] = {}
        for model in (UHQueueEntry, Document, DocumentPackage):
            deleted[model.__tablename__] = self._delete_all(model)
        deleted.update(self._delete_reference_tables())
        deleted["organizations"] = self._delete_unreferenced_organizations(
            PortalUser.organization_id,
        )
        return self._finish_reset("clear_portal_data", deleted)

    def _finish_reset(self, operation: str, deleted: dict[str, int]) -> MaintenanceResult:
        preserved = self._session.scalar(select(func.count()).select_from(Organization)) or 0
        SyncStateStore(self._session, self._clock).reset()
        logger.info(
            "nsi_data_cleared",
            extra={
                "operation": operation,
                "deleted": deleted,
                "organizations_preserved": preserved,
            },
        )
        return MaintenanceResult(
            operation=operation,
            deleted=deleted,
            organizations_preserved=preserved,
            message=f"Deleted {sum(deleted.values())} rows, kept {preserved} organizations; cursor reset to 0",
        )

    # -------------------------------------------------------------------------
    # Warehouse seeding
    # -------------------------------------------------------------------------

    def seed_warehouses(self) -> MaintenanceResult:
        return self._guarded("seed_warehouses", self._seed_warehouses)

    def clear_seeded_warehouses(self) -> MaintenanceResult:
        return self._guarded("clear_seeded_warehouses", self._clear_seeded_warehouses)

    def _seed_warehouses(self) -> MaintenanceResult:
        has_warehouse = exists().where(Warehouse.organization_id == Organization.id)
        organizations = self._session.scalars(
            select(Organization)
            .where(~has_warehouse, Organization.is_stub.is_(False))
            .order_by(Organization.code)
        ).all()

        created = 0
        for org in organizations:
            for index, name in enumerate(SEED_WAREHOUSE_NAMES[: self._per_org], start=1):
                self._session.add(
                    Warehouse(
                        id=seeded_warehouse_id(org.id, index),
                        code=f"{SEED_CODE_PREFIX}{org.code}-{index}",
                        name=name,
                        organization_id=org.id,
                        data={"seeded": True},
                    )
                )
                created += 1
        self._session.flush()

        logger.info(
            "warehouses_seeded",
            extra={"warehouses_created": created, "organizations": len(organizations)},
        )
        return MaintenanceResult(
            operation="seed_warehouses",
            created={"warehouses": created, "organizations": len(organizations)},
            message=f"Created {created} warehouses for {len(organizations)} organizations",
        )

    def _clear_seeded_warehouses(self) -> MaintenanceResult:
        candidates = self._session.execute(
            select(Warehouse.id, Warehouse.organization_id, Warehouse.data).where(
                Warehouse.code.startswith(SEED_CODE_PREFIX, autoescape=True)
            )
        ).all()
        # The prefix alone can collide with upstream codes.  A seeded row is
        # recognised by its derived id, or by its marker once the owning
        # organization has been re-keyed.
        ids = [
            warehouse_id
            for warehouse_id, organization_id, data in candidates
            if (organization_id is not None and warehouse_id in _seeded_ids(organization_id))
            or (data or {}).get("seeded") is True
        ]
        count = self._execute_delete(delete(Warehouse).where(Warehouse.id.in_(ids))) if ids else 0
        logger.info("seeded_warehouses_cleared", extra={"warehouses_deleted": count})
        return MaintenanceResult(
            operation="clear_seeded_warehouses",
            deleted={"warehouses": count},
            message=f"Deleted {count} seeded warehouses",
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _guarded(
        self,
        operation: str,
        fn: Callable[[], MaintenanceResult],
    ) -> MaintenanceResult:
        logger.info("maintenance_started", extra={"operation": operation})
        savepoint = self._session.begin_nested()
        try:
            result = fn()
        except SQLAlchemyError as exc:
            savepoint.rollback()
            logger.error("maintenance_failed", exc_info=True, extra={"operation": operation})
            raise MaintenanceError(operation, str(exc)) from exc
        savepoint.commit()
        return result

    def _delete_reference_tables(self) -> dict[str, int]:
        return {model.__tablename__: self._delete_all(model) for model in _REFERENCE_TABLES}

    def _delete_all(self, model: type) -> int:
        return self._execute_delete(delete(model))

    def _delete_unreferenced_organizations(self, *referencing_columns) -> int:
        referenced = [
            Organization.id.in_(
                select(column).where(column.is_not(None))
            )
            for column in referencing_columns
        ]
        return self._execute_delete(delete(Organization).where(~or_(*referenced)))

    def _execute_delete(self, stmt) -> int:
        result = self._session.execute(stmt.execution_options(synchronize_session=False))
        self._session.expire_all()
        return result.rowcount or 0
