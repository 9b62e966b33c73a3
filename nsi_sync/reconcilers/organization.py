"""
Organization reconciler.

Organizations are matched by id first and then by code, because locally
seeded organizations may carry a different id than upstream.  A code match
with a different id moves the local row onto the upstream id: every
reference to the local id is repointed and the local row is removed, so
children delivered with the upstream id resolve to the real organization
instead of a stub.  A stub already holding the upstream id absorbs the local
row the same way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from portal_kernel.exceptions import OrganizationCodeConflictError
from portal_kernel.logging_config import get_logger
from portal_kernel.models.portal import Document, DocumentPackage, PortalUser
from portal_kernel.models.reference import (
    Account,
    Contract,
    Organization,
    Warehouse,
    synthetic_organization_code,
)

from nsi_sync.domain.types import DeltaItem, EntityType
from nsi_sync.reconcilers.base import (
    ReconcileResult,
    missing_id,
    resolve_code,
    resolve_name,
)

if TYPE_CHECKING:
    from nsi_sync.services.integrity_guard import ReferentialIntegrityGuard

logger = get_logger("nsi.reconcilers.organization")

# Every column that references organizations.id.
ORGANIZATION_REFERENCES = (
    PortalUser.organization_id,
    DocumentPackage.organization_id,
    Document.organization_id,
    Contract.organization_id,
    Warehouse.organization_id,
    Account.organization_id,
)


def _code_owner(session: Session, code: str, exclude_id: str) -> Organization | None:
    stmt = select(Organization).where(
        Organization.code == code,
        Organization.id != exclude_id,
    )
    return session.scalars(stmt).first()


def adopt_upstream_id(
    session: Session,
    local: Organization,
    upstream_id: str,
    target: Organization | None = None,
) -> Organization:
    """Move ``local`` onto ``upstream_id`` and return the row now holding it.

    ``target`` is the row already stored under ``upstream_id`` (a stub), if
    any.  Runs inside the caller's SAVEPOINT.
    """
    local_id = local.id
    if target is None:
        target = Organization(
            id=upstream_id,
            code=synthetic_organization_code(upstream_id),
            name=local.name,
            inn=local.inn,
            is_stub=False,
        )
        session.add(target)
        session.flush()

    for column in ORGANIZATION_REFERENCES:
        session.execute(
            update(column.class_)
            .where(column == local_id)
            .values({column.key: upstream_id})
        )

    session.delete(local)
    session.flush()
    logger.info(
        "organization_rekeyed",
        extra={"local_id": local_id, "upstream_id": upstream_id},
    )
    return target


class OrganizationReconciler:
    entity_type: EntityType = EntityType.ORGANIZATION

    def reconcile(
        self,
        item: DeltaItem,
        session: Session,
        guard: ReferentialIntegrityGuard,
    ) -> ReconcileResult:
        failure = missing_id(item)
        if failure is not None:
            return failure

        code = resolve_code(item)
        name = resolve_name(item)

        org = session.get(Organization, item.id)
        if org is None and code:
            local = session.scalars(
                select(Organization).where(Organization.code == code)
            ).first()
            if local is not None:
                org = adopt_upstream_id(session, local, item.id)

        if org is None:
            org = Organization(
                id=item.id,
                code=code or synthetic_organization_code(item.id),
                name=name,
                inn=item.data.inn,
                is_stub=False,
            )
            session.add(org)
            session.flush()
            return ReconcileResult.ok(org.id, created=True)

        if code and code != org.code:
            owner = _code_owner(session, code, org.id)
            if owner is not None:
                if not org.is_stub:
                    return ReconcileResult.failure(
                        OrganizationCodeConflictError(org.id, code, owner.id)
                    )
                org = adopt_upstream_id(session, owner, org.id, target=org)
            org.code = code
        elif not code and org.is_stub:
            org.code = synthetic_organization_code(org.id)

        org.name = name
        org.inn = item.data.inn
        org.is_stub = False
        session.flush()
        return ReconcileResult.ok(org.id, created=False)
