"""
Module: portal_kernel.models.portal
Responsibility: The slice of portal-owned tables that NSI maintenance must
    know about: users, document packages, documents, and the outbound UH
    queue.  Only the columns that reference organizations (or each other)
    are modelled here; the document lifecycle itself lives elsewhere.

Invariants enforced:
    - An organization referenced by a user, package, or document is never
      removed by maintenance (see nsi_sync.services.maintenance).
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import EXTERNAL_ID_LENGTH, PortalBase, UUIDString


class PortalUser(PortalBase):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    organization_id: Mapped[str | None] = mapped_column(
        String(EXTERNAL_ID_LENGTH),
        ForeignKey("organizations.id"),
        nullable=True,
    )


class DocumentPackage(PortalBase):
    __tablename__ = "packages"

    __table_args__ = (Index("ix_packages_organization", "organization_id"),)

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    organization_id: Mapped[str | None] = mapped_column(
        String(EXTERNAL_ID_LENGTH),
        ForeignKey("organizations.id"),
        nullable=True,
    )


class Document(PortalBase):
    __tablename__ = "documents"

    __table_args__ = (Index("ix_documents_organization", "organization_id"),)

    doc_type: Mapped[str] = mapped_column(String(100), nullable=False)
    number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    organization_id: Mapped[str | None] = mapped_column(
        String(EXTERNAL_ID_LENGTH),
        ForeignKey("organizations.id"),
        nullable=True,
    )
    package_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("packages.id"),
        nullable=True,
    )


class UHQueueEntry(PortalBase):
    """Pending outbound operation for the accounting backend."""

    __tablename__ = "uh_queue"

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("documents.id"),
        nullable=False,
    )
    operation: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
