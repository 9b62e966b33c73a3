"""
Module: portal_kernel.models.reference
Responsibility: ORM persistence for NSI reference data replicated from the
    upstream accounting system (UH): organizations, counterparties,
    contracts, warehouses, nomenclature, bank/cash accounts, and the chart of
    accounts.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Every row is keyed by the upstream identifier (ReferenceBase.id).
    - organizations.code is NOT NULL and UNIQUE (uq_organization_code).
      Synthetic codes for stub or code-less organizations are namespaced
      with SYNTHETIC_CODE_PREFIX so they never collide with upstream codes.
    - organization_id / counterparty_id are real foreign keys.  The sync path
      guarantees they resolve by creating stubs, never by dropping the child.
    - Rows are updated in place on re-sync and are only deleted by
      maintenance operations.
"""

from typing import Any

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import EXTERNAL_ID_LENGTH, JSONType, ReferenceBase

SYNTHETIC_CODE_PREFIX = "nsi:"


def synthetic_organization_code(organization_id: str, stub: bool = False) -> str:
    """Namespaced code for organizations that arrive without one."""
    marker = "stub:" if stub else ""
    return f"{SYNTHETIC_CODE_PREFIX}{marker}{organization_id}"


class Organization(ReferenceBase):
    """
    Legal entity of the holding (own organization).

    ``is_stub`` is True while the row is a placeholder created to satisfy a
    foreign key; the first real delta for the id clears it.
    """

    __tablename__ = "organizations"

    __table_args__ = (
        UniqueConstraint("code", name="uq_organization_code"),
        Index("idx_organization_inn", "inn"),
    )

    code: Mapped[str] = mapped_column(String(120), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    inn: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_stub: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Organization {self.id}: {self.code} {self.name!r}>"


class Counterparty(ReferenceBase):
    __tablename__ = "counterparties"

    __table_args__ = (Index("idx_counterparty_inn", "inn"),)

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    inn: Mapped[str | None] = mapped_column(String(20), nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_stub: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Counterparty {self.id}: {self.name!r}>"


class Contract(ReferenceBase):
    __tablename__ = "contracts"

    __table_args__ = (
        Index("idx_contract_organization", "organization_id"),
        Index("idx_contract_counterparty", "counterparty_id"),
    )

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    organization_id: Mapped[str | None] = mapped_column(
        String(EXTERNAL_ID_LENGTH),
        ForeignKey("organizations.id"),
        nullable=True,
    )
    counterparty_id: Mapped[str | None] = mapped_column(
        String(EXTERNAL_ID_LENGTH),
        ForeignKey("counterparties.id"),
        nullable=True,
    )
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Contract {self.id}: {self.name!r}>"


class Warehouse(ReferenceBase):
    __tablename__ = "warehouses"

    __table_args__ = (Index("idx_warehouse_organization", "organization_id"),)

    code: Mapped[str | None] = mapped_column(String(120), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    organization_id: Mapped[str | None] = mapped_column(
        String(EXTERNAL_ID_LENGTH),
        ForeignKey("organizations.id"),
        nullable=True,
    )
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Warehouse {self.id}: {self.code} {self.name!r}>"


class Nomenclature(ReferenceBase):
    __tablename__ = "nomenclature"

    __table_args__ = (Index("idx_nomenclature_code", "code"),)

    code: Mapped[str | None] = mapped_column(String(120), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)


class Account(ReferenceBase):
    """Bank or cash account of an organization."""

    __tablename__ = "accounts"

    __table_args__ = (Index("idx_account_organization", "organization_id"),)

    code: Mapped[str | None] = mapped_column(String(120), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    organization_id: Mapped[str | None] = mapped_column(
        String(EXTERNAL_ID_LENGTH),
        ForeignKey("organizations.id"),
        nullable=True,
    )
    type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)


class AccountingAccount(ReferenceBase):
    """Chart-of-accounts entry."""

    __tablename__ = "accounting_accounts"

    __table_args__ = (Index("idx_accounting_account_code", "code"),)

    code: Mapped[str | None] = mapped_column(String(120), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
