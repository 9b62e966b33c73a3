"""ORM models. Importing this package registers every table on Base.metadata."""

from portal_kernel.models.portal import (
    Document,
    DocumentPackage,
    PortalUser,
    UHQueueEntry,
)
from portal_kernel.models.reference import (
    SYNTHETIC_CODE_PREFIX,
    Account,
    AccountingAccount,
    Contract,
    Counterparty,
    Nomenclature,
    Organization,
    Warehouse,
    synthetic_organization_code,
)
from portal_kernel.models.sync_state import NSISyncStateModel

__all__ = [
    "Account",
    "AccountingAccount",
    "Contract",
    "Counterparty",
    "Document",
    "DocumentPackage",
    "NSISyncStateModel",
    "Nomenclature",
    "Organization",
    "PortalUser",
    "SYNTHETIC_CODE_PREFIX",
    "UHQueueEntry",
    "Warehouse",
    "synthetic_organization_code",
]
