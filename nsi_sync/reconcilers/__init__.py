"""Entity reconcilers: one upsert routine per NSI entity type."""

from nsi_sync.domain.types import EntityType
from nsi_sync.reconcilers.account import AccountReconciler
from nsi_sync.reconcilers.base import ReconcileResult, Reconciler, resolve_name
from nsi_sync.reconcilers.catalog import AccountingAccountReconciler, NomenclatureReconciler
from nsi_sync.reconcilers.contract import ContractReconciler
from nsi_sync.reconcilers.counterparty import CounterpartyReconciler
from nsi_sync.reconcilers.organization import OrganizationReconciler
from nsi_sync.reconcilers.warehouse import WarehouseReconciler


def default_reconciler_registry() -> dict[EntityType, Reconciler]:
    """Return a dict of entity type -> reconciler for every supported type."""
    return {
        EntityType.ORGANIZATION: OrganizationReconciler(),
        EntityType.COUNTERPARTY: CounterpartyReconciler(),
        EntityType.CONTRACT: ContractReconciler(),
        EntityType.WAREHOUSE: WarehouseReconciler(),
        EntityType.NOMENCLATURE: NomenclatureReconciler(),
        EntityType.ACCOUNT: AccountReconciler(),
        EntityType.ACCOUNTING_ACCOUNT: AccountingAccountReconciler(),
    }


__all__ = [
    "AccountReconciler",
    "AccountingAccountReconciler",
    "ContractReconciler",
    "CounterpartyReconciler",
    "NomenclatureReconciler",
    "OrganizationReconciler",
    "ReconcileResult",
    "Reconciler",
    "WarehouseReconciler",
    "default_reconciler_registry",
    "resolve_name",
]
