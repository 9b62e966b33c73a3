"""
nsi_sync -- Reference-data (NSI) synchronization engine.

Incrementally pulls master-data changes (organizations, counterparties,
contracts, warehouses, nomenclature, bank/cash accounts, chart of accounts)
from the upstream accounting system and reconciles them into the portal
database.

Architecture:
    nsi_sync/ is a top-level package above portal_kernel and portal_config.
    Nothing in the kernel imports from it.  ``SyncOrchestrator`` is the
    entry point for callers (scheduler, admin HTTP layer, CLI).
"""
