"""
Tests for MaintenanceService: NSI and portal resets, organization
preservation, cursor reset, and warehouse seeding.
"""

import pytest
from sqlalchemy import func, select, text, update

from portal_kernel.exceptions import MaintenanceError
from portal_kernel.models.portal import Document, DocumentPackage, PortalUser, UHQueueEntry
from portal_kernel.models.reference import (
    Account,
    AccountingAccount,
    Contract,
    Counterparty,
    Nomenclature,
    Organization,
    Warehouse,
)

from nsi_sync.services.maintenance import (
    SEED_CODE_PREFIX,
    SEED_WAREHOUSE_NAMES,
    MaintenanceService,
    seeded_warehouse_id,
)
from nsi_sync.services.sync_state import SyncStateStore


def _count(session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


def _org_ids(session) -> set[str]:
    return set(session.scalars(select(Organization.id)))


@pytest.fixture
def service(session, clock):
    return MaintenanceService(session, clock=clock)


@pytest.fixture
def populated(session, clock):
    """Four organizations, one referenced by each portal table, plus a full reference set."""
    session.add_all([
        Organization(id="org-user", code="U", name="Used by user"),
        Organization(id="org-doc", code="D", name="Used by document"),
        Organization(id="org-pkg", code="P", name="Used by package"),
        Organization(id="org-free", code="F", name="Unreferenced"),
    ])
    session.flush()

    package = DocumentPackage(name="Q1 closing", organization_id="org-pkg")
    session.add_all([
        PortalUser(email="buyer@example.com", organization_id="org-user"),
        package,
        Counterparty(id="cp-1", name="Supplier", data={}),
    ])
    session.flush()

    document = Document(doc_type="invoice", number="42", organization_id="org-doc", package_id=package.id)
    session.add_all([
        document,
        Contract(id="c-1", name="Supply", organization_id="org-free", counterparty_id="cp-1", data={}),
        Warehouse(id="wh-1", code="W1", name="Main", organization_id="org-doc", data={}),
        Nomenclature(id="n-1", name="Bolt", data={}),
        Account(id="acc-1", name="Main", organization_id="org-user", data={}),
        AccountingAccount(id="aa-1", code="60", name="Suppliers", data={}),
    ])
    session.flush()
    session.add(UHQueueEntry(document_id=document.id, operation="post"))
    session.flush()

    SyncStateStore(session, clock).record_run(12, items_synced=7)
    return session


class TestClearNsiData:
    def test_deletes_reference_rows(self, populated, service):
        result = service.clear_nsi_data()

        for model in (Contract, Counterparty, Warehouse, Nomenclature, Account, AccountingAccount):
            assert _count(populated, model) == 0
        assert result.deleted["contracts"] == 1
        assert result.deleted["warehouses"] == 1

    def test_preserves_referenced_organizations(self, populated, service):
        result = service.clear_nsi_data()

        assert _org_ids(populated) == {"org-user", "org-doc", "org-pkg"}
        assert result.deleted["organizations"] == 1
        assert result.organizations_preserved == 3

    def test_keeps_portal_rows(self, populated, service):
        service.clear_nsi_data()
        assert _count(populated, Document) == 1
        assert _count(populated, UHQueueEntry) == 1

    def test_resets_cursor(self, populated, service, clock):
        service.clear_nsi_data()
        state = SyncStateStore(populated, clock)
        assert state.current_version() == 0
        assert len(state.history()) == 1

    def test_stub_organizations_removed(self, session, service):
        session.add(Organization(id="stub-1", code="nsi:stub:stub-1", name="Организация stub-1", is_stub=True))
        session.flush()
        service.clear_nsi_data()
        assert _org_ids(session) == set()


class TestClearPortalData:
    def test_deletes_queue_documents_and_packages(self, populated, service):
        result = service.clear_portal_data()

        assert _count(populated, UHQueueEntry) == 0
        assert _count(populated, Document) == 0
        assert _count(populated, DocumentPackage) == 0
        assert result.deleted["uh_queue"] == 1
        assert result.deleted["documents"] == 1
        assert result.deleted["packages"] == 1

    def test_only_user_referenced_organizations_survive(self, populated, service):
        result = service.clear_portal_data()
        assert _org_ids(populated) == {"org-user"}
        assert result.organizations_preserved == 1
        assert _count(populated, PortalUser) == 1

    def test_resets_cursor(self, populated, service, clock):
        service.clear_portal_data()
        assert SyncStateStore(populated, clock).current_version() == 0


class TestSeedWarehouses:
    def test_seeds_organizations_without_warehouses(self, session, service):
        session.add_all([
            Organization(id="org-1", code="ORG1", name="Acme"),
            Organization(id="org-2", code="ORG2", name="Has warehouse"),
            Organization(id="org-3", code="nsi:stub:org-3", name="Stub", is_stub=True),
        ])
        session.flush()
        session.add(Warehouse(id="wh-real", code="W1", name="Real", organization_id="org-2", data={}))
        session.flush()

        result = service.seed_warehouses()

        assert result.created == {"warehouses": 3, "organizations": 1}
        seeded = session.scalars(
            select(Warehouse).where(Warehouse.organization_id == "org-1").order_by(Warehouse.code)
        ).all()
        assert [w.code for w in seeded] == ["SEED-ORG1-1", "SEED-ORG1-2", "SEED-ORG1-3"]
        assert [w.name for w in seeded] == list(SEED_WAREHOUSE_NAMES)
        assert seeded[0].id == seeded_warehouse_id("org-1", 1)
        assert _count(session, Warehouse) == 4

    def test_idempotent(self, session, service):
        session.add(Organization(id="org-1", code="ORG1", name="Acme"))
        session.flush()

        service.seed_warehouses()
        second = service.seed_warehouses()

        assert second.created["warehouses"] == 0
        assert _count(session, Warehouse) == 3

    def test_count_per_organization_is_capped(self, session, clock):
        session.add(Organization(id="org-1", code="ORG1", name="Acme"))
        session.flush()

        MaintenanceService(session, clock, warehouses_per_organization=10).seed_warehouses()
        assert _count(session, Warehouse) == 3

    def test_fewer_per_organization(self, session, clock):
        session.add(Organization(id="org-1", code="ORG1", name="Acme"))
        session.flush()

        result = MaintenanceService(session, clock, warehouses_per_organization=1).seed_warehouses()
        assert result.created["warehouses"] == 1

    def test_seeded_ids_are_stable(self):
        assert seeded_warehouse_id("org-1", 1) == seeded_warehouse_id("org-1", 1)
        assert seeded_warehouse_id("org-1", 1) != seeded_warehouse_id("org-1", 2)


class TestClearSeededWarehouses:
    def test_only_seed_prefixed_removed(self, session, service):
        session.add(Organization(id="org-1", code="ORG1", name="Acme"))
        session.flush()
        service.seed_warehouses()
        session.add(Warehouse(id="wh-real", code="W1", name="Real", organization_id="org-1", data={}))
        session.flush()

        result = service.clear_seeded_warehouses()

        assert result.deleted == {"warehouses": 3}
        remaining = session.scalars(select(Warehouse.code)).all()
        assert remaining == ["W1"]
        assert not any(code.startswith(SEED_CODE_PREFIX) for code in remaining)

    def test_upstream_warehouse_with_seed_like_code_survives(self, session, service):
        session.add(Organization(id="org-1", code="ORG1", name="Acme"))
        session.flush()
        session.add(Warehouse(id="wh-up", code="SEED-UPSTREAM", name="Upstream", organization_id="org-1", data={}))
        session.add(Warehouse(id="wh-orphan", code="SEED-LOOSE", name="No owner", data={}))
        session.flush()
        service.seed_warehouses()

        result = service.clear_seeded_warehouses()

        assert result.deleted == {"warehouses": 0}
        assert set(session.scalars(select(Warehouse.id))) == {"wh-up", "wh-orphan"}

    def test_seeded_rows_follow_rekeyed_organization(self, session, service):
        session.add(Organization(id="local-1", code="ORG1", name="Acme"))
        session.flush()
        service.seed_warehouses()
        session.add(Organization(id="uh-1", code="ORG1-UH", name="Acme"))
        session.flush()
        session.execute(
            update(Warehouse).where(Warehouse.organization_id == "local-1").values(organization_id="uh-1")
        )

        result = service.clear_seeded_warehouses()

        assert result.deleted == {"warehouses": 3}
        assert _count(session, Warehouse) == 0


class TestFailures:
    def test_database_error_becomes_maintenance_error(self, populated, service):
        populated.execute(text("DROP TABLE uh_queue"))

        with pytest.raises(MaintenanceError) as exc_info:
            service.clear_portal_data()

        assert exc_info.value.operation == "clear_portal_data"
        assert exc_info.value.code == "MAINTENANCE_FAILED"
        assert _count(populated, Document) == 1
