from decimal import Decimal

import pytest

from shared.core import ConcurrentModification, NotFound, TenantScope, TenantScopeRequired, ValidationError
from inventory_ledger.domain.models import InventoryItem, InventoryPolicy
from inventory_ledger.infrastructure.store import TenantStore


class TestTenantIsolation:

    def test_other_tenant_lookup_is_not_found(self, db, acme, globex, make_item):
        item = make_item(scope=acme)
        with pytest.raises(NotFound) as exc:
            TenantStore(db, InventoryItem, globex).get(item.id)
        assert exc.value.details == {"entity": "InventoryItem", "id": item.id}
        assert TenantStore(db, InventoryItem, acme).get(item.id).id == item.id

    def test_list_never_includes_other_tenant_rows(self, db, acme, globex, make_item):
        for _ in range(3):
            make_item(scope=acme)
        mine = make_item(scope=globex)

        page = TenantStore(db, InventoryItem, globex).list()
        assert [row.id for row in page.items] == [mine.id]
        assert page.total == 1
        assert TenantStore(db, InventoryItem, acme).list().total == 3

    def test_unbound_scope_fails_closed(self, db):
        with pytest.raises(TenantScopeRequired):
            TenantStore(db, InventoryItem, TenantScope(tenant_id=None))

    def test_system_scope_reads_every_tenant(self, db, acme, globex, make_item):
        make_item(scope=acme)
        make_item(scope=globex)
        rows = TenantStore(db, InventoryItem, TenantScope.system()).find_all()
        assert {row.tenant_id for row in rows} == {"acme", "globex"}

    def test_system_scope_only_writes_rows_with_a_tenant(self, db):
        store = TenantStore(db, InventoryPolicy, TenantScope.system())
        with pytest.raises(TenantScopeRequired):
            store.add(InventoryPolicy(product_id=1))
        policy = InventoryPolicy(product_id=1)
        policy.assign_tenant("acme")
        assert store.add(policy).tenant_id == "acme"


class TestStoreWrites:

    def test_add_stamps_tenant_and_actor(self, db, acme):
        policy = TenantStore(db, InventoryPolicy, acme).add(InventoryPolicy(product_id=5))
        assert policy.tenant_id == "acme"
        assert policy.created_by == 7

    def test_add_overrides_foreign_tenant(self, db, acme):
        policy = InventoryPolicy(product_id=5, tenant_id="globex")
        TenantStore(db, InventoryPolicy, acme).add(policy)
        assert policy.tenant_id == "acme"

    def test_soft_deleted_rows_disappear(self, db, acme, make_item):
        item = make_item()
        store = TenantStore(db, InventoryItem, acme)
        store.soft_delete(store.get(item.id))
        with pytest.raises(NotFound):
            store.get(item.id)
        assert store.count() == 0
        assert db.get(InventoryItem, item.id).is_deleted

    def test_update_rejects_fields_outside_allow_list(self, db, acme, make_item):
        store = TenantStore(db, InventoryItem, acme)
        item = store.get(make_item().id)
        with pytest.raises(ValidationError) as exc:
            store.update(item, {"quantity_on_hand": Decimal("1")}, allowed=("notes",))
        assert exc.value.field == "quantity_on_hand"

    def test_update_rejects_null_for_required_columns(self, db, acme, make_item, reload):
        store = TenantStore(db, InventoryItem, acme)
        item = store.get(make_item(notes="shelf 3").id)
        with pytest.raises(ValidationError) as exc:
            store.update(item, {"notes": None, "status": None}, allowed=("notes", "status"))
        assert exc.value.details == {"field": "status", "reason": "must not be null"}
        assert item.notes == "shelf 3"

        store.update(item, {"notes": None}, allowed=("notes",))
        db.commit()
        assert reload(item).notes is None


class TestPaging:

    def test_pages_are_sliced_in_id_order(self, db, acme, make_item):
        ids = [make_item().id for _ in range(5)]
        store = TenantStore(db, InventoryItem, acme)
        page = store.list(page=2, size=2)
        assert [row.id for row in page.items] == ids[2:4]
        assert page.total == 5
        assert page.pages == 3

    def test_invalid_page_rejected(self, db, acme):
        with pytest.raises(ValidationError):
            TenantStore(db, InventoryItem, acme).list(page=0)


def test_numbers_are_sequential_per_tenant(db, acme, globex):
    from inventory_ledger.application.counts import CountService

    first = CountService(db, acme).start_count(location_id=1)
    second = CountService(db, acme).start_count(location_id=1)
    other = CountService(db, globex).start_count(location_id=1)

    year = first.start_date.year
    assert first.count_number == f"CNT-{year}-000001"
    assert second.count_number == f"CNT-{year}-000002"
    assert other.count_number == f"CNT-{year}-000001"


def test_duplicate_number_in_tenant_is_a_retriable_conflict(db, acme, globex, make_item):
    from inventory_ledger.application.transactions import TransactionService
    from inventory_ledger.domain.enums import TransactionType
    from inventory_ledger.domain.models import InventoryTransaction
    from inventory_ledger.infrastructure.db import unit_of_work

    issued = TransactionService(db, acme).record_receipt(make_item().id, "1").transaction_number

    with pytest.raises(ConcurrentModification) as exc:
        with unit_of_work(db):
            TenantStore(db, InventoryTransaction, acme).add(
                InventoryTransaction(transaction_number=issued, transaction_type=TransactionType.RECEIPT))
    assert exc.value.retriable
    assert exc.value.details["entity"] == "inventory_transactions"

    with unit_of_work(db):
        other = TenantStore(db, InventoryTransaction, globex).add(
            InventoryTransaction(transaction_number=issued, transaction_type=TransactionType.RECEIPT))
    assert other.tenant_id == "globex"
