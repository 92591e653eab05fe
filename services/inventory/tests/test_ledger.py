import logging
from decimal import Decimal

import pytest

from shared.core import InsufficientStock, NotFound, ValidationError
from inventory_ledger.application.ledger import InventoryItemService, as_quantity
from inventory_ledger.application.policies import PolicyService
from inventory_ledger.domain.enums import ItemStatus
from inventory_ledger.infrastructure.db import unit_of_work


def assert_consistent(item):
    assert item.quantity_on_hand >= 0
    assert item.quantity_allocated >= 0
    assert item.quantity_available == item.quantity_on_hand - item.quantity_allocated


class TestItemRecords:

    def test_create_derives_available_and_cost(self, make_item):
        item = make_item(on_hand="40", allocated="15", unit_cost=Decimal("2.50"))
        assert item.quantity_available == Decimal("25")
        assert item.total_cost == Decimal("100.00")
        assert item.status == ItemStatus.AVAILABLE
        assert item.tenant_id == "acme"
        assert item.version_id == 1

    def test_create_rejects_allocation_above_on_hand(self, make_item):
        with pytest.raises(ValidationError) as exc:
            make_item(on_hand="5", allocated="6")
        assert exc.value.field == "quantity_allocated"

    def test_create_rejects_negative_quantity(self, make_item):
        with pytest.raises(ValidationError):
            make_item(on_hand="-1")

    def test_update_cannot_touch_quantities(self, db, acme, make_item):
        item = make_item()
        with pytest.raises(ValidationError):
            InventoryItemService(db, acme).update(item.id, {"quantity_on_hand": Decimal("1")})

    def test_update_changes_descriptive_fields(self, db, acme, make_item, reload):
        item = make_item()
        InventoryItemService(db, acme).update(item.id, {"status": ItemStatus.QUARANTINED, "notes": "wet box"})
        fresh = reload(item)
        assert fresh.status == ItemStatus.QUARANTINED
        assert fresh.notes == "wet box"
        assert fresh.updated_by == 7

    def test_soft_delete_hides_item(self, db, acme, make_item):
        item = make_item()
        service = InventoryItemService(db, acme)
        service.soft_delete(item.id)
        with pytest.raises(NotFound):
            service.get(item.id)


class TestFinders:

    def test_find_by_product_status_and_threshold(self, db, acme, globex, make_item):
        low = make_item(on_hand="5", product_id=10)
        high = make_item(on_hand="50", product_id=10, status=ItemStatus.DAMAGED)
        make_item(on_hand="70", product_id=11)
        make_item(scope=globex, on_hand="500", product_id=10)

        service = InventoryItemService(db, acme)
        assert [i.id for i in service.find_by_product(10)] == [low.id, high.id]
        assert [i.id for i in service.find_by_status(ItemStatus.DAMAGED)] == [high.id]
        assert len(service.find_by_quantity_on_hand_greater_than("10")) == 2

    def test_unknown_status_is_a_validation_error(self, db, acme):
        with pytest.raises(ValidationError) as exc:
            InventoryItemService(db, acme).find_by_status("MISPLACED")
        assert exc.value.field == "status"
        assert "AVAILABLE" in exc.value.reason


class TestQuantityDelta:

    def test_delta_keeps_availability_identity(self, db, acme, make_item):
        item = make_item(on_hand="100")
        service = InventoryItemService(db, acme)
        with unit_of_work(db):
            service.apply_quantity_delta(item.id, on_hand_delta="-10", allocated_delta="25")
        fresh = service.get(item.id)
        assert fresh.quantity_on_hand == Decimal("90")
        assert fresh.quantity_allocated == Decimal("25")
        assert_consistent(fresh)

    def test_negative_on_hand_rejected(self, db, acme, make_item):
        item = make_item(on_hand="3")
        with pytest.raises(InsufficientStock) as exc:
            InventoryItemService(db, acme).apply_quantity_delta(item.id, on_hand_delta="-4", action="issue")
        assert exc.value.available == Decimal("3")
        assert exc.value.requested == Decimal("4")
        assert exc.value.action == "issue"

    def test_negative_allocation_rejected(self, db, acme, make_item):
        item = make_item(on_hand="10", allocated="2")
        with pytest.raises(InsufficientStock):
            InventoryItemService(db, acme).apply_quantity_delta(item.id, allocated_delta="-3")

    def test_strict_mode_refuses_uncovered_allocation(self, db, acme, make_item):
        item = make_item(on_hand="10", allocated="8")
        service = InventoryItemService(db, acme, strict_allocation_cover=True)
        with pytest.raises(InsufficientStock) as exc:
            service.apply_quantity_delta(item.id, on_hand_delta="-5")
        assert exc.value.available == Decimal("2")
        assert exc.value.requested == Decimal("5")

    def test_soft_hold_mode_logs_uncovered_allocation(self, db, acme, make_item, caplog):
        item = make_item(on_hand="10", allocated="8")
        service = InventoryItemService(db, acme, strict_allocation_cover=False)
        with caplog.at_level(logging.WARNING):
            with unit_of_work(db):
                service.apply_quantity_delta(item.id, on_hand_delta="-5")
        assert any(r.getMessage() == "allocation_exceeds_on_hand" for r in caplog.records)
        assert service.get(item.id).quantity_available == Decimal("-3")

    def test_other_tenant_item_not_found(self, db, globex, make_item):
        item = make_item()
        with pytest.raises(NotFound):
            InventoryItemService(db, globex).apply_quantity_delta(item.id, on_hand_delta="1")

    def test_low_stock_logged_after_decrease(self, db, acme, make_item, caplog):
        PolicyService(db, acme).create({"product_id": 1, "reorder_point": Decimal("20"),
                                        "reorder_quantity": Decimal("100")})
        item = make_item(on_hand="25", product_id=1)
        with caplog.at_level(logging.WARNING):
            with unit_of_work(db):
                InventoryItemService(db, acme).apply_quantity_delta(item.id, on_hand_delta="-6")
        low = [r for r in caplog.records if r.getMessage() == "low_stock_detected"]
        assert len(low) == 1
        assert low[0].extra_fields["item_id"] == item.id
        assert low[0].extra_fields["product_id"] == 1


def test_as_quantity_rejects_garbage():
    assert as_quantity("1.25") == Decimal("1.25")
    assert as_quantity(0.1) == Decimal("0.1")
    with pytest.raises(ValidationError):
        as_quantity("lots")
    with pytest.raises(ValidationError):
        as_quantity("NaN")


def test_as_quantity_keeps_to_column_scale():
    assert as_quantity("1.50000") == Decimal("1.5")
    assert as_quantity("0.0001") == Decimal("0.0001")
    with pytest.raises(ValidationError) as exc:
        as_quantity("0.00004", "quantity")
    assert exc.value.details == {"field": "quantity", "reason": "at most 4 decimal places"}
    with pytest.raises(ValidationError):
        as_quantity("1e14")


def test_sub_scale_receipt_commits_nothing(db, acme, make_item, reload):
    from inventory_ledger.application.transactions import TransactionService

    item = make_item(on_hand="0")
    service = TransactionService(db, acme)
    with pytest.raises(ValidationError):
        service.record_receipt(item.id, "0.00004")

    assert service.list().total == 0
    assert reload(item).quantity_on_hand == Decimal("0")
