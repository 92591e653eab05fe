from decimal import Decimal

import pytest

from shared.core import InsufficientStock, NotFound, ValidationError
from inventory_ledger.application.adjustments import AdjustmentService
from inventory_ledger.domain.enums import AdjustmentStatus, AdjustmentType
from inventory_ledger.domain.models import InventoryAdjustment


def test_decrease_beyond_on_hand_leaves_item_untouched(db, acme, make_item, reload):
    item = make_item(on_hand="15")

    with pytest.raises(InsufficientStock) as exc:
        AdjustmentService(db, acme).adjust_stock(item.id, Decimal("-20"), "Damaged")

    assert exc.value.available == Decimal("15")
    assert exc.value.requested == Decimal("20")
    assert exc.value.to_dict()["details"]["action"] == "adjust"
    fresh = reload(item)
    assert fresh.quantity_on_hand == Decimal("15")
    assert fresh.version_id == item.version_id
    assert db.query(InventoryAdjustment).count() == 0


def test_increase_records_header_and_snapshot(db, acme, make_item, reload):
    item = make_item(on_hand="10", unit_cost=Decimal("3"))

    adjustment = AdjustmentService(db, acme).adjust_stock(item.id, "5", "Found in aisle", reason_code="FOUND")

    assert adjustment.adjustment_type == AdjustmentType.INCREASE
    assert adjustment.status == AdjustmentStatus.APPROVED
    assert adjustment.is_approved and adjustment.approved_by == 7
    assert adjustment.adjustment_number.startswith("ADJ-")
    [detail] = adjustment.details
    assert detail.quantity_before == Decimal("10")
    assert detail.quantity_after == Decimal("15")
    assert detail.quantity_adjusted == Decimal("5")
    assert detail.total_cost == Decimal("15")
    assert detail.tenant_id == "acme"
    assert reload(item).quantity_on_hand == Decimal("15")


def test_decrease_to_exactly_zero_allowed(db, acme, make_item, reload):
    item = make_item(on_hand="15")
    adjustment = AdjustmentService(db, acme).adjust_stock(item.id, "-15", "Write-off")
    assert adjustment.adjustment_type == AdjustmentType.DECREASE
    fresh = reload(item)
    assert fresh.quantity_on_hand == Decimal("0")
    assert fresh.quantity_available == Decimal("0")


def test_zero_delta_rejected(db, acme, make_item):
    item = make_item()
    with pytest.raises(ValidationError) as exc:
        AdjustmentService(db, acme).adjust_stock(item.id, 0, "Nothing")
    assert exc.value.field == "quantity_delta"


def test_reason_required(db, acme, make_item):
    item = make_item()
    with pytest.raises(ValidationError):
        AdjustmentService(db, acme).adjust_stock(item.id, 1, "  ")


def test_cannot_adjust_other_tenant_item(db, globex, make_item):
    item = make_item()
    with pytest.raises(NotFound):
        AdjustmentService(db, globex).adjust_stock(item.id, 1, "Sneaky")


def test_listing_and_details(db, acme, globex, make_item):
    item = make_item()
    service = AdjustmentService(db, acme)
    first = service.adjust_stock(item.id, 1, "one")
    second = service.adjust_stock(item.id, -2, "two")

    page = service.list()
    assert [a.id for a in page.items] == [second.id, first.id]
    assert [d.quantity_adjusted for d in service.find_by_item(item.id)] == [Decimal("1"), Decimal("-2")]
    assert service.list_details(second.id)[0].quantity_after == Decimal("99")
    assert AdjustmentService(db, globex).list().total == 0

    service.update(first.id, {"notes": "checked"})
    assert service.get(first.id).notes == "checked"
    with pytest.raises(ValidationError):
        service.update(first.id, {"adjustment_type": AdjustmentType.DECREASE})
