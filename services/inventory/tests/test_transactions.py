from decimal import Decimal

import pytest

from shared.core import InsufficientStock, InvalidStateTransition
from inventory_ledger.application.adjustments import AdjustmentService
from inventory_ledger.application.ledger import InventoryItemService
from inventory_ledger.application.reservations import ReservationService
from inventory_ledger.application.transactions import TransactionService
from inventory_ledger.domain.enums import TransactionStatus, TransactionType
from inventory_ledger.domain.models import InventoryReservation, InventoryTransaction


class TestMovements:

    def test_receipt_increases_on_hand(self, db, acme, make_item, reload):
        item = make_item(on_hand="10", location_id=4)
        trx = TransactionService(db, acme).record_receipt(item.id, "25", reference_number="PO-1")

        assert trx.transaction_type == TransactionType.RECEIPT
        assert trx.status == TransactionStatus.COMPLETED
        assert trx.transaction_number.startswith("TRX-")
        assert trx.destination_id == 4
        [detail] = trx.details
        assert detail.quantity == Decimal("25")
        assert detail.to_location_id == 4
        fresh = reload(item)
        assert fresh.quantity_on_hand == Decimal("35")
        assert fresh.received_date is not None

    def test_issue_beyond_on_hand_rejected(self, db, acme, make_item, reload):
        item = make_item(on_hand="10")
        with pytest.raises(InsufficientStock) as exc:
            TransactionService(db, acme).record_issue(item.id, "11")
        assert (exc.value.available, exc.value.requested) == (Decimal("10"), Decimal("11"))
        assert exc.value.action == "issue"
        assert reload(item).quantity_on_hand == Decimal("10")
        assert db.query(InventoryTransaction).count() == 0

    def test_issue_ignores_reservations(self, db, acme, make_item, reload):
        item = make_item(on_hand="100")
        ReservationService(db, acme).reserve_stock(item.id, "30", "SALES_ORDER", 1)
        assert reload(item).quantity_available == Decimal("70")

        TransactionService(db, acme).record_issue(item.id, "80")

        fresh = reload(item)
        assert fresh.quantity_on_hand == Decimal("20")
        assert fresh.quantity_allocated == Decimal("30")
        assert fresh.quantity_available == Decimal("-10")

    def test_strict_mode_issue_respects_reservations(self, db, acme, make_item, reload):
        item = make_item(on_hand="100")
        ledger = InventoryItemService(db, acme, strict_allocation_cover=True)
        ReservationService(db, acme, ledger=ledger).reserve_stock(item.id, "30")
        with pytest.raises(InsufficientStock):
            TransactionService(db, acme, ledger=ledger).record_issue(item.id, "80")
        assert reload(item).quantity_on_hand == Decimal("100")

    def test_transfer_records_locations_only(self, db, acme, make_item, reload):
        item = make_item(on_hand="40", location_id=1)
        trx = TransactionService(db, acme).record_transfer(item.id, "15", to_location_id=2)

        [detail] = trx.details
        assert (detail.from_location_id, detail.to_location_id) == (1, 2)
        assert (trx.source_id, trx.destination_id) == (1, 2)
        fresh = reload(item)
        assert fresh.quantity_on_hand == Decimal("40")
        assert fresh.location_id == 1

    def test_transfer_beyond_on_hand_rejected(self, db, acme, make_item):
        item = make_item(on_hand="5")
        with pytest.raises(InsufficientStock):
            TransactionService(db, acme).record_transfer(item.id, "6", to_location_id=2)

    def test_strict_transfer_respects_reservations(self, db, acme, make_item):
        item = make_item(on_hand="10", allocated="8")
        ledger = InventoryItemService(db, acme, strict_allocation_cover=True)
        with pytest.raises(InsufficientStock) as exc:
            TransactionService(db, acme, ledger=ledger).record_transfer(item.id, "3", to_location_id=2)
        assert exc.value.available == Decimal("2")

    def test_movements_leave_other_records_alone(self, db, acme, make_item):
        item = make_item()
        service = TransactionService(db, acme)
        service.record_receipt(item.id, 1)
        service.record_issue(item.id, 1)
        service.record_transfer(item.id, 1, to_location_id=9)
        assert AdjustmentService(db, acme).list().total == 0
        assert db.query(InventoryReservation).count() == 0
        assert service.list().total == 3
        assert service.list(transaction_type=TransactionType.ISSUE).total == 1
        assert len(service.find_by_item(item.id)) == 3


class TestReversal:

    def test_reversing_receipt_removes_stock(self, db, acme, make_item, reload):
        item = make_item(on_hand="10")
        service = TransactionService(db, acme)
        trx = service.record_receipt(item.id, "5")

        reversed_trx = service.reverse_transaction(trx.id)

        assert reversed_trx.status == TransactionStatus.REVERSED
        assert reload(item).quantity_on_hand == Decimal("10")

    def test_reversing_issue_restores_stock(self, db, acme, make_item, reload):
        item = make_item(on_hand="10")
        service = TransactionService(db, acme)
        trx = service.record_issue(item.id, "4")
        service.reverse_transaction(trx.id)
        assert reload(item).quantity_on_hand == Decimal("10")

    def test_reversal_only_once(self, db, acme, make_item):
        item = make_item()
        service = TransactionService(db, acme)
        trx = service.record_receipt(item.id, "5")
        service.reverse_transaction(trx.id)
        with pytest.raises(InvalidStateTransition) as exc:
            service.reverse_transaction(trx.id)
        assert exc.value.from_state == "REVERSED"

    def test_receipt_reversal_fails_when_stock_already_gone(self, db, acme, make_item, reload):
        item = make_item(on_hand="0")
        service = TransactionService(db, acme)
        trx = service.record_receipt(item.id, "5")
        service.record_issue(item.id, "5")
        with pytest.raises(InsufficientStock):
            service.reverse_transaction(trx.id)
        assert service.get(trx.id).status == TransactionStatus.COMPLETED
        assert reload(item).quantity_on_hand == Decimal("0")
