from typing import List, Optional

from sqlalchemy.orm import Session

from shared.core import InsufficientStock, InvalidStateTransition, TenantScope, get_logger
from inventory_ledger.domain.enums import TRANSACTION_TRANSITIONS, TransactionStatus, TransactionType
from inventory_ledger.domain.models import (
    InventoryTransaction,
    InventoryTransactionDetail,
    utcnow,
)
from inventory_ledger.infrastructure.db import unit_of_work
from inventory_ledger.infrastructure.store import Page, TenantStore
from .ledger import InventoryItemService, Quantity, as_enum, as_quantity, positive_quantity

logger = get_logger(__name__)

# on-hand sign per transaction type; transfers only relocate
_ON_HAND_SIGN = {
    TransactionType.RECEIPT: 1,
    TransactionType.ISSUE: -1,
    TransactionType.TRANSFER: 0,
}


class TransactionService:
    MUTABLE_FIELDS = ("reference_number", "notes")

    def __init__(self, db: Session, scope: TenantScope, ledger: Optional[InventoryItemService] = None):
        self.db = db
        self.scope = scope
        self.ledger = ledger or InventoryItemService(db, scope)
        self.transactions = TenantStore(db, InventoryTransaction, scope)
        self.details = TenantStore(db, InventoryTransactionDetail, scope)

    def get(self, transaction_id: int) -> InventoryTransaction:
        return self.transactions.get(transaction_id)

    def list(self, page: int = 1, size: int = 20,
             transaction_type: Optional[TransactionType] = None) -> Page[InventoryTransaction]:
        criteria = []
        if transaction_type is not None:
            transaction_type = as_enum(TransactionType, transaction_type, "transaction_type")
            criteria.append(InventoryTransaction.transaction_type == transaction_type)
        return self.transactions.list(*criteria, page=page, size=size, order_by=InventoryTransaction.id.desc())

    def list_details(self, transaction_id: int) -> List[InventoryTransactionDetail]:
        self.transactions.get(transaction_id)
        return self.details.find_all(InventoryTransactionDetail.transaction_id == transaction_id)

    def find_by_item(self, item_id: int) -> List[InventoryTransactionDetail]:
        return self.details.find_all(InventoryTransactionDetail.item_id == item_id)

    def update(self, transaction_id: int, fields: dict) -> InventoryTransaction:
        with unit_of_work(self.db):
            transaction = self.transactions.get(transaction_id, lock=True)
            self.transactions.update(transaction, fields, self.MUTABLE_FIELDS)
        return transaction

    def soft_delete(self, transaction_id: int) -> None:
        with unit_of_work(self.db):
            self.transactions.soft_delete(self.transactions.get(transaction_id, lock=True))

    # movements

    def record_receipt(self, item_id: int, quantity: Quantity, actor_id: Optional[int] = None,
                       **options) -> InventoryTransaction:
        return self._record(TransactionType.RECEIPT, item_id, quantity, actor_id, **options)

    def record_issue(self, item_id: int, quantity: Quantity, actor_id: Optional[int] = None,
                     **options) -> InventoryTransaction:
        return self._record(TransactionType.ISSUE, item_id, quantity, actor_id, **options)

    def record_transfer(self, item_id: int, quantity: Quantity, from_location_id: Optional[int] = None,
                        to_location_id: Optional[int] = None, actor_id: Optional[int] = None,
                        **options) -> InventoryTransaction:
        return self._record(TransactionType.TRANSFER, item_id, quantity, actor_id,
                            from_location_id=from_location_id, to_location_id=to_location_id, **options)

    def _record(self, transaction_type: TransactionType, item_id: int, quantity: Quantity,
                actor_id: Optional[int], from_location_id: Optional[int] = None,
                to_location_id: Optional[int] = None, reference_number: Optional[str] = None,
                reference_type: Optional[str] = None, reference_id: Optional[int] = None,
                unit_cost: Optional[Quantity] = None, notes: Optional[str] = None) -> InventoryTransaction:
        quantity = positive_quantity(quantity)
        actor_id = actor_id if actor_id is not None else self.scope.actor_id
        action = transaction_type.value.lower()

        with unit_of_work(self.db):
            item = self.ledger.lock(item_id)
            if transaction_type != TransactionType.RECEIPT and quantity > item.quantity_on_hand:
                logger.warning(
                    f"{transaction_type.value.title()} rejected",
                    extra={"extra_fields": {"item_id": item_id, "quantity": str(quantity),
                                            "quantity_on_hand": str(item.quantity_on_hand)}}
                )
                raise InsufficientStock(item.id, action, item.quantity_on_hand, quantity)
            if (transaction_type == TransactionType.TRANSFER and self.ledger.strict_allocation_cover
                    and quantity > item.quantity_available):
                raise InsufficientStock(item.id, action, item.quantity_available, quantity)

            if from_location_id is None and transaction_type != TransactionType.RECEIPT:
                from_location_id = item.location_id
            if to_location_id is None and transaction_type == TransactionType.RECEIPT:
                to_location_id = item.location_id
            cost = as_quantity(unit_cost, "unit_cost") if unit_cost is not None else item.unit_cost

            now = utcnow()
            transaction = InventoryTransaction(
                transaction_number=self.transactions.next_number(
                    InventoryTransaction.transaction_number, "TRX", now),
                transaction_type=transaction_type,
                transaction_date=now,
                status=TransactionStatus.COMPLETED,
                reference_number=reference_number,
                reference_type=reference_type,
                reference_id=reference_id,
                source_type="LOCATION" if from_location_id is not None else None,
                source_id=from_location_id,
                destination_type="LOCATION" if to_location_id is not None else None,
                destination_id=to_location_id,
                notes=notes,
                created_by=actor_id,
                updated_by=actor_id,
            )
            self.transactions.add(transaction)
            self.details.add(InventoryTransactionDetail(
                transaction_id=transaction.id,
                item_id=item.id,
                quantity=quantity,
                unit_of_measure=item.unit_of_measure,
                unit_cost=cost,
                total_cost=quantity * cost if cost is not None else None,
                lot_number=item.lot_number,
                serial_number=item.serial_number,
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                created_by=actor_id,
                updated_by=actor_id,
            ))

            sign = _ON_HAND_SIGN[transaction_type]
            if sign:
                self.ledger.apply_to_locked(item, on_hand_delta=sign * quantity, action=action)
            if transaction_type == TransactionType.RECEIPT:
                item.received_date = now
            self.db.refresh(transaction, ["details"])

        logger.info(
            f"{transaction_type.value.title()} {transaction.transaction_number} recorded",
            extra={"extra_fields": {"transaction_id": transaction.id, "item_id": item_id,
                                    "quantity": str(quantity),
                                    "quantity_on_hand": str(item.quantity_on_hand)}}
        )
        return transaction

    def reverse_transaction(self, transaction_id: int, actor_id: Optional[int] = None) -> InventoryTransaction:
        """Undo a completed movement's ledger effect and mark it REVERSED."""
        actor_id = actor_id if actor_id is not None else self.scope.actor_id
        with unit_of_work(self.db):
            transaction = self.transactions.get(transaction_id, lock=True)
            if TransactionStatus.REVERSED not in TRANSACTION_TRANSITIONS[transaction.status]:
                raise InvalidStateTransition(
                    "InventoryTransaction", transaction.id, transaction.status, TransactionStatus.REVERSED)

            sign = _ON_HAND_SIGN[transaction.transaction_type]
            for detail in self.details.find_all(InventoryTransactionDetail.transaction_id == transaction.id):
                if sign:
                    self.ledger.apply_quantity_delta(detail.item_id, on_hand_delta=-sign * detail.quantity,
                                                     action="reverse")
            transaction.status = TransactionStatus.REVERSED
            transaction.touch(actor_id)

        logger.info(
            f"Transaction {transaction.transaction_number} reversed",
            extra={"extra_fields": {"transaction_id": transaction.id,
                                    "transaction_type": transaction.transaction_type.value}}
        )
        return transaction

