from typing import List, Optional

from sqlalchemy.orm import Session

from shared.core import InsufficientStock, TenantScope, ValidationError, get_logger
from inventory_ledger.domain.enums import AdjustmentStatus, AdjustmentType
from inventory_ledger.domain.models import (
    InventoryAdjustment,
    InventoryAdjustmentDetail,
    ZERO,
    utcnow,
)
from inventory_ledger.infrastructure.db import unit_of_work
from inventory_ledger.infrastructure.store import Page, TenantStore
from .ledger import InventoryItemService, Quantity, as_quantity

logger = get_logger(__name__)


class AdjustmentService:
    MUTABLE_FIELDS = ("reason", "reason_code", "reference_number", "notes")

    def __init__(self, db: Session, scope: TenantScope, ledger: Optional[InventoryItemService] = None):
        self.db = db
        self.scope = scope
        self.ledger = ledger or InventoryItemService(db, scope)
        self.adjustments = TenantStore(db, InventoryAdjustment, scope)
        self.details = TenantStore(db, InventoryAdjustmentDetail, scope)

    def get(self, adjustment_id: int) -> InventoryAdjustment:
        return self.adjustments.get(adjustment_id)

    def list(self, page: int = 1, size: int = 20) -> Page[InventoryAdjustment]:
        return self.adjustments.list(page=page, size=size, order_by=InventoryAdjustment.id.desc())

    def list_details(self, adjustment_id: int) -> List[InventoryAdjustmentDetail]:
        self.adjustments.get(adjustment_id)
        return self.details.find_all(InventoryAdjustmentDetail.adjustment_id == adjustment_id)

    def find_by_item(self, item_id: int) -> List[InventoryAdjustmentDetail]:
        return self.details.find_all(InventoryAdjustmentDetail.item_id == item_id)

    def update(self, adjustment_id: int, fields: dict) -> InventoryAdjustment:
        with unit_of_work(self.db):
            adjustment = self.adjustments.get(adjustment_id, lock=True)
            self.adjustments.update(adjustment, fields, self.MUTABLE_FIELDS)
        return adjustment

    def soft_delete(self, adjustment_id: int) -> None:
        with unit_of_work(self.db):
            self.adjustments.soft_delete(self.adjustments.get(adjustment_id, lock=True))

    def adjust_stock(self, item_id: int, quantity_delta: Quantity, reason: str,
                     actor_id: Optional[int] = None, *, reason_code: Optional[str] = None,
                     reference_type: Optional[str] = None, reference_id: Optional[int] = None,
                     reference_number: Optional[str] = None, notes: Optional[str] = None) -> InventoryAdjustment:
        """Manual correction of one item's on-hand quantity. Commits on success."""
        with unit_of_work(self.db):
            adjustment = self.record_adjustment(
                item_id, quantity_delta, reason, actor_id,
                reason_code=reason_code, reference_type=reference_type,
                reference_id=reference_id, reference_number=reference_number, notes=notes,
            )
        logger.info(
            f"Adjustment {adjustment.adjustment_number} recorded",
            extra={"extra_fields": {"adjustment_id": adjustment.id, "item_id": item_id,
                                    "quantity_delta": str(adjustment.details[0].quantity_adjusted)}}
        )
        return adjustment

    def record_adjustment(self, item_id: int, quantity_delta: Quantity, reason: str,
                          actor_id: Optional[int] = None, *, reason_code: Optional[str] = None,
                          reference_type: Optional[str] = None, reference_id: Optional[int] = None,
                          reference_number: Optional[str] = None,
                          notes: Optional[str] = None) -> InventoryAdjustment:
        """Same as ``adjust_stock`` inside the caller's unit of work."""
        delta = as_quantity(quantity_delta, "quantity_delta")
        if delta == ZERO:
            raise ValidationError("quantity_delta", "must not be zero")
        if not reason or not reason.strip():
            raise ValidationError("reason", "is required")
        actor_id = actor_id if actor_id is not None else self.scope.actor_id

        item = self.ledger.lock(item_id)
        before = item.quantity_on_hand
        if delta < ZERO and -delta > before:
            logger.warning(
                "Adjustment rejected",
                extra={"extra_fields": {"item_id": item_id, "quantity_on_hand": str(before),
                                        "quantity_delta": str(delta)}}
            )
            raise InsufficientStock(item.id, "adjust", before, -delta)

        now = utcnow()
        adjustment = InventoryAdjustment(
            adjustment_number=self.adjustments.next_number(InventoryAdjustment.adjustment_number, "ADJ", now),
            adjustment_date=now,
            adjustment_type=AdjustmentType.INCREASE if delta > ZERO else AdjustmentType.DECREASE,
            status=AdjustmentStatus.APPROVED,
            reason=reason,
            reason_code=reason_code,
            reference_type=reference_type,
            reference_id=reference_id,
            reference_number=reference_number,
            notes=notes,
            is_approved=True,
            approved_by=actor_id,
            approved_at=now,
            created_by=actor_id,
            updated_by=actor_id,
        )
        self.adjustments.add(adjustment)

        self.ledger.apply_to_locked(item, on_hand_delta=delta, action="adjust")

        detail = InventoryAdjustmentDetail(
            adjustment_id=adjustment.id,
            item_id=item.id,
            location_id=item.location_id,
            lot_number=item.lot_number,
            serial_number=item.serial_number,
            quantity_before=before,
            quantity_after=item.quantity_on_hand,
            quantity_adjusted=delta,
            unit_of_measure=item.unit_of_measure,
            unit_cost=item.unit_cost,
            total_cost=delta * item.unit_cost if item.unit_cost is not None else None,
            created_by=actor_id,
            updated_by=actor_id,
        )
        self.details.add(detail)
        self.db.refresh(adjustment, ["details"])
        return adjustment
