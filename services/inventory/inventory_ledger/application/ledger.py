"""
Inventory item ledger.

``InventoryItemService.apply_quantity_delta`` is the only place item
quantities change. It runs against a locked row and re-checks, after every
mutation:

    quantity_on_hand >= 0, quantity_allocated >= 0
    quantity_available == quantity_on_hand - quantity_allocated

With ``STRICT_ALLOCATION_COVER`` it also refuses to leave
``quantity_on_hand < quantity_allocated``; otherwise that case is logged as
``allocation_exceeds_on_hand`` (allocations are soft holds).
"""

from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

from sqlalchemy import or_
from sqlalchemy.orm import Session

from shared.core import InsufficientStock, TenantScope, ValidationError, get_logger
from inventory_ledger.core_settings import get_settings
from inventory_ledger.domain.enums import ItemStatus
from inventory_ledger.domain.models import (
    InventoryItem,
    InventoryPolicy,
    MAX_QUANTITY,
    QUANTUM,
    ZERO,
    utcnow,
)
from inventory_ledger.infrastructure.db import unit_of_work
from inventory_ledger.infrastructure.store import Page, TenantStore

logger = get_logger(__name__)

Quantity = Union[Decimal, int, str]


def as_quantity(value: Quantity, field: str = "quantity") -> Decimal:
    if isinstance(value, float):
        # floats would drift; callers pass Decimal, int or str
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"not a number: {value!r}")
    if not result.is_finite():
        raise ValidationError(field, "must be finite")
    if abs(result) >= MAX_QUANTITY:
        raise ValidationError(field, "out of range")
    if result != result.quantize(QUANTUM):
        raise ValidationError(field, "at most 4 decimal places")
    return result.quantize(QUANTUM)


def as_enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, f"must be one of {allowed}")


def positive_quantity(value: Quantity, field: str = "quantity") -> Decimal:
    result = as_quantity(value, field)
    if result <= ZERO:
        raise ValidationError(field, "must be greater than zero")
    return result


class InventoryItemService:
    # quantities only move through movements
    MUTABLE_FIELDS = (
        "variant_id", "lot_number", "serial_number", "status", "condition",
        "unit_of_measure", "location_id", "facility_id", "expiry_date",
        "manufacture_date", "received_date", "unit_cost", "notes", "is_active",
    )

    def __init__(self, db: Session, scope: TenantScope, strict_allocation_cover: Optional[bool] = None):
        self.db = db
        self.scope = scope
        self.items = TenantStore(db, InventoryItem, scope)
        if strict_allocation_cover is None:
            strict_allocation_cover = get_settings().STRICT_ALLOCATION_COVER
        self.strict_allocation_cover = strict_allocation_cover

    # queries

    def get(self, item_id: int) -> InventoryItem:
        return self.items.get(item_id)

    def list(self, page: int = 1, size: int = 20) -> Page[InventoryItem]:
        return self.items.list(page=page, size=size)

    def find_by_product(self, product_id: int) -> List[InventoryItem]:
        return self.items.find_all(InventoryItem.product_id == product_id)

    def find_by_status(self, status: ItemStatus) -> List[InventoryItem]:
        return self.items.find_all(InventoryItem.status == as_enum(ItemStatus, status, "status"))

    def find_by_quantity_on_hand_greater_than(self, threshold: Quantity) -> List[InventoryItem]:
        threshold = as_quantity(threshold, "threshold")
        return self.items.find_all(InventoryItem.quantity_on_hand > threshold)

    def lock(self, item_id: int) -> InventoryItem:
        return self.items.get(item_id, lock=True)

    # record maintenance

    def create(self, data) -> InventoryItem:
        values = data.model_dump() if hasattr(data, "model_dump") else dict(data)
        on_hand = as_quantity(values.pop("quantity_on_hand", ZERO) or ZERO, "quantity_on_hand")
        allocated = as_quantity(values.pop("quantity_allocated", ZERO) or ZERO, "quantity_allocated")
        if on_hand < ZERO:
            raise ValidationError("quantity_on_hand", "must not be negative")
        if allocated < ZERO:
            raise ValidationError("quantity_allocated", "must not be negative")
        if allocated > on_hand:
            raise ValidationError("quantity_allocated", "cannot exceed quantity_on_hand")
        values.pop("quantity_available", None)
        if values.get("unit_cost") is not None:
            values["unit_cost"] = as_quantity(values["unit_cost"], "unit_cost")
        if values.get("product_id") is None:
            raise ValidationError("product_id", "is required")

        with unit_of_work(self.db):
            item = InventoryItem(**values)
            item.quantity_on_hand = on_hand
            item.quantity_allocated = allocated
            if item.status is None:
                item.status = ItemStatus.AVAILABLE
            if item.received_date is None and on_hand > ZERO:
                item.received_date = utcnow()
            item.recompute()
            self.items.add(item)
        logger.info(
            f"Inventory item {item.id} created",
            extra={"extra_fields": {"item_id": item.id, "product_id": item.product_id,
                                    "quantity_on_hand": str(on_hand)}}
        )
        return item

    def update(self, item_id: int, fields: dict) -> InventoryItem:
        quantity_fields = {"quantity_on_hand", "quantity_allocated", "quantity_available"} & set(fields)
        if quantity_fields:
            raise ValidationError(sorted(quantity_fields)[0], "quantities change only through movements")
        if fields.get("unit_cost") is not None:
            fields = dict(fields, unit_cost=as_quantity(fields["unit_cost"], "unit_cost"))
        with unit_of_work(self.db):
            item = self.items.get(item_id, lock=True)
            self.items.update(item, fields, self.MUTABLE_FIELDS)
            item.recompute()
        return item

    def soft_delete(self, item_id: int) -> None:
        with unit_of_work(self.db):
            item = self.items.get(item_id, lock=True)
            self.items.soft_delete(item)
        logger.info(f"Inventory item {item_id} deleted", extra={"extra_fields": {"item_id": item_id}})

    # the ledger primitive

    def apply_quantity_delta(self, item_id: int, on_hand_delta: Quantity = ZERO,
                             allocated_delta: Quantity = ZERO, action: str = "adjust") -> InventoryItem:
        """Lock ``item_id`` and apply both deltas in one step. Does not commit."""
        item = self.lock(item_id)
        return self.apply_to_locked(item, on_hand_delta, allocated_delta, action)

    def apply_to_locked(self, item: InventoryItem, on_hand_delta: Quantity = ZERO,
                        allocated_delta: Quantity = ZERO, action: str = "adjust") -> InventoryItem:
        on_hand_delta = as_quantity(on_hand_delta, "on_hand_delta")
        allocated_delta = as_quantity(allocated_delta, "allocated_delta")
        on_hand = item.quantity_on_hand or ZERO
        allocated = item.quantity_allocated or ZERO
        new_on_hand = on_hand + on_hand_delta
        new_allocated = allocated + allocated_delta

        if new_on_hand < ZERO:
            raise InsufficientStock(item.id, action, on_hand, -on_hand_delta)
        if new_allocated < ZERO:
            raise InsufficientStock(item.id, action, allocated, -allocated_delta)
        if new_on_hand < new_allocated:
            if self.strict_allocation_cover:
                requested = max(-on_hand_delta, allocated_delta)
                raise InsufficientStock(item.id, action, on_hand - allocated, requested)
            logger.warning(
                "allocation_exceeds_on_hand",
                extra={"extra_fields": {"item_id": item.id, "action": action,
                                        "quantity_on_hand": str(new_on_hand),
                                        "quantity_allocated": str(new_allocated)}}
            )

        item.quantity_on_hand = new_on_hand
        item.quantity_allocated = new_allocated
        item.recompute()
        item.touch(self.scope.actor_id)
        self.db.flush()

        if on_hand_delta < ZERO:
            self.check_low_stock(item)
        return item

    def check_low_stock(self, item: InventoryItem) -> bool:
        policy = self.policy_for(item.product_id, item.facility_id, tenant_id=item.tenant_id)
        if policy is None or policy.reorder_point is None:
            return False
        if item.quantity_on_hand > policy.reorder_point:
            return False
        logger.warning(
            "low_stock_detected",
            extra={"extra_fields": {"item_id": item.id, "product_id": item.product_id,
                                    "quantity_on_hand": str(item.quantity_on_hand),
                                    "reorder_point": str(policy.reorder_point),
                                    "reorder_quantity": str(policy.reorder_quantity)}}
        )
        return True

    def policy_for(self, product_id: int, facility_id: Optional[int],
                   tenant_id: Optional[str] = None) -> Optional[InventoryPolicy]:
        """Most specific active policy: facility match first, then the product-wide one."""
        policies = TenantStore(self.db, InventoryPolicy, self.scope)
        criteria = [
            InventoryPolicy.product_id == product_id,
            InventoryPolicy.is_active.is_(True),
            or_(InventoryPolicy.facility_id == facility_id, InventoryPolicy.facility_id.is_(None)),
        ]
        if not self.scope.is_bound and tenant_id is not None:
            criteria.append(InventoryPolicy.tenant_id == tenant_id)
        candidates = policies.find_all(*criteria)
        for policy in candidates:
            if facility_id is not None and policy.facility_id == facility_id:
                return policy
        return next((p for p in candidates if p.facility_id is None), None)
