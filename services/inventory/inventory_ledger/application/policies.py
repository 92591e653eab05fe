from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from shared.core import TenantScope, ValidationError, get_logger
from inventory_ledger.domain.models import InventoryItem, InventoryPolicy, ZERO
from inventory_ledger.infrastructure.db import unit_of_work
from inventory_ledger.infrastructure.store import Page, TenantStore
from .ledger import InventoryItemService, as_quantity

logger = get_logger(__name__)

_LEVEL_FIELDS = ("min_stock_level", "max_stock_level", "reorder_point", "reorder_quantity")


@dataclass
class ReorderStatus:
    product_id: int
    facility_id: Optional[int]
    policy_id: Optional[int]
    quantity_on_hand: Decimal
    quantity_available: Decimal
    reorder_point: Optional[Decimal]
    reorder_quantity: Optional[Decimal]
    needs_reorder: bool


class PolicyService:
    MUTABLE_FIELDS = (
        "variant_id", "facility_id", "valuation_method", "abc_class", "is_active",
    ) + _LEVEL_FIELDS

    def __init__(self, db: Session, scope: TenantScope):
        self.db = db
        self.scope = scope
        self.policies = TenantStore(db, InventoryPolicy, scope)
        self.items = TenantStore(db, InventoryItem, scope)

    def get(self, policy_id: int) -> InventoryPolicy:
        return self.policies.get(policy_id)

    def list(self, page: int = 1, size: int = 20) -> Page[InventoryPolicy]:
        return self.policies.list(page=page, size=size)

    def find_by_product(self, product_id: int) -> List[InventoryPolicy]:
        return self.policies.find_all(InventoryPolicy.product_id == product_id)

    def find_by_facility(self, facility_id: int) -> List[InventoryPolicy]:
        return self.policies.find_all(InventoryPolicy.facility_id == facility_id)

    def create(self, data) -> InventoryPolicy:
        values = data.model_dump() if hasattr(data, "model_dump") else dict(data)
        if values.get("product_id") is None:
            raise ValidationError("product_id", "is required")
        self._validate_levels(values)
        with unit_of_work(self.db):
            policy = self.policies.add(InventoryPolicy(**values))
        logger.info(
            f"Policy {policy.id} created",
            extra={"extra_fields": {"policy_id": policy.id, "product_id": policy.product_id}}
        )
        return policy

    def update(self, policy_id: int, fields: dict) -> InventoryPolicy:
        with unit_of_work(self.db):
            policy = self.policies.get(policy_id, lock=True)
            merged = {name: getattr(policy, name) for name in _LEVEL_FIELDS}
            merged.update({k: v for k, v in fields.items() if k in _LEVEL_FIELDS})
            self._validate_levels(merged)
            fields = dict(fields, **{k: merged[k] for k in _LEVEL_FIELDS if k in fields})
            self.policies.update(policy, fields, self.MUTABLE_FIELDS)
        return policy

    def soft_delete(self, policy_id: int) -> None:
        with unit_of_work(self.db):
            self.policies.soft_delete(self.policies.get(policy_id, lock=True))

    def reorder_status(self, product_id: int, facility_id: Optional[int] = None) -> ReorderStatus:
        """On-hand across the product's items (in the facility, if given) against its reorder point."""
        criteria = [InventoryItem.product_id == product_id, InventoryItem.is_active.is_(True)]
        if facility_id is not None:
            criteria.append(InventoryItem.facility_id == facility_id)
        items = self.items.find_all(*criteria)
        on_hand = sum((item.quantity_on_hand for item in items), ZERO)
        available = sum((item.quantity_available for item in items), ZERO)

        policy = InventoryItemService(self.db, self.scope).policy_for(product_id, facility_id)
        reorder_point = policy.reorder_point if policy else None
        return ReorderStatus(
            product_id=product_id,
            facility_id=facility_id,
            policy_id=policy.id if policy else None,
            quantity_on_hand=on_hand,
            quantity_available=available,
            reorder_point=reorder_point,
            reorder_quantity=policy.reorder_quantity if policy else None,
            needs_reorder=reorder_point is not None and on_hand <= reorder_point,
        )

    @staticmethod
    def _validate_levels(values: dict) -> None:
        for field in _LEVEL_FIELDS:
            if values.get(field) is None:
                continue
            values[field] = as_quantity(values[field], field)
            if values[field] < ZERO:
                raise ValidationError(field, "must not be negative")
        low, high = values.get("min_stock_level"), values.get("max_stock_level")
        if low is not None and high is not None and low > high:
            raise ValidationError("min_stock_level", "cannot exceed max_stock_level")
