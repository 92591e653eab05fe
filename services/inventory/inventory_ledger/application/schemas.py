from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from inventory_ledger.domain.enums import (
    AbcClass,
    AdjustmentStatus,
    AdjustmentType,
    CountStatus,
    ItemStatus,
    ReservationStatus,
    ReservationType,
    TransactionStatus,
    TransactionType,
    ValuationMethod,
)

T = TypeVar("T")


class PageRead(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    size: int
    pages: int


class AuditRead(BaseModel):
    tenant_id: str
    created_at: datetime
    created_by: Optional[int] = None
    updated_at: datetime
    updated_by: Optional[int] = None

    class Config:
        from_attributes = True


# items

class ItemBase(BaseModel):
    variant_id: Optional[int] = None
    lot_number: Optional[str] = None
    serial_number: Optional[str] = None
    status: ItemStatus = ItemStatus.AVAILABLE
    condition: Optional[str] = None
    unit_of_measure: str = "EA"
    location_id: Optional[int] = None
    facility_id: Optional[int] = None
    expiry_date: Optional[datetime] = None
    manufacture_date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    unit_cost: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    is_active: bool = True


class ItemCreate(ItemBase):
    product_id: int
    quantity_on_hand: Decimal = Field(default=Decimal("0"), ge=0)
    quantity_allocated: Decimal = Field(default=Decimal("0"), ge=0)


class ItemUpdate(BaseModel):
    variant_id: Optional[int] = None
    lot_number: Optional[str] = None
    serial_number: Optional[str] = None
    status: Optional[ItemStatus] = None
    condition: Optional[str] = None
    unit_of_measure: Optional[str] = None
    location_id: Optional[int] = None
    facility_id: Optional[int] = None
    expiry_date: Optional[datetime] = None
    manufacture_date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    unit_cost: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class ItemRead(ItemBase, AuditRead):
    id: int
    product_id: int
    quantity_on_hand: Decimal
    quantity_allocated: Decimal
    quantity_available: Decimal
    total_cost: Optional[Decimal] = None
    last_counted_date: Optional[datetime] = None
    version_id: int


# adjustments

class AdjustStockRequest(BaseModel):
    item_id: int
    quantity_delta: Decimal
    reason: str = Field(min_length=1)
    reason_code: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class AdjustmentUpdate(BaseModel):
    reason: Optional[str] = None
    reason_code: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class AdjustmentDetailRead(AuditRead):
    id: int
    adjustment_id: int
    item_id: int
    location_id: Optional[int] = None
    lot_number: Optional[str] = None
    serial_number: Optional[str] = None
    quantity_before: Decimal
    quantity_after: Decimal
    quantity_adjusted: Decimal
    unit_of_measure: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    total_cost: Optional[Decimal] = None
    notes: Optional[str] = None


class AdjustmentRead(AuditRead):
    id: int
    adjustment_number: str
    adjustment_date: datetime
    adjustment_type: AdjustmentType
    status: AdjustmentStatus
    reason: Optional[str] = None
    reason_code: Optional[str] = None
    reference_number: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    notes: Optional[str] = None
    is_approved: bool
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None


# transactions

class MovementRequest(BaseModel):
    item_id: int
    quantity: Decimal = Field(gt=0)
    reference_number: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    unit_cost: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None


class TransferRequest(MovementRequest):
    from_location_id: Optional[int] = None
    to_location_id: int


class TransactionUpdate(BaseModel):
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class TransactionDetailRead(AuditRead):
    id: int
    transaction_id: int
    item_id: int
    quantity: Decimal
    unit_of_measure: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    total_cost: Optional[Decimal] = None
    lot_number: Optional[str] = None
    serial_number: Optional[str] = None
    from_location_id: Optional[int] = None
    to_location_id: Optional[int] = None


class TransactionRead(AuditRead):
    id: int
    transaction_number: str
    transaction_type: TransactionType
    transaction_date: datetime
    status: TransactionStatus
    reference_number: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    source_type: Optional[str] = None
    source_id: Optional[int] = None
    destination_type: Optional[str] = None
    destination_id: Optional[int] = None
    notes: Optional[str] = None


# reservations

class ReserveRequest(BaseModel):
    item_id: int
    quantity: Decimal = Field(gt=0)
    reservation_type: ReservationType = ReservationType.OTHER
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    expiry_date: Optional[datetime] = None
    priority: int = 0
    notes: Optional[str] = None


class FulfillRequest(BaseModel):
    quantity: Decimal = Field(gt=0)


class ReservationUpdate(BaseModel):
    reference_number: Optional[str] = None
    priority: Optional[int] = None
    expiry_date: Optional[datetime] = None
    notes: Optional[str] = None


class ReservationDetailRead(AuditRead):
    id: int
    reservation_id: int
    item_id: int
    quantity_requested: Decimal
    quantity_allocated: Decimal
    quantity_fulfilled: Decimal
    unit_of_measure: Optional[str] = None
    lot_number: Optional[str] = None


class AllocationRead(AuditRead):
    id: int
    reservation_detail_id: int
    item_id: int
    location_id: Optional[int] = None
    lot_number: Optional[str] = None
    quantity_allocated: Decimal
    quantity_fulfilled: Decimal


class ReservationRead(AuditRead):
    id: int
    reservation_number: str
    reservation_type: ReservationType
    status: ReservationStatus
    reference_number: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    requested_date: datetime
    expiry_date: Optional[datetime] = None
    priority: int
    notes: Optional[str] = None


# counts

class CountStartRequest(BaseModel):
    location_id: Optional[int] = None
    facility_id: Optional[int] = None
    zone_id: Optional[int] = None
    count_type: str = "CYCLE"
    notes: Optional[str] = None


class CountDetailRequest(BaseModel):
    item_id: int
    counted_quantity: Decimal = Field(ge=0)
    notes: Optional[str] = None


class CountUpdate(BaseModel):
    count_type: Optional[str] = None
    facility_id: Optional[int] = None
    zone_id: Optional[int] = None
    notes: Optional[str] = None


class CountDetailRead(AuditRead):
    id: int
    count_id: int
    item_id: int
    expected_quantity: Decimal
    counted_quantity: Decimal
    variance: Decimal
    unit_of_measure: Optional[str] = None
    lot_number: Optional[str] = None
    notes: Optional[str] = None
    is_recounted: bool


class CountRead(AuditRead):
    id: int
    count_number: str
    count_type: str
    status: CountStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    facility_id: Optional[int] = None
    zone_id: Optional[int] = None
    location_id: Optional[int] = None
    notes: Optional[str] = None
    is_approved: bool


# policies

class PolicyBase(BaseModel):
    variant_id: Optional[int] = None
    facility_id: Optional[int] = None
    min_stock_level: Optional[Decimal] = Field(default=None, ge=0)
    max_stock_level: Optional[Decimal] = Field(default=None, ge=0)
    reorder_point: Optional[Decimal] = Field(default=None, ge=0)
    reorder_quantity: Optional[Decimal] = Field(default=None, ge=0)
    valuation_method: ValuationMethod = ValuationMethod.FIFO
    abc_class: Optional[AbcClass] = None
    is_active: bool = True


class PolicyCreate(PolicyBase):
    product_id: int


class PolicyUpdate(BaseModel):
    variant_id: Optional[int] = None
    facility_id: Optional[int] = None
    min_stock_level: Optional[Decimal] = Field(default=None, ge=0)
    max_stock_level: Optional[Decimal] = Field(default=None, ge=0)
    reorder_point: Optional[Decimal] = Field(default=None, ge=0)
    reorder_quantity: Optional[Decimal] = Field(default=None, ge=0)
    valuation_method: Optional[ValuationMethod] = None
    abc_class: Optional[AbcClass] = None
    is_active: Optional[bool] = None


class PolicyRead(PolicyBase, AuditRead):
    id: int
    product_id: int


class ReorderStatusRead(BaseModel):
    product_id: int
    facility_id: Optional[int] = None
    policy_id: Optional[int] = None
    quantity_on_hand: Decimal
    quantity_available: Decimal
    reorder_point: Optional[Decimal] = None
    reorder_quantity: Optional[Decimal] = None
    needs_reorder: bool

    class Config:
        from_attributes = True
