from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, ForeignKey, Numeric, DateTime, Boolean, Text, CheckConstraint, UniqueConstraint, Enum as SAEnum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from .enums import (
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

ZERO = Decimal("0")
# scale and magnitude of every Numeric(18, 4) column
QUANTUM = Decimal("0.0001")
MAX_QUANTITY = Decimal("1e14")


def utcnow() -> datetime:
    # Naive UTC so values round-trip identically on SQLite and PostgreSQL
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum(enum_cls):
    return SAEnum(enum_cls, native_enum=False, length=32, validate_strings=True)


class Base(DeclarativeBase):
    type_annotation_map = {
        Decimal: Numeric(18, 4),
    }


class TenantOwned:
    """Columns and the HasTenant capability shared by every tenant-owned row."""

    tenant_id: Mapped[str] = mapped_column(String(64), index=True)

    def assign_tenant(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id


class Audited:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    def touch(self, actor_id: Optional[int]) -> None:
        self.updated_at = utcnow()
        if actor_id is not None:
            self.updated_by = actor_id


class InventoryItem(TenantOwned, Audited, Base):
    __tablename__ = "inventory_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    # Product / variant live in the catalogue service; ids only
    product_id: Mapped[int] = mapped_column(Integer, index=True)
    variant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[ItemStatus] = mapped_column(_enum(ItemStatus), default=ItemStatus.AVAILABLE, index=True)
    condition: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    quantity_on_hand: Mapped[Decimal] = mapped_column(default=ZERO)
    quantity_allocated: Mapped[Decimal] = mapped_column(default=ZERO)
    quantity_available: Mapped[Decimal] = mapped_column(default=ZERO)
    unit_of_measure: Mapped[str] = mapped_column(String(16), default="EA")
    location_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    facility_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    manufacture_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    received_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_counted_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    total_cost: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_items_on_hand_non_negative"),
        CheckConstraint("quantity_allocated >= 0", name="ck_inventory_items_allocated_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def recompute(self) -> None:
        """Derive available and total cost from the stored quantities."""
        on_hand = self.quantity_on_hand or ZERO
        allocated = self.quantity_allocated or ZERO
        self.quantity_available = on_hand - allocated
        if self.unit_cost is not None:
            self.total_cost = on_hand * self.unit_cost


class InventoryTransaction(TenantOwned, Audited, Base):
    __tablename__ = "inventory_transactions"
    __table_args__ = (UniqueConstraint("tenant_id", "transaction_number", name="uq_inventory_transactions_number"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_number: Mapped[str] = mapped_column(String(32), index=True)
    transaction_type: Mapped[TransactionType] = mapped_column(_enum(TransactionType))
    transaction_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    status: Mapped[TransactionStatus] = mapped_column(_enum(TransactionStatus), default=TransactionStatus.COMPLETED)
    reference_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    reference_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    source_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    destination_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    destination_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[list["InventoryTransactionDetail"]] = relationship(
        back_populates="transaction", order_by="InventoryTransactionDetail.id")


class InventoryTransactionDetail(TenantOwned, Audited, Base):
    __tablename__ = "inventory_transaction_details"
    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("inventory_transactions.id"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("inventory_items.id"), index=True)
    quantity: Mapped[Decimal]
    unit_of_measure: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    total_cost: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    from_location_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    to_location_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction: Mapped[InventoryTransaction] = relationship(back_populates="details")


class InventoryAdjustment(TenantOwned, Audited, Base):
    __tablename__ = "inventory_adjustments"
    __table_args__ = (UniqueConstraint("tenant_id", "adjustment_number", name="uq_inventory_adjustments_number"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    adjustment_number: Mapped[str] = mapped_column(String(32), index=True)
    adjustment_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    adjustment_type: Mapped[AdjustmentType] = mapped_column(_enum(AdjustmentType))
    status: Mapped[AdjustmentStatus] = mapped_column(_enum(AdjustmentStatus), default=AdjustmentStatus.APPROVED)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reason_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    reference_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    details: Mapped[list["InventoryAdjustmentDetail"]] = relationship(
        back_populates="adjustment", order_by="InventoryAdjustmentDetail.id")


class InventoryAdjustmentDetail(TenantOwned, Audited, Base):
    __tablename__ = "inventory_adjustment_details"
    id: Mapped[int] = mapped_column(primary_key=True)
    adjustment_id: Mapped[int] = mapped_column(ForeignKey("inventory_adjustments.id"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("inventory_items.id"), index=True)
    location_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    quantity_before: Mapped[Decimal]
    quantity_after: Mapped[Decimal]
    quantity_adjusted: Mapped[Decimal]
    unit_of_measure: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    total_cost: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    adjustment: Mapped[InventoryAdjustment] = relationship(back_populates="details")


class InventoryReservation(TenantOwned, Audited, Base):
    __tablename__ = "inventory_reservations"
    __table_args__ = (UniqueConstraint("tenant_id", "reservation_number", name="uq_inventory_reservations_number"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    reservation_number: Mapped[str] = mapped_column(String(32), index=True)
    reservation_type: Mapped[ReservationType] = mapped_column(_enum(ReservationType), default=ReservationType.OTHER)
    status: Mapped[ReservationStatus] = mapped_column(_enum(ReservationStatus), default=ReservationStatus.PENDING, index=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    reference_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    requested_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    details: Mapped[list["InventoryReservationDetail"]] = relationship(
        back_populates="reservation", order_by="InventoryReservationDetail.id")

    __mapper_args__ = {"version_id_col": version_id}


class InventoryReservationDetail(TenantOwned, Audited, Base):
    __tablename__ = "inventory_reservation_details"
    id: Mapped[int] = mapped_column(primary_key=True)
    reservation_id: Mapped[int] = mapped_column(ForeignKey("inventory_reservations.id"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("inventory_items.id"), index=True)
    quantity_requested: Mapped[Decimal]
    quantity_allocated: Mapped[Decimal] = mapped_column(default=ZERO)
    quantity_fulfilled: Mapped[Decimal] = mapped_column(default=ZERO)
    unit_of_measure: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reservation: Mapped[InventoryReservation] = relationship(back_populates="details")

    @property
    def quantity_outstanding(self) -> Decimal:
        return (self.quantity_allocated or ZERO) - (self.quantity_fulfilled or ZERO)


class InventoryAllocation(TenantOwned, Audited, Base):
    __tablename__ = "inventory_allocations"
    id: Mapped[int] = mapped_column(primary_key=True)
    reservation_detail_id: Mapped[int] = mapped_column(ForeignKey("inventory_reservation_details.id"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("inventory_items.id"), index=True)
    location_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    quantity_allocated: Mapped[Decimal]
    quantity_fulfilled: Mapped[Decimal] = mapped_column(default=ZERO)
    unit_of_measure: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class InventoryCount(TenantOwned, Audited, Base):
    __tablename__ = "inventory_counts"
    __table_args__ = (UniqueConstraint("tenant_id", "count_number", name="uq_inventory_counts_number"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    count_number: Mapped[str] = mapped_column(String(32), index=True)
    count_type: Mapped[str] = mapped_column(String(30), default="CYCLE")
    status: Mapped[CountStatus] = mapped_column(_enum(CountStatus), default=CountStatus.IN_PROGRESS, index=True)
    start_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    facility_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    zone_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    location_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    details: Mapped[list["InventoryCountDetail"]] = relationship(
        back_populates="count", order_by="InventoryCountDetail.id")

    __mapper_args__ = {"version_id_col": version_id}


class InventoryCountDetail(TenantOwned, Audited, Base):
    __tablename__ = "inventory_count_details"
    id: Mapped[int] = mapped_column(primary_key=True)
    count_id: Mapped[int] = mapped_column(ForeignKey("inventory_counts.id"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("inventory_items.id"), index=True)
    expected_quantity: Mapped[Decimal]
    counted_quantity: Mapped[Decimal]
    variance: Mapped[Decimal]
    unit_of_measure: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_recounted: Mapped[bool] = mapped_column(Boolean, default=False)
    count: Mapped[InventoryCount] = relationship(back_populates="details")


class InventoryPolicy(TenantOwned, Audited, Base):
    __tablename__ = "inventory_policies"
    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(Integer, index=True)
    variant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    facility_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    min_stock_level: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    max_stock_level: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    reorder_point: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    reorder_quantity: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    valuation_method: Mapped[ValuationMethod] = mapped_column(_enum(ValuationMethod), default=ValuationMethod.FIFO)
    abc_class: Mapped[Optional[AbcClass]] = mapped_column(_enum(AbcClass), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
