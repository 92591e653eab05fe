"""
Reservation protocol.

A reservation claims available stock for a reference (order, transfer, hold)
without moving it::

    RESERVED --release--> CANCELLED
    RESERVED --fulfill--> PARTIALLY_FULFILLED --fulfill--> FULFILLED
    RESERVED --confirm--> FULFILLED
    RESERVED --expire---> EXPIRED

Every transition locks the reservation row first, so a second release or
confirm of the same reservation sees the terminal status and is rejected.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from shared.core import (
    InsufficientStock,
    InvalidStateTransition,
    LedgerError,
    TenantScope,
    ValidationError,
    get_logger,
)
from inventory_ledger.core_settings import get_settings
from inventory_ledger.domain.enums import (
    OPEN_RESERVATION_STATES,
    RESERVATION_TRANSITIONS,
    ReservationStatus,
    ReservationType,
)
from inventory_ledger.domain.models import (
    InventoryAllocation,
    InventoryReservation,
    InventoryReservationDetail,
    ZERO,
    utcnow,
)
from inventory_ledger.infrastructure.db import unit_of_work
from inventory_ledger.infrastructure.store import Page, TenantStore
from .ledger import InventoryItemService, Quantity, as_enum, positive_quantity

logger = get_logger(__name__)


class ReservationService:
    MUTABLE_FIELDS = ("reference_number", "priority", "expiry_date", "notes")

    def __init__(self, db: Session, scope: TenantScope, ledger: Optional[InventoryItemService] = None):
        self.db = db
        self.scope = scope
        self.ledger = ledger or InventoryItemService(db, scope)
        self.reservations = TenantStore(db, InventoryReservation, scope)
        self.details = TenantStore(db, InventoryReservationDetail, scope)
        self.allocations = TenantStore(db, InventoryAllocation, scope)

    def get(self, reservation_id: int) -> InventoryReservation:
        return self.reservations.get(reservation_id)

    def list(self, page: int = 1, size: int = 20,
             status: Optional[ReservationStatus] = None) -> Page[InventoryReservation]:
        criteria = []
        if status is not None:
            criteria.append(InventoryReservation.status == as_enum(ReservationStatus, status, "status"))
        return self.reservations.list(*criteria, page=page, size=size, order_by=InventoryReservation.id.desc())

    def list_details(self, reservation_id: int) -> List[InventoryReservationDetail]:
        self.reservations.get(reservation_id)
        return self.details.find_all(InventoryReservationDetail.reservation_id == reservation_id)

    def list_allocations(self, reservation_id: int) -> List[InventoryAllocation]:
        detail_ids = [detail.id for detail in self.list_details(reservation_id)]
        if not detail_ids:
            return []
        return self.allocations.find_all(InventoryAllocation.reservation_detail_id.in_(detail_ids))

    def find_by_reference(self, reference_type: str, reference_id: int) -> List[InventoryReservation]:
        return self.reservations.find_all(
            InventoryReservation.reference_type == reference_type,
            InventoryReservation.reference_id == reference_id,
        )

    def update(self, reservation_id: int, fields: dict) -> InventoryReservation:
        with unit_of_work(self.db):
            reservation = self.reservations.get(reservation_id, lock=True)
            self.reservations.update(reservation, fields, self.MUTABLE_FIELDS)
        return reservation

    def soft_delete(self, reservation_id: int) -> None:
        with unit_of_work(self.db):
            reservation = self.reservations.get(reservation_id, lock=True)
            if reservation.status in OPEN_RESERVATION_STATES:
                raise InvalidStateTransition("InventoryReservation", reservation.id,
                                             reservation.status, "DELETED")
            self.reservations.soft_delete(reservation)

    # protocol

    def reserve_stock(self, item_id: int, quantity: Quantity, reference_type: Optional[str] = None,
                      reference_id: Optional[int] = None, actor_id: Optional[int] = None, *,
                      reservation_type: ReservationType = ReservationType.OTHER,
                      reference_number: Optional[str] = None, expiry_date: Optional[datetime] = None,
                      priority: int = 0, notes: Optional[str] = None) -> InventoryReservation:
        quantity = positive_quantity(quantity)
        actor_id = actor_id if actor_id is not None else self.scope.actor_id

        with unit_of_work(self.db):
            item = self.ledger.lock(item_id)
            available = item.quantity_on_hand - item.quantity_allocated
            if quantity > available:
                logger.warning(
                    "Reservation rejected",
                    extra={"extra_fields": {"item_id": item_id, "available": str(available),
                                            "requested": str(quantity)}}
                )
                raise InsufficientStock(item.id, "reserve", available, quantity)

            now = utcnow()
            if expiry_date is None:
                expiry_date = now + timedelta(minutes=get_settings().RESERVATION_TTL_MINUTES)
            reservation = InventoryReservation(
                reservation_number=self.reservations.next_number(
                    InventoryReservation.reservation_number, "RSV", now),
                reservation_type=as_enum(ReservationType, reservation_type, "reservation_type"),
                status=ReservationStatus.RESERVED,
                reference_number=reference_number,
                reference_type=reference_type,
                reference_id=reference_id,
                requested_date=now,
                expiry_date=expiry_date,
                priority=priority,
                notes=notes,
                created_by=actor_id,
                updated_by=actor_id,
            )
            self.reservations.add(reservation)
            detail = self.details.add(InventoryReservationDetail(
                reservation_id=reservation.id,
                item_id=item.id,
                quantity_requested=quantity,
                quantity_allocated=quantity,
                quantity_fulfilled=ZERO,
                unit_of_measure=item.unit_of_measure,
                lot_number=item.lot_number,
                created_by=actor_id,
                updated_by=actor_id,
            ))
            self.allocations.add(InventoryAllocation(
                reservation_detail_id=detail.id,
                item_id=item.id,
                location_id=item.location_id,
                lot_number=item.lot_number,
                serial_number=item.serial_number,
                quantity_allocated=quantity,
                quantity_fulfilled=ZERO,
                unit_of_measure=item.unit_of_measure,
                expiry_date=item.expiry_date,
                created_by=actor_id,
                updated_by=actor_id,
            ))
            self.ledger.apply_to_locked(item, allocated_delta=quantity, action="reserve")
            self.db.refresh(reservation, ["details"])

        logger.info(
            f"Reservation {reservation.reservation_number} created",
            extra={"extra_fields": {"reservation_id": reservation.id, "item_id": item_id,
                                    "quantity": str(quantity),
                                    "quantity_available": str(item.quantity_available)}}
        )
        return reservation

    def release_reservation(self, reservation_id: int, actor_id: Optional[int] = None) -> InventoryReservation:
        """Give the outstanding quantity back to available stock."""
        return self._close(reservation_id, ReservationStatus.CANCELLED, consume=False, actor_id=actor_id)

    def confirm_reservation(self, reservation_id: int, actor_id: Optional[int] = None) -> InventoryReservation:
        """Consume the outstanding quantity: on-hand and allocated both drop by it."""
        return self._close(reservation_id, ReservationStatus.FULFILLED, consume=True, actor_id=actor_id)

    def expire_reservation(self, reservation_id: int, actor_id: Optional[int] = None) -> InventoryReservation:
        return self._close(reservation_id, ReservationStatus.EXPIRED, consume=False, actor_id=actor_id)

    def fulfill_reservation(self, reservation_id: int, quantity: Quantity,
                            actor_id: Optional[int] = None) -> InventoryReservation:
        """Consume part of a reservation, detail lines in order."""
        quantity = positive_quantity(quantity)
        actor_id = actor_id if actor_id is not None else self.scope.actor_id

        with unit_of_work(self.db):
            reservation = self.reservations.get(reservation_id, lock=True)
            details = self.details.find_all(InventoryReservationDetail.reservation_id == reservation.id)
            outstanding = sum((d.quantity_outstanding for d in details), ZERO)
            if quantity > outstanding:
                raise ValidationError("quantity", f"exceeds outstanding reservation quantity {outstanding}")
            target = (ReservationStatus.FULFILLED if quantity == outstanding
                      else ReservationStatus.PARTIALLY_FULFILLED)
            self._check_transition(reservation, target)

            remaining = quantity
            for detail in details:
                if remaining <= ZERO:
                    break
                take = min(remaining, detail.quantity_outstanding)
                if take <= ZERO:
                    continue
                self._consume(detail, take, actor_id)
                remaining -= take

            reservation.status = target
            reservation.touch(actor_id)

        logger.info(
            f"Reservation {reservation.reservation_number} fulfilled",
            extra={"extra_fields": {"reservation_id": reservation.id, "quantity": str(quantity),
                                    "status": reservation.status.value}}
        )
        return reservation

    def expire_due_reservations(self, now: Optional[datetime] = None) -> List[int]:
        """
        Expire every open reservation whose expiry date has passed.

        Meant for a background job running under ``TenantScope.system()``;
        each reservation is released in its own unit of work.
        """
        now = now or utcnow()
        due = self.reservations.find_all(
            InventoryReservation.status.in_(OPEN_RESERVATION_STATES),
            InventoryReservation.expiry_date.is_not(None),
            InventoryReservation.expiry_date <= now,
        )
        expired = []
        for reservation in due:
            try:
                self.expire_reservation(reservation.id)
            except LedgerError as exc:
                logger.warning(
                    f"Could not expire reservation {reservation.id}: {exc.message}",
                    extra={"extra_fields": {"reservation_id": reservation.id, "error": exc.code}}
                )
                continue
            expired.append(reservation.id)
        if expired:
            logger.info(f"Expired {len(expired)} reservations", extra={"extra_fields": {"reservation_ids": expired}})
        return expired

    # internals

    def _check_transition(self, reservation: InventoryReservation, target: ReservationStatus) -> None:
        if target not in RESERVATION_TRANSITIONS[reservation.status]:
            logger.warning(
                "Reservation transition rejected",
                extra={"extra_fields": {"reservation_id": reservation.id,
                                        "from_state": reservation.status.value, "to_state": target.value}}
            )
            raise InvalidStateTransition("InventoryReservation", reservation.id, reservation.status, target)

    def _close(self, reservation_id: int, target: ReservationStatus, consume: bool,
               actor_id: Optional[int]) -> InventoryReservation:
        actor_id = actor_id if actor_id is not None else self.scope.actor_id
        with unit_of_work(self.db):
            reservation = self.reservations.get(reservation_id, lock=True)
            self._check_transition(reservation, target)

            for detail in self.details.find_all(InventoryReservationDetail.reservation_id == reservation.id):
                outstanding = detail.quantity_outstanding
                if outstanding <= ZERO:
                    continue
                if consume:
                    self._consume(detail, outstanding, actor_id)
                else:
                    self.ledger.apply_quantity_delta(detail.item_id, allocated_delta=-outstanding,
                                                     action=target.value.lower())

            reservation.status = target
            reservation.touch(actor_id)

        logger.info(
            f"Reservation {reservation.reservation_number} {target.value.lower()}",
            extra={"extra_fields": {"reservation_id": reservation.id, "status": target.value}}
        )
        return reservation

    def _consume(self, detail: InventoryReservationDetail, quantity, actor_id: Optional[int]) -> None:
        self.ledger.apply_quantity_delta(detail.item_id, on_hand_delta=-quantity,
                                         allocated_delta=-quantity, action="fulfill")
        detail.quantity_fulfilled = (detail.quantity_fulfilled or ZERO) + quantity
        detail.touch(actor_id)
        remaining = quantity
        for allocation in self.allocations.find_all(InventoryAllocation.reservation_detail_id == detail.id):
            open_quantity = allocation.quantity_allocated - (allocation.quantity_fulfilled or ZERO)
            take = min(remaining, open_quantity)
            if take <= ZERO:
                continue
            allocation.quantity_fulfilled = (allocation.quantity_fulfilled or ZERO) + take
            allocation.touch(actor_id)
            remaining -= take
