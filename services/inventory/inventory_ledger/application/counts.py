from typing import List, Optional

from sqlalchemy.orm import Session

from shared.core import InvalidStateTransition, TenantScope, ValidationError, get_logger
from inventory_ledger.domain.enums import COUNT_TRANSITIONS, CountStatus
from inventory_ledger.domain.models import InventoryCount, InventoryCountDetail, ZERO, utcnow
from inventory_ledger.infrastructure.db import unit_of_work
from inventory_ledger.infrastructure.store import Page, TenantStore
from .adjustments import AdjustmentService
from .ledger import InventoryItemService, Quantity, as_enum, as_quantity

logger = get_logger(__name__)

VARIANCE_REASON = "Cycle Count Variance"
VARIANCE_REASON_CODE = "CYCLE_COUNT"


class CountService:
    MUTABLE_FIELDS = ("count_type", "facility_id", "zone_id", "notes")

    def __init__(self, db: Session, scope: TenantScope, ledger: Optional[InventoryItemService] = None):
        self.db = db
        self.scope = scope
        self.ledger = ledger or InventoryItemService(db, scope)
        self.adjustments = AdjustmentService(db, scope, ledger=self.ledger)
        self.counts = TenantStore(db, InventoryCount, scope)
        self.details = TenantStore(db, InventoryCountDetail, scope)

    def get(self, count_id: int) -> InventoryCount:
        return self.counts.get(count_id)

    def list(self, page: int = 1, size: int = 20, status: Optional[CountStatus] = None) -> Page[InventoryCount]:
        criteria = []
        if status is not None:
            criteria.append(InventoryCount.status == as_enum(CountStatus, status, "status"))
        return self.counts.list(*criteria, page=page, size=size, order_by=InventoryCount.id.desc())

    def list_details(self, count_id: int) -> List[InventoryCountDetail]:
        self.counts.get(count_id)
        return self.details.find_all(InventoryCountDetail.count_id == count_id)

    def update(self, count_id: int, fields: dict) -> InventoryCount:
        with unit_of_work(self.db):
            count = self.counts.get(count_id, lock=True)
            self.counts.update(count, fields, self.MUTABLE_FIELDS)
        return count

    def soft_delete(self, count_id: int) -> None:
        with unit_of_work(self.db):
            count = self.counts.get(count_id, lock=True)
            if count.status == CountStatus.IN_PROGRESS:
                raise InvalidStateTransition("InventoryCount", count.id, count.status, "DELETED")
            self.counts.soft_delete(count)

    # protocol

    def start_count(self, location_id: Optional[int], actor_id: Optional[int] = None, *,
                    facility_id: Optional[int] = None, zone_id: Optional[int] = None,
                    count_type: str = "CYCLE", notes: Optional[str] = None) -> InventoryCount:
        actor_id = actor_id if actor_id is not None else self.scope.actor_id
        with unit_of_work(self.db):
            now = utcnow()
            count = self.counts.add(InventoryCount(
                count_number=self.counts.next_number(InventoryCount.count_number, "CNT", now),
                count_type=count_type,
                status=CountStatus.IN_PROGRESS,
                start_date=now,
                facility_id=facility_id,
                zone_id=zone_id,
                location_id=location_id,
                notes=notes,
                created_by=actor_id,
                updated_by=actor_id,
            ))
        logger.info(
            f"Count {count.count_number} started",
            extra={"extra_fields": {"count_id": count.id, "location_id": location_id}}
        )
        return count

    def add_count_detail(self, count_id: int, item_id: int, counted_quantity: Quantity,
                         actor_id: Optional[int] = None, notes: Optional[str] = None) -> InventoryCountDetail:
        """
        Record what was counted for one item. The ledger is not touched.

        Counting an item a second time on the same count replaces its line
        and flags it as a recount.
        """
        counted = as_quantity(counted_quantity, "counted_quantity")
        if counted < ZERO:
            raise ValidationError("counted_quantity", "must not be negative")
        actor_id = actor_id if actor_id is not None else self.scope.actor_id

        with unit_of_work(self.db):
            count = self.counts.get(count_id, lock=True)
            self._require_open(count, "add_detail")
            item = self.ledger.get(item_id)
            expected = item.quantity_on_hand

            existing = self.details.find_all(
                InventoryCountDetail.count_id == count.id,
                InventoryCountDetail.item_id == item.id,
            )
            if existing:
                detail = existing[0]
                detail.expected_quantity = expected
                detail.counted_quantity = counted
                detail.variance = counted - expected
                detail.is_recounted = True
                if notes is not None:
                    detail.notes = notes
                detail.touch(actor_id)
            else:
                detail = self.details.add(InventoryCountDetail(
                    count_id=count.id,
                    item_id=item.id,
                    expected_quantity=expected,
                    counted_quantity=counted,
                    variance=counted - expected,
                    unit_of_measure=item.unit_of_measure,
                    lot_number=item.lot_number,
                    notes=notes,
                    created_by=actor_id,
                    updated_by=actor_id,
                ))
            # bumps the count's version so a concurrent completion is detected
            count.touch(actor_id)

        logger.info(
            f"Count {count.count_number} line recorded",
            extra={"extra_fields": {"count_id": count.id, "item_id": item_id,
                                    "expected": str(detail.expected_quantity),
                                    "counted": str(detail.counted_quantity),
                                    "variance": str(detail.variance),
                                    "recount": detail.is_recounted}}
        )
        return detail

    def complete_count(self, count_id: int, actor_id: Optional[int] = None) -> InventoryCount:
        """Post one adjustment per non-zero variance and close the count, all or nothing."""
        actor_id = actor_id if actor_id is not None else self.scope.actor_id
        adjusted = 0
        with unit_of_work(self.db):
            count = self.counts.get(count_id, lock=True)
            self._check_transition(count, CountStatus.COMPLETED)
            now = utcnow()
            details = self.details.find_all(InventoryCountDetail.count_id == count.id)
            # ascending item id, so overlapping counts lock in the same order
            items = [self.ledger.lock(item_id) for item_id in sorted({d.item_id for d in details})]

            for detail in details:
                if detail.variance != ZERO:
                    self.adjustments.record_adjustment(
                        detail.item_id, detail.variance, VARIANCE_REASON, actor_id,
                        reason_code=VARIANCE_REASON_CODE,
                        reference_type="COUNT",
                        reference_id=count.id,
                        reference_number=count.count_number,
                    )
                    adjusted += 1
            for item in items:
                item.last_counted_date = now
                item.touch(actor_id)

            count.status = CountStatus.COMPLETED
            count.end_date = now
            count.is_approved = True
            count.approved_by = actor_id
            count.approved_at = now
            count.touch(actor_id)

        logger.info(
            f"Count {count.count_number} completed",
            extra={"extra_fields": {"count_id": count.id, "adjustments": adjusted}}
        )
        return count

    def cancel_count(self, count_id: int, actor_id: Optional[int] = None) -> InventoryCount:
        actor_id = actor_id if actor_id is not None else self.scope.actor_id
        with unit_of_work(self.db):
            count = self.counts.get(count_id, lock=True)
            self._check_transition(count, CountStatus.CANCELLED)
            count.status = CountStatus.CANCELLED
            count.end_date = utcnow()
            count.touch(actor_id)
        logger.info(f"Count {count.count_number} cancelled", extra={"extra_fields": {"count_id": count.id}})
        return count

    def _check_transition(self, count: InventoryCount, target: CountStatus) -> None:
        if target not in COUNT_TRANSITIONS[count.status]:
            logger.warning(
                "Count transition rejected",
                extra={"extra_fields": {"count_id": count.id, "from_state": count.status.value,
                                        "to_state": target.value}}
            )
            raise InvalidStateTransition("InventoryCount", count.id, count.status, target)

    def _require_open(self, count: InventoryCount, action: str) -> None:
        if count.status != CountStatus.IN_PROGRESS:
            raise InvalidStateTransition("InventoryCount", count.id, count.status, action)
