from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from shared.core import TenantScope
from inventory_ledger.api.deps import Paging, get_scope
from inventory_ledger.application.adjustments import AdjustmentService
from inventory_ledger.application.counts import CountService
from inventory_ledger.application.ledger import InventoryItemService
from inventory_ledger.application.policies import PolicyService
from inventory_ledger.application.reservations import ReservationService
from inventory_ledger.application.schemas import (
    AdjustmentDetailRead,
    AdjustmentRead,
    AdjustmentUpdate,
    AdjustStockRequest,
    AllocationRead,
    CountDetailRead,
    CountDetailRequest,
    CountRead,
    CountStartRequest,
    CountUpdate,
    FulfillRequest,
    ItemCreate,
    ItemRead,
    ItemUpdate,
    MovementRequest,
    PageRead,
    PolicyCreate,
    PolicyRead,
    PolicyUpdate,
    ReorderStatusRead,
    ReservationDetailRead,
    ReservationRead,
    ReservationUpdate,
    ReserveRequest,
    TransactionDetailRead,
    TransactionRead,
    TransactionUpdate,
    TransferRequest,
)
from inventory_ledger.application.transactions import TransactionService
from inventory_ledger.domain.enums import ItemStatus, TransactionType
from inventory_ledger.infrastructure.db import get_db

router = APIRouter(prefix="/api/v1/inventory")

items = APIRouter(prefix="/items", tags=["inventory-items"])
adjustments = APIRouter(prefix="/adjustments", tags=["inventory-adjustments"])
transactions = APIRouter(prefix="/transactions", tags=["inventory-transactions"])
reservations = APIRouter(prefix="/reservations", tags=["inventory-reservations"])
counts = APIRouter(prefix="/counts", tags=["inventory-counts"])
policies = APIRouter(prefix="/policies", tags=["inventory-policies"])


def _page(page, schema):
    return PageRead[schema](
        items=[schema.model_validate(row) for row in page.items],
        total=page.total,
        page=page.page,
        size=page.size,
        pages=page.pages,
    )


def _changes(payload) -> dict:
    return payload.model_dump(exclude_unset=True)


# items

@items.get("", response_model=PageRead[ItemRead])
def list_items(paging: Paging = Depends(), db: Session = Depends(get_db),
               scope: TenantScope = Depends(get_scope)):
    return _page(InventoryItemService(db, scope).list(paging.page, paging.size), ItemRead)


@items.post("", response_model=ItemRead, status_code=201)
def create_item(payload: ItemCreate, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return InventoryItemService(db, scope).create(payload)


@items.get("/by-product/{product_id}", response_model=List[ItemRead])
def items_by_product(product_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return InventoryItemService(db, scope).find_by_product(product_id)


@items.get("/by-status/{item_status}", response_model=List[ItemRead])
def items_by_status(item_status: ItemStatus, db: Session = Depends(get_db),
                    scope: TenantScope = Depends(get_scope)):
    return InventoryItemService(db, scope).find_by_status(item_status)


@items.get("/on-hand-above", response_model=List[ItemRead])
def items_on_hand_above(threshold: Decimal, db: Session = Depends(get_db),
                        scope: TenantScope = Depends(get_scope)):
    return InventoryItemService(db, scope).find_by_quantity_on_hand_greater_than(threshold)


@items.get("/{item_id}", response_model=ItemRead)
def get_item(item_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return InventoryItemService(db, scope).get(item_id)


@items.put("/{item_id}", response_model=ItemRead)
def update_item(item_id: int, payload: ItemUpdate, db: Session = Depends(get_db),
                scope: TenantScope = Depends(get_scope)):
    return InventoryItemService(db, scope).update(item_id, _changes(payload))


@items.delete("/{item_id}", status_code=204)
def delete_item(item_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    InventoryItemService(db, scope).soft_delete(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# adjustments

@adjustments.get("", response_model=PageRead[AdjustmentRead])
def list_adjustments(paging: Paging = Depends(), db: Session = Depends(get_db),
                     scope: TenantScope = Depends(get_scope)):
    return _page(AdjustmentService(db, scope).list(paging.page, paging.size), AdjustmentRead)


@adjustments.post("", response_model=AdjustmentRead, status_code=201)
def adjust_stock(payload: AdjustStockRequest, db: Session = Depends(get_db),
                 scope: TenantScope = Depends(get_scope)):
    return AdjustmentService(db, scope).adjust_stock(
        payload.item_id, payload.quantity_delta, payload.reason,
        reason_code=payload.reason_code,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
        reference_number=payload.reference_number,
        notes=payload.notes,
    )


@adjustments.get("/by-item/{item_id}", response_model=List[AdjustmentDetailRead])
def adjustments_by_item(item_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return AdjustmentService(db, scope).find_by_item(item_id)


@adjustments.get("/{adjustment_id}", response_model=AdjustmentRead)
def get_adjustment(adjustment_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return AdjustmentService(db, scope).get(adjustment_id)


@adjustments.get("/{adjustment_id}/details", response_model=List[AdjustmentDetailRead])
def adjustment_details(adjustment_id: int, db: Session = Depends(get_db),
                       scope: TenantScope = Depends(get_scope)):
    return AdjustmentService(db, scope).list_details(adjustment_id)


@adjustments.put("/{adjustment_id}", response_model=AdjustmentRead)
def update_adjustment(adjustment_id: int, payload: AdjustmentUpdate, db: Session = Depends(get_db),
                      scope: TenantScope = Depends(get_scope)):
    return AdjustmentService(db, scope).update(adjustment_id, _changes(payload))


@adjustments.delete("/{adjustment_id}", status_code=204)
def delete_adjustment(adjustment_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    AdjustmentService(db, scope).soft_delete(adjustment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# transactions

@transactions.get("", response_model=PageRead[TransactionRead])
def list_transactions(transaction_type: Optional[TransactionType] = None, paging: Paging = Depends(),
                      db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    page = TransactionService(db, scope).list(paging.page, paging.size, transaction_type=transaction_type)
    return _page(page, TransactionRead)


@transactions.post("/receipts", response_model=TransactionRead, status_code=201)
def record_receipt(payload: MovementRequest, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return TransactionService(db, scope).record_receipt(
        payload.item_id, payload.quantity, **payload.model_dump(exclude={"item_id", "quantity"}))


@transactions.post("/issues", response_model=TransactionRead, status_code=201)
def record_issue(payload: MovementRequest, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return TransactionService(db, scope).record_issue(
        payload.item_id, payload.quantity, **payload.model_dump(exclude={"item_id", "quantity"}))


@transactions.post("/transfers", response_model=TransactionRead, status_code=201)
def record_transfer(payload: TransferRequest, db: Session = Depends(get_db),
                    scope: TenantScope = Depends(get_scope)):
    return TransactionService(db, scope).record_transfer(
        payload.item_id, payload.quantity, **payload.model_dump(exclude={"item_id", "quantity"}))


@transactions.get("/by-item/{item_id}", response_model=List[TransactionDetailRead])
def transactions_by_item(item_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return TransactionService(db, scope).find_by_item(item_id)


@transactions.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(transaction_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return TransactionService(db, scope).get(transaction_id)


@transactions.get("/{transaction_id}/details", response_model=List[TransactionDetailRead])
def transaction_details(transaction_id: int, db: Session = Depends(get_db),
                        scope: TenantScope = Depends(get_scope)):
    return TransactionService(db, scope).list_details(transaction_id)


@transactions.post("/{transaction_id}/reverse", response_model=TransactionRead)
def reverse_transaction(transaction_id: int, db: Session = Depends(get_db),
                        scope: TenantScope = Depends(get_scope)):
    return TransactionService(db, scope).reverse_transaction(transaction_id)


@transactions.put("/{transaction_id}", response_model=TransactionRead)
def update_transaction(transaction_id: int, payload: TransactionUpdate, db: Session = Depends(get_db),
                       scope: TenantScope = Depends(get_scope)):
    return TransactionService(db, scope).update(transaction_id, _changes(payload))


@transactions.delete("/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db),
                       scope: TenantScope = Depends(get_scope)):
    TransactionService(db, scope).soft_delete(transaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# reservations

@reservations.get("", response_model=PageRead[ReservationRead])
def list_reservations(paging: Paging = Depends(), db: Session = Depends(get_db),
                      scope: TenantScope = Depends(get_scope)):
    return _page(ReservationService(db, scope).list(paging.page, paging.size), ReservationRead)


@reservations.post("", response_model=ReservationRead, status_code=201)
def reserve_stock(payload: ReserveRequest, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).reserve_stock(
        payload.item_id, payload.quantity, payload.reference_type, payload.reference_id,
        reservation_type=payload.reservation_type,
        reference_number=payload.reference_number,
        expiry_date=payload.expiry_date,
        priority=payload.priority,
        notes=payload.notes,
    )


@reservations.get("/by-reference", response_model=List[ReservationRead])
def reservations_by_reference(reference_type: str, reference_id: int, db: Session = Depends(get_db),
                              scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).find_by_reference(reference_type, reference_id)


@reservations.get("/{reservation_id}", response_model=ReservationRead)
def get_reservation(reservation_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).get(reservation_id)


@reservations.get("/{reservation_id}/details", response_model=List[ReservationDetailRead])
def reservation_details(reservation_id: int, db: Session = Depends(get_db),
                        scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).list_details(reservation_id)


@reservations.get("/{reservation_id}/allocations", response_model=List[AllocationRead])
def reservation_allocations(reservation_id: int, db: Session = Depends(get_db),
                            scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).list_allocations(reservation_id)


@reservations.post("/{reservation_id}/release", response_model=ReservationRead)
def release_reservation(reservation_id: int, db: Session = Depends(get_db),
                        scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).release_reservation(reservation_id)


@reservations.post("/{reservation_id}/confirm", response_model=ReservationRead)
def confirm_reservation(reservation_id: int, db: Session = Depends(get_db),
                        scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).confirm_reservation(reservation_id)


@reservations.post("/{reservation_id}/fulfill", response_model=ReservationRead)
def fulfill_reservation(reservation_id: int, payload: FulfillRequest, db: Session = Depends(get_db),
                        scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).fulfill_reservation(reservation_id, payload.quantity)


@reservations.post("/{reservation_id}/expire", response_model=ReservationRead)
def expire_reservation(reservation_id: int, db: Session = Depends(get_db),
                       scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).expire_reservation(reservation_id)


@reservations.put("/{reservation_id}", response_model=ReservationRead)
def update_reservation(reservation_id: int, payload: ReservationUpdate, db: Session = Depends(get_db),
                       scope: TenantScope = Depends(get_scope)):
    return ReservationService(db, scope).update(reservation_id, _changes(payload))


@reservations.delete("/{reservation_id}", status_code=204)
def delete_reservation(reservation_id: int, db: Session = Depends(get_db),
                       scope: TenantScope = Depends(get_scope)):
    ReservationService(db, scope).soft_delete(reservation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# counts

@counts.get("", response_model=PageRead[CountRead])
def list_counts(paging: Paging = Depends(), db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return _page(CountService(db, scope).list(paging.page, paging.size), CountRead)


@counts.post("", response_model=CountRead, status_code=201)
def start_count(payload: CountStartRequest, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return CountService(db, scope).start_count(
        payload.location_id,
        facility_id=payload.facility_id,
        zone_id=payload.zone_id,
        count_type=payload.count_type,
        notes=payload.notes,
    )


@counts.get("/{count_id}", response_model=CountRead)
def get_count(count_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return CountService(db, scope).get(count_id)


@counts.get("/{count_id}/details", response_model=List[CountDetailRead])
def count_details(count_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return CountService(db, scope).list_details(count_id)


@counts.post("/{count_id}/details", response_model=CountDetailRead, status_code=201)
def add_count_detail(count_id: int, payload: CountDetailRequest, db: Session = Depends(get_db),
                     scope: TenantScope = Depends(get_scope)):
    return CountService(db, scope).add_count_detail(
        count_id, payload.item_id, payload.counted_quantity, notes=payload.notes)


@counts.post("/{count_id}/complete", response_model=CountRead)
def complete_count(count_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return CountService(db, scope).complete_count(count_id)


@counts.post("/{count_id}/cancel", response_model=CountRead)
def cancel_count(count_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return CountService(db, scope).cancel_count(count_id)


@counts.put("/{count_id}", response_model=CountRead)
def update_count(count_id: int, payload: CountUpdate, db: Session = Depends(get_db),
                 scope: TenantScope = Depends(get_scope)):
    return CountService(db, scope).update(count_id, _changes(payload))


@counts.delete("/{count_id}", status_code=204)
def delete_count(count_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    CountService(db, scope).soft_delete(count_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# policies

@policies.get("", response_model=PageRead[PolicyRead])
def list_policies(paging: Paging = Depends(), db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return _page(PolicyService(db, scope).list(paging.page, paging.size), PolicyRead)


@policies.post("", response_model=PolicyRead, status_code=201)
def create_policy(payload: PolicyCreate, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return PolicyService(db, scope).create(payload)


@policies.get("/by-product/{product_id}", response_model=List[PolicyRead])
def policies_by_product(product_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return PolicyService(db, scope).find_by_product(product_id)


@policies.get("/by-facility/{facility_id}", response_model=List[PolicyRead])
def policies_by_facility(facility_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return PolicyService(db, scope).find_by_facility(facility_id)


@policies.get("/reorder-status", response_model=ReorderStatusRead)
def reorder_status(product_id: int, facility_id: Optional[int] = None, db: Session = Depends(get_db),
                   scope: TenantScope = Depends(get_scope)):
    return PolicyService(db, scope).reorder_status(product_id, facility_id)


@policies.get("/{policy_id}", response_model=PolicyRead)
def get_policy(policy_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    return PolicyService(db, scope).get(policy_id)


@policies.put("/{policy_id}", response_model=PolicyRead)
def update_policy(policy_id: int, payload: PolicyUpdate, db: Session = Depends(get_db),
                  scope: TenantScope = Depends(get_scope)):
    return PolicyService(db, scope).update(policy_id, _changes(payload))


@policies.delete("/{policy_id}", status_code=204)
def delete_policy(policy_id: int, db: Session = Depends(get_db), scope: TenantScope = Depends(get_scope)):
    PolicyService(db, scope).soft_delete(policy_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


for _sub in (items, adjustments, transactions, reservations, counts, policies):
    router.include_router(_sub)
