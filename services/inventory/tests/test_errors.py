from decimal import Decimal

from shared.core import (
    ConcurrentModification,
    InsufficientStock,
    InvalidStateTransition,
    LedgerError,
    NotFound,
    TenantScopeRequired,
    ValidationError,
)
from inventory_ledger.api.errors import status_for
from inventory_ledger.core_settings import Settings
from inventory_ledger.domain.enums import ReservationStatus


def test_http_status_per_error():
    assert status_for(NotFound("InventoryItem", 1)) == 404
    assert status_for(InsufficientStock(1, "issue", Decimal("1"), Decimal("2"))) == 409
    assert status_for(InvalidStateTransition("InventoryCount", 1, "COMPLETED", "COMPLETED")) == 409
    assert status_for(ValidationError("quantity", "must be greater than zero")) == 422
    assert status_for(TenantScopeRequired()) == 400
    assert status_for(ConcurrentModification("inventory_items", None)) == 409


def test_only_concurrent_modification_is_retriable():
    assert ConcurrentModification("inventory_items", 4).retriable
    assert not NotFound("InventoryItem", 1).retriable
    assert isinstance(ConcurrentModification("x", 1), LedgerError)


def test_insufficient_stock_message_carries_quantities():
    exc = InsufficientStock(12, "reserve", Decimal("50"), Decimal("60"))
    assert exc.message == "Insufficient stock for InventoryItem (ID: 12) to reserve. Available: 50, Requested: 60"
    assert exc.to_dict()["details"] == {
        "entity": "InventoryItem", "id": 12, "action": "reserve", "available": "50", "requested": "60",
    }


def test_state_transition_unwraps_enums():
    exc = InvalidStateTransition("InventoryReservation", 3, ReservationStatus.FULFILLED, ReservationStatus.CANCELLED)
    assert exc.details["from_state"] == "FULFILLED"
    assert exc.details["to_state"] == "CANCELLED"


def test_database_url_prefers_explicit_value():
    assert Settings(DATABASE_URL="sqlite:///x.db").database_url == "sqlite:///x.db"
    assembled = Settings(DATABASE_URL=None, POSTGRES_HOST="db", POSTGRES_USER="u", POSTGRES_PASSWORD="p",
                         POSTGRES_DB="inv", POSTGRES_PORT=5433)
    assert assembled.database_url == "postgresql+psycopg2://u:p@db:5433/inv"
