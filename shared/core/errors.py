"""
Typed errors raised by the inventory ledger.

Every error carries a machine-readable ``code`` and the structured values a
caller needs to render a message (entity kind, id, quantities, states), so
the API layer never has to parse message text.

    LedgerError
    +-- NotFound                 NOT_FOUND
    +-- InsufficientStock        INSUFFICIENT_STOCK
    +-- InvalidStateTransition   INVALID_STATE_TRANSITION
    +-- ValidationError          VALIDATION_ERROR
    +-- TenantScopeRequired      TENANT_SCOPE_REQUIRED
    +-- ConcurrentModification   CONCURRENT_MODIFICATION
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class LedgerError(Exception):
    code: str = "LEDGER_ERROR"
    retriable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFound(LedgerError):
    """Entity is absent, soft-deleted, or owned by another tenant."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"entity": self.entity, "id": self.entity_id}


class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: Any, action: str, available: Decimal, requested: Decimal):
        self.item_id = item_id
        self.action = action
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for InventoryItem (ID: {item_id}) to {action}. "
            f"Available: {available}, Requested: {requested}"
        )

    @property
    def details(self) -> Dict[str, Any]:
        return {
            "entity": "InventoryItem",
            "id": self.item_id,
            "action": self.action,
            "available": str(self.available),
            "requested": str(self.requested),
        }


class InvalidStateTransition(LedgerError):
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, entity: str, entity_id: Any, from_state: Any, to_state: Any):
        self.entity = entity
        self.entity_id = entity_id
        self.from_state = getattr(from_state, "value", from_state)
        self.to_state = getattr(to_state, "value", to_state)
        super().__init__(
            f"{entity} {entity_id} cannot move from {self.from_state} to {self.to_state}"
        )

    @property
    def details(self) -> Dict[str, Any]:
        return {
            "entity": self.entity,
            "id": self.entity_id,
            "from_state": self.from_state,
            "to_state": self.to_state,
        }


class ValidationError(LedgerError):
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"field": self.field, "reason": self.reason}


class TenantScopeRequired(LedgerError):
    code = "TENANT_SCOPE_REQUIRED"

    def __init__(self, operation: Optional[str] = None):
        self.operation = operation
        suffix = f" for {operation}" if operation else ""
        super().__init__(f"A tenant scope is required{suffix}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"operation": self.operation}


class ConcurrentModification(LedgerError):
    """Another transaction changed the row first. Safe for the caller to retry."""

    code = "CONCURRENT_MODIFICATION"
    retriable = True

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} was modified concurrently")

    @property
    def details(self) -> Dict[str, Any]:
        return {"entity": self.entity, "id": self.entity_id}
