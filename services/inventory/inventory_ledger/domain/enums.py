from enum import Enum


class ItemStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ALLOCATED = "ALLOCATED"
    QUARANTINED = "QUARANTINED"
    DAMAGED = "DAMAGED"
    EXPIRED = "EXPIRED"
    IN_TRANSIT = "IN_TRANSIT"


class TransactionType(str, Enum):
    RECEIPT = "RECEIPT"
    ISSUE = "ISSUE"
    TRANSFER = "TRANSFER"


class TransactionStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REVERSED = "REVERSED"


class AdjustmentType(str, Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"


class AdjustmentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ReservationType(str, Enum):
    SALES_ORDER = "SALES_ORDER"
    TRANSFER_ORDER = "TRANSFER_ORDER"
    PRODUCTION_ORDER = "PRODUCTION_ORDER"
    QUALITY_INSPECTION = "QUALITY_INSPECTION"
    CUSTOMER_HOLD = "CUSTOMER_HOLD"
    QUARANTINE = "QUARANTINE"
    OTHER = "OTHER"


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    RESERVED = "RESERVED"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class CountStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ValuationMethod(str, Enum):
    FIFO = "FIFO"
    LIFO = "LIFO"
    FEFO = "FEFO"
    WEIGHTED_AVERAGE = "WEIGHTED_AVERAGE"
    STANDARD = "STANDARD"


class AbcClass(str, Enum):
    A = "A"
    B = "B"
    C = "C"


# Allowed status moves; anything missing is rejected
RESERVATION_TRANSITIONS = {
    ReservationStatus.PENDING: {ReservationStatus.RESERVED, ReservationStatus.CANCELLED},
    ReservationStatus.RESERVED: {
        ReservationStatus.PARTIALLY_FULFILLED,
        ReservationStatus.FULFILLED,
        ReservationStatus.CANCELLED,
        ReservationStatus.EXPIRED,
    },
    ReservationStatus.PARTIALLY_FULFILLED: {
        ReservationStatus.PARTIALLY_FULFILLED,
        ReservationStatus.FULFILLED,
        ReservationStatus.CANCELLED,
        ReservationStatus.EXPIRED,
    },
    ReservationStatus.FULFILLED: set(),
    ReservationStatus.CANCELLED: set(),
    ReservationStatus.EXPIRED: set(),
}

COUNT_TRANSITIONS = {
    CountStatus.IN_PROGRESS: {CountStatus.COMPLETED, CountStatus.CANCELLED},
    CountStatus.COMPLETED: set(),
    CountStatus.CANCELLED: set(),
}

TRANSACTION_TRANSITIONS = {
    TransactionStatus.DRAFT: {TransactionStatus.PENDING, TransactionStatus.CANCELLED},
    TransactionStatus.PENDING: {TransactionStatus.IN_PROGRESS, TransactionStatus.CANCELLED},
    TransactionStatus.IN_PROGRESS: {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED},
    TransactionStatus.COMPLETED: {TransactionStatus.REVERSED},
    TransactionStatus.CANCELLED: set(),
    TransactionStatus.REVERSED: set(),
}

# Reservations that still hold allocated stock
OPEN_RESERVATION_STATES = frozenset({
    ReservationStatus.RESERVED,
    ReservationStatus.PARTIALLY_FULFILLED,
})
