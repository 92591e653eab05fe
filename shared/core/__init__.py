"""Shared core utilities for the services.

Health checks, structured logging, tenant scoping and the ledger error types.
"""

from .health import ServiceHealth, HealthStatus
from .logging_config import (
    setup_logging,
    get_logger,
    RequestLoggingMiddleware,
    set_request_context,
    generate_request_id,
    LoggerAdapter,
)
from .tenant import (
    HasTenant,
    TenantScope,
    TenantContextMiddleware,
    set_current_tenant,
    current_tenant,
    clear_tenant,
    tenant_scope,
)
from .errors import (
    LedgerError,
    NotFound,
    InsufficientStock,
    InvalidStateTransition,
    ValidationError,
    TenantScopeRequired,
    ConcurrentModification,
)

__all__ = [
    # Health checks
    "ServiceHealth",
    "HealthStatus",
    # Logging
    "setup_logging",
    "get_logger",
    "RequestLoggingMiddleware",
    "set_request_context",
    "generate_request_id",
    "LoggerAdapter",
    # Tenancy
    "HasTenant",
    "TenantScope",
    "TenantContextMiddleware",
    "set_current_tenant",
    "current_tenant",
    "clear_tenant",
    "tenant_scope",
    # Errors
    "LedgerError",
    "NotFound",
    "InsufficientStock",
    "InvalidStateTransition",
    "ValidationError",
    "TenantScopeRequired",
    "ConcurrentModification",
]
