"""
Tenant scope handling shared by the services.

Two pieces live here:

- ``TenantScope``: an immutable value naming the tenant (and acting user) for
  one unit of work. Services and stores receive it explicitly as an argument.
- a request-local carrier (``set_current_tenant`` / ``current_tenant`` /
  ``clear_tenant``) backed by a ContextVar. The web boundary fills it for the
  duration of a request so log records can be tagged with the tenant.
  ``tenant_scope()`` guarantees the carrier is reset on every exit path.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Iterator, Optional, Protocol, runtime_checkable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

TenantId = str

tenant_id_var: ContextVar[Optional[TenantId]] = ContextVar('tenant_id', default=None)


@runtime_checkable
class HasTenant(Protocol):
    """Capability implemented by every tenant-owned entity."""

    tenant_id: Optional[TenantId]

    def assign_tenant(self, tenant_id: TenantId) -> None:
        ...


@dataclass(frozen=True)
class TenantScope:
    tenant_id: Optional[TenantId]
    actor_id: Optional[int] = None
    privileged: bool = False

    @classmethod
    def for_tenant(cls, tenant_id: TenantId, actor_id: Optional[int] = None) -> "TenantScope":
        return cls(tenant_id=normalize_tenant_id(tenant_id), actor_id=actor_id)

    @classmethod
    def system(cls, actor_id: Optional[int] = None) -> "TenantScope":
        """Unfiltered scope for background jobs. Never build one from request input."""
        return cls(tenant_id=None, actor_id=actor_id, privileged=True)

    @property
    def is_bound(self) -> bool:
        return self.tenant_id is not None


def normalize_tenant_id(raw) -> Optional[TenantId]:
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def set_current_tenant(tenant_id: Optional[TenantId]):
    """Bind the tenant for the current execution context. Returns a reset token."""
    return tenant_id_var.set(normalize_tenant_id(tenant_id))


def current_tenant() -> Optional[TenantId]:
    return tenant_id_var.get()


def clear_tenant(token=None) -> None:
    if token is not None:
        tenant_id_var.reset(token)
    else:
        tenant_id_var.set(None)


@contextmanager
def tenant_scope(tenant_id: Optional[TenantId], actor_id: Optional[int] = None) -> Iterator[TenantScope]:
    """
    Bind ``tenant_id`` for the block and yield the matching explicit scope.

    The previous carrier value is restored when the block exits, including
    when it raises.
    """
    token = set_current_tenant(tenant_id)
    try:
        yield TenantScope(tenant_id=current_tenant(), actor_id=actor_id)
    finally:
        clear_tenant(token)


class TenantContextMiddleware(BaseHTTPMiddleware):
    """
    Binds the tenant named by the inbound header for the lifetime of a request.

    The header is only read here; endpoints get their ``TenantScope`` from a
    dependency that reads the same header, so nothing downstream depends on
    ambient state.
    """

    def __init__(self, app, header_name: str = 'X-Tenant-ID'):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next) -> Response:
        with tenant_scope(request.headers.get(self.header_name)):
            return await call_next(request)
