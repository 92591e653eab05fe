from typing import Optional

from fastapi import Query, Request

from shared.core import TenantScope, TenantScopeRequired
from shared.core.tenant import normalize_tenant_id
from inventory_ledger.core_settings import get_settings


def _actor_id(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    raw = raw.strip()
    return int(raw) if raw.isdigit() else None


def get_scope(request: Request) -> TenantScope:
    """Explicit tenant scope for the request; the tenant header is mandatory."""
    settings = get_settings()
    tenant_id = normalize_tenant_id(request.headers.get(settings.TENANT_HEADER))
    if tenant_id is None:
        raise TenantScopeRequired(f"{request.method} {request.url.path}")
    return TenantScope.for_tenant(tenant_id, actor_id=_actor_id(request.headers.get(settings.ACTOR_HEADER)))


class Paging:
    def __init__(self, page: int = Query(1, ge=1), size: Optional[int] = Query(None, ge=1)):
        settings = get_settings()
        self.page = page
        self.size = min(size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
