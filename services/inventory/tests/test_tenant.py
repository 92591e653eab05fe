from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from shared.core import (
    HasTenant,
    TenantContextMiddleware,
    TenantScope,
    clear_tenant,
    current_tenant,
    set_current_tenant,
    tenant_scope,
)
from inventory_ledger.domain.models import InventoryItem, InventoryPolicy


def test_cleared_scope_reads_as_absent():
    token = set_current_tenant("acme")
    assert current_tenant() == "acme"
    clear_tenant(token)
    assert current_tenant() is None


def test_blank_tenant_is_absent():
    with tenant_scope("   ") as scope:
        assert current_tenant() is None
        assert not scope.is_bound


def test_tenant_scope_released_when_block_raises():
    with pytest.raises(RuntimeError):
        with tenant_scope("acme"):
            assert current_tenant() == "acme"
            raise RuntimeError("boom")
    assert current_tenant() is None


def test_nested_scopes_restore_outer_tenant():
    with tenant_scope("acme"):
        with tenant_scope("globex", actor_id=3) as inner:
            assert inner == TenantScope("globex", actor_id=3)
            assert current_tenant() == "globex"
        assert current_tenant() == "acme"
    assert current_tenant() is None


def test_scope_does_not_leak_into_other_workers():
    def observe(tenant):
        with tenant_scope(tenant):
            return current_tenant()

    with tenant_scope("acme"):
        with ThreadPoolExecutor(max_workers=4) as pool:
            seen_fresh = pool.submit(current_tenant).result()
            seen = list(pool.map(observe, ["t1", "t2", "t3", "t4"]))
        assert current_tenant() == "acme"
    assert seen_fresh is None
    assert seen == ["t1", "t2", "t3", "t4"]


def test_system_scope_is_privileged_and_unbound():
    scope = TenantScope.system(actor_id=1)
    assert scope.privileged
    assert not scope.is_bound
    assert not TenantScope.for_tenant(" acme ").privileged
    assert TenantScope.for_tenant(" acme ").tenant_id == "acme"


def test_entities_expose_tenant_capability():
    item = InventoryItem(product_id=1)
    assert isinstance(item, HasTenant)
    item.assign_tenant("acme")
    assert item.tenant_id == "acme"
    assert isinstance(InventoryPolicy(product_id=1), HasTenant)


def test_middleware_binds_tenant_for_request_only():
    app = FastAPI()
    app.add_middleware(TenantContextMiddleware, header_name="X-Tenant-ID")

    @app.get("/whoami")
    def whoami():
        return {"tenant": current_tenant()}

    client = TestClient(app)
    assert client.get("/whoami", headers={"X-Tenant-ID": "acme"}).json() == {"tenant": "acme"}
    assert client.get("/whoami").json() == {"tenant": None}
    assert current_tenant() is None
