import os

# Keep the module-level engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from shared.core import TenantScope
from inventory_ledger.application.ledger import InventoryItemService
from inventory_ledger.domain.models import Base
from inventory_ledger.infrastructure.db import build_sessionmaker


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def acme():
    return TenantScope.for_tenant("acme", actor_id=7)


@pytest.fixture
def globex():
    return TenantScope.for_tenant("globex", actor_id=9)


@pytest.fixture
def make_item(db, acme):
    """Create an item through the ledger; quantities as strings keep Decimals exact."""
    def _make(scope=None, on_hand="100", allocated="0", product_id=1, **fields):
        return InventoryItemService(db, scope or acme).create(dict(
            product_id=product_id,
            quantity_on_hand=Decimal(on_hand),
            quantity_allocated=Decimal(allocated),
            **fields,
        ))
    return _make


@pytest.fixture
def reload(db):
    """Fresh copy of a row straight from the database."""
    def _reload(entity):
        db.expire_all()
        return db.get(type(entity), entity.id)
    return _reload
