"""
Tenant-isolating persistence for every ledger entity.

A ``TenantStore`` is bound to one session, one model and one ``TenantScope``.
Every read goes through the same visible pipeline::

    select(model) -> tenant filter -> soft-delete filter -> [row lock]

and every write stamps the scope's tenant through ``HasTenant.assign_tenant``.
A row owned by another tenant is indistinguishable from a missing row.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from shared.core import HasTenant, NotFound, TenantScope, TenantScopeRequired, ValidationError
from inventory_ledger.domain.models import utcnow

ModelT = TypeVar("ModelT")


@dataclass
class Page(Generic[ModelT]):
    items: List[ModelT]
    total: int
    page: int
    size: int

    @property
    def pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total + self.size - 1) // self.size


class TenantStore(Generic[ModelT]):

    def __init__(self, db: Session, model: Type[ModelT], scope: TenantScope):
        if not scope.is_bound and not scope.privileged:
            raise TenantScopeRequired(f"{model.__name__} access")
        self.db = db
        self.model = model
        self.scope = scope

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    # pipeline stages

    def _tenant_filter(self, stmt: Select) -> Select:
        if self.scope.is_bound:
            return stmt.where(self.model.tenant_id == self.scope.tenant_id)
        return stmt

    def _live_filter(self, stmt: Select) -> Select:
        return stmt.where(self.model.is_deleted.is_(False))

    @staticmethod
    def _lock(stmt: Select) -> Select:
        # FOR UPDATE is a no-op on SQLite; the version column still guards writes
        return stmt.with_for_update().execution_options(populate_existing=True)

    def select(self, *criteria, lock: bool = False) -> Select:
        stmt = self._live_filter(self._tenant_filter(select(self.model)))
        if criteria:
            stmt = stmt.where(*criteria)
        if lock:
            stmt = self._lock(stmt)
        return stmt

    # reads

    def find(self, entity_id: int, lock: bool = False) -> Optional[ModelT]:
        stmt = self.select(self.model.id == entity_id, lock=lock)
        return self.db.execute(stmt).scalar_one_or_none()

    def get(self, entity_id: int, lock: bool = False) -> ModelT:
        entity = self.find(entity_id, lock=lock)
        if entity is None:
            raise NotFound(self.entity_name, entity_id)
        return entity

    def find_all(self, *criteria, order_by=None) -> List[ModelT]:
        stmt = self.select(*criteria).order_by(order_by if order_by is not None else self.model.id)
        return list(self.db.execute(stmt).scalars())

    def count(self, *criteria) -> int:
        stmt = self.select(*criteria).with_only_columns(func.count(self.model.id)).order_by(None)
        return self.db.execute(stmt).scalar_one()

    def list(self, *criteria, page: int = 1, size: int = 20, order_by=None) -> Page[ModelT]:
        if page < 1:
            raise ValidationError("page", "must be at least 1")
        if size < 1:
            raise ValidationError("size", "must be at least 1")
        total = self.count(*criteria)
        stmt = (
            self.select(*criteria)
            .order_by(order_by if order_by is not None else self.model.id)
            .offset((page - 1) * size)
            .limit(size)
        )
        return Page(items=list(self.db.execute(stmt).scalars()), total=total, page=page, size=size)

    # writes

    def add(self, entity: ModelT) -> ModelT:
        if not isinstance(entity, HasTenant):
            raise TypeError(f"{type(entity).__name__} is not tenant-owned")
        if self.scope.is_bound:
            entity.assign_tenant(self.scope.tenant_id)
        elif entity.tenant_id is None:
            # privileged scope only writes rows that already know their tenant
            raise TenantScopeRequired(f"{self.entity_name} create")
        if self.scope.actor_id is not None and getattr(entity, "created_by", None) is None:
            entity.created_by = self.scope.actor_id
            entity.updated_by = self.scope.actor_id
        self.db.add(entity)
        self.db.flush()
        return entity

    def update(self, entity: ModelT, values: dict, allowed: Sequence[str]) -> ModelT:
        columns = self.model.__table__.columns
        for field, value in values.items():
            if field not in allowed:
                raise ValidationError(field, "cannot be changed on this record")
            if value is None and field in columns and not columns[field].nullable:
                raise ValidationError(field, "must not be null")
        for field, value in values.items():
            setattr(entity, field, value)
        entity.touch(self.scope.actor_id)
        self.db.flush()
        return entity

    def soft_delete(self, entity: ModelT) -> None:
        entity.is_deleted = True
        entity.touch(self.scope.actor_id)
        self.db.flush()

    def next_number(self, column, prefix: str, now: Optional[datetime] = None) -> str:
        """Sequential per tenant and year, e.g. ``ADJ-2026-000042``."""
        if not self.scope.is_bound:
            raise TenantScopeRequired(f"{self.entity_name} numbering")
        year = (now or utcnow()).year
        stem = f"{prefix}-{year}-"
        stmt = (
            select(func.count(self.model.id))
            .where(self.model.tenant_id == self.scope.tenant_id)
            .where(column.like(f"{stem}%"))
        )
        issued = self.db.execute(stmt).scalar_one()
        return f"{stem}{issued + 1:06d}"
