import re
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError

from shared.core import ConcurrentModification, get_logger
from inventory_ledger.core_settings import get_settings
from inventory_ledger.domain.models import Base

logger = get_logger(__name__)

_STALE_TABLE = re.compile(r"table '(\w+)'")
# sqlite names the columns, postgres names the uq_<table>_number constraint
_NUMBER_CONFLICT = re.compile(r'(inventory_[a-z_]+?)(?:\.[a-z_]+_number\b|_number")')


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        kwargs["connect_args"] = connect_args
    return create_engine(url, echo=False, future=True, **kwargs)


def build_sessionmaker(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


settings = get_settings()
engine = build_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = build_sessionmaker(engine)


def get_engine() -> Engine:
    return engine


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_models(bind: Engine = None):
    Base.metadata.create_all(bind or engine)


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    One logical ledger operation: commit when the block succeeds, roll back
    everything it wrote when it raises.

    A lost optimistic race (version column mismatch) and two writers drawing
    the same document number are both reported as ``ConcurrentModification``.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        match = _STALE_TABLE.search(str(exc))
        table = match.group(1) if match else "record"
        logger.warning("Optimistic lock lost", extra={"extra_fields": {"table": table}})
        raise ConcurrentModification(table, None) from exc
    except IntegrityError as exc:
        db.rollback()
        match = _NUMBER_CONFLICT.search(str(exc.orig))
        if match is None:
            raise
        logger.warning("Document number already issued", extra={"extra_fields": {"table": match.group(1)}})
        raise ConcurrentModification(match.group(1), None) from exc
    except Exception:
        db.rollback()
        raise
