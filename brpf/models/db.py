"""Engine, session factory and declarative base for the BRPF database.

Every model declares an explicit ``__tablename__``. Primary keys are string
UUIDs except for the reference tables whose order is user facing.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Generator

from sqlalchemy import Column, DateTime, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from brpf.config import get_settings

DATABASE_URL = get_settings().database_url

assert DATABASE_URL, "DATABASE_URL must be configured for persistent storage"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=False, future=True, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


def now() -> datetime:
    """Local naive timestamp, the convention used for every stored datetime."""

    return datetime.now()


class TimestampMixin:
    """Adds creation and modification timestamps maintained by the ORM."""

    created_at = Column(DateTime, default=now, nullable=False)
    updated_at = Column(DateTime, default=now, onupdate=now, nullable=False)


def get_db() -> Generator[Session, None, None]:
    """Provide a request-scoped session via FastAPI dependency injection."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    # Import side effect registers every mapped class on ``Base.metadata``.
    from brpf import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_db() -> None:
    from brpf import models  # noqa: F401

    Base.metadata.drop_all(bind=engine)


__all__ = [
    "Base",
    "SessionLocal",
    "TimestampMixin",
    "drop_db",
    "engine",
    "get_db",
    "init_db",
    "new_id",
    "now",
]
