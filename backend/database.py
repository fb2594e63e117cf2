from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    func,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from backend.config import DATABASE_URL, SYSTEM_DEFAULT_CURRENCY
from backend.errors import StoreError
from backend.records import (
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_RECURRING_FREQUENCY,
    DEFAULT_SAVINGS_SOURCE,
)

logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), unique=True, nullable=False),
    Column("hashed_password", String(255), nullable=False),
    Column("first_name", String(50)),
    Column("last_name", String(50)),
    Column("currency", String(3), nullable=False, server_default=SYSTEM_DEFAULT_CURRENCY),
    Column("timezone", String(64), nullable=False, server_default="UTC"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

expenses = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("category", String(50), nullable=False),
    Column("subcategory", String(100)),
    Column("description", String(500)),
    Column("date", Date, nullable=False),
    Column("payment_method", String(30), nullable=False, server_default=DEFAULT_PAYMENT_METHOD),
    Column("location", String(200)),
    Column("is_recurring", Boolean, nullable=False, server_default="0"),
    Column("recurring_frequency", String(10), nullable=False, server_default=DEFAULT_RECURRING_FREQUENCY),
    Column("tags", JSON, nullable=False, default=list),
    Column("receipt_url", String(500)),
    Column("receipt_filename", String(255)),
    Column("receipt_uploaded_at", DateTime),
    Column("notes", String(1000)),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now(), onupdate=func.now()),
    Index("ix_expenses_user_date", "user_id", "date"),
    Index("ix_expenses_user_category", "user_id", "category"),
)

savings = Table(
    "savings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("type", String(20), nullable=False),
    Column("category", String(50), nullable=False),
    Column("description", String(500)),
    Column("date", Date, nullable=False),
    Column("period_start_date", Date, nullable=False),
    Column("period_end_date", Date, nullable=False),
    Column("goal_target_amount", Numeric(12, 2)),
    Column("goal_target_date", Date),
    Column("goal_is_completed", Boolean, nullable=False, server_default="0"),
    Column("goal_progress", Numeric(5, 2), nullable=False, server_default="0"),
    Column("source", String(30), nullable=False, server_default=DEFAULT_SAVINGS_SOURCE),
    Column("is_recurring", Boolean, nullable=False, server_default="0"),
    Column("recurring_amount", Numeric(12, 2)),
    Column("recurring_frequency", String(10), nullable=False, server_default=DEFAULT_RECURRING_FREQUENCY),
    Column("tags", JSON, nullable=False, default=list),
    Column("notes", String(1000)),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now(), onupdate=func.now()),
    Index("ix_savings_user_date", "user_id", "date"),
    Index("ix_savings_user_type", "user_id", "type"),
    Index("ix_savings_user_period", "user_id", "period_start_date", "period_end_date"),
)


def create_store_engine(database_url: str = DATABASE_URL) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(database_url, connect_args=connect_args)


_engine: Engine | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_store_engine()
    return _engine


def use_engine(engine: Engine) -> Engine:
    global _engine
    _engine = engine
    return engine


def init_db(engine: Engine | None = None) -> None:
    metadata.create_all(engine or get_engine())


@contextmanager
def transaction(engine: Engine | None = None) -> Iterator[Connection]:
    """Open a transaction, surfacing SQLAlchemy failures as StoreError."""
    try:
        with (engine or get_engine()).begin() as conn:
            yield conn
    except SQLAlchemyError as exc:
        logger.exception("Record store failure")
        raise StoreError("Record store failure.") from exc
