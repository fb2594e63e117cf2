from datetime import date
from decimal import Decimal

from sqlalchemy import insert
from sqlalchemy.engine import Connection, Engine

from backend.database import create_store_engine, metadata, users


def make_engine() -> Engine:
    engine = create_store_engine("sqlite://")
    metadata.create_all(engine)
    return engine


def add_user(conn: Connection, email: str, currency: str = "UGX") -> int:
    result = conn.execute(
        insert(users).values(email=email, hashed_password="x", currency=currency, timezone="UTC")
    )
    return result.inserted_primary_key[0]


def expense_values(amount: str, category: str, when: date, **extra) -> dict:
    values = {"amount": Decimal(amount), "category": category, "date": when}
    values.update(extra)
    return values


def savings_values(amount: str, savings_type: str, when: date, **extra) -> dict:
    values = {
        "amount": Decimal(amount),
        "type": savings_type,
        "category": "General Savings",
        "date": when,
        "period_start_date": when,
        "period_end_date": when,
    }
    values.update(extra)
    return values
