"""Owner-scoped persistence for expense and savings records.

Every statement issued here carries ``user_id == owner`` in its WHERE clause; a
record owned by someone else is indistinguishable from a missing one.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import Table, func, insert, select, update
from sqlalchemy.engine import Connection

from backend.config import SYSTEM_DEFAULT_CURRENCY
from backend.database import expenses, savings, users
from backend.derived_metrics import GoalStatus, goal_status
from backend.errors import NotFoundError, StoreError, ValidationError
from backend.filter_builder import Predicate, to_conditions
from backend.pagination import PageWindow, paginate
from backend.records import Currency

logger = logging.getLogger(__name__)

EXPENSE_SORT_COLUMNS = {
    "date": expenses.c.date,
    "amount": expenses.c.amount,
    "category": expenses.c.category,
    "createdAt": expenses.c.created_at,
}
SAVINGS_SORT_COLUMNS = {
    "date": savings.c.date,
    "amount": savings.c.amount,
    "type": savings.c.type,
    "category": savings.c.category,
    "createdAt": savings.c.created_at,
}
GOAL_FIELDS = ("goal_target_amount", "goal_target_date", "goal_is_completed", "goal_progress")


def resolve_default_currency(conn: Connection, user_id: int) -> str:
    currency = conn.execute(
        select(users.c.currency).where(users.c.id == user_id)
    ).scalar_one_or_none()
    if currency:
        try:
            return Currency.validate(currency)
        except ValidationError:
            pass
    return SYSTEM_DEFAULT_CURRENCY


def create_expense(conn: Connection, user_id: int, values: dict) -> dict:
    values = dict(values)
    values["currency"] = values.get("currency") or resolve_default_currency(conn, user_id)
    values.setdefault("date", date.today())
    values.setdefault("tags", [])
    _check_expense(values)
    row = _insert(conn, expenses, user_id, values)
    logger.info("Created expense %s for user %s", row["id"], user_id)
    return row


def get_expense(conn: Connection, user_id: int, expense_id: int) -> dict:
    return _get_owned(conn, expenses, user_id, expense_id, "Expense not found.")


def update_expense(conn: Connection, user_id: int, expense_id: int, changes: dict) -> dict:
    current = get_expense(conn, user_id, expense_id)
    merged = {**current, **changes}
    _check_expense(merged)
    row = _update_owned(conn, expenses, user_id, expense_id, changes, "Expense not found.")
    logger.info("Updated expense %s for user %s", expense_id, user_id)
    return row


def delete_expense(conn: Connection, user_id: int, expense_id: int) -> None:
    _delete_owned(conn, expenses, user_id, expense_id, "Expense not found.")
    logger.info("Deleted expense %s for user %s", expense_id, user_id)


def bulk_delete_expenses(conn: Connection, user_id: int, expense_ids: Iterable[int]) -> int:
    return _bulk_delete(conn, expenses, user_id, expense_ids)


def list_expenses(
    conn: Connection,
    predicate: Predicate,
    sort_by: str = "date",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> tuple[list[dict], PageWindow]:
    return _list_page(conn, expenses, predicate, EXPENSE_SORT_COLUMNS[sort_by], sort_order, page, limit)


def create_savings(conn: Connection, user_id: int, values: dict) -> dict:
    values = dict(values)
    values["currency"] = values.get("currency") or resolve_default_currency(conn, user_id)
    values.setdefault("date", date.today())
    values.setdefault("tags", [])
    values.setdefault("goal_is_completed", False)
    values.setdefault("goal_progress", Decimal("0"))
    values.update(normalize_goal(values))
    row = _insert(conn, savings, user_id, values)
    logger.info("Created savings entry %s for user %s", row["id"], user_id)
    return row


def get_savings(conn: Connection, user_id: int, savings_id: int) -> dict:
    return _get_owned(conn, savings, user_id, savings_id, "Savings entry not found.")


def update_savings(conn: Connection, user_id: int, savings_id: int, changes: dict) -> dict:
    current = get_savings(conn, user_id, savings_id)
    merged = {**current, **changes}
    changes = {**changes, **normalize_goal(merged)}
    row = _update_owned(conn, savings, user_id, savings_id, changes, "Savings entry not found.")
    logger.info("Updated savings entry %s for user %s", savings_id, user_id)
    return row


def delete_savings(conn: Connection, user_id: int, savings_id: int) -> None:
    _delete_owned(conn, savings, user_id, savings_id, "Savings entry not found.")
    logger.info("Deleted savings entry %s for user %s", savings_id, user_id)


def bulk_delete_savings(conn: Connection, user_id: int, savings_ids: Iterable[int]) -> int:
    return _bulk_delete(conn, savings, user_id, savings_ids)


def list_savings(
    conn: Connection,
    predicate: Predicate,
    sort_by: str = "date",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> tuple[list[dict], PageWindow]:
    return _list_page(conn, savings, predicate, SAVINGS_SORT_COLUMNS[sort_by], sort_order, page, limit)


def list_savings_goals(conn: Connection, user_id: int) -> list[dict]:
    stmt = (
        select(savings)
        .where(
            savings.c.user_id == user_id,
            savings.c.goal_target_amount.isnot(None),
            savings.c.goal_target_amount > 0,
        )
        .order_by(
            savings.c.goal_target_date.is_(None),
            savings.c.goal_target_date.asc(),
            savings.c.id.asc(),
        )
    )
    return [dict(row) for row in conn.execute(stmt).mappings().all()]


def list_savings_by_predicate(conn: Connection, predicate: Predicate) -> list[dict]:
    stmt = (
        select(savings)
        .where(*to_conditions(predicate, savings))
        .order_by(savings.c.date.desc(), savings.c.id.desc())
    )
    return [dict(row) for row in conn.execute(stmt).mappings().all()]


def normalize_goal(values: dict) -> dict:
    """Goal columns as they must be stored alongside ``values['amount']``."""
    current = GoalStatus(
        progress=values.get("goal_progress") or Decimal("0"),
        is_completed=bool(values.get("goal_is_completed")),
    )
    status = goal_status(values["amount"], values.get("goal_target_amount"), current)
    return {"goal_progress": status.progress, "goal_is_completed": status.is_completed}


def _check_expense(values: dict) -> None:
    if values["amount"] is None or values["amount"] <= 0:
        raise ValidationError("Amount must be greater than zero.", field="amount")


def _insert(conn: Connection, table: Table, user_id: int, values: dict) -> dict:
    payload = {key: value for key, value in values.items() if key in table.c and key != "id"}
    payload["user_id"] = user_id
    result = conn.execute(insert(table).values(**payload).returning(*table.c))
    row = result.mappings().first()
    if not row:
        raise StoreError(f"Failed to insert into {table.name}.")
    return dict(row)


def _get_owned(conn: Connection, table: Table, user_id: int, record_id: int, message: str) -> dict:
    row = conn.execute(
        select(table).where(table.c.id == record_id, table.c.user_id == user_id)
    ).mappings().first()
    if not row:
        raise NotFoundError(message)
    return dict(row)


def _update_owned(
    conn: Connection, table: Table, user_id: int, record_id: int, changes: dict, message: str
) -> dict:
    payload = {
        key: value
        for key, value in changes.items()
        if key in table.c and key not in {"id", "user_id", "created_at", "updated_at"}
    }
    payload["updated_at"] = func.now()
    row = conn.execute(
        update(table)
        .where(table.c.id == record_id, table.c.user_id == user_id)
        .values(**payload)
        .returning(*table.c)
    ).mappings().first()
    if not row:
        raise NotFoundError(message)
    return dict(row)


def _delete_owned(conn: Connection, table: Table, user_id: int, record_id: int, message: str) -> None:
    result = conn.execute(
        table.delete().where(table.c.id == record_id, table.c.user_id == user_id)
    )
    if result.rowcount == 0:
        raise NotFoundError(message)


def _bulk_delete(conn: Connection, table: Table, user_id: int, record_ids: Iterable[int]) -> int:
    requested = list(dict.fromkeys(record_ids))
    if not requested:
        raise ValidationError("At least one id is required.", field="ids")
    result = conn.execute(
        table.delete().where(table.c.id.in_(requested), table.c.user_id == user_id)
    )
    deleted = int(result.rowcount or 0)
    logger.info(
        "Bulk deleted %s of %s requested %s rows for user %s",
        deleted,
        len(requested),
        table.name,
        user_id,
    )
    return deleted


def _list_page(
    conn: Connection,
    table: Table,
    predicate: Predicate,
    sort_column,
    sort_order: str,
    page: int,
    limit: int,
) -> tuple[list[dict], PageWindow]:
    conditions = to_conditions(predicate, table)
    logger.debug("Listing %s filtered on %s", table.name, ", ".join(predicate.clause_fields()))
    total = conn.execute(select(func.count()).select_from(table).where(*conditions)).scalar_one()
    window = paginate(page, limit, int(total or 0))
    if sort_order == "asc":
        ordering = (sort_column.asc(), table.c.id.asc())
    else:
        ordering = (sort_column.desc(), table.c.id.desc())
    rows = conn.execute(
        select(table).where(*conditions).order_by(*ordering).offset(window.skip).limit(window.limit)
    ).mappings().all()
    return [dict(row) for row in rows], window
