"""Grouped totals over expense and savings records.

Category and type groupings are pushed down to the store as ``GROUP BY`` queries.
Calendar bucketing by day and ISO week is done in Python over the matching rows so
the same code runs on every SQLAlchemy backend; month-of-year uses ``extract``.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from sqlalchemy import Table, extract, func, select
from sqlalchemy.engine import Connection

from backend.derived_metrics import average
from backend.filter_builder import Predicate, RangeBounds, to_conditions

ZERO = Decimal("0")
MONTHS = range(1, 13)
GROUPABLE_COLUMNS = {"category", "type"}


@dataclass(frozen=True)
class GroupRow:
    key: Optional[object]
    total: Decimal
    count: int
    average: Decimal


@dataclass(frozen=True)
class TrendRow:
    period: str
    category: str
    total: Decimal
    count: int


def grouped_totals(
    conn: Connection,
    table: Table,
    predicate: Predicate,
    group_by: str,
    limit: int | None = None,
) -> list[GroupRow]:
    if group_by not in GROUPABLE_COLUMNS or group_by not in table.c:
        raise ValueError(f"Unsupported grouping: {group_by}")
    key_expr = table.c[group_by].label("group_key")
    stmt = (
        select(
            key_expr,
            func.coalesce(func.sum(table.c.amount), 0).label("total"),
            func.count().label("count"),
        )
        .where(*to_conditions(predicate, table))
        .group_by(table.c[group_by])
    )
    rows = conn.execute(stmt).mappings().all()
    return rank_groups(rows, limit=limit)


def overall_total(conn: Connection, table: Table, predicate: Predicate) -> GroupRow:
    stmt = select(
        func.coalesce(func.sum(table.c.amount), 0).label("total"),
        func.count().label("count"),
    ).where(*to_conditions(predicate, table))
    row = conn.execute(stmt).mappings().one()
    return _group_row(None, row["total"], row["count"])


def monthly_totals(
    conn: Connection, table: Table, predicate: Predicate, year: int
) -> list[GroupRow]:
    """Per-month totals for one calendar year, always twelve rows."""
    scoped = Predicate(
        owner_id=predicate.owner_id,
        date=RangeBounds(lower=date(year, 1, 1), upper=date(year, 12, 31)),
        amount=predicate.amount,
        equals=predicate.equals,
    )
    month_expr = extract("month", table.c.date)
    stmt = (
        select(
            month_expr.label("group_key"),
            func.coalesce(func.sum(table.c.amount), 0).label("total"),
            func.count().label("count"),
        )
        .where(*to_conditions(scoped, table))
        .group_by(month_expr)
    )
    rows = conn.execute(stmt).mappings().all()
    return densify_months(rows)


def category_trends(
    conn: Connection, table: Table, predicate: Predicate, grouping: str = "month"
) -> list[TrendRow]:
    stmt = select(table.c.date, table.c.category, table.c.amount).where(
        *to_conditions(predicate, table)
    )
    rows = conn.execute(stmt).mappings().all()
    return bucket_category_trends(rows, grouping)


def rank_groups(rows: Iterable[Mapping], limit: int | None = None) -> list[GroupRow]:
    """Shape raw grouped rows, highest total first; equal totals order by key."""
    shaped = [_group_row(row["group_key"], row["total"], row["count"]) for row in rows]
    shaped.sort(key=lambda item: str(item.key))
    shaped.sort(key=lambda item: item.total, reverse=True)
    if limit is not None:
        return shaped[:limit]
    return shaped


def densify_months(rows: Iterable[Mapping]) -> list[GroupRow]:
    by_month: dict[int, GroupRow] = {}
    for row in rows:
        month = int(row["group_key"])
        by_month[month] = _group_row(month, row["total"], row["count"])
    return [by_month.get(month, GroupRow(key=month, total=ZERO, count=0, average=ZERO)) for month in MONTHS]


def trend_period_key(value: date, grouping: str) -> str:
    if grouping == "day":
        return value.isoformat()
    if grouping == "week":
        iso_year, iso_week, _ = value.isocalendar()
        return f"{iso_year:04d}-W{iso_week:02d}"
    if grouping == "month":
        return f"{value.year:04d}-{value.month:02d}"
    raise ValueError(f"Unsupported trend grouping: {grouping}")


def bucket_category_trends(rows: Iterable[Mapping], grouping: str) -> list[TrendRow]:
    totals: dict[tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
    counts: dict[tuple[str, str], int] = defaultdict(int)
    for row in rows:
        key = (trend_period_key(row["date"], grouping), row["category"])
        totals[key] += _coerce_amount(row["amount"])
        counts[key] += 1
    trends = []
    for period, category in sorted(totals):
        key = (period, category)
        trends.append(TrendRow(period=period, category=category, total=totals[key], count=counts[key]))
    return trends


def _group_row(key, total, count) -> GroupRow:
    total_value = _coerce_amount(total)
    count_value = int(count or 0)
    return GroupRow(key=key, total=total_value, count=count_value, average=average(total_value, count_value))


def _coerce_amount(amount) -> Decimal:
    if amount is None:
        return ZERO
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
