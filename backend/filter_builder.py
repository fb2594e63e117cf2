"""Translate optional user-supplied criteria into an owner-scoped record predicate.

The predicate is a plain value object so it can be inspected and compared; it is
rendered into SQLAlchemy conditions against a concrete table by ``to_conditions``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping

from sqlalchemy import Table

from backend.errors import ValidationError
from backend.records import (
    ClosedChoice,
    Currency,
    ExpenseCategory,
    PaymentMethod,
    SavingsCategory,
    SavingsType,
)

EXPENSE_FILTER_CHOICES: Mapping[str, type[ClosedChoice]] = {
    "category": ExpenseCategory,
    "payment_method": PaymentMethod,
    "currency": Currency,
}
SAVINGS_FILTER_CHOICES: Mapping[str, type[ClosedChoice]] = {
    "category": SavingsCategory,
    "type": SavingsType,
    "currency": Currency,
}
# Shared by reports that apply one predicate to both collections.
COMMON_FILTER_CHOICES: Mapping[str, type[ClosedChoice]] = {
    "currency": Currency,
}

EQUALITY_FIELDS = ("category", "type", "payment_method", "currency")
REQUEST_FIELD_NAMES = {
    "category": "category",
    "type": "type",
    "payment_method": "paymentMethod",
    "currency": "currency",
}


@dataclass(frozen=True)
class FilterCriteria:
    start_date: date | None = None
    end_date: date | None = None
    category: str | None = None
    type: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    payment_method: str | None = None
    currency: str | None = None


@dataclass(frozen=True)
class RangeBounds:
    lower: date | Decimal | None = None
    upper: date | Decimal | None = None


@dataclass(frozen=True)
class Predicate:
    owner_id: int
    date: RangeBounds | None = None
    amount: RangeBounds | None = None
    equals: tuple[tuple[str, str], ...] = ()

    def clause_fields(self) -> list[str]:
        fields = ["user_id"]
        if self.date is not None:
            fields.append("date")
        if self.amount is not None:
            fields.append("amount")
        fields.extend(name for name, _ in self.equals)
        return fields


def build_predicate(
    owner_id: int,
    criteria: FilterCriteria | None = None,
    choices: Mapping[str, type[ClosedChoice]] = EXPENSE_FILTER_CHOICES,
) -> Predicate:
    if owner_id is None:
        raise ValueError("owner_id is required.")
    criteria = criteria or FilterCriteria()

    date_bounds = _range_bounds(criteria.start_date, criteria.end_date, "startDate")
    amount_bounds = _range_bounds(
        _non_negative(criteria.min_amount, "minAmount"),
        _non_negative(criteria.max_amount, "maxAmount"),
        "minAmount",
    )

    equals: list[tuple[str, str]] = []
    for name in EQUALITY_FIELDS:
        value = getattr(criteria, name)
        if value is None:
            continue
        field = REQUEST_FIELD_NAMES[name]
        choice = choices.get(name)
        if choice is None:
            raise ValidationError(f"Filtering by {field} is not supported here.", field=field)
        equals.append((name, choice.validate(value, field=field)))

    return Predicate(
        owner_id=owner_id,
        date=date_bounds,
        amount=amount_bounds,
        equals=tuple(equals),
    )


def to_conditions(predicate: Predicate, table: Table) -> list:
    conditions = [table.c.user_id == predicate.owner_id]
    if predicate.date is not None:
        conditions.extend(_range_conditions(table.c.date, predicate.date))
    if predicate.amount is not None:
        conditions.extend(_range_conditions(table.c.amount, predicate.amount))
    for name, value in predicate.equals:
        conditions.append(table.c[name] == value)
    return conditions


def _range_bounds(lower, upper, field: str) -> RangeBounds | None:
    if lower is None and upper is None:
        return None
    if lower is not None and upper is not None and lower > upper:
        raise ValidationError("Lower bound must be on or before upper bound.", field=field)
    return RangeBounds(lower=lower, upper=upper)


def _range_conditions(column, bounds: RangeBounds) -> list:
    conditions = []
    if bounds.lower is not None:
        conditions.append(column >= bounds.lower)
    if bounds.upper is not None:
        conditions.append(column <= bounds.upper)
    return conditions


def _non_negative(value: Decimal | None, field: str) -> Decimal | None:
    if value is None:
        return None
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if amount < 0:
        raise ValidationError(f"{field} must be zero or greater.", field=field)
    return amount
