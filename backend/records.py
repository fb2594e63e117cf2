"""Closed value sets for expense and savings records."""
from __future__ import annotations

from backend.config import SUPPORTED_CURRENCIES
from backend.errors import ValidationError


class ClosedChoice:
    values: tuple[str, ...] = ()
    label = "value"
    field = "value"

    @classmethod
    def validate(cls, value: str, field: str | None = None) -> str:
        if not isinstance(value, str):
            raise ValidationError(f"Invalid {cls.label}.", field=field or cls.field)
        lookup = {item.lower(): item for item in cls.values}
        normalized = lookup.get(value.strip().lower())
        if normalized is None:
            raise ValidationError(f"Invalid {cls.label}.", field=field or cls.field)
        return normalized

    @classmethod
    def validate_optional(cls, value: str | None, field: str | None = None) -> str | None:
        if value is None:
            return None
        return cls.validate(value, field=field)


class Currency(ClosedChoice):
    values = SUPPORTED_CURRENCIES
    label = "currency"
    field = "currency"

    @classmethod
    def validate(cls, value: str, field: str | None = None) -> str:
        if not isinstance(value, str):
            raise ValidationError("Invalid currency.", field=field or cls.field)
        normalized = value.strip().upper()
        if normalized not in cls.values:
            raise ValidationError("Invalid currency.", field=field or cls.field)
        return normalized


class ExpenseCategory(ClosedChoice):
    values = (
        "Food & Dining",
        "Transportation",
        "Shopping",
        "Entertainment",
        "Healthcare",
        "Housing",
        "Utilities",
        "Insurance",
        "Education",
        "Travel",
        "Personal Care",
        "Gifts",
        "Subscriptions",
        "Other",
    )
    label = "category"
    field = "category"


class PaymentMethod(ClosedChoice):
    values = ("Cash", "Credit Card", "Debit Card", "Bank Transfer", "Digital Wallet", "Other")
    label = "payment method"
    field = "paymentMethod"


class RecurringFrequency(ClosedChoice):
    values = ("Daily", "Weekly", "Monthly", "Yearly")
    label = "recurring frequency"
    field = "recurringFrequency"


class SavingsType(ClosedChoice):
    values = ("Daily", "Weekly", "Monthly", "Yearly", "Goal", "Emergency Fund", "Investment")
    label = "savings type"
    field = "type"


class SavingsCategory(ClosedChoice):
    values = (
        "General Savings",
        "Emergency Fund",
        "Vacation",
        "Home Purchase",
        "Car Purchase",
        "Education",
        "Retirement",
        "Wedding",
        "Business",
        "Investment",
        "Other",
    )
    label = "category"
    field = "category"


class SavingsSource(ClosedChoice):
    values = ("Manual Entry", "Bank Transfer", "Salary", "Bonus", "Investment Return", "Other")
    label = "savings source"
    field = "source"


class SortOrder(ClosedChoice):
    values = ("asc", "desc")
    label = "sort order"
    field = "sortOrder"


class ExpenseSortField(ClosedChoice):
    values = ("date", "amount", "category", "createdAt")
    label = "sort field"
    field = "sortBy"


class SavingsSortField(ClosedChoice):
    values = ("date", "amount", "type", "category", "createdAt")
    label = "sort field"
    field = "sortBy"


class TrendGrouping(ClosedChoice):
    values = ("day", "week", "month")
    label = "grouping, use day, week, or month"
    field = "groupBy"


DEFAULT_PAYMENT_METHOD = "Cash"
DEFAULT_RECURRING_FREQUENCY = "Monthly"
DEFAULT_SAVINGS_SOURCE = "Manual Entry"

SUBCATEGORY_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
LOCATION_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 1000
TAG_MAX_LENGTH = 50


def clean_text(value: str | None, field: str, max_length: int) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters.", field=field)
    return cleaned or None


def clean_tags(tags: list[str] | None) -> list[str]:
    cleaned: list[str] = []
    for tag in tags or []:
        value = tag.strip()
        if not value:
            continue
        if len(value) > TAG_MAX_LENGTH:
            raise ValidationError(f"Tag cannot exceed {TAG_MAX_LENGTH} characters.", field="tags")
        cleaned.append(value)
    return cleaned
