"""Display lookups: stable chart colours and currency formatting."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

DEFAULT_COLOR = "#BDC3C7"

CATEGORY_COLORS: dict[str, str] = {
    "Food & Dining": "#FF6B6B",
    "Transportation": "#4ECDC4",
    "Shopping": "#45B7D1",
    "Entertainment": "#96CEB4",
    "Healthcare": "#FFEAA7",
    "Housing": "#DDA0DD",
    "Utilities": "#98D8C8",
    "Insurance": "#F7DC6F",
    "Education": "#BB8FCE",
    "Travel": "#85C1E9",
    "Personal Care": "#F8C471",
    "Gifts": "#F1948A",
    "Subscriptions": "#85C1E9",
    "Other": "#BDC3C7",
}

SAVINGS_TYPE_COLORS: dict[str, str] = {
    "Daily": "#E74C3C",
    "Weekly": "#E67E22",
    "Monthly": "#F39C12",
    "Yearly": "#F1C40F",
    "Goal": "#2ECC71",
    "Emergency Fund": "#3498DB",
    "Investment": "#9B59B6",
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "CHF": "CHF ",
    "CNY": "CN¥",
    "INR": "₹",
    "UGX": "UGX ",
}
# ISO 4217 minor units; anything not listed uses 2.
ZERO_DECIMAL_CURRENCIES = {"JPY", "UGX"}


def category_color(category: str | None) -> str:
    return CATEGORY_COLORS.get(category or "", DEFAULT_COLOR)


def savings_type_color(savings_type: str | None) -> str:
    return SAVINGS_TYPE_COLORS.get(savings_type or "", DEFAULT_COLOR)


def format_amount(amount: Decimal, currency: str) -> str:
    code = (currency or "").strip().upper()
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    exponent = Decimal("1") if code in ZERO_DECIMAL_CURRENCIES else Decimal("0.01")
    rounded = value.quantize(exponent, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    digits = f"{abs(rounded):,}"
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    return f"{sign}{symbol}{digits}"
