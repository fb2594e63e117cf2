from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class GoalStatus:
    progress: Decimal
    is_completed: bool


def round2(value: Decimal) -> Decimal:
    return _coerce_amount(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of_total(total: Decimal, grand_total: Decimal) -> Decimal:
    grand_total = _coerce_amount(grand_total)
    if grand_total <= ZERO:
        return round2(ZERO)
    return round2(_coerce_amount(total) / grand_total * HUNDRED)


def net_worth(total_savings: Decimal, total_expenses: Decimal) -> Decimal:
    return _coerce_amount(total_savings) - _coerce_amount(total_expenses)


def savings_rate(total_savings: Decimal, total_expenses: Decimal) -> Decimal:
    total_expenses = _coerce_amount(total_expenses)
    if total_expenses <= ZERO:
        return round2(ZERO)
    return round2(_coerce_amount(total_savings) / total_expenses * HUNDRED)


def goal_progress_percentage(amount: Decimal, target_amount: Optional[Decimal]) -> Decimal:
    if target_amount is None:
        return ZERO
    target_amount = _coerce_amount(target_amount)
    if target_amount <= ZERO:
        return ZERO
    return min(_coerce_amount(amount) / target_amount * HUNDRED, HUNDRED)


def remaining_amount(amount: Decimal, target_amount: Decimal) -> Decimal:
    """Target minus amount; negative when the goal is overfunded."""
    return _coerce_amount(target_amount) - _coerce_amount(amount)


def goal_status(amount: Decimal, target_amount: Optional[Decimal], current: GoalStatus) -> GoalStatus:
    """Recompute stored goal progress for a savings record about to be written.

    Records without a positive target keep whatever progress they carry.
    """
    if target_amount is None or _coerce_amount(target_amount) <= ZERO:
        return current
    exact = goal_progress_percentage(amount, target_amount)
    is_completed = exact >= HUNDRED
    progress = round2(exact)
    if not is_completed:
        # 100.00 is reserved for funded goals
        progress = min(progress, HUNDRED - CENT)
    return GoalStatus(progress=progress, is_completed=is_completed)


def is_on_track(
    amount: Decimal,
    target_amount: Decimal,
    period_start: date,
    target_date: Optional[date],
    now: date | datetime,
) -> bool:
    """Compare the funded fraction of a goal with the elapsed fraction of its window.

    No deadline means the goal is always on track, as does a non-positive target.
    A window of zero or negative length counts as fully elapsed.
    """
    if target_date is None:
        return True
    target_amount = _coerce_amount(target_amount)
    if target_amount <= ZERO:
        return True
    achieved = _coerce_amount(amount) / target_amount

    window_seconds = _seconds_between(period_start, target_date)
    if window_seconds <= 0:
        elapsed = Decimal("1")
    else:
        elapsed = Decimal(_seconds_between(period_start, now)) / Decimal(window_seconds)
    return achieved >= elapsed


def average_monthly(monthly_totals: Iterable[Decimal]) -> Decimal:
    return sum((_coerce_amount(value) for value in monthly_totals), ZERO) / MONTHS_PER_YEAR


def average(total: Decimal, count: int) -> Decimal:
    if count <= 0:
        return ZERO
    return _coerce_amount(total) / count


def duration_days(start: date, end: date) -> int:
    seconds = abs(_seconds_between(start, end))
    return -(-seconds // 86400)


def _seconds_between(start: date | datetime, end: date | datetime) -> int:
    return int((_as_datetime(end) - _as_datetime(start)).total_seconds())


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime(value.year, value.month, value.day)


def _coerce_amount(amount: Decimal) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
