"""Report builders: summaries, pie charts, overview, monthly and category trends."""
from __future__ import annotations

import calendar
from datetime import datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy import Table
from sqlalchemy.engine import Connection

from backend.aggregation_engine import (
    GroupRow,
    category_trends,
    grouped_totals,
    monthly_totals,
    overall_total,
)
from backend.config import MAX_REPORT_YEAR, MIN_REPORT_YEAR, TOP_GROUPS_LIMIT
from backend.database import expenses, savings
from backend.derived_metrics import (
    average_monthly,
    is_on_track,
    net_worth,
    percentage_of_total,
    remaining_amount,
    savings_rate,
)
from backend.errors import ValidationError
from backend.filter_builder import (
    COMMON_FILTER_CHOICES,
    EXPENSE_FILTER_CHOICES,
    SAVINGS_FILTER_CHOICES,
    FilterCriteria,
    build_predicate,
)
from backend.presentation import category_color, savings_type_color
from backend.record_store import list_savings_goals
from backend.records import Currency, TrendGrouping
from backend.schemas import (
    CategoryTrendEntry,
    CategoryTrendsData,
    MonthEntry,
    MonthlyTrendsData,
    OverviewData,
    OverviewFigures,
    PeriodEcho,
    PieChartData,
    PieSlice,
    SavingsGoalResponse,
    SavingsResponse,
    SummaryData,
    SummaryEntry,
    TopGroup,
)

ZERO = Decimal("0")


def expense_summary(conn: Connection, user_id: int, criteria: FilterCriteria) -> SummaryData:
    return _summary(conn, expenses, "category", user_id, criteria, EXPENSE_FILTER_CHOICES)


def savings_summary(conn: Connection, user_id: int, criteria: FilterCriteria) -> SummaryData:
    return _summary(conn, savings, "type", user_id, criteria, SAVINGS_FILTER_CHOICES)


def expense_pie_chart(conn: Connection, user_id: int, criteria: FilterCriteria) -> PieChartData:
    return _pie_chart(conn, expenses, "category", user_id, criteria, category_color)


def savings_pie_chart(conn: Connection, user_id: int, criteria: FilterCriteria) -> PieChartData:
    return _pie_chart(conn, savings, "type", user_id, criteria, savings_type_color)


def financial_overview(conn: Connection, user_id: int, criteria: FilterCriteria) -> OverviewData:
    predicate = build_predicate(user_id, criteria, COMMON_FILTER_CHOICES)
    expense_total = overall_total(conn, expenses, predicate)
    savings_total = overall_total(conn, savings, predicate)
    top_categories = grouped_totals(conn, expenses, predicate, "category", limit=TOP_GROUPS_LIMIT)
    top_types = grouped_totals(conn, savings, predicate, "type", limit=TOP_GROUPS_LIMIT)

    return OverviewData(
        overview=OverviewFigures(
            total_expenses=expense_total.total,
            total_savings=savings_total.total,
            net_worth=net_worth(savings_total.total, expense_total.total),
            savings_rate=savings_rate(savings_total.total, expense_total.total),
        ),
        top_expense_categories=[TopGroup(key=row.key, total=row.total) for row in top_categories],
        top_savings_types=[TopGroup(key=row.key, total=row.total) for row in top_types],
        period=_period(criteria),
    )


def monthly_trends(
    conn: Connection, user_id: int, year: int, currency: str | None = None
) -> MonthlyTrendsData:
    validate_report_year(year)
    criteria = FilterCriteria(currency=Currency.validate_optional(currency))
    predicate = build_predicate(user_id, criteria, COMMON_FILTER_CHOICES)
    monthly_expenses = monthly_totals(conn, expenses, predicate, year)
    monthly_savings = monthly_totals(conn, savings, predicate, year)

    monthly_data = [
        MonthEntry(
            month=expense_row.key,
            month_name=calendar.month_name[expense_row.key],
            expenses=expense_row.total,
            savings=savings_row.total,
            net_worth=net_worth(savings_row.total, expense_row.total),
        )
        for expense_row, savings_row in zip(monthly_expenses, monthly_savings)
    ]
    expense_values = [entry.expenses for entry in monthly_data]
    savings_values = [entry.savings for entry in monthly_data]
    return MonthlyTrendsData(
        year=year,
        monthly_data=monthly_data,
        total_expenses=sum(expense_values, ZERO),
        total_savings=sum(savings_values, ZERO),
        average_monthly_expenses=average_monthly(expense_values),
        average_monthly_savings=average_monthly(savings_values),
    )


def expense_category_trends(
    conn: Connection, user_id: int, criteria: FilterCriteria, group_by: str = "month"
) -> CategoryTrendsData:
    grouping = TrendGrouping.validate(group_by)
    predicate = build_predicate(user_id, criteria, COMMON_FILTER_CHOICES)
    rows = category_trends(conn, expenses, predicate, grouping)
    return CategoryTrendsData(
        category_trends=[
            CategoryTrendEntry(period=row.period, category=row.category, total=row.total, count=row.count)
            for row in rows
        ],
        group_by=grouping,
        period=_period(criteria),
    )


def savings_goals(
    conn: Connection, user_id: int, now: datetime | None = None
) -> list[SavingsGoalResponse]:
    now = now or datetime.now()
    goals: list[SavingsGoalResponse] = []
    for row in list_savings_goals(conn, user_id):
        fields = SavingsResponse.row_fields(row)
        target = row["goal_target_amount"]
        goals.append(
            SavingsGoalResponse(
                **fields,
                progress_percentage=fields["goal_progress_percentage"],
                remaining_amount=remaining_amount(row["amount"], target),
                is_on_track=is_on_track(
                    row["amount"],
                    target,
                    row["period_start_date"],
                    row["goal_target_date"],
                    now,
                ),
            )
        )
    return goals


def validate_report_year(year: int) -> int:
    if isinstance(year, bool) or not isinstance(year, int) or not MIN_REPORT_YEAR <= year <= MAX_REPORT_YEAR:
        raise ValidationError(
            f"Year must be between {MIN_REPORT_YEAR} and {MAX_REPORT_YEAR}.", field="year"
        )
    return year


def _summary(
    conn: Connection,
    table: Table,
    group_by: str,
    user_id: int,
    criteria: FilterCriteria,
    choices,
) -> SummaryData:
    predicate = build_predicate(user_id, criteria, choices)
    rows = grouped_totals(conn, table, predicate, group_by)
    total = overall_total(conn, table, predicate)
    return SummaryData(
        summary=[_summary_entry(row) for row in rows],
        total=total.total,
        count=total.count,
        period=_period(criteria),
    )


def _pie_chart(
    conn: Connection,
    table: Table,
    group_by: str,
    user_id: int,
    criteria: FilterCriteria,
    color_for: Callable[[str], str],
) -> PieChartData:
    predicate = build_predicate(user_id, criteria, COMMON_FILTER_CHOICES)
    rows = grouped_totals(conn, table, predicate, group_by)
    grand_total = sum((row.total for row in rows), ZERO)
    return PieChartData(
        pie_chart_data=[
            PieSlice(
                key=row.key,
                amount=row.total,
                count=row.count,
                average=row.average,
                percentage=percentage_of_total(row.total, grand_total),
                color=color_for(row.key),
            )
            for row in rows
        ],
        total_amount=grand_total,
        total_count=sum(row.count for row in rows),
        period=_period(criteria),
    )


def _summary_entry(row: GroupRow) -> SummaryEntry:
    return SummaryEntry(key=row.key, total=row.total, count=row.count, average=row.average)


def _period(criteria: FilterCriteria) -> PeriodEcho:
    return PeriodEcho(start_date=criteria.start_date, end_date=criteria.end_date)
