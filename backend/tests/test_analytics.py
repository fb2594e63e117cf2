import unittest
from datetime import date, datetime
from decimal import Decimal

from backend.analytics import (
    expense_category_trends,
    expense_pie_chart,
    expense_summary,
    financial_overview,
    monthly_trends,
    savings_goals,
    savings_summary,
    validate_report_year,
)
from backend.errors import ValidationError
from backend.filter_builder import FilterCriteria
from backend.record_store import create_expense, create_savings
from backend.tests.helpers import add_user, expense_values, make_engine, savings_values


class AnalyticsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        with self.engine.begin() as conn:
            self.user_id = add_user(conn, "reports@example.com")
            other = add_user(conn, "someone@example.com")
            create_expense(conn, self.user_id, expense_values("100", "Food & Dining", date(2024, 1, 10)))
            create_expense(conn, self.user_id, expense_values("50", "Transportation", date(2024, 3, 5)))
            create_expense(conn, self.user_id, expense_values("50", "Food & Dining", date(2024, 3, 20)))
            create_expense(conn, other, expense_values("999", "Food & Dining", date(2024, 3, 20)))
            create_savings(conn, self.user_id, savings_values("300", "Monthly", date(2024, 2, 1)))
            create_savings(conn, self.user_id, savings_values("100", "Daily", date(2024, 3, 1)))

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_monthly_trends_cover_every_month(self) -> None:
        with self.engine.begin() as conn:
            data = monthly_trends(conn, self.user_id, 2024)

        self.assertEqual([entry.month for entry in data.monthly_data], list(range(1, 13)))
        self.assertEqual(data.monthly_data[0].month_name, "January")
        self.assertEqual(data.monthly_data[0].expenses, Decimal("100"))
        self.assertEqual(data.monthly_data[1].net_worth, Decimal("300"))
        self.assertEqual(data.monthly_data[2].expenses, Decimal("100"))
        self.assertEqual(data.monthly_data[2].net_worth, Decimal("0"))
        self.assertEqual(data.monthly_data[11].expenses, Decimal("0"))
        self.assertEqual(data.total_expenses, Decimal("200"))
        self.assertEqual(data.total_savings, Decimal("400"))
        self.assertEqual(data.average_monthly_expenses, Decimal("200") / 12)

    def test_monthly_trends_for_empty_year(self) -> None:
        with self.engine.begin() as conn:
            data = monthly_trends(conn, self.user_id, 2001)

        self.assertEqual(len(data.monthly_data), 12)
        self.assertEqual(data.total_expenses, Decimal("0"))
        self.assertEqual(data.average_monthly_savings, Decimal("0"))

    def test_report_year_is_bounded(self) -> None:
        self.assertEqual(validate_report_year(2024), 2024)
        for year in (1969, 2101):
            with self.assertRaises(ValidationError):
                validate_report_year(year)

    def test_expense_summary_groups_by_category(self) -> None:
        with self.engine.begin() as conn:
            data = expense_summary(conn, self.user_id, FilterCriteria())

        self.assertEqual(data.total, Decimal("200"))
        self.assertEqual(data.count, 3)
        food = data.summary[0]
        self.assertEqual(food.key, "Food & Dining")
        self.assertEqual(food.total, Decimal("150"))
        self.assertEqual(food.count, 2)
        self.assertEqual(food.average, Decimal("75"))

    def test_savings_summary_respects_date_window(self) -> None:
        criteria = FilterCriteria(start_date=date(2024, 2, 15))
        with self.engine.begin() as conn:
            data = savings_summary(conn, self.user_id, criteria)

        self.assertEqual([entry.key for entry in data.summary], ["Daily"])
        self.assertEqual(data.total, Decimal("100"))
        self.assertEqual(data.period.start_date, date(2024, 2, 15))

    def test_pie_chart_percentages_and_colors(self) -> None:
        with self.engine.begin() as conn:
            data = expense_pie_chart(conn, self.user_id, FilterCriteria())

        slices = {entry.key: entry for entry in data.pie_chart_data}
        self.assertEqual(slices["Food & Dining"].percentage, Decimal("75.00"))
        self.assertEqual(slices["Transportation"].percentage, Decimal("25.00"))
        self.assertEqual(slices["Food & Dining"].color, "#FF6B6B")
        self.assertEqual(data.total_amount, Decimal("200"))
        self.assertEqual(data.total_count, 3)

    def test_pie_chart_rejects_category_filter(self) -> None:
        with self.engine.begin() as conn:
            with self.assertRaises(ValidationError):
                expense_pie_chart(conn, self.user_id, FilterCriteria(category="Travel"))

    def test_overview_figures(self) -> None:
        with self.engine.begin() as conn:
            data = financial_overview(conn, self.user_id, FilterCriteria())

        self.assertEqual(data.overview.total_expenses, Decimal("200"))
        self.assertEqual(data.overview.total_savings, Decimal("400"))
        self.assertEqual(data.overview.net_worth, Decimal("200"))
        self.assertEqual(data.overview.savings_rate, Decimal("200.00"))
        self.assertEqual(
            [group.key for group in data.top_expense_categories],
            ["Food & Dining", "Transportation"],
        )
        self.assertEqual([group.key for group in data.top_savings_types], ["Monthly", "Daily"])

    def test_overview_without_expenses_has_zero_rate(self) -> None:
        with self.engine.begin() as conn:
            lonely = add_user(conn, "saver@example.com")
            create_savings(conn, lonely, savings_values("10", "Daily", date(2024, 1, 1)))
            data = financial_overview(conn, lonely, FilterCriteria())

        self.assertEqual(data.overview.savings_rate, Decimal("0"))
        self.assertEqual(data.overview.net_worth, Decimal("10"))
        self.assertEqual(data.top_expense_categories, [])

    def test_category_trends_by_month(self) -> None:
        with self.engine.begin() as conn:
            data = expense_category_trends(conn, self.user_id, FilterCriteria(), group_by="Month")

        self.assertEqual(data.group_by, "month")
        self.assertEqual(
            [(entry.period, entry.category, entry.total) for entry in data.category_trends],
            [
                ("2024-01", "Food & Dining", Decimal("100")),
                ("2024-03", "Food & Dining", Decimal("50")),
                ("2024-03", "Transportation", Decimal("50")),
            ],
        )

    def test_category_trends_reject_unknown_grouping(self) -> None:
        with self.engine.begin() as conn:
            with self.assertRaises(ValidationError):
                expense_category_trends(conn, self.user_id, FilterCriteria(), group_by="quarter")

    def test_savings_goals_are_decorated(self) -> None:
        with self.engine.begin() as conn:
            create_savings(
                conn,
                self.user_id,
                savings_values(
                    "50",
                    "Goal",
                    date(2024, 1, 1),
                    period_end_date=date(2024, 12, 31),
                    goal_target_amount=Decimal("100"),
                    goal_target_date=date(2024, 12, 31),
                ),
            )
            create_savings(
                conn,
                self.user_id,
                savings_values(
                    "10",
                    "Goal",
                    date(2024, 1, 1),
                    goal_target_amount=Decimal("100"),
                    goal_target_date=date(2025, 1, 1),
                ),
            )
            goals = savings_goals(conn, self.user_id, now=datetime(2024, 4, 1))

        self.assertEqual(len(goals), 2)
        ahead, behind = goals
        self.assertEqual(ahead.progress_percentage, Decimal("50"))
        self.assertEqual(ahead.remaining_amount, Decimal("50"))
        self.assertTrue(ahead.is_on_track)
        self.assertEqual(ahead.duration_days, 365)
        self.assertEqual(behind.remaining_amount, Decimal("90"))
        self.assertFalse(behind.is_on_track)


if __name__ == "__main__":
    unittest.main()
