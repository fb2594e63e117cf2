import unittest
from datetime import date
from decimal import Decimal

from backend.errors import NotFoundError, ValidationError
from backend.filter_builder import (
    SAVINGS_FILTER_CHOICES,
    FilterCriteria,
    build_predicate,
)
from backend.record_store import (
    bulk_delete_expenses,
    bulk_delete_savings,
    create_expense,
    create_savings,
    delete_expense,
    get_expense,
    get_savings,
    list_expenses,
    list_savings,
    list_savings_goals,
    update_expense,
    update_savings,
)
from backend.tests.helpers import add_user, expense_values, make_engine, savings_values


class RecordStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        with self.engine.begin() as conn:
            self.owner = add_user(conn, "owner@example.com", currency="EUR")
            self.other = add_user(conn, "other@example.com")

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_create_expense_uses_owner_currency_and_defaults(self) -> None:
        with self.engine.begin() as conn:
            row = create_expense(conn, self.owner, expense_values("12.50", "Travel", date(2024, 4, 2)))

        self.assertEqual(row["currency"], "EUR")
        self.assertEqual(row["amount"], Decimal("12.50"))
        self.assertEqual(row["payment_method"], "Cash")
        self.assertFalse(row["is_recurring"])
        self.assertEqual(row["tags"], [])

    def test_expense_amount_must_be_positive(self) -> None:
        with self.engine.begin() as conn:
            with self.assertRaises(ValidationError):
                create_expense(conn, self.owner, expense_values("0", "Travel", date(2024, 4, 2)))

    def test_foreign_expense_is_not_found(self) -> None:
        with self.engine.begin() as conn:
            row = create_expense(conn, self.other, expense_values("10", "Gifts", date(2024, 4, 2)))

        with self.engine.begin() as conn:
            with self.assertRaises(NotFoundError):
                get_expense(conn, self.owner, row["id"])
            with self.assertRaises(NotFoundError):
                update_expense(conn, self.owner, row["id"], {"amount": Decimal("1")})
            with self.assertRaises(NotFoundError):
                delete_expense(conn, self.owner, row["id"])
            with self.assertRaises(NotFoundError):
                get_expense(conn, self.owner, 9999)

        with self.engine.begin() as conn:
            self.assertEqual(get_expense(conn, self.other, row["id"])["amount"], Decimal("10"))

    def test_partial_update_keeps_other_fields(self) -> None:
        with self.engine.begin() as conn:
            row = create_expense(
                conn,
                self.owner,
                expense_values("10", "Gifts", date(2024, 4, 2), description="Flowers"),
            )
            updated = update_expense(conn, self.owner, row["id"], {"amount": Decimal("15")})

        self.assertEqual(updated["amount"], Decimal("15"))
        self.assertEqual(updated["description"], "Flowers")
        self.assertEqual(updated["category"], "Gifts")

    def test_bulk_delete_skips_foreign_records(self) -> None:
        with self.engine.begin() as conn:
            first = create_expense(conn, self.owner, expense_values("1", "Other", date(2024, 1, 1)))
            foreign = create_expense(conn, self.other, expense_values("2", "Other", date(2024, 1, 1)))
            third = create_expense(conn, self.owner, expense_values("3", "Other", date(2024, 1, 1)))

        with self.engine.begin() as conn:
            deleted = bulk_delete_expenses(conn, self.owner, [first["id"], foreign["id"], third["id"]])

        self.assertEqual(deleted, 2)
        with self.engine.begin() as conn:
            self.assertEqual(get_expense(conn, self.other, foreign["id"])["amount"], Decimal("2"))
            with self.assertRaises(NotFoundError):
                get_expense(conn, self.owner, first["id"])

    def test_bulk_delete_requires_ids(self) -> None:
        with self.engine.begin() as conn:
            with self.assertRaises(ValidationError):
                bulk_delete_savings(conn, self.owner, [])

    def test_list_expenses_paginates_and_sorts(self) -> None:
        with self.engine.begin() as conn:
            for day in range(1, 8):
                create_expense(conn, self.owner, expense_values(str(day * 10), "Travel", date(2024, 5, day)))
            create_expense(conn, self.other, expense_values("500", "Travel", date(2024, 5, 3)))

        criteria = FilterCriteria(min_amount=Decimal("20"), max_amount=Decimal("60"))
        predicate = build_predicate(self.owner, criteria)
        with self.engine.begin() as conn:
            first_page, window = list_expenses(conn, predicate, "amount", "asc", page=1, limit=3)
            last_page, last_window = list_expenses(conn, predicate, "amount", "asc", page=2, limit=3)

        self.assertEqual([row["amount"] for row in first_page], [Decimal("20"), Decimal("30"), Decimal("40")])
        self.assertEqual([row["amount"] for row in last_page], [Decimal("50"), Decimal("60")])
        self.assertEqual(window.total_items, 5)
        self.assertEqual(window.total_pages, 2)
        self.assertTrue(window.has_next_page)
        self.assertFalse(last_window.has_next_page)
        self.assertTrue(last_window.has_prev_page)

    def test_list_logs_filtered_fields(self) -> None:
        predicate = build_predicate(self.owner, FilterCriteria(min_amount=Decimal("0"), category="travel"))

        with self.assertLogs("backend.record_store", level="DEBUG") as logs:
            with self.engine.begin() as conn:
                list_expenses(conn, predicate)

        self.assertIn("Listing expenses filtered on user_id, amount, category", logs.output[0])

    def test_savings_goal_progress_is_recomputed_on_write(self) -> None:
        with self.engine.begin() as conn:
            row = create_savings(
                conn,
                self.owner,
                savings_values("50", "Goal", date(2024, 1, 1), goal_target_amount=Decimal("200")),
            )

        self.assertEqual(row["goal_progress"], Decimal("25"))
        self.assertFalse(row["goal_is_completed"])

        with self.engine.begin() as conn:
            updated = update_savings(conn, self.owner, row["id"], {"amount": Decimal("200")})

        self.assertEqual(updated["goal_progress"], Decimal("100"))
        self.assertTrue(updated["goal_is_completed"])

        with self.engine.begin() as conn:
            retargeted = update_savings(
                conn, self.owner, row["id"], {"goal_target_amount": Decimal("800")}
            )
            stored = get_savings(conn, self.owner, row["id"])

        self.assertEqual(retargeted["goal_progress"], Decimal("25"))
        self.assertFalse(stored["goal_is_completed"])

    def test_savings_just_short_of_goal_stays_open(self) -> None:
        with self.engine.begin() as conn:
            row = create_savings(
                conn,
                self.owner,
                savings_values("199.99", "Goal", date(2024, 1, 1), goal_target_amount=Decimal("200")),
            )

        self.assertFalse(row["goal_is_completed"])
        self.assertEqual(row["goal_progress"], Decimal("99.99"))

    def test_savings_without_goal_has_zero_progress(self) -> None:
        with self.engine.begin() as conn:
            row = create_savings(conn, self.owner, savings_values("0", "Daily", date(2024, 1, 1)))

        self.assertEqual(row["goal_progress"], Decimal("0"))
        self.assertFalse(row["goal_is_completed"])
        self.assertEqual(row["source"], "Manual Entry")
        self.assertTrue(row["is_active"])

    def test_list_savings_filters_by_type(self) -> None:
        with self.engine.begin() as conn:
            create_savings(conn, self.owner, savings_values("10", "Daily", date(2024, 1, 1)))
            create_savings(conn, self.owner, savings_values("20", "Weekly", date(2024, 1, 2)))

        predicate = build_predicate(self.owner, FilterCriteria(type="weekly"), SAVINGS_FILTER_CHOICES)
        with self.engine.begin() as conn:
            rows, window = list_savings(conn, predicate)

        self.assertEqual([row["type"] for row in rows], ["Weekly"])
        self.assertEqual(window.total_items, 1)

    def test_goals_are_ordered_by_target_date(self) -> None:
        with self.engine.begin() as conn:
            create_savings(
                conn,
                self.owner,
                savings_values("1", "Goal", date(2024, 1, 1), goal_target_amount=Decimal("10")),
            )
            create_savings(
                conn,
                self.owner,
                savings_values(
                    "2",
                    "Goal",
                    date(2024, 1, 1),
                    goal_target_amount=Decimal("10"),
                    goal_target_date=date(2024, 9, 1),
                ),
            )
            create_savings(
                conn,
                self.owner,
                savings_values(
                    "3",
                    "Goal",
                    date(2024, 1, 1),
                    goal_target_amount=Decimal("10"),
                    goal_target_date=date(2024, 6, 1),
                ),
            )
            create_savings(conn, self.owner, savings_values("4", "Daily", date(2024, 1, 1)))
            goals = list_savings_goals(conn, self.owner)

        self.assertEqual([row["amount"] for row in goals], [Decimal("3"), Decimal("2"), Decimal("1")])


if __name__ == "__main__":
    unittest.main()
