import unittest
from datetime import date, datetime
from decimal import Decimal

from backend.derived_metrics import (
    GoalStatus,
    average_monthly,
    duration_days,
    goal_progress_percentage,
    goal_status,
    is_on_track,
    net_worth,
    percentage_of_total,
    remaining_amount,
    savings_rate,
)


class DerivedMetricsTests(unittest.TestCase):
    def test_percentage_of_total(self) -> None:
        self.assertEqual(percentage_of_total(Decimal("50"), Decimal("200")), Decimal("25.00"))
        self.assertEqual(percentage_of_total(Decimal("1"), Decimal("3")), Decimal("33.33"))

    def test_percentage_of_zero_total_is_zero(self) -> None:
        self.assertEqual(percentage_of_total(Decimal("75"), Decimal("0")), Decimal("0"))
        self.assertEqual(percentage_of_total(Decimal("0"), Decimal("0")), Decimal("0"))

    def test_net_worth_may_be_negative(self) -> None:
        self.assertEqual(net_worth(Decimal("100"), Decimal("250")), Decimal("-150"))

    def test_savings_rate(self) -> None:
        self.assertEqual(savings_rate(Decimal("50"), Decimal("200")), Decimal("25.00"))
        self.assertEqual(savings_rate(Decimal("50"), Decimal("0")), Decimal("0"))

    def test_goal_progress_percentage(self) -> None:
        self.assertEqual(goal_progress_percentage(Decimal("150"), Decimal("100")), Decimal("100"))
        self.assertEqual(goal_progress_percentage(Decimal("50"), Decimal("100")), Decimal("50"))
        self.assertEqual(goal_progress_percentage(Decimal("0"), Decimal("0")), Decimal("0"))
        self.assertEqual(goal_progress_percentage(Decimal("10"), None), Decimal("0"))

    def test_remaining_amount_goes_negative_when_overfunded(self) -> None:
        self.assertEqual(remaining_amount(Decimal("120"), Decimal("100")), Decimal("-20"))

    def test_goal_status_recomputes_progress(self) -> None:
        untouched = GoalStatus(progress=Decimal("0"), is_completed=False)

        partial = goal_status(Decimal("50"), Decimal("200"), untouched)
        complete = goal_status(Decimal("200"), Decimal("200"), untouched)

        self.assertEqual(partial, GoalStatus(progress=Decimal("25.00"), is_completed=False))
        self.assertEqual(complete, GoalStatus(progress=Decimal("100.00"), is_completed=True))

    def test_goal_just_short_of_target_is_not_completed(self) -> None:
        untouched = GoalStatus(progress=Decimal("0"), is_completed=False)

        status = goal_status(Decimal("199.99"), Decimal("200"), untouched)

        self.assertFalse(status.is_completed)
        self.assertEqual(status.progress, Decimal("99.99"))

    def test_goal_status_without_target_keeps_current(self) -> None:
        current = GoalStatus(progress=Decimal("40"), is_completed=False)

        self.assertIs(goal_status(Decimal("10"), None, current), current)
        self.assertIs(goal_status(Decimal("10"), Decimal("0"), current), current)

    def test_on_track_without_deadline(self) -> None:
        self.assertTrue(
            is_on_track(Decimal("0"), Decimal("100"), date(2024, 1, 1), None, datetime(2024, 6, 1))
        )

    def test_on_track_compares_funded_and_elapsed_fractions(self) -> None:
        start = date(2024, 1, 1)
        deadline = date(2024, 1, 11)
        halfway = datetime(2024, 1, 6)

        self.assertTrue(is_on_track(Decimal("50"), Decimal("100"), start, deadline, halfway))
        self.assertTrue(is_on_track(Decimal("60"), Decimal("100"), start, deadline, halfway))
        self.assertFalse(is_on_track(Decimal("40"), Decimal("100"), start, deadline, halfway))

    def test_zero_length_window_requires_full_funding(self) -> None:
        same_day = date(2024, 3, 1)
        now = datetime(2024, 3, 1)

        self.assertFalse(is_on_track(Decimal("99"), Decimal("100"), same_day, same_day, now))
        self.assertTrue(is_on_track(Decimal("100"), Decimal("100"), same_day, same_day, now))

    def test_average_monthly_divides_by_twelve(self) -> None:
        totals = [Decimal("0")] * 12
        totals[2] = Decimal("100")

        result = average_monthly(totals)

        self.assertEqual(result, Decimal("100") / Decimal("12"))
        self.assertEqual(result.quantize(Decimal("0.01")), Decimal("8.33"))

    def test_duration_days(self) -> None:
        self.assertEqual(duration_days(date(2024, 1, 1), date(2024, 1, 31)), 30)
        self.assertEqual(duration_days(date(2024, 1, 31), date(2024, 1, 1)), 30)


if __name__ == "__main__":
    unittest.main()
