"""Tests for rolling daily pay up to a period."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from workforce_engine.calculators.period_pay import calculate_period_pay, period_dates
from workforce_engine.domain import TimeEntry
from workforce_engine.exceptions import InvalidHoursError

USER_ID = uuid4()
APOLLO = uuid4()
GEMINI = uuid4()
WEEK_START = date(2024, 3, 3)
WEEK_END = date(2024, 3, 9)
MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)
SATURDAY = date(2024, 3, 9)


def entry(project_id, work_date, minutes, user_id=USER_ID):
    return TimeEntry(
        user_id=user_id,
        project_id=project_id,
        task_id=None,
        date=work_date,
        total_minutes=minutes,
    )


def flat_rates(project_ids, rate):
    return {(p, d): Decimal(rate) for p in project_ids for d in period_dates(WEEK_START, WEEK_END)}


class TestPeriodPay:
    """Test per-project period totals."""

    def test_single_project_week(self):
        entries = [
            entry(APOLLO, MONDAY, 360),
            entry(APOLLO, TUESDAY, 540),
            entry(APOLLO, SATURDAY, 240),
        ]

        result = calculate_period_pay(
            entries,
            flat_rates([APOLLO], "50.00"),
            user_id=USER_ID,
            period_start=WEEK_START,
            period_end=WEEK_END,
        )

        apollo = result.projects[APOLLO]
        assert len(apollo.days) == 7
        assert apollo.regular_pay == Decimal("700.00")
        assert apollo.overtime_pay == Decimal("75.00")
        assert apollo.weekend_pay == Decimal("400.00")
        assert apollo.gross_pay == Decimal("1175.00")
        assert apollo.total_hours == Decimal("19.0000")
        assert apollo.straight_time_amount == Decimal("950.00")
        assert apollo.base_rate == Decimal("50.00")
        assert result.gross_pay == Decimal("1175.00")

    def test_unworked_days_are_zero_records(self):
        result = calculate_period_pay(
            [entry(APOLLO, MONDAY, 60)],
            flat_rates([APOLLO], "50.00"),
            user_id=USER_ID,
            period_start=WEEK_START,
            period_end=WEEK_END,
        )

        days = result.projects[APOLLO].days
        assert [d.work_date for d in days] == period_dates(WEEK_START, WEEK_END)
        assert sum(1 for d in days if d.gross_pay == 0) == 6

    def test_overtime_is_shared_across_projects(self):
        """6h + 4h on one weekday: the day has 2h overtime, priced at each project's rate."""
        entries = [entry(APOLLO, MONDAY, 360), entry(GEMINI, MONDAY, 240)]
        rates = {**flat_rates([APOLLO], "50.00"), **flat_rates([GEMINI], "60.00")}

        result = calculate_period_pay(
            entries, rates, user_id=USER_ID, period_start=WEEK_START, period_end=WEEK_END
        )

        total_regular = sum(p.minutes.regular for p in result.projects.values())
        total_overtime = sum(p.minutes.overtime for p in result.projects.values())
        assert total_regular == 480
        assert total_overtime == 120
        assert result.total_minutes == 600

    def test_missing_rate_for_worked_day_raises(self):
        with pytest.raises(KeyError):
            calculate_period_pay(
                [entry(APOLLO, MONDAY, 60)],
                {},
                user_id=USER_ID,
                period_start=WEEK_START,
                period_end=WEEK_END,
            )

    def test_entry_outside_period_raises(self):
        with pytest.raises(InvalidHoursError):
            calculate_period_pay(
                [entry(APOLLO, date(2024, 3, 10), 60)],
                flat_rates([APOLLO], "50.00"),
                user_id=USER_ID,
                period_start=WEEK_START,
                period_end=WEEK_END,
            )

    def test_entry_from_another_user_raises(self):
        with pytest.raises(InvalidHoursError):
            calculate_period_pay(
                [entry(APOLLO, MONDAY, 60, user_id=uuid4())],
                flat_rates([APOLLO], "50.00"),
                user_id=USER_ID,
                period_start=WEEK_START,
                period_end=WEEK_END,
            )

    def test_blended_rate_when_rate_changes_mid_period(self):
        rates = flat_rates([APOLLO], "50.00")
        rates[(APOLLO, TUESDAY)] = Decimal("70.00")
        entries = [entry(APOLLO, MONDAY, 240), entry(APOLLO, TUESDAY, 240)]

        result = calculate_period_pay(
            entries, rates, user_id=USER_ID, period_start=WEEK_START, period_end=WEEK_END
        )

        assert result.projects[APOLLO].straight_time_amount == Decimal("480.00")
        assert result.projects[APOLLO].base_rate == Decimal("60.00")
