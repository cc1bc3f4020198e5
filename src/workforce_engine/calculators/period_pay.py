"""Roll daily pay up to a pay period, per project."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from workforce_engine.calculators.pay_calculator import (
    DEFAULT_POLICY,
    MINUTES_PER_HOUR,
    BucketMinutes,
    DailyPay,
    PayPolicy,
    allocate_daily_buckets,
    minutes_to_hours,
    price_minutes,
    round_to_cents,
)
from workforce_engine.domain.types import TimeEntry
from workforce_engine.exceptions import InvalidHoursError


@dataclass
class ProjectPay:
    """Bucketed totals for one project over a period."""

    project_id: UUID
    days: list[DailyPay] = field(default_factory=list)
    minutes: BucketMinutes = field(default_factory=BucketMinutes)
    regular_pay: Decimal = Decimal("0.00")
    overtime_pay: Decimal = Decimal("0.00")
    weekend_pay: Decimal = Decimal("0.00")
    holiday_pay: Decimal = Decimal("0.00")
    straight_time_amount: Decimal = Decimal("0.00")  # hours x rate, no premiums

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.minutes.total)

    @property
    def gross_pay(self) -> Decimal:
        return self.regular_pay + self.overtime_pay + self.weekend_pay + self.holiday_pay

    @property
    def base_rate(self) -> Decimal:
        """Effective straight-time rate (blended when the rate changed mid-period)."""
        if self.minutes.total == 0:
            return Decimal("0.00")
        hours = Decimal(self.minutes.total) / Decimal(MINUTES_PER_HOUR)
        return round_to_cents(self.straight_time_amount / hours)

    def add_day(self, day: DailyPay) -> None:
        self.days.append(day)
        self.minutes.add(day.minutes)
        self.regular_pay += day.regular_pay
        self.overtime_pay += day.overtime_pay
        self.weekend_pay += day.weekend_pay
        self.holiday_pay += day.holiday_pay
        hours = Decimal(day.minutes.total) / Decimal(MINUTES_PER_HOUR)
        self.straight_time_amount += round_to_cents(hours * day.hourly_rate)


@dataclass
class PeriodPay:
    """Per-project pay for one user over a period."""

    user_id: UUID
    period_start: date
    period_end: date
    projects: dict[UUID, ProjectPay] = field(default_factory=dict)

    @property
    def gross_pay(self) -> Decimal:
        return sum((p.gross_pay for p in self.projects.values()), Decimal("0.00"))

    @property
    def total_minutes(self) -> int:
        return sum(p.minutes.total for p in self.projects.values())


def period_dates(start: date, end: date) -> list[date]:
    """Every calendar date from start to end inclusive."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def calculate_period_pay(
    entries: Sequence[TimeEntry],
    rates: Mapping[tuple[UUID, date], Decimal],
    *,
    user_id: UUID,
    period_start: date,
    period_end: date,
    holidays: Iterable[date] = frozenset(),
    policy: PayPolicy = DEFAULT_POLICY,
) -> PeriodPay:
    """Classify and price a user's entries over a period.

    Overtime is decided per user-day across all projects, then each project's
    slice of the day is priced at that project's rate from ``rates``
    (keyed by (project_id, date)). Every project gets one record per calendar
    day, zero-valued on days it was not worked.

    Raises:
        InvalidHoursError: malformed entries, entries outside the period or
            belonging to another user.
        KeyError: no rate supplied for a worked (project, date).
    """
    holidays = frozenset(holidays)
    by_date: dict[date, list[TimeEntry]] = defaultdict(list)
    for entry in entries:
        if entry.user_id != user_id:
            raise InvalidHoursError(
                f"Time entry {entry.id} belongs to user {entry.user_id}, not {user_id}",
                entry_id=entry.id,
            )
        if not period_start <= entry.date <= period_end:
            raise InvalidHoursError(
                f"Time entry {entry.id} dated {entry.date} is outside "
                f"{period_start}..{period_end}",
                entry_id=entry.id,
            )
        by_date[entry.date].append(entry)

    project_ids = sorted({e.project_id for e in entries}, key=str)
    result = PeriodPay(user_id=user_id, period_start=period_start, period_end=period_end)
    for project_id in project_ids:
        result.projects[project_id] = ProjectPay(project_id=project_id)

    for work_date in period_dates(period_start, period_end):
        day_entries = by_date.get(work_date, [])
        allocation = allocate_daily_buckets(
            day_entries, work_date=work_date, holidays=holidays, policy=policy
        )
        per_project: dict[UUID, BucketMinutes] = defaultdict(BucketMinutes)
        for entry in day_entries:
            per_project[entry.project_id].add(allocation[entry.id])

        for project_id, project_pay in result.projects.items():
            minutes = per_project.get(project_id, BucketMinutes())
            if minutes.total:
                rate = rates[(project_id, work_date)]
            else:
                rate = rates.get((project_id, work_date), Decimal("0"))
            project_pay.add_day(price_minutes(minutes, rate, work_date=work_date, policy=policy))

    return result
