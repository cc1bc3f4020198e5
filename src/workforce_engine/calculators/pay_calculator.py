"""Daily hour classification and gross pay.

Classification policy for one user-day:

- A date in the holiday calendar: every hour is holiday (x2.0). Holiday
  takes precedence over weekend.
- Saturday or Sunday: every hour is weekend (x2.0), however many.
- Weekday: the first 8 hours are regular (x1.0), the rest overtime (x1.5).
  Overtime is per day, never per week.

Buckets are computed on integer minutes so that the bucketed hours of a day
always add up to the hours that were entered. Money is computed at 4
decimal places internally and each bucket amount is rounded half-up to
cents; gross is the sum of the rounded bucket amounts.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from numbers import Integral, Real
from uuid import UUID

from workforce_engine.domain.enums import Bucket
from workforce_engine.domain.types import TimeEntry
from workforce_engine.exceptions import InvalidHoursError

HOURS_PRECISION = Decimal("0.0001")
MONEY_PRECISION = Decimal("0.01")
MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR
SATURDAY = 5


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents)."""
    return amount.quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def minutes_to_hours(minutes: int) -> Decimal:
    """Convert minutes to hours at 4 decimal places."""
    return (Decimal(minutes) / Decimal(MINUTES_PER_HOUR)).quantize(
        HOURS_PRECISION, rounding=ROUND_HALF_UP
    )


@dataclass(frozen=True)
class PayPolicy:
    """Thresholds and multipliers for hour classification."""

    regular_hours_per_day: Decimal = Decimal("8")
    overtime_multiplier: Decimal = Decimal("1.5")
    weekend_multiplier: Decimal = Decimal("2.0")
    holiday_multiplier: Decimal = Decimal("2.0")

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.regular_hours_per_day <= 0:
            raise ValueError("regular_hours_per_day must be positive")
        for name in ("overtime_multiplier", "weekend_multiplier", "holiday_multiplier"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} cannot be below 1")

    @property
    def regular_minutes_per_day(self) -> int:
        return int(self.regular_hours_per_day * MINUTES_PER_HOUR)

    def multiplier(self, bucket: Bucket) -> Decimal:
        """Multiplier applied to the base rate for a bucket."""
        return {
            Bucket.REGULAR: Decimal("1"),
            Bucket.OVERTIME: self.overtime_multiplier,
            Bucket.WEEKEND: self.weekend_multiplier,
            Bucket.HOLIDAY: self.holiday_multiplier,
        }[bucket]


DEFAULT_POLICY = PayPolicy()


@dataclass
class BucketMinutes:
    """Minutes per bucket."""

    regular: int = 0
    overtime: int = 0
    weekend: int = 0
    holiday: int = 0

    @property
    def total(self) -> int:
        return self.regular + self.overtime + self.weekend + self.holiday

    def get(self, bucket: Bucket) -> int:
        return getattr(self, bucket.value)

    def add(self, other: BucketMinutes) -> None:
        self.regular += other.regular
        self.overtime += other.overtime
        self.weekend += other.weekend
        self.holiday += other.holiday


@dataclass
class DailyPay:
    """Bucketed hours and pay for one user-day (or one project slice of it)."""

    work_date: date
    hourly_rate: Decimal
    minutes: BucketMinutes = field(default_factory=BucketMinutes)
    regular_pay: Decimal = Decimal("0.00")
    overtime_pay: Decimal = Decimal("0.00")
    weekend_pay: Decimal = Decimal("0.00")
    holiday_pay: Decimal = Decimal("0.00")

    @property
    def regular(self) -> Decimal:
        return minutes_to_hours(self.minutes.regular)

    @property
    def overtime(self) -> Decimal:
        return minutes_to_hours(self.minutes.overtime)

    @property
    def weekend(self) -> Decimal:
        return minutes_to_hours(self.minutes.weekend)

    @property
    def holiday(self) -> Decimal:
        return minutes_to_hours(self.minutes.holiday)

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.minutes.total)

    @property
    def gross_pay(self) -> Decimal:
        return self.regular_pay + self.overtime_pay + self.weekend_pay + self.holiday_pay


def classify_date(work_date: date, holidays: Iterable[date] = frozenset()) -> Bucket:
    """Return the bucket family for a date: holiday, weekend or regular."""
    if work_date in holidays:
        return Bucket.HOLIDAY
    if work_date.weekday() >= SATURDAY:
        return Bucket.WEEKEND
    return Bucket.REGULAR


def validate_minutes(entry: TimeEntry) -> int:
    """Return the entry's minutes, raising InvalidHoursError if malformed."""
    value = entry.total_minutes
    if isinstance(value, bool) or not isinstance(value, (Real, Decimal)):
        raise InvalidHoursError(
            f"Time entry {entry.id} has non-numeric minutes {value!r}",
            entry_id=entry.id,
            value=value,
        )
    if not math.isfinite(value):
        raise InvalidHoursError(
            f"Time entry {entry.id} has non-finite minutes {value}",
            entry_id=entry.id,
            value=value,
        )
    if value < 0:
        raise InvalidHoursError(
            f"Time entry {entry.id} has negative minutes {value}",
            entry_id=entry.id,
            value=value,
        )
    if not isinstance(value, Integral) and value != int(value):
        raise InvalidHoursError(
            f"Time entry {entry.id} has fractional minutes {value}",
            entry_id=entry.id,
            value=value,
        )
    if value > MINUTES_PER_DAY:
        raise InvalidHoursError(
            f"Time entry {entry.id} exceeds 24 hours ({value} minutes)",
            entry_id=entry.id,
            value=value,
        )
    return int(value)


def _canonical_order(entries: Iterable[TimeEntry]) -> list[TimeEntry]:
    return sorted(entries, key=lambda e: (str(e.project_id), str(e.task_id), str(e.id)))


def allocate_daily_buckets(
    entries: Sequence[TimeEntry],
    *,
    work_date: date,
    holidays: Iterable[date] = frozenset(),
    policy: PayPolicy = DEFAULT_POLICY,
) -> dict[UUID, BucketMinutes]:
    """Split one user-day's minutes into buckets, entry by entry.

    The regular allowance is consumed in a canonical entry order (project,
    task, id) so the result does not depend on the order entries were given.

    Raises:
        InvalidHoursError: malformed minutes, entries spanning several dates
            or users, or more than 24 hours in the day.
    """
    user_ids = {e.user_id for e in entries}
    if len(user_ids) > 1:
        raise InvalidHoursError("Daily pay entries belong to more than one user")

    minutes_by_entry: dict[UUID, int] = {}
    for entry in entries:
        if entry.date != work_date:
            raise InvalidHoursError(
                f"Time entry {entry.id} is dated {entry.date}, expected {work_date}",
                entry_id=entry.id,
            )
        minutes_by_entry[entry.id] = validate_minutes(entry)

    day_total = sum(minutes_by_entry.values())
    if day_total > MINUTES_PER_DAY:
        raise InvalidHoursError(
            f"{day_total} minutes logged on {work_date} exceeds 24 hours",
            value=day_total,
        )

    family = classify_date(work_date, holidays)
    allocation: dict[UUID, BucketMinutes] = {}
    remaining_regular = policy.regular_minutes_per_day

    for entry in _canonical_order(entries):
        minutes = minutes_by_entry[entry.id]
        buckets = BucketMinutes()
        if family is Bucket.HOLIDAY:
            buckets.holiday = minutes
        elif family is Bucket.WEEKEND:
            buckets.weekend = minutes
        else:
            buckets.regular = min(minutes, remaining_regular)
            buckets.overtime = minutes - buckets.regular
            remaining_regular -= buckets.regular
        allocation[entry.id] = buckets

    return allocation


def price_minutes(
    minutes: BucketMinutes,
    hourly_rate: Decimal,
    *,
    work_date: date,
    policy: PayPolicy = DEFAULT_POLICY,
) -> DailyPay:
    """Apply a rate and the policy multipliers to bucketed minutes."""
    if hourly_rate < 0:
        raise ValueError(f"Hourly rate cannot be negative: {hourly_rate}")

    def amount(bucket: Bucket) -> Decimal:
        hours = Decimal(minutes.get(bucket)) / Decimal(MINUTES_PER_HOUR)
        return round_to_cents(hourly_rate * hours * policy.multiplier(bucket))

    return DailyPay(
        work_date=work_date,
        hourly_rate=hourly_rate,
        minutes=minutes,
        regular_pay=amount(Bucket.REGULAR),
        overtime_pay=amount(Bucket.OVERTIME),
        weekend_pay=amount(Bucket.WEEKEND),
        holiday_pay=amount(Bucket.HOLIDAY),
    )


def calculate_daily_pay(
    entries: Sequence[TimeEntry],
    hourly_rate: Decimal,
    *,
    work_date: date,
    holidays: Iterable[date] = frozenset(),
    policy: PayPolicy = DEFAULT_POLICY,
) -> DailyPay:
    """Classify one user-day's entries and compute gross pay at one rate.

    A day with no entries (or only zero-minute entries) yields a zero-valued
    record rather than nothing.
    """
    allocation = allocate_daily_buckets(
        entries, work_date=work_date, holidays=holidays, policy=policy
    )
    day = BucketMinutes()
    for buckets in allocation.values():
        day.add(buckets)
    return price_minutes(day, hourly_rate, work_date=work_date, policy=policy)
