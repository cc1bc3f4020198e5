"""Rate resolution and pay calculation."""

from workforce_engine.calculators.pay_calculator import (
    DEFAULT_POLICY,
    BucketMinutes,
    DailyPay,
    PayPolicy,
    allocate_daily_buckets,
    calculate_daily_pay,
    classify_date,
)
from workforce_engine.calculators.period_pay import PeriodPay, ProjectPay, calculate_period_pay
from workforce_engine.calculators.rate_resolver import (
    RateResolver,
    find_overlapping_rates,
    select_rate,
)

__all__ = [
    "DEFAULT_POLICY",
    "BucketMinutes",
    "DailyPay",
    "PayPolicy",
    "PeriodPay",
    "ProjectPay",
    "RateResolver",
    "allocate_daily_buckets",
    "calculate_daily_pay",
    "calculate_period_pay",
    "classify_date",
    "find_overlapping_rates",
    "select_rate",
]
