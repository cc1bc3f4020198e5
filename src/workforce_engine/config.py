"""Configuration management for the workforce engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

from workforce_engine.calculators.pay_calculator import PayPolicy

WEEKDAY_NAMES = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

LOGGER_NAME = "workforce_engine"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    engine_version: str
    log_level: str
    expense_amount_ceiling: Decimal
    regular_hours_per_day: Decimal
    overtime_multiplier: Decimal
    weekend_multiplier: Decimal
    holiday_multiplier: Decimal
    week_start: int  # date.weekday() of the first day of a timesheet week
    holidays: tuple[date, ...] = ()

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.expense_amount_ceiling <= 0:
            raise ValueError("expense_amount_ceiling must be positive")
        if not 0 <= self.week_start <= 6:
            raise ValueError("week_start must be a weekday number 0-6")

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        week_start_name = os.getenv("WEEK_START", "sunday").strip().lower()
        if week_start_name not in WEEKDAY_NAMES:
            raise ValueError(f"WEEK_START must be one of {sorted(WEEKDAY_NAMES)}")

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./workforce_engine.db",
            ),
            engine_version=os.getenv("ENGINE_VERSION", "1.0.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            expense_amount_ceiling=Decimal(os.getenv("EXPENSE_AMOUNT_CEILING", "999999.99")),
            regular_hours_per_day=Decimal(os.getenv("REGULAR_HOURS_PER_DAY", "8")),
            overtime_multiplier=Decimal(os.getenv("OVERTIME_MULTIPLIER", "1.5")),
            weekend_multiplier=Decimal(os.getenv("WEEKEND_MULTIPLIER", "2.0")),
            holiday_multiplier=Decimal(os.getenv("HOLIDAY_MULTIPLIER", "2.0")),
            week_start=WEEKDAY_NAMES[week_start_name],
            holidays=parse_holidays(os.getenv("HOLIDAYS", "")),
        )

    def pay_policy(self) -> PayPolicy:
        """Build the pay classification policy from these settings."""
        return PayPolicy(
            regular_hours_per_day=self.regular_hours_per_day,
            overtime_multiplier=self.overtime_multiplier,
            weekend_multiplier=self.weekend_multiplier,
            holiday_multiplier=self.holiday_multiplier,
        )

    def holiday_calendar(self) -> frozenset[date]:
        """Holiday dates as the set the pay calculator expects."""
        return frozenset(self.holidays)


def parse_holidays(raw: str) -> tuple[date, ...]:
    """Parse a comma-separated list of ISO dates."""
    dates = []
    for part in raw.split(","):
        part = part.strip()
        if part:
            dates.append(date.fromisoformat(part))
    return tuple(sorted(set(dates)))


def configure_logging(level: str | None = None) -> logging.Logger:
    """Set the engine logger's level and attach its stream handler once.

    Records still propagate to the root logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level or get_settings().log_level)
    if not any(h.get_name() == LOGGER_NAME for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(LOGGER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
