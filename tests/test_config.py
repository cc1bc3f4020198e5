"""Tests for settings loading."""

import logging
from datetime import date
from decimal import Decimal

import pytest

from workforce_engine.config import (
    LOG_FORMAT,
    LOGGER_NAME,
    Settings,
    configure_logging,
    parse_holidays,
)


class TestParseHolidays:
    def test_sorted_and_deduplicated(self):
        assert parse_holidays("2024-12-25, 2024-07-04,2024-12-25,") == (
            date(2024, 7, 4),
            date(2024, 12, 25),
        )

    def test_empty(self):
        assert parse_holidays("") == ()

    def test_bad_date(self):
        with pytest.raises(ValueError):
            parse_holidays("2024-13-01")


class TestSettingsFromEnv:
    """Test environment-driven settings."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in (
            "DATABASE_URL",
            "WEEK_START",
            "HOLIDAYS",
            "REGULAR_HOURS_PER_DAY",
            "OVERTIME_MULTIPLIER",
            "EXPENSE_AMOUNT_CEILING",
            "LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        settings = Settings.from_env()

        assert settings.week_start == 6
        assert settings.expense_amount_ceiling == Decimal("999999.99")
        assert settings.regular_hours_per_day == Decimal("8")
        assert settings.holidays == ()
        assert settings.log_level == "INFO"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("WEEK_START", "Monday")
        monkeypatch.setenv("HOLIDAYS", "2024-07-04")
        monkeypatch.setenv("OVERTIME_MULTIPLIER", "2")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.week_start == 0
        assert settings.holiday_calendar() == frozenset({date(2024, 7, 4)})
        assert settings.pay_policy().overtime_multiplier == Decimal("2")
        assert settings.log_level == "DEBUG"

    def test_unknown_week_start(self, monkeypatch):
        monkeypatch.setenv("WEEK_START", "someday")

        with pytest.raises(ValueError):
            Settings.from_env()

    def test_non_positive_ceiling(self, monkeypatch):
        monkeypatch.setenv("EXPENSE_AMOUNT_CEILING", "0")

        with pytest.raises(ValueError):
            Settings.from_env()


class TestConfigureLogging:
    """Test the engine logger setup."""

    @pytest.fixture(autouse=True)
    def restore_logger(self):
        logger = logging.getLogger(LOGGER_NAME)
        level, handlers = logger.level, list(logger.handlers)
        yield
        logger.setLevel(level)
        logger.handlers[:] = handlers

    def test_sets_level_and_format(self):
        logger = configure_logging("DEBUG")

        assert logger.name == "workforce_engine"
        assert logger.level == logging.DEBUG
        [handler] = [h for h in logger.handlers if h.get_name() == LOGGER_NAME]
        assert handler.formatter._fmt == LOG_FORMAT
        assert logger.propagate is True

    def test_handler_attached_once(self):
        configure_logging("INFO")
        logger = configure_logging("WARNING")

        assert logger.level == logging.WARNING
        assert sum(1 for h in logger.handlers if h.get_name() == LOGGER_NAME) == 1

    def test_service_loggers_inherit_level(self):
        configure_logging("WARNING")

        child = logging.getLogger("workforce_engine.services.approval_service")
        assert child.getEffectiveLevel() == logging.WARNING
