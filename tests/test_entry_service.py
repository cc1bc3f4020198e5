"""Tests for entry capture and period records."""

import dataclasses
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import MONDAY, SATURDAY, TUESDAY, WEEK_START, make_entry
from workforce_engine.domain import ExpenseCategory, ExpenseItem, RecordStatus
from workforce_engine.exceptions import (
    InvalidHoursError,
    RecordNotFoundError,
    ValidationError,
)
from workforce_engine.services.entry_service import month_bounds, week_bounds


def expense(user, category, amount, project=None, item_date=MONDAY, **kwargs) -> ExpenseItem:
    return ExpenseItem(
        user_id=user.id,
        category_id=category.id,
        project_id=project.id if project else None,
        date=item_date,
        amount=Decimal(amount),
        **kwargs,
    )


class TestPeriodBounds:
    """Test week and month boundaries."""

    def test_week_starts_on_sunday(self):
        assert week_bounds(MONDAY, 6) == (WEEK_START, SATURDAY)
        assert week_bounds(WEEK_START, 6) == (WEEK_START, SATURDAY)
        assert week_bounds(SATURDAY, 6) == (WEEK_START, SATURDAY)

    def test_week_can_start_on_monday(self):
        assert week_bounds(date(2024, 3, 10), 0) == (MONDAY, date(2024, 3, 10))

    def test_month_bounds_handle_leap_years(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))


class TestTimeEntries:
    """Test recording and editing time."""

    @pytest.mark.asyncio
    async def test_record_opens_draft_timesheet(self, seeded, entries):
        entry = await entries.record_time_entry(
            seeded.employee, make_entry(seeded.employee, seeded.apollo, MONDAY, 6)
        )
        sheet = await entries.open_timesheet(seeded.employee, TUESDAY)

        assert sheet.status == RecordStatus.DRAFT
        assert sheet.week_start_date == WEEK_START
        assert sheet.week_end_date == SATURDAY
        assert [e.id for e in await entries.timesheet_entries(sheet)] == [entry.id]
        assert await entries.timesheet_total_hours(sheet) == Decimal("6.0000")

    @pytest.mark.asyncio
    async def test_open_timesheet_returns_existing(self, seeded, entries):
        first = await entries.open_timesheet(seeded.employee, MONDAY)
        second = await entries.open_timesheet(seeded.employee, SATURDAY)

        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_workflow_flags_cannot_be_set_by_the_owner(self, seeded, entries):
        entry = await entries.record_time_entry(
            seeded.employee,
            make_entry(seeded.employee, seeded.apollo, MONDAY, 2, is_approved=True),
        )

        assert entry.is_approved is False

    @pytest.mark.asyncio
    async def test_only_owner_records_time(self, seeded, entries):
        with pytest.raises(ValidationError) as exc_info:
            await entries.record_time_entry(
                seeded.other_employee, make_entry(seeded.employee, seeded.apollo, MONDAY, 2)
            )

        assert exc_info.value.field == "user_id"

    @pytest.mark.asyncio
    async def test_unknown_project(self, seeded, entries):
        entry = make_entry(seeded.employee, seeded.apollo, MONDAY, 2)
        entry.project_id = uuid4()

        with pytest.raises(RecordNotFoundError):
            await entries.record_time_entry(seeded.employee, entry)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("minutes", [-30, 1441, 12.5])
    async def test_invalid_minutes(self, seeded, entries, minutes):
        entry = make_entry(seeded.employee, seeded.apollo, MONDAY, 0)
        entry.total_minutes = minutes

        with pytest.raises(InvalidHoursError):
            await entries.record_time_entry(seeded.employee, entry)

    @pytest.mark.asyncio
    async def test_day_cannot_exceed_24_hours(self, seeded, entries):
        await entries.record_time_entry(
            seeded.employee, make_entry(seeded.employee, seeded.apollo, MONDAY, 20)
        )

        with pytest.raises(InvalidHoursError):
            await entries.record_time_entry(
                seeded.employee, make_entry(seeded.employee, seeded.gemini, MONDAY, 5)
            )

    @pytest.mark.asyncio
    async def test_submitted_week_is_locked(self, seeded, entries, submitted_timesheet):
        with pytest.raises(ValidationError) as exc_info:
            await entries.record_time_entry(
                seeded.employee, make_entry(seeded.employee, seeded.apollo, TUESDAY, 1)
            )

        assert "locked" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_update_in_submitted_week_is_refused(
        self, seeded, entries, submitted_timesheet
    ):
        [monday, *_] = await entries.timesheet_entries(submitted_timesheet)

        with pytest.raises(ValidationError):
            await entries.update_time_entry(
                seeded.employee, dataclasses.replace(monday, total_minutes=60)
            )

    @pytest.mark.asyncio
    async def test_update_keeps_workflow_flags(self, seeded, entries):
        entry = await entries.record_time_entry(
            seeded.employee, make_entry(seeded.employee, seeded.apollo, MONDAY, 2)
        )

        updated = await entries.update_time_entry(
            seeded.employee,
            dataclasses.replace(entry, total_minutes=180, notes="Design review", is_approved=True),
        )

        assert updated.total_minutes == 180
        assert updated.notes == "Design review"
        assert updated.is_approved is False

    @pytest.mark.asyncio
    async def test_update_unknown_entry(self, seeded, entries):
        with pytest.raises(RecordNotFoundError):
            await entries.update_time_entry(
                seeded.employee, make_entry(seeded.employee, seeded.apollo, MONDAY, 2)
            )


class TestExpenseItems:
    """Test recording expenses."""

    @pytest.mark.asyncio
    async def test_record_expense_in_monthly_report(self, seeded, entries):
        item = await entries.record_expense_item(
            seeded.employee, expense(seeded.employee, seeded.meals, "42.50")
        )
        report = await entries.open_expense_report(seeded.employee, 2024, 3)

        assert report.month_start_date == date(2024, 3, 1)
        assert report.month_end_date == date(2024, 3, 31)
        assert (report.year, report.month) == (2024, 3)
        assert [i.id for i in await entries.expense_report_items(report)] == [item.id]
        assert await entries.expense_report_total(report) == Decimal("42.50")

    @pytest.mark.asyncio
    async def test_billable_category_makes_item_billable(self, seeded, entries):
        item = await entries.record_expense_item(
            seeded.employee, expense(seeded.employee, seeded.travel, "100.00", seeded.apollo)
        )

        assert item.is_billable is True

    @pytest.mark.asyncio
    async def test_billable_item_needs_a_project(self, seeded, entries):
        with pytest.raises(ValidationError) as exc_info:
            await entries.record_expense_item(
                seeded.employee, expense(seeded.employee, seeded.travel, "100.00")
            )

        assert exc_info.value.field == "project_id"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-5.00", "1000000.00", "10.005"])
    async def test_amount_bounds(self, storage, seeded, entries, amount):
        uncapped = ExpenseCategory(name="Equipment")
        await storage.add(uncapped)

        with pytest.raises(ValidationError) as exc_info:
            await entries.record_expense_item(
                seeded.employee, expense(seeded.employee, uncapped, amount)
            )

        assert exc_info.value.field == "amount"

    @pytest.mark.asyncio
    async def test_amount_at_ceiling_is_accepted(self, storage, seeded, entries):
        uncapped = ExpenseCategory(name="Equipment")
        await storage.add(uncapped)

        item = await entries.record_expense_item(
            seeded.employee, expense(seeded.employee, uncapped, "999999.99")
        )

        assert item.amount == Decimal("999999.99")

    @pytest.mark.asyncio
    async def test_float_amount_is_rejected(self, seeded, entries):
        item = expense(seeded.employee, seeded.meals, "10.00")
        item.amount = 10.5

        with pytest.raises(ValidationError):
            await entries.record_expense_item(seeded.employee, item)

    @pytest.mark.asyncio
    async def test_category_spending_limit(self, seeded, entries):
        with pytest.raises(ValidationError) as exc_info:
            await entries.record_expense_item(
                seeded.employee, expense(seeded.employee, seeded.meals, "75.01")
            )

        assert "limit" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_inactive_category(self, storage, seeded, entries):
        retired = ExpenseCategory(name="Retired", is_active=False)
        await storage.add(retired)

        with pytest.raises(ValidationError) as exc_info:
            await entries.record_expense_item(
                seeded.employee, expense(seeded.employee, retired, "10.00")
            )

        assert exc_info.value.field == "category_id"

    @pytest.mark.asyncio
    async def test_unknown_category(self, seeded, entries):
        with pytest.raises(RecordNotFoundError):
            await entries.record_expense_item(
                seeded.employee,
                expense(seeded.employee, ExpenseCategory(name="Ghost"), "10.00"),
            )

    @pytest.mark.asyncio
    async def test_invalid_month(self, seeded, entries):
        with pytest.raises(ValidationError):
            await entries.open_expense_report(seeded.employee, 2024, 13)

    @pytest.mark.asyncio
    async def test_update_expense_moves_between_months(self, seeded, entries):
        item = await entries.record_expense_item(
            seeded.employee, expense(seeded.employee, seeded.meals, "20.00")
        )

        moved = await entries.update_expense_item(
            seeded.employee, dataclasses.replace(item, date=date(2024, 4, 2))
        )

        april = await entries.open_expense_report(seeded.employee, 2024, 4)
        march = await entries.open_expense_report(seeded.employee, 2024, 3)
        assert [i.id for i in await entries.expense_report_items(april)] == [moved.id]
        assert await entries.expense_report_items(march) == []
