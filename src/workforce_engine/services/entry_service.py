"""Entry capture: time entries, expense items and their period records.

Entries belong to their owner and can only be changed while the covering
Timesheet or ExpenseReport is still editable (draft or rejected).
"""

from __future__ import annotations

import calendar
import dataclasses
import logging
from datetime import date, timedelta
from decimal import Decimal

from workforce_engine.calculators.pay_calculator import (
    MINUTES_PER_DAY,
    minutes_to_hours,
    validate_minutes,
)
from workforce_engine.config import Settings
from workforce_engine.domain.types import (
    ExpenseCategory,
    ExpenseItem,
    ExpenseReport,
    Project,
    TimeEntry,
    Timesheet,
    User,
    WorkflowRecord,
)
from workforce_engine.exceptions import InvalidHoursError, ValidationError
from workforce_engine.services.state_machine import ApprovalStateMachine
from workforce_engine.storage.base import Storage, require_record

logger = logging.getLogger(__name__)

# Columns that only the approval workflow writes
WORKFLOW_FLAGS = ("is_submitted", "is_approved", "approved_by", "approved_at")


def week_bounds(any_date: date, week_start: int) -> tuple[date, date]:
    """First and last day of the week containing a date."""
    offset = (any_date.weekday() - week_start) % 7
    start = any_date - timedelta(days=offset)
    return start, start + timedelta(days=6)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


async def load_record_entries(
    storage: Storage, record: WorkflowRecord
) -> list[TimeEntry] | list[ExpenseItem]:
    """Entries covered by a Timesheet (time) or ExpenseReport (expenses)."""
    entry_type = TimeEntry if isinstance(record, Timesheet) else ExpenseItem
    return await storage.list_by_user_and_range(
        entry_type, record.user_id, record.period_start, record.period_end
    )


class EntryService:
    """Creates and edits entries and opens the period records that cover them.

    Operations:
    - record_time_entry / update_time_entry
    - record_expense_item / update_expense_item
    - open_timesheet / open_expense_report
    - derived totals for a period record
    """

    def __init__(self, storage: Storage, settings: Settings):
        self.storage = storage
        self.settings = settings

    # ===== Period records =====

    async def open_timesheet(self, user: User, any_date: date) -> Timesheet:
        """Return the user's Timesheet for the week of a date, creating a draft."""
        start, end = week_bounds(any_date, self.settings.week_start)
        sheet = await self.storage.find_timesheet(user.id, start)
        if sheet is not None:
            return sheet

        sheet = Timesheet(user_id=user.id, week_start_date=start, week_end_date=end)
        await self.storage.add(sheet)
        logger.info("Opened timesheet %s for user %s week %s", sheet.id, user.id, start)
        return sheet

    async def open_expense_report(self, user: User, year: int, month: int) -> ExpenseReport:
        """Return the user's ExpenseReport for a month, creating a draft."""
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be 1-12, got {month}", field="month")
        start, end = month_bounds(year, month)
        report = await self.storage.find_expense_report(user.id, start)
        if report is not None:
            return report

        report = ExpenseReport(user_id=user.id, month_start_date=start, month_end_date=end)
        await self.storage.add(report)
        logger.info("Opened expense report %s for user %s month %s", report.id, user.id, start)
        return report

    async def timesheet_entries(self, timesheet: Timesheet) -> list[TimeEntry]:
        return await load_record_entries(self.storage, timesheet)  # type: ignore[return-value]

    async def expense_report_items(self, report: ExpenseReport) -> list[ExpenseItem]:
        return await load_record_entries(self.storage, report)  # type: ignore[return-value]

    async def timesheet_total_hours(self, timesheet: Timesheet) -> Decimal:
        entries = await self.timesheet_entries(timesheet)
        return minutes_to_hours(sum(e.total_minutes for e in entries))

    async def expense_report_total(self, report: ExpenseReport) -> Decimal:
        items = await self.expense_report_items(report)
        return sum((i.amount for i in items), Decimal("0.00"))

    # ===== Time entries =====

    async def record_time_entry(self, actor: User, entry: TimeEntry) -> TimeEntry:
        """Add a time entry for the actor.

        Raises:
            ValidationError: actor is not the owner, or the week is locked
            InvalidHoursError: bad minutes, or the day would exceed 24 hours
            RecordNotFoundError: unknown project
        """
        self._check_owner(actor, entry.user_id)
        entry = dataclasses.replace(entry, total_minutes=validate_minutes(entry))
        await require_record(self.storage, Project, entry.project_id)
        await self._check_timesheet_editable(actor, entry.date)
        await self._check_day_total(entry)

        entry = dataclasses.replace(
            entry, is_submitted=False, is_approved=False, approved_by=None, approved_at=None
        )
        await self.storage.add(entry)
        logger.info(
            "Recorded %d minutes for user %s on %s", entry.total_minutes, entry.user_id, entry.date
        )
        return entry

    async def update_time_entry(self, actor: User, entry: TimeEntry) -> TimeEntry:
        """Replace an existing time entry's values.

        Both the old and the new date must fall in editable weeks. Workflow
        flags are kept from the stored entry.
        """
        existing = await require_record(self.storage, TimeEntry, entry.id)
        self._check_owner(actor, existing.user_id)
        if entry.user_id != existing.user_id:
            raise ValidationError("A time entry cannot change owner", field="user_id")
        entry = dataclasses.replace(entry, total_minutes=validate_minutes(entry))
        await require_record(self.storage, Project, entry.project_id)
        await self._check_timesheet_editable(actor, existing.date)
        if entry.date != existing.date:
            await self._check_timesheet_editable(actor, entry.date)
        await self._check_day_total(entry)

        entry = dataclasses.replace(
            entry, **{name: getattr(existing, name) for name in WORKFLOW_FLAGS}
        )
        await self.storage.save(entry)
        logger.info("Updated time entry %s", entry.id)
        return entry

    # ===== Expense items =====

    async def record_expense_item(self, actor: User, item: ExpenseItem) -> ExpenseItem:
        """Add an expense item for the actor.

        Items in a billable category are always billable; billable items need
        a project so they can be billed to its client.

        Raises:
            ValidationError: ownership, lock, amount or category violations
            RecordNotFoundError: unknown category or project
        """
        self._check_owner(actor, item.user_id)
        item = await self._validated_item(item)
        await self._check_expense_report_editable(actor, item.date)

        item = dataclasses.replace(
            item, is_submitted=False, is_approved=False, approved_by=None, approved_at=None
        )
        await self.storage.add(item)
        logger.info("Recorded expense %s for user %s on %s", item.amount, item.user_id, item.date)
        return item

    async def update_expense_item(self, actor: User, item: ExpenseItem) -> ExpenseItem:
        """Replace an existing expense item's values."""
        existing = await require_record(self.storage, ExpenseItem, item.id)
        self._check_owner(actor, existing.user_id)
        if item.user_id != existing.user_id:
            raise ValidationError("An expense item cannot change owner", field="user_id")
        item = await self._validated_item(item)
        await self._check_expense_report_editable(actor, existing.date)
        if (item.date.year, item.date.month) != (existing.date.year, existing.date.month):
            await self._check_expense_report_editable(actor, item.date)

        item = dataclasses.replace(
            item, **{name: getattr(existing, name) for name in WORKFLOW_FLAGS}
        )
        await self.storage.save(item)
        logger.info("Updated expense item %s", item.id)
        return item

    # ===== Guards =====

    @staticmethod
    def _check_owner(actor: User, owner_id) -> None:
        if actor.id != owner_id:
            raise ValidationError(
                f"User {actor.id} cannot edit entries owned by {owner_id}", field="user_id"
            )

    async def _check_timesheet_editable(self, actor: User, work_date: date) -> None:
        sheet = await self.open_timesheet(actor, work_date)
        if not ApprovalStateMachine.entries_mutable(sheet.status):
            raise ValidationError(
                f"Timesheet {sheet.id} is {sheet.status.value}; its entries are locked",
                field="date",
            )

    async def _check_expense_report_editable(self, actor: User, item_date: date) -> None:
        report = await self.open_expense_report(actor, item_date.year, item_date.month)
        if not ApprovalStateMachine.entries_mutable(report.status):
            raise ValidationError(
                f"Expense report {report.id} is {report.status.value}; its items are locked",
                field="date",
            )

    async def _check_day_total(self, entry: TimeEntry) -> None:
        same_day = await self.storage.list_by_user_and_range(
            TimeEntry, entry.user_id, entry.date, entry.date
        )
        total = entry.total_minutes + sum(e.total_minutes for e in same_day if e.id != entry.id)
        if total > MINUTES_PER_DAY:
            raise InvalidHoursError(
                f"User {entry.user_id} would log {total} minutes on {entry.date}, "
                f"more than {MINUTES_PER_DAY}",
                entry_id=entry.id,
                value=total,
            )

    async def _validated_item(self, item: ExpenseItem) -> ExpenseItem:
        amount = item.amount
        if isinstance(amount, bool) or not isinstance(amount, (Decimal, int)):
            raise ValidationError(
                f"Expense amount must be a decimal, got {type(amount).__name__}",
                field="amount",
            )
        if not Decimal(amount).is_finite():
            raise ValidationError("Expense amount must be finite", field="amount")
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("Expense amount must be positive", field="amount")
        if amount > self.settings.expense_amount_ceiling:
            raise ValidationError(
                f"Expense amount {amount} exceeds the ceiling "
                f"{self.settings.expense_amount_ceiling}",
                field="amount",
            )
        if amount != amount.quantize(Decimal("0.01")):
            raise ValidationError("Expense amount has more than 2 decimal places", field="amount")

        category = await require_record(self.storage, ExpenseCategory, item.category_id)
        if not category.is_active:
            raise ValidationError(
                f"Expense category '{category.name}' is inactive", field="category_id"
            )
        if category.spending_limit is not None and amount > category.spending_limit:
            raise ValidationError(
                f"Expense amount {amount} exceeds the '{category.name}' limit "
                f"{category.spending_limit}",
                field="amount",
            )

        is_billable = item.is_billable or category.is_billable
        if item.project_id is not None:
            await require_record(self.storage, Project, item.project_id)
        elif is_billable:
            raise ValidationError("Billable expenses must name a project", field="project_id")

        return dataclasses.replace(item, amount=amount, is_billable=is_billable)
