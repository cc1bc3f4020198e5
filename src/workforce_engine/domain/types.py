"""Domain records exchanged between the engine and its storage.

Records are plain dataclasses. They are constructed by keyword, carry their
own id, and never hold references to other records: relations are ids and
are resolved through the storage interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from workforce_engine.domain.enums import (
    ApprovalStatus,
    ApproverType,
    ProjectStatus,
    RecordStatus,
    UserRole,
)
from workforce_engine.exceptions import ValidationError


# ===== Roster =====


@dataclass(kw_only=True)
class Client:
    """A staffing client that owns projects."""

    name: str
    contact_email: str | None = None
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)


@dataclass(kw_only=True)
class User:
    """Portal user. ``client_id`` scopes a client approver's authority."""

    email: str
    first_name: str
    last_name: str
    role: UserRole
    department: str | None = None
    client_id: UUID | None = None
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(kw_only=True)
class Project:
    """Billing and compliance scoping unit. A budget makes it a funded project."""

    client_id: UUID
    name: str
    code: str
    status: ProjectStatus = ProjectStatus.ACTIVE
    budget: Decimal | None = None
    start_date: date | None = None
    end_date: date | None = None
    grant_number: str | None = None
    funding_source: str | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def is_funded(self) -> bool:
        return self.budget is not None


@dataclass(kw_only=True)
class ExpenseCategory:
    """Expense category with an optional per-item spending limit."""

    name: str
    spending_limit: Decimal | None = None
    is_billable: bool = False
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)


@dataclass(kw_only=True)
class RateEntry:
    """Hourly rate, optionally scoped to a user and/or project.

    ``end_date`` is inclusive; ``None`` means open-ended.
    """

    RANGE_FIELD: ClassVar[str] = "effective_date"

    hourly_rate: Decimal
    effective_date: date
    end_date: date | None = None
    user_id: UUID | None = None
    project_id: UUID | None = None
    rate_table_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if the entry covers a given date."""
        if self.effective_date > as_of_date:
            return False
        if self.end_date is not None and self.end_date < as_of_date:
            return False
        return True

    def overlaps(self, other: RateEntry) -> bool:
        """Check if two entries share at least one effective day."""
        self_end = self.end_date or date.max
        other_end = other.end_date or date.max
        return self.effective_date <= other_end and other.effective_date <= self_end


# ===== Entries =====


@dataclass(kw_only=True)
class TimeEntry:
    """Minutes worked by a user on a project task on one date."""

    RANGE_FIELD: ClassVar[str] = "date"

    user_id: UUID
    project_id: UUID
    task_id: UUID | None
    date: date
    total_minutes: int
    notes: str | None = None
    is_submitted: bool = False
    is_approved: bool = False
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def hours(self) -> Decimal:
        return Decimal(self.total_minutes) / Decimal(60)


@dataclass(kw_only=True)
class ExpenseItem:
    """A single expense claimed by a user."""

    RANGE_FIELD: ClassVar[str] = "date"

    user_id: UUID
    category_id: UUID
    date: date
    amount: Decimal
    description: str = ""
    project_id: UUID | None = None
    is_billable: bool = False
    is_submitted: bool = False
    is_approved: bool = False
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)


# ===== Workflow records =====


@dataclass(kw_only=True)
class WorkflowRecord(ABC):
    """Fields shared by Timesheet and ExpenseReport.

    ``status`` is the only source of truth for workflow position and
    ``version`` increments on every status change (compare-and-set).
    """

    RECORD_TYPE: ClassVar[str] = "record"

    user_id: UUID
    status: RecordStatus = RecordStatus.DRAFT
    version: int = 1
    submitted_at: datetime | None = None
    client_approved_at: datetime | None = None
    payroll_approved_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    @abstractmethod
    def period_start(self) -> date:
        """First day covered by the record."""

    @property
    @abstractmethod
    def period_end(self) -> date:
        """Last day covered by the record (inclusive)."""


@dataclass(kw_only=True)
class Timesheet(WorkflowRecord):
    """Weekly aggregate of a user's time entries."""

    RECORD_TYPE: ClassVar[str] = "timesheet"
    RANGE_FIELD: ClassVar[str] = "week_start_date"

    week_start_date: date
    week_end_date: date

    @property
    def period_start(self) -> date:
        return self.week_start_date

    @property
    def period_end(self) -> date:
        return self.week_end_date


@dataclass(kw_only=True)
class ExpenseReport(WorkflowRecord):
    """Monthly aggregate of a user's expense items."""

    RECORD_TYPE: ClassVar[str] = "expense_report"
    RANGE_FIELD: ClassVar[str] = "month_start_date"

    month_start_date: date
    month_end_date: date

    @property
    def period_start(self) -> date:
        return self.month_start_date

    @property
    def period_end(self) -> date:
        return self.month_end_date

    @property
    def year(self) -> int:
        return self.month_start_date.year

    @property
    def month(self) -> int:
        return self.month_start_date.month


@dataclass(kw_only=True)
class Approval:
    """One decision slot in the approval chain for a Timesheet or ExpenseReport."""

    approver_type: ApproverType
    status: ApprovalStatus = ApprovalStatus.PENDING
    timesheet_id: UUID | None = None
    expense_report_id: UUID | None = None
    approver_id: UUID | None = None
    comments: str | None = None
    created_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if (self.timesheet_id is None) == (self.expense_report_id is None):
            raise ValidationError(
                "Approval must target exactly one of timesheet_id or expense_report_id",
                field="timesheet_id",
            )

    @property
    def target_id(self) -> UUID:
        return self.timesheet_id or self.expense_report_id  # type: ignore[return-value]

    @classmethod
    def for_record(cls, record: WorkflowRecord, **kwargs) -> Approval:
        """Create an Approval targeting a Timesheet or ExpenseReport."""
        if isinstance(record, Timesheet):
            return cls(timesheet_id=record.id, **kwargs)
        return cls(expense_report_id=record.id, **kwargs)
