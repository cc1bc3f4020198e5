"""SQLAlchemy ORM tables and their domain record counterparts."""

from workforce_engine.domain.types import (
    Approval,
    Client,
    ExpenseCategory,
    ExpenseItem,
    ExpenseReport,
    Project,
    RateEntry,
    TimeEntry,
    Timesheet,
    User,
)
from workforce_engine.models.base import Base, UTCDateTime
from workforce_engine.models.entries import ExpenseItemRow, TimeEntryRow
from workforce_engine.models.roster import (
    ClientRow,
    ExpenseCategoryRow,
    ProjectRow,
    RateEntryRow,
    UserRow,
)
from workforce_engine.models.workflow import ApprovalRow, ExpenseReportRow, TimesheetRow

# Domain record type -> ORM table. Column names match dataclass field names.
RECORD_TABLES: dict[type, type[Base]] = {
    Client: ClientRow,
    User: UserRow,
    Project: ProjectRow,
    ExpenseCategory: ExpenseCategoryRow,
    RateEntry: RateEntryRow,
    TimeEntry: TimeEntryRow,
    ExpenseItem: ExpenseItemRow,
    Timesheet: TimesheetRow,
    ExpenseReport: ExpenseReportRow,
    Approval: ApprovalRow,
}

__all__ = [
    "ApprovalRow",
    "Base",
    "ClientRow",
    "ExpenseCategoryRow",
    "ExpenseItemRow",
    "ExpenseReportRow",
    "ProjectRow",
    "RateEntryRow",
    "RECORD_TABLES",
    "TimeEntryRow",
    "TimesheetRow",
    "UTCDateTime",
    "UserRow",
]
