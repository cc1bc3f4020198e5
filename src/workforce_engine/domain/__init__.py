"""Domain records and value sets."""

from workforce_engine.domain.enums import (
    ApprovalStatus,
    ApproverType,
    Bucket,
    ComplianceStatus,
    ExportType,
    ProjectStatus,
    RecordStatus,
    Refusal,
    UserRole,
    WorkflowEvent,
)
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
    WorkflowRecord,
)

__all__ = [
    "Approval",
    "ApprovalStatus",
    "ApproverType",
    "Bucket",
    "Client",
    "ComplianceStatus",
    "ExpenseCategory",
    "ExpenseItem",
    "ExpenseReport",
    "ExportType",
    "Project",
    "ProjectStatus",
    "RateEntry",
    "RecordStatus",
    "Refusal",
    "TimeEntry",
    "Timesheet",
    "User",
    "UserRole",
    "WorkflowEvent",
    "WorkflowRecord",
]
