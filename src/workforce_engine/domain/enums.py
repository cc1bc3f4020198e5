"""Closed value sets for roles, statuses and approval kinds."""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    """Portal roles."""

    EMPLOYEE = "employee"
    CLIENT_APPROVER = "client_approver"
    ADMIN = "admin"
    PAYROLL = "payroll"


class ProjectStatus(str, Enum):
    """Project lifecycle values."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"


class RecordStatus(str, Enum):
    """Workflow position of a Timesheet or ExpenseReport."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    CLIENT_APPROVED = "client_approved"
    PAYROLL_APPROVED = "payroll_approved"
    REJECTED = "rejected"


class ApproverType(str, Enum):
    """Stage of the approval chain an Approval row belongs to."""

    CLIENT = "client"
    PAYROLL = "payroll"


class ApprovalStatus(str, Enum):
    """Decision recorded on an Approval row."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowEvent(str, Enum):
    """Events that drive the approval state machine."""

    SUBMIT = "submit"
    CLIENT_APPROVE = "client_approve"
    PAYROLL_APPROVE = "payroll_approve"
    REJECT = "reject"
    RESUBMIT = "resubmit"


class Refusal(str, Enum):
    """Why a workflow transition was refused."""

    INVALID_STATE = "invalid_state"
    ROLE_MISMATCH = "role_mismatch"
    NOT_OWNER = "not_owner"
    NOT_AUTHORIZED = "not_authorized"
    SELF_APPROVAL = "self_approval"
    NO_ENTRIES = "no_entries"


class Bucket(str, Enum):
    """Hour classification buckets."""

    REGULAR = "regular"
    OVERTIME = "overtime"
    WEEKEND = "weekend"
    HOLIDAY = "holiday"


class ExportType(str, Enum):
    """Row shapes produced by the export builder."""

    PAYROLL = "payroll"
    BILLING = "billing"
    COMPLIANCE = "compliance"


class ComplianceStatus(str, Enum):
    """Budget health of a funded project."""

    ON_TRACK = "on_track"
    REVIEW_REQUIRED = "review_required"
    AT_RISK = "at_risk"
    COMPLIANT = "compliant"
