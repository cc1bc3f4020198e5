"""Timesheet, expense report and approval tables."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from workforce_engine.domain.enums import ApprovalStatus, ApproverType, RecordStatus
from workforce_engine.models.base import Base
from workforce_engine.models.roster import enum_column


class WorkflowColumnsMixin:
    """Status, optimistic version and transition timestamps."""

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    status: Mapped[RecordStatus] = mapped_column(
        enum_column(RecordStatus), nullable=False, default=RecordStatus.DRAFT
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    client_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payroll_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class TimesheetRow(WorkflowColumnsMixin, Base):
    """Weekly timesheet header; hours are derived from time entries."""

    __tablename__ = "timesheet"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_end_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "week_start_date", name="timesheet_user_week_unique"),
        CheckConstraint("week_end_date >= week_start_date", name="timesheet_dates_check"),
    )


class ExpenseReportRow(WorkflowColumnsMixin, Base):
    """Monthly expense report header; totals are derived from items."""

    __tablename__ = "expense_report"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    month_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    month_end_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "month_start_date", name="expense_report_user_month_unique"),
        CheckConstraint("month_end_date >= month_start_date", name="expense_report_dates_check"),
    )


class ApprovalRow(Base):
    """Decision slot in the approval chain."""

    __tablename__ = "approval"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    approver_type: Mapped[ApproverType] = mapped_column(enum_column(ApproverType), nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        enum_column(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING
    )
    timesheet_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("timesheet.id", ondelete="CASCADE"), nullable=True
    )
    expense_report_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("expense_report.id", ondelete="CASCADE"), nullable=True
    )
    approver_id: Mapped[UUID | None] = mapped_column(ForeignKey("app_user.id"), nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(timesheet_id IS NULL) <> (expense_report_id IS NULL)",
            name="approval_single_target",
        ),
        Index(
            "approval_one_pending_timesheet",
            "timesheet_id",
            "approver_type",
            unique=True,
            sqlite_where=text("status = 'pending' AND timesheet_id IS NOT NULL"),
            postgresql_where=text("status = 'pending' AND timesheet_id IS NOT NULL"),
        ),
        Index(
            "approval_one_pending_expense_report",
            "expense_report_id",
            "approver_type",
            unique=True,
            sqlite_where=text("status = 'pending' AND expense_report_id IS NOT NULL"),
            postgresql_where=text("status = 'pending' AND expense_report_id IS NOT NULL"),
        ),
    )
