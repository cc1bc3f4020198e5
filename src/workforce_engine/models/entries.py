"""Time entry and expense item tables."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from workforce_engine.models.base import Base


class TimeEntryRow(Base):
    """Minutes worked on a project task on one date."""

    __tablename__ = "time_entry"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[UUID] = mapped_column(ForeignKey("project.id"), nullable=False)
    task_id: Mapped[UUID | None] = mapped_column(nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    total_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_by: Mapped[UUID | None] = mapped_column(ForeignKey("app_user.id"), nullable=True)
    approved_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "total_minutes >= 0 AND total_minutes <= 1440", name="time_entry_minutes_check"
        ),
        Index("time_entry_user_date_idx", "user_id", "date"),
        Index("time_entry_project_date_idx", "project_id", "date"),
    )


class ExpenseItemRow(Base):
    """Single expense claimed by a user."""

    __tablename__ = "expense_item"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[UUID] = mapped_column(ForeignKey("expense_category.id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    project_id: Mapped[UUID | None] = mapped_column(ForeignKey("project.id"), nullable=True)
    is_billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_by: Mapped[UUID | None] = mapped_column(ForeignKey("app_user.id"), nullable=True)
    approved_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="expense_item_amount_positive"),
        Index("expense_item_user_date_idx", "user_id", "date"),
        Index("expense_item_project_date_idx", "project_id", "date"),
    )
