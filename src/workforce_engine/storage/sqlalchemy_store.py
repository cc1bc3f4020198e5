"""Storage implementation over a SQLAlchemy async session.

ORM rows are converted to domain records on the way out, so every read
yields an independent snapshot. Reads use ``populate_existing`` so rows
changed by a compare-and-set in the same session are never served stale.
Transaction boundaries belong to the caller: this class flushes but never
commits.
"""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_engine.domain.enums import RecordStatus
from workforce_engine.domain.types import (
    Approval,
    ExpenseReport,
    RateEntry,
    Timesheet,
    WorkflowRecord,
)
from workforce_engine.exceptions import PersistenceError
from workforce_engine.models import RECORD_TABLES, Base

T = TypeVar("T")
R = TypeVar("R", bound=WorkflowRecord)


def to_row(record: Any) -> Base:
    """Build an ORM row from a domain record."""
    table = RECORD_TABLES[type(record)]
    return table(**{f.name: getattr(record, f.name) for f in dataclasses.fields(record)})


def to_record(record_type: type[T], row: Base) -> T:
    """Build a domain record from an ORM row."""
    values = {f.name: getattr(row, f.name) for f in dataclasses.fields(record_type)}
    return record_type(**values)


class SqlAlchemyStorage:
    """Storage protocol implementation over an ``AsyncSession``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            raise PersistenceError(operation, exc) from exc

    async def _fetch(self, record_type: type[T], stmt: Any, operation: str) -> list[T]:
        async with self._guard(operation):
            result = await self.session.execute(
                stmt.execution_options(populate_existing=True)
            )
            return [to_record(record_type, row) for row in result.scalars().all()]

    async def get_by_id(self, record_type: type[T], record_id: UUID) -> T | None:
        table = RECORD_TABLES[record_type]
        rows = await self._fetch(
            record_type, select(table).where(table.id == record_id), "get_by_id"
        )
        return rows[0] if rows else None

    async def list_by_user_and_range(
        self,
        record_type: type[T],
        user_id: UUID,
        start: date,
        end: date,
    ) -> list[T]:
        table = RECORD_TABLES[record_type]
        column = getattr(table, record_type.RANGE_FIELD)  # type: ignore[attr-defined]
        stmt = (
            select(table)
            .where(table.user_id == user_id, column >= start, column <= end)
            .order_by(column, table.id)
        )
        return await self._fetch(record_type, stmt, "list_by_user_and_range")

    async def list_by_project_and_range(
        self,
        record_type: type[T],
        project_id: UUID,
        start: date,
        end: date,
    ) -> list[T]:
        table = RECORD_TABLES[record_type]
        column = getattr(table, record_type.RANGE_FIELD)  # type: ignore[attr-defined]
        stmt = (
            select(table)
            .where(table.project_id == project_id, column >= start, column <= end)
            .order_by(column, table.id)
        )
        return await self._fetch(record_type, stmt, "list_by_project_and_range")

    async def list_rate_entries(
        self,
        user_id: UUID,
        project_id: UUID | None,
        as_of_date: date,
    ) -> list[RateEntry]:
        table = RECORD_TABLES[RateEntry]
        if project_id is None:
            project_match = table.project_id.is_(None)
        else:
            project_match = or_(table.project_id == project_id, table.project_id.is_(None))
        stmt = (
            select(table)
            .where(
                or_(table.user_id == user_id, table.user_id.is_(None)),
                project_match,
                table.effective_date <= as_of_date,
                or_(table.end_date.is_(None), table.end_date >= as_of_date),
            )
            .order_by(table.effective_date, table.id)
        )
        return await self._fetch(RateEntry, stmt, "list_rate_entries")

    async def list_approvals(self, record: WorkflowRecord) -> list[Approval]:
        table = RECORD_TABLES[Approval]
        if isinstance(record, Timesheet):
            target = table.timesheet_id == record.id
        else:
            target = table.expense_report_id == record.id
        stmt = select(table).where(target).order_by(table.created_at, table.id)
        return await self._fetch(Approval, stmt, "list_approvals")

    async def find_timesheet(self, user_id: UUID, week_start_date: date) -> Timesheet | None:
        table = RECORD_TABLES[Timesheet]
        rows = await self._fetch(
            Timesheet,
            select(table).where(
                table.user_id == user_id, table.week_start_date == week_start_date
            ),
            "find_timesheet",
        )
        return rows[0] if rows else None

    async def find_expense_report(
        self, user_id: UUID, month_start_date: date
    ) -> ExpenseReport | None:
        table = RECORD_TABLES[ExpenseReport]
        rows = await self._fetch(
            ExpenseReport,
            select(table).where(
                table.user_id == user_id, table.month_start_date == month_start_date
            ),
            "find_expense_report",
        )
        return rows[0] if rows else None

    async def add(self, record: Any) -> None:
        async with self._guard("add"):
            self.session.add(to_row(record))
            await self.session.flush()

    async def save(self, record: Any) -> None:
        table = RECORD_TABLES[type(record)]
        values = {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
        values.pop("id")
        async with self._guard("save"):
            result = await self.session.execute(
                update(table)
                .where(table.id == record.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            raise PersistenceError(
                "save", LookupError(f"{type(record).__name__} {record.id} does not exist")
            )

    async def compare_and_set(
        self,
        record: R,
        expected_status: RecordStatus,
        expected_version: int,
        changes: dict[str, Any],
    ) -> bool:
        table = RECORD_TABLES[type(record)]
        async with self._guard("compare_and_set"):
            result = await self.session.execute(
                update(table)
                .where(
                    table.id == record.id,
                    table.status == expected_status,
                    table.version == expected_version,
                )
                .values(version=expected_version + 1, **changes)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount == 1

    async def update_entry_flags(
        self,
        record_type: type[Any],
        record_ids: list[UUID],
        changes: dict[str, Any],
    ) -> int:
        if not record_ids:
            return 0
        table = RECORD_TABLES[record_type]
        async with self._guard("update_entry_flags"):
            result = await self.session.execute(
                update(table)
                .where(table.id.in_(record_ids))
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
        return result.rowcount or 0
