"""In-process storage backed by dictionaries.

Used by tests and by callers that hold their roster in memory. Every read
returns a copy, so two readers of the same record hold independent
snapshots the way two database sessions would.
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from workforce_engine.domain.enums import ApprovalStatus, RecordStatus
from workforce_engine.domain.types import (
    Approval,
    ExpenseReport,
    RateEntry,
    Timesheet,
    WorkflowRecord,
)
from workforce_engine.exceptions import PersistenceError

T = TypeVar("T")
R = TypeVar("R", bound=WorkflowRecord)


class InMemoryStorage:
    """Dictionary-backed implementation of the Storage protocol."""

    def __init__(self, records: list[Any] | None = None) -> None:
        self._tables: dict[type, dict[UUID, Any]] = defaultdict(dict)
        for record in records or []:
            self._tables[type(record)][record.id] = dataclasses.replace(record)

    def _table(self, record_type: type) -> dict[UUID, Any]:
        return self._tables[record_type]

    @staticmethod
    def _sorted(record_type: type, records: list[Any]) -> list[Any]:
        range_field = getattr(record_type, "RANGE_FIELD", None)
        if range_field is None:
            return sorted(records, key=lambda r: str(r.id))
        return sorted(records, key=lambda r: (getattr(r, range_field), str(r.id)))

    async def get_by_id(self, record_type: type[T], record_id: UUID) -> T | None:
        record = self._table(record_type).get(record_id)
        return dataclasses.replace(record) if record is not None else None

    async def list_by_user_and_range(
        self,
        record_type: type[T],
        user_id: UUID,
        start: date,
        end: date,
    ) -> list[T]:
        range_field = record_type.RANGE_FIELD  # type: ignore[attr-defined]
        found = [
            dataclasses.replace(r)
            for r in self._table(record_type).values()
            if r.user_id == user_id and start <= getattr(r, range_field) <= end
        ]
        return self._sorted(record_type, found)

    async def list_by_project_and_range(
        self,
        record_type: type[T],
        project_id: UUID,
        start: date,
        end: date,
    ) -> list[T]:
        range_field = record_type.RANGE_FIELD  # type: ignore[attr-defined]
        found = [
            dataclasses.replace(r)
            for r in self._table(record_type).values()
            if r.project_id == project_id and start <= getattr(r, range_field) <= end
        ]
        return self._sorted(record_type, found)

    async def list_rate_entries(
        self,
        user_id: UUID,
        project_id: UUID | None,
        as_of_date: date,
    ) -> list[RateEntry]:
        found = [
            dataclasses.replace(r)
            for r in self._table(RateEntry).values()
            if r.user_id in (user_id, None)
            and r.project_id in (project_id, None)
            and r.is_active_on(as_of_date)
        ]
        return self._sorted(RateEntry, found)

    async def list_approvals(self, record: WorkflowRecord) -> list[Approval]:
        target_field = "timesheet_id" if isinstance(record, Timesheet) else "expense_report_id"
        found = [
            dataclasses.replace(a)
            for a in self._table(Approval).values()
            if getattr(a, target_field) == record.id
        ]
        return found

    async def find_timesheet(self, user_id: UUID, week_start_date: date) -> Timesheet | None:
        for sheet in self._table(Timesheet).values():
            if sheet.user_id == user_id and sheet.week_start_date == week_start_date:
                return dataclasses.replace(sheet)
        return None

    async def find_expense_report(
        self, user_id: UUID, month_start_date: date
    ) -> ExpenseReport | None:
        for report in self._table(ExpenseReport).values():
            if report.user_id == user_id and report.month_start_date == month_start_date:
                return dataclasses.replace(report)
        return None

    async def add(self, record: Any) -> None:
        table = self._table(type(record))
        if record.id in table:
            raise PersistenceError(
                "add", KeyError(f"{type(record).__name__} {record.id} already exists")
            )
        if isinstance(record, Approval) and record.status == ApprovalStatus.PENDING:
            self._check_single_pending(record, "add")
        table[record.id] = dataclasses.replace(record)

    async def save(self, record: Any) -> None:
        table = self._table(type(record))
        if record.id not in table:
            raise PersistenceError(
                "save", KeyError(f"{type(record).__name__} {record.id} does not exist")
            )
        if isinstance(record, Approval) and record.status == ApprovalStatus.PENDING:
            self._check_single_pending(record, "save")
        table[record.id] = dataclasses.replace(record)

    async def compare_and_set(
        self,
        record: R,
        expected_status: RecordStatus,
        expected_version: int,
        changes: dict[str, Any],
    ) -> bool:
        stored = self._table(type(record)).get(record.id)
        if stored is None:
            raise PersistenceError(
                "compare_and_set", KeyError(f"{type(record).__name__} {record.id} does not exist")
            )
        if stored.status != expected_status or stored.version != expected_version:
            return False
        self._table(type(record))[record.id] = dataclasses.replace(
            stored, version=expected_version + 1, **changes
        )
        return True

    async def update_entry_flags(
        self,
        record_type: type[Any],
        record_ids: list[UUID],
        changes: dict[str, Any],
    ) -> int:
        table = self._table(record_type)
        touched = 0
        for record_id in record_ids:
            if record_id in table:
                table[record_id] = dataclasses.replace(table[record_id], **changes)
                touched += 1
        return touched

    def _check_single_pending(self, approval: Approval, operation: str) -> None:
        for other in self._table(Approval).values():
            if (
                other.id != approval.id
                and other.status == ApprovalStatus.PENDING
                and other.approver_type == approval.approver_type
                and other.target_id == approval.target_id
            ):
                raise PersistenceError(
                    operation,
                    ValueError(
                        f"A pending {approval.approver_type.value} approval already "
                        f"exists for {approval.target_id}"
                    ),
                )
