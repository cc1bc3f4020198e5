"""Storage interface consumed by the engine.

The engine reads roster and entry records and writes workflow records
through this protocol only. Implementations raise ``PersistenceError`` for
backend failures; they never retry.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol, TypeVar, runtime_checkable
from uuid import UUID

from workforce_engine.domain.enums import RecordStatus
from workforce_engine.domain.types import (
    Approval,
    ExpenseReport,
    RateEntry,
    Timesheet,
    WorkflowRecord,
)
from workforce_engine.exceptions import RecordNotFoundError

T = TypeVar("T")
R = TypeVar("R", bound=WorkflowRecord)


@runtime_checkable
class Storage(Protocol):
    """Repository contract for engine records."""

    async def get_by_id(self, record_type: type[T], record_id: UUID) -> T | None:
        """Load one record by id, or None."""
        ...

    async def list_by_user_and_range(
        self,
        record_type: type[T],
        user_id: UUID,
        start: date,
        end: date,
    ) -> list[T]:
        """List a user's records whose range field falls in [start, end]."""
        ...

    async def list_by_project_and_range(
        self,
        record_type: type[T],
        project_id: UUID,
        start: date,
        end: date,
    ) -> list[T]:
        """List a project's records whose range field falls in [start, end]."""
        ...

    async def list_rate_entries(
        self,
        user_id: UUID,
        project_id: UUID | None,
        as_of_date: date,
    ) -> list[RateEntry]:
        """List rate entries effective on a date that could apply to (user, project).

        That is every entry whose user_id is the user or None and whose
        project_id is the project or None.
        """
        ...

    async def list_approvals(self, record: WorkflowRecord) -> list[Approval]:
        """List Approval rows targeting a Timesheet or ExpenseReport."""
        ...

    async def find_timesheet(self, user_id: UUID, week_start_date: date) -> Timesheet | None:
        """Find a user's Timesheet for the week starting on a date."""
        ...

    async def find_expense_report(
        self, user_id: UUID, month_start_date: date
    ) -> ExpenseReport | None:
        """Find a user's ExpenseReport for the month starting on a date."""
        ...

    async def add(self, record: Any) -> None:
        """Insert a new record."""
        ...

    async def save(self, record: Any) -> None:
        """Overwrite an existing record with the given values."""
        ...

    async def compare_and_set(
        self,
        record: R,
        expected_status: RecordStatus,
        expected_version: int,
        changes: dict[str, Any],
    ) -> bool:
        """Apply ``changes`` and bump the version only if status and version match.

        Returns False (and writes nothing) when another writer got there first.
        """
        ...

    async def update_entry_flags(
        self,
        record_type: type[Any],
        record_ids: list[UUID],
        changes: dict[str, Any],
    ) -> int:
        """Set flag columns on TimeEntry/ExpenseItem rows. Returns rows touched."""
        ...


async def require_record(storage: Storage, record_type: type[T], record_id: UUID) -> T:
    """Load a record by id, raising RecordNotFoundError when it is missing."""
    record = await storage.get_by_id(record_type, record_id)
    if record is None:
        raise RecordNotFoundError(record_type.__name__, record_id)
    return record
