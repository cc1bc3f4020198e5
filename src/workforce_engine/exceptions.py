"""Typed exceptions for the workforce engine.

Every error carries a machine-readable ``code`` so callers (the UI action
that drove the operation) can branch on type and present an actionable
message instead of parsing strings.

    WorkforceEngineError (base)
    |
    +-- RateNotFoundError
    +-- OverlappingRateError
    +-- InvalidHoursError
    +-- InvalidTransitionError
    +-- ValidationError
    |   +-- RecordNotFoundError
    +-- ConcurrentModificationError
    +-- PersistenceError
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID


class WorkforceEngineError(Exception):
    """Base class for all engine errors."""

    code: str = "WORKFORCE_ENGINE_ERROR"


class RateNotFoundError(WorkforceEngineError):
    """Raised when no rate entry covers a (user, project, date)."""

    code = "RATE_NOT_FOUND"

    def __init__(self, user_id: UUID, project_id: UUID | None, as_of_date: date):
        self.user_id = user_id
        self.project_id = project_id
        self.as_of_date = as_of_date
        super().__init__(
            f"No rate entry found for user {user_id} on project {project_id} "
            f"effective {as_of_date}"
        )


class OverlappingRateError(WorkforceEngineError):
    """Raised when more than one rate entry of the same tier is effective."""

    code = "OVERLAPPING_RATE"

    def __init__(self, rate_entry_ids: list[UUID], as_of_date: date | None = None):
        self.rate_entry_ids = rate_entry_ids
        self.as_of_date = as_of_date
        when = f" on {as_of_date}" if as_of_date else ""
        ids = ", ".join(str(i) for i in rate_entry_ids)
        super().__init__(f"Overlapping rate entries{when}: {ids}")


class InvalidHoursError(WorkforceEngineError):
    """Raised for negative, non-numeric or impossible hour values."""

    code = "INVALID_HOURS"

    def __init__(self, message: str, entry_id: UUID | None = None, value: Any = None):
        self.entry_id = entry_id
        self.value = value
        super().__init__(message)


class InvalidTransitionError(WorkforceEngineError):
    """Raised when a workflow transition is refused.

    ``refusal`` says why: the source state does not allow the event, the
    actor's role is wrong, the actor is not the owner, and so on.
    """

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        event: str,
        from_status: str,
        refusal: str,
        reason: str | None = None,
        record_id: UUID | None = None,
    ):
        self.event = event
        self.from_status = from_status
        self.refusal = refusal
        self.reason = reason
        self.record_id = record_id
        msg = f"Cannot {event} from '{from_status}' ({refusal})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ValidationError(WorkforceEngineError):
    """Raised for malformed input: missing rejection reason, bad amounts."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class RecordNotFoundError(ValidationError):
    """Raised when a referenced record does not exist in storage."""

    code = "RECORD_NOT_FOUND"

    def __init__(self, record_type: str, record_id: UUID):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} {record_id} not found")


class ConcurrentModificationError(WorkforceEngineError):
    """Raised when a compare-and-set loses a race against another writer."""

    code = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        event: str,
        record_type: str,
        record_id: UUID,
        expected_status: str,
        expected_version: int,
    ):
        self.event = event
        self.record_type = record_type
        self.record_id = record_id
        self.expected_status = expected_status
        self.expected_version = expected_version
        super().__init__(
            f"Cannot {event} {record_type} {record_id}: it changed since it was "
            f"read (expected status '{expected_status}', version {expected_version})"
        )


class PersistenceError(WorkforceEngineError):
    """Wraps a failure raised by the storage backend."""

    code = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        msg = f"Storage operation '{operation}' failed"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
