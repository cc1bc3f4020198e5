"""Approval state machine for timesheets and expense reports."""

from __future__ import annotations

from dataclasses import dataclass

from workforce_engine.domain.enums import RecordStatus, Refusal, UserRole, WorkflowEvent
from workforce_engine.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Transition:
    """One edge of the state machine and the roles allowed to take it.

    ``owner_only`` edges are taken by the record's owner, whatever their role.
    """

    event: WorkflowEvent
    from_status: RecordStatus
    to_status: RecordStatus
    roles: frozenset[UserRole] = frozenset()
    owner_only: bool = False


class ApprovalStateMachine:
    """State machine for Timesheet / ExpenseReport status.

    Allowed transitions:
    - draft → submitted (submit, owner)
    - submitted → client_approved (client_approve, client approver)
    - submitted → rejected (reject, client approver or payroll)
    - client_approved → payroll_approved (payroll_approve, payroll)
    - client_approved → rejected (reject, payroll)
    - rejected → submitted (resubmit, owner)
    """

    TRANSITIONS: tuple[Transition, ...] = (
        Transition(
            WorkflowEvent.SUBMIT,
            RecordStatus.DRAFT,
            RecordStatus.SUBMITTED,
            owner_only=True,
        ),
        Transition(
            WorkflowEvent.CLIENT_APPROVE,
            RecordStatus.SUBMITTED,
            RecordStatus.CLIENT_APPROVED,
            roles=frozenset({UserRole.CLIENT_APPROVER}),
        ),
        Transition(
            WorkflowEvent.REJECT,
            RecordStatus.SUBMITTED,
            RecordStatus.REJECTED,
            roles=frozenset({UserRole.CLIENT_APPROVER, UserRole.PAYROLL}),
        ),
        Transition(
            WorkflowEvent.PAYROLL_APPROVE,
            RecordStatus.CLIENT_APPROVED,
            RecordStatus.PAYROLL_APPROVED,
            roles=frozenset({UserRole.PAYROLL}),
        ),
        Transition(
            WorkflowEvent.REJECT,
            RecordStatus.CLIENT_APPROVED,
            RecordStatus.REJECTED,
            roles=frozenset({UserRole.PAYROLL}),
        ),
        Transition(
            WorkflowEvent.RESUBMIT,
            RecordStatus.REJECTED,
            RecordStatus.SUBMITTED,
            owner_only=True,
        ),
    )

    TERMINAL = frozenset({RecordStatus.PAYROLL_APPROVED})

    # Statuses in which the owner may still edit entries
    ENTRIES_MUTABLE = frozenset({RecordStatus.DRAFT, RecordStatus.REJECTED})

    @classmethod
    def find(cls, event: WorkflowEvent, from_status: RecordStatus) -> Transition | None:
        """Return the transition for (event, from_status), if any."""
        for transition in cls.TRANSITIONS:
            if transition.event == event and transition.from_status == from_status:
                return transition
        return None

    @classmethod
    def can_transition(cls, from_status: RecordStatus, to_status: RecordStatus) -> bool:
        """Check if any event moves from_status to to_status."""
        return any(
            t.from_status == from_status and t.to_status == to_status for t in cls.TRANSITIONS
        )

    @classmethod
    def validate_transition(cls, event: WorkflowEvent, from_status: RecordStatus) -> Transition:
        """Return the transition for an event, raising InvalidTransitionError if none."""
        transition = cls.find(event, from_status)
        if transition is not None:
            return transition
        if from_status in cls.TERMINAL:
            reason = f"'{from_status.value}' is terminal"
        else:
            allowed = ", ".join(e.value for e in cls.get_events(from_status)) or "none"
            reason = f"allowed events: {allowed}"
        raise InvalidTransitionError(
            event.value, from_status.value, Refusal.INVALID_STATE.value, reason
        )

    @classmethod
    def allowed_roles(cls, event: WorkflowEvent, from_status: RecordStatus) -> frozenset[UserRole]:
        """Roles that may take an event from a status (empty for owner-only events)."""
        transition = cls.find(event, from_status)
        return transition.roles if transition else frozenset()

    @classmethod
    def is_terminal(cls, status: RecordStatus) -> bool:
        """Check if no further transition is possible."""
        return status in cls.TERMINAL

    @classmethod
    def entries_mutable(cls, status: RecordStatus) -> bool:
        """Check if the owner may still edit the record's entries."""
        return status in cls.ENTRIES_MUTABLE

    @classmethod
    def get_events(cls, status: RecordStatus) -> list[WorkflowEvent]:
        """Events that can be taken from a status."""
        return [t.event for t in cls.TRANSITIONS if t.from_status == status]

    @classmethod
    def get_next_statuses(cls, status: RecordStatus) -> list[RecordStatus]:
        """Statuses reachable in one step."""
        return [t.to_status for t in cls.TRANSITIONS if t.from_status == status]
