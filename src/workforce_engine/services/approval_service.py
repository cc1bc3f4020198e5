"""Approval workflow for timesheets and expense reports."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, NoReturn, TypeVar

from workforce_engine.calculators.pay_calculator import validate_minutes
from workforce_engine.domain.enums import (
    ApprovalStatus,
    ApproverType,
    RecordStatus,
    Refusal,
    UserRole,
    WorkflowEvent,
)
from workforce_engine.domain.types import (
    Approval,
    ExpenseItem,
    Project,
    TimeEntry,
    Timesheet,
    User,
    WorkflowRecord,
)
from workforce_engine.exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    ValidationError,
)
from workforce_engine.services.entry_service import load_record_entries
from workforce_engine.services.state_machine import ApprovalStateMachine, Transition
from workforce_engine.storage.base import Storage, require_record

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=WorkflowRecord)

# Approval slot that is open while a record sits in a status
PENDING_SLOT = {
    RecordStatus.SUBMITTED: ApproverType.CLIENT,
    RecordStatus.CLIENT_APPROVED: ApproverType.PAYROLL,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalService:
    """Moves a Timesheet or ExpenseReport through its approval chain.

    Operations:
    - submit / resubmit: owner hands the record to the client approver
    - client_approve: client approver signs off, payroll is next
    - payroll_approve: payroll signs off (terminal)
    - reject: client approver or payroll sends the record back to the owner

    Every transition is applied with a compare-and-set on (status, version),
    so two approvers acting on the same snapshot cannot both succeed.
    """

    def __init__(self, storage: Storage, clock: Callable[[], datetime] = utc_now):
        self.storage = storage
        self.clock = clock

    async def submit(self, record: R, actor: User) -> R:
        """Submit a draft record. Submitting an already submitted record is a no-op."""
        return await self._transition(record, WorkflowEvent.SUBMIT, actor)

    async def resubmit(self, record: R, actor: User) -> R:
        """Resubmit a rejected record. A no-op when it is already submitted."""
        return await self._transition(record, WorkflowEvent.RESUBMIT, actor)

    async def client_approve(self, record: R, actor: User, comments: str | None = None) -> R:
        return await self._transition(record, WorkflowEvent.CLIENT_APPROVE, actor, comments)

    async def payroll_approve(self, record: R, actor: User, comments: str | None = None) -> R:
        return await self._transition(record, WorkflowEvent.PAYROLL_APPROVE, actor, comments)

    async def reject(self, record: R, actor: User, reason: str) -> R:
        """Reject a submitted or client-approved record.

        Raises:
            ValidationError: If reason is missing or blank (nothing is written)
        """
        if not isinstance(reason, str) or not reason.strip():
            raise ValidationError("A rejection reason is required", field="reason")
        return await self._transition(record, WorkflowEvent.REJECT, actor, reason.strip())

    async def approval_history(self, record: WorkflowRecord) -> list[Approval]:
        """Approval rows for a record, oldest first."""
        return await self.storage.list_approvals(record)

    async def _transition(
        self,
        record: R,
        event: WorkflowEvent,
        actor: User,
        comments: str | None = None,
    ) -> R:
        """Guard, apply and record one workflow event.

        Raises:
            InvalidTransitionError: state or actor guard refused the event
            ConcurrentModificationError: record changed since it was read
        """
        from_status = record.status

        if self._is_repeat_submit(record, event, actor):
            logger.debug("%s %s already submitted", record.RECORD_TYPE, record.id)
            return record

        try:
            transition = ApprovalStateMachine.validate_transition(event, from_status)
        except InvalidTransitionError as e:
            e.record_id = record.id
            self._log_refusal(record, event, e.refusal, e.reason)
            raise

        await self._check_actor(record, transition, actor)

        now = self.clock()
        changes = self._status_changes(transition, now, comments)
        won = await self.storage.compare_and_set(record, from_status, record.version, changes)
        if not won:
            stored = await self._already_submitted(record, event, actor)
            if stored is not None:
                return stored
            logger.info(
                "Lost race to %s %s %s (expected %s v%d)",
                event.value,
                record.RECORD_TYPE,
                record.id,
                from_status.value,
                record.version,
            )
            raise ConcurrentModificationError(
                event.value, record.RECORD_TYPE, record.id, from_status.value, record.version
            )

        for name, value in changes.items():
            setattr(record, name, value)
        record.version += 1

        await self._record_approvals(record, transition, actor, now, comments)
        await self._update_entry_flags(record, transition, actor, now)

        logger.info(
            "%s %s: %s -> %s by %s",
            record.RECORD_TYPE,
            record.id,
            from_status.value,
            transition.to_status.value,
            actor.id,
        )
        return record

    @staticmethod
    def _is_repeat_submit(record: WorkflowRecord, event: WorkflowEvent, actor: User) -> bool:
        """The owner submitting a record that is already submitted."""
        return (
            event in (WorkflowEvent.SUBMIT, WorkflowEvent.RESUBMIT)
            and record.status == RecordStatus.SUBMITTED
            and actor.id == record.user_id
        )

    async def _already_submitted(
        self, record: R, event: WorkflowEvent, actor: User
    ) -> R | None:
        """After a lost race, the stored record if another submit got there first."""
        if event not in (WorkflowEvent.SUBMIT, WorkflowEvent.RESUBMIT):
            return None
        stored = await self.storage.get_by_id(type(record), record.id)
        if stored is None or not self._is_repeat_submit(stored, event, actor):
            return None
        logger.debug(
            "%s %s was submitted concurrently; nothing to do", record.RECORD_TYPE, record.id
        )
        return stored

    # ===== Guards =====

    async def _check_actor(
        self, record: WorkflowRecord, transition: Transition, actor: User
    ) -> None:
        event = transition.event

        if transition.owner_only:
            if actor.id != record.user_id:
                self._refuse(record, event, Refusal.NOT_OWNER, f"user {actor.id} does not own it")
            entries = await load_record_entries(self.storage, record)
            if not entries:
                self._refuse(record, event, Refusal.NO_ENTRIES, "nothing to submit")
            if isinstance(record, Timesheet):
                for entry in entries:
                    validate_minutes(entry)
            return

        if not actor.is_active:
            self._refuse(record, event, Refusal.NOT_AUTHORIZED, f"user {actor.id} is inactive")
        if actor.role not in transition.roles:
            allowed = ", ".join(sorted(r.value for r in transition.roles))
            self._refuse(
                record,
                event,
                Refusal.ROLE_MISMATCH,
                f"role '{actor.role.value}' is not one of: {allowed}",
            )
        if actor.id == record.user_id:
            self._refuse(
                record, event, Refusal.SELF_APPROVAL, "approvers cannot act on their own records"
            )
        if actor.role == UserRole.CLIENT_APPROVER:
            await self._check_client_authority(record, event, actor)

    async def _check_client_authority(
        self, record: WorkflowRecord, event: WorkflowEvent, actor: User
    ) -> None:
        """A client approver must belong to every client the record bills to.

        Records with no project-bound entries are not tied to a client and
        may be decided by any active client approver.
        """
        if actor.client_id is None:
            self._refuse(record, event, Refusal.NOT_AUTHORIZED, "approver has no client")

        entries = await load_record_entries(self.storage, record)
        project_ids = {e.project_id for e in entries if e.project_id is not None}
        for project_id in sorted(project_ids, key=str):
            project = await require_record(self.storage, Project, project_id)
            if project.client_id != actor.client_id:
                self._refuse(
                    record,
                    event,
                    Refusal.NOT_AUTHORIZED,
                    f"project {project.code} belongs to another client",
                )

    def _refuse(
        self, record: WorkflowRecord, event: WorkflowEvent, refusal: Refusal, reason: str
    ) -> NoReturn:
        self._log_refusal(record, event, refusal.value, reason)
        raise InvalidTransitionError(
            event.value, record.status.value, refusal.value, reason, record_id=record.id
        )

    @staticmethod
    def _log_refusal(
        record: WorkflowRecord, event: WorkflowEvent, refusal: str, reason: str | None
    ) -> None:
        logger.info(
            "Refused %s on %s %s in '%s' (%s): %s",
            event.value,
            record.RECORD_TYPE,
            record.id,
            record.status.value,
            refusal,
            reason,
        )

    # ===== Side effects =====

    @staticmethod
    def _status_changes(
        transition: Transition, now: datetime, comments: str | None
    ) -> dict[str, Any]:
        changes: dict[str, Any] = {"status": transition.to_status}
        if transition.event in (WorkflowEvent.SUBMIT, WorkflowEvent.RESUBMIT):
            changes.update(
                submitted_at=now,
                client_approved_at=None,
                payroll_approved_at=None,
                rejected_at=None,
                rejection_reason=None,
            )
        elif transition.event == WorkflowEvent.CLIENT_APPROVE:
            changes["client_approved_at"] = now
        elif transition.event == WorkflowEvent.PAYROLL_APPROVE:
            changes["payroll_approved_at"] = now
        elif transition.event == WorkflowEvent.REJECT:
            changes.update(rejected_at=now, rejection_reason=comments)
        return changes

    async def _record_approvals(
        self,
        record: WorkflowRecord,
        transition: Transition,
        actor: User,
        now: datetime,
        comments: str | None,
    ) -> None:
        event = transition.event
        if event in (WorkflowEvent.SUBMIT, WorkflowEvent.RESUBMIT):
            await self._open_slot(record, ApproverType.CLIENT, now)
        elif event == WorkflowEvent.CLIENT_APPROVE:
            await self._close_slot(
                record, ApproverType.CLIENT, ApprovalStatus.APPROVED, actor, now, comments
            )
            await self._open_slot(record, ApproverType.PAYROLL, now)
        elif event == WorkflowEvent.PAYROLL_APPROVE:
            await self._close_slot(
                record, ApproverType.PAYROLL, ApprovalStatus.APPROVED, actor, now, comments
            )
        elif event == WorkflowEvent.REJECT:
            await self._close_slot(
                record,
                PENDING_SLOT[transition.from_status],
                ApprovalStatus.REJECTED,
                actor,
                now,
                comments,
            )

    async def _open_slot(
        self, record: WorkflowRecord, approver_type: ApproverType, now: datetime
    ) -> None:
        approval = Approval.for_record(record, approver_type=approver_type, created_at=now)
        await self.storage.add(approval)

    async def _close_slot(
        self,
        record: WorkflowRecord,
        approver_type: ApproverType,
        status: ApprovalStatus,
        actor: User,
        now: datetime,
        comments: str | None,
    ) -> None:
        """Decide the pending approval of a type, creating it if none is open."""
        pending = [
            a
            for a in await self.storage.list_approvals(record)
            if a.approver_type == approver_type and a.status == ApprovalStatus.PENDING
        ]
        approval = pending[0] if pending else None
        if approval is None:
            approval = Approval.for_record(record, approver_type=approver_type, created_at=now)

        approval.status = status
        approval.approver_id = actor.id
        approval.comments = comments
        if status == ApprovalStatus.APPROVED:
            approval.approved_at = now
        else:
            approval.rejected_at = now

        if pending:
            await self.storage.save(approval)
        else:
            await self.storage.add(approval)

    async def _update_entry_flags(
        self, record: WorkflowRecord, transition: Transition, actor: User, now: datetime
    ) -> None:
        event = transition.event
        if event in (WorkflowEvent.SUBMIT, WorkflowEvent.RESUBMIT):
            changes: dict[str, Any] = {"is_submitted": True}
        elif event == WorkflowEvent.PAYROLL_APPROVE:
            changes = {"is_approved": True, "approved_by": actor.id, "approved_at": now}
        elif event == WorkflowEvent.REJECT:
            changes = {"is_submitted": False}
        else:
            return

        entries = await load_record_entries(self.storage, record)
        entry_type = TimeEntry if isinstance(record, Timesheet) else ExpenseItem
        await self.storage.update_entry_flags(entry_type, [e.id for e in entries], changes)
