"""Workforce engine services."""

from workforce_engine.services.state_machine import ApprovalStateMachine, Transition
from workforce_engine.services.entry_service import EntryService
from workforce_engine.services.approval_service import ApprovalService

__all__ = [
    "ApprovalStateMachine",
    "Transition",
    "EntryService",
    "ApprovalService",
]
