"""Approval workflow state machine.

``PENDING_APPROVAL`` is the only suspended state: a checkpoint may sit there
indefinitely and it is the only state that accepts a resume callback.
"""

from __future__ import annotations

from enum import Enum


class WorkflowStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAYMENT_PROCESSED = "PAYMENT_PROCESSED"
    FAILED = "FAILED"

    @property
    def rank(self) -> int:
        """Position along the transition graph, used for ordering checks."""
        return _RANKS[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


_RANKS = {
    WorkflowStatus.SUBMITTED: 0,
    WorkflowStatus.PENDING_APPROVAL: 1,
    WorkflowStatus.APPROVED: 2,
    WorkflowStatus.REJECTED: 2,
    WorkflowStatus.PAYMENT_PROCESSED: 3,
    WorkflowStatus.FAILED: 4,
}

SUSPENDED_STATE = WorkflowStatus.PENDING_APPROVAL

TERMINAL_STATES = frozenset(
    {
        WorkflowStatus.REJECTED,
        WorkflowStatus.PAYMENT_PROCESSED,
        WorkflowStatus.FAILED,
    }
)

ALLOWED_TRANSITIONS: dict[WorkflowStatus, set[WorkflowStatus]] = {
    WorkflowStatus.SUBMITTED: {WorkflowStatus.PENDING_APPROVAL, WorkflowStatus.FAILED},
    WorkflowStatus.PENDING_APPROVAL: {
        WorkflowStatus.APPROVED,
        WorkflowStatus.REJECTED,
        WorkflowStatus.FAILED,
    },
    WorkflowStatus.APPROVED: {WorkflowStatus.PAYMENT_PROCESSED, WorkflowStatus.FAILED},
    WorkflowStatus.REJECTED: set(),
    WorkflowStatus.PAYMENT_PROCESSED: set(),
    WorkflowStatus.FAILED: set(),
}


class IllegalTransitionError(ValueError):
    pass


def can_transition(current: WorkflowStatus, to: WorkflowStatus) -> bool:
    return to in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(current: WorkflowStatus, to: WorkflowStatus) -> None:
    if not can_transition(current, to):
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
