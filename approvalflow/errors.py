"""Error types raised by the approval workflow core and its collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .state_machine import WorkflowStatus


class ApprovalWorkflowError(Exception):
    """Base class for errors that terminate the current invocation.

    ``code`` and ``status_code`` let the entry points tell error kinds apart,
    ``user_message`` is safe to show to the person who clicked the link.
    """

    code = "workflow_error"
    status_code = 500
    user_message = "An error occurred while processing your request"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.user_message)


class WorkflowNotFound(ApprovalWorkflowError):
    code = "not_found"
    status_code = 404
    user_message = "Workflow not found"

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class Unauthorized(ApprovalWorkflowError):
    code = "unauthorized"
    status_code = 403
    user_message = "Invalid or expired approval link"


class AlreadyProcessed(ApprovalWorkflowError):
    code = "already_processed"
    status_code = 409

    def __init__(self, workflow_id: str, status: "WorkflowStatus") -> None:
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(self.user_message)

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return (
            "This approval has already been processed. "
            f"Current status: {self.status.value}"
        )


class InvalidDecision(ApprovalWorkflowError):
    code = "invalid_decision"
    status_code = 400
    user_message = "Unknown decision, expected 'approve' or 'reject'"


class StoreUnavailable(ApprovalWorkflowError):
    """The checkpoint store could not be reached or rejected the request."""

    code = "store_unavailable"
    status_code = 503
    user_message = "The workflow store is temporarily unavailable"


class NotificationFailure(ApprovalWorkflowError):
    """A notifier could not deliver a message."""

    code = "notification_failure"
    status_code = 502
    user_message = "The notification could not be delivered"


class PaymentFailure(ApprovalWorkflowError):
    code = "payment_failure"
    status_code = 502
    user_message = "The expense was approved but payment could not be executed"


# ----------------------------------------------------------------------
# Store-level outcomes. The core translates these into the errors above.


class CheckpointAlreadyExists(Exception):
    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Checkpoint already exists: {workflow_id}")


class CheckpointNotFound(Exception):
    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Checkpoint not found: {workflow_id}")


class PreconditionFailed(Exception):
    """A conditional update saw a different status than expected."""

    def __init__(
        self,
        workflow_id: str,
        expected: "WorkflowStatus",
        actual: "WorkflowStatus",
    ) -> None:
        self.workflow_id = workflow_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checkpoint {workflow_id} is {actual.value}, expected {expected.value}"
        )


class PayloadDecodeError(ValueError):
    """A stored payload blob could not be decoded."""
