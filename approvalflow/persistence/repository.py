"""Checkpoint store abstraction."""

from __future__ import annotations

from typing import Any, Protocol

from ..state_machine import WorkflowStatus
from .models import WorkflowCheckpoint


class CheckpointStore(Protocol):
    """Protocol for checkpoint persistence backends.

    Checkpoints are keyed by ``workflow_id``. ``payload``, ``approval_token``,
    ``subject_id`` and ``created_at`` are write-once; ``suspended_at`` and
    ``resumed_at`` are only written while still unset. Backend failures are
    raised as :class:`~approvalflow.errors.StoreUnavailable`.
    """

    async def create(self, checkpoint: WorkflowCheckpoint) -> None:
        """Persist a new checkpoint.

        Raises:
            CheckpointAlreadyExists: if ``workflow_id`` is already taken.
        """

    async def get(self, workflow_id: str) -> WorkflowCheckpoint | None:
        """Return the checkpoint, or ``None`` when it does not exist."""

    async def update_status(
        self,
        workflow_id: str,
        new_status: WorkflowStatus,
        current_step: str,
        **fields: Any,
    ) -> WorkflowCheckpoint:
        """Set status, step and ``fields`` without an expected status; refresh ``updated_at``.

        Raises:
            CheckpointNotFound: if the checkpoint does not exist.
            IllegalTransitionError: if ``new_status`` ranks below the stored status.
        """

    async def update_status_if(
        self,
        workflow_id: str,
        expected_status: WorkflowStatus,
        new_status: WorkflowStatus,
        current_step: str,
        **fields: Any,
    ) -> WorkflowCheckpoint:
        """Like ``update_status`` but only when status equals ``expected_status``.

        Raises:
            CheckpointNotFound: if the checkpoint does not exist.
            PreconditionFailed: if the stored status differs.
        """

    async def list_checkpoints(self) -> list[WorkflowCheckpoint]:
        """Return all persisted checkpoints."""
