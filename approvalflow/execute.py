"""Decision executor: the resume phase of the approval workflow."""

from __future__ import annotations

import logging
from typing import Optional

from .constants import (
    DEFAULT_REJECTION_REASON,
    STEP_COMPLETED,
    STEP_PAYMENT_FAILED,
    STEP_PROCESSING_PAYMENT,
    STEP_REJECTED,
)
from .contracts import Decision, ResumeResult
from .errors import (
    AlreadyProcessed,
    CheckpointNotFound,
    NotificationFailure,
    PaymentFailure,
    PreconditionFailed,
    Unauthorized,
    WorkflowNotFound,
)
from .notify import BaseNotifier
from .payments import PaymentExecutor
from .persistence import CheckpointStore, WorkflowCheckpoint
from .security.tokens import verify_approval_token
from .state_machine import SUSPENDED_STATE, WorkflowStatus, ensure_transition
from .utils.clock import Clock, utc_now
from .utils.duration import format_duration

logger = logging.getLogger(__name__)


class DecisionExecutor:
    """Resumes suspended workflows from an approver's callback.

    Every state change is persisted before the side effect that follows it,
    so a crash between the two leaves a checkpoint that says what still has
    to happen. Approve and reject use a conditional update on
    ``PENDING_APPROVAL``: of two racing callbacks only one can win, the other
    gets :class:`AlreadyProcessed`.
    """

    def __init__(
        self,
        store: CheckpointStore,
        notifier: BaseNotifier,
        payments: PaymentExecutor,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._payments = payments
        self._clock = clock

    async def resume(
        self,
        workflow_id: str,
        token: Optional[str],
        decision: "Decision | str",
        reason: Optional[str] = None,
    ) -> ResumeResult:
        """Authenticate the callback and apply ``decision``.

        Raises:
            InvalidDecision: ``decision`` is neither approve nor reject.
            WorkflowNotFound: no checkpoint for ``workflow_id``.
            Unauthorized: ``token`` does not match the stored approval token.
            AlreadyProcessed: the checkpoint is no longer suspended.
            PaymentFailure: the approval was recorded but payment failed.
            StoreUnavailable: the checkpoint store failed.
        """
        decision = Decision.parse(decision)
        logger.info(f"Processing callback for workflow: {workflow_id}, action: {decision.value}")

        checkpoint = await self._store.get(workflow_id)
        if checkpoint is None:
            logger.warning(f"Workflow not found: {workflow_id}")
            raise WorkflowNotFound(workflow_id)

        try:
            verify_approval_token(checkpoint, token)
        except Unauthorized:
            logger.warning(f"Invalid approval token for workflow: {workflow_id}")
            raise

        if checkpoint.status != SUSPENDED_STATE:
            logger.warning(
                f"Workflow {workflow_id} is not in PENDING_APPROVAL state: "
                f"{checkpoint.status.value}"
            )
            raise AlreadyProcessed(workflow_id, checkpoint.status)

        now = self._clock()
        suspended_seconds = checkpoint.suspension_duration_seconds(now)
        suspension_duration = format_duration(suspended_seconds)
        logger.info(f"Workflow {workflow_id} was suspended for: {suspension_duration}")

        if decision is Decision.APPROVE:
            checkpoint = await self._approve(checkpoint, now)
            title = "Expense Approved"
            message = (
                f"The expense report for ${checkpoint.payload.amount} from "
                f"{checkpoint.payload.employee_name} has been approved. "
                "Payment processing has been initiated."
            )
        else:
            checkpoint = await self._reject(checkpoint, now, reason)
            title = "Expense Rejected"
            message = (
                f"The expense report for ${checkpoint.payload.amount} from "
                f"{checkpoint.payload.employee_name} has been rejected."
            )

        return ResumeResult(
            workflow_id=workflow_id,
            status=checkpoint.status,
            decision=decision,
            title=title,
            message=message,
            suspended_seconds=suspended_seconds,
            suspension_duration=suspension_duration,
        )

    async def suspension_status(self, workflow_id: str) -> tuple[WorkflowCheckpoint, int]:
        """Return the checkpoint and how long it has been (or was) suspended."""
        checkpoint = await self._store.get(workflow_id)
        if checkpoint is None:
            raise WorkflowNotFound(workflow_id)
        return checkpoint, checkpoint.suspension_duration_seconds(self._clock())

    async def mark_failed(self, workflow_id: str, current_step: str) -> WorkflowCheckpoint:
        """Move a non-terminal workflow to ``FAILED``."""
        checkpoint = await self._store.get(workflow_id)
        if checkpoint is None:
            raise WorkflowNotFound(workflow_id)
        if checkpoint.status.is_terminal:
            raise AlreadyProcessed(workflow_id, checkpoint.status)
        return await self._transition(
            checkpoint.workflow_id, checkpoint.status, WorkflowStatus.FAILED, current_step
        )

    # ------------------------------------------------------------------
    async def _approve(self, checkpoint: WorkflowCheckpoint, now) -> WorkflowCheckpoint:
        workflow_id = checkpoint.workflow_id
        report = checkpoint.payload
        logger.info(f"Approving expense report: {report.report_id} for ${report.amount}")

        checkpoint = await self._transition(
            workflow_id,
            WorkflowStatus.PENDING_APPROVAL,
            WorkflowStatus.APPROVED,
            STEP_PROCESSING_PAYMENT,
            resumed_at=now,
            rejection_reason=None,
        )

        try:
            reference = await self._payments.execute_payment(report)
        except Exception as exc:
            logger.error(f"Payment failed for workflow {workflow_id}: {exc}")
            await self._transition(
                workflow_id,
                WorkflowStatus.APPROVED,
                WorkflowStatus.FAILED,
                STEP_PAYMENT_FAILED,
            )
            raise PaymentFailure(f"Payment failed for workflow {workflow_id}") from exc

        checkpoint = await self._transition(
            workflow_id,
            WorkflowStatus.APPROVED,
            WorkflowStatus.PAYMENT_PROCESSED,
            STEP_COMPLETED,
        )
        logger.info(
            f"Expense report approved and payment {reference} processed "
            f"for workflow: {workflow_id}"
        )
        await self._notify_decision(checkpoint, approved=True)
        return checkpoint

    async def _reject(
        self, checkpoint: WorkflowCheckpoint, now, reason: Optional[str]
    ) -> WorkflowCheckpoint:
        workflow_id = checkpoint.workflow_id
        logger.info(f"Rejecting expense report: {checkpoint.payload.report_id}")

        checkpoint = await self._transition(
            workflow_id,
            WorkflowStatus.PENDING_APPROVAL,
            WorkflowStatus.REJECTED,
            STEP_REJECTED,
            resumed_at=now,
            rejection_reason=reason or DEFAULT_REJECTION_REASON,
        )
        logger.info(f"Expense report rejected for workflow: {workflow_id}")
        await self._notify_decision(checkpoint, approved=False)
        return checkpoint

    async def _transition(
        self,
        workflow_id: str,
        expected: WorkflowStatus,
        to: WorkflowStatus,
        current_step: str,
        **fields,
    ) -> WorkflowCheckpoint:
        ensure_transition(expected, to)
        try:
            return await self._store.update_status_if(
                workflow_id, expected, to, current_step, **fields
            )
        except PreconditionFailed as exc:
            logger.warning(
                f"Workflow {workflow_id} changed concurrently: "
                f"expected {exc.expected.value}, found {exc.actual.value}"
            )
            raise AlreadyProcessed(workflow_id, exc.actual) from exc
        except CheckpointNotFound as exc:
            raise WorkflowNotFound(workflow_id) from exc

    async def _notify_decision(self, checkpoint: WorkflowCheckpoint, approved: bool) -> None:
        try:
            await self._notifier.notify_decision(checkpoint, approved)
        except NotificationFailure as exc:
            logger.error(
                f"Failed to send decision notification for workflow "
                f"{checkpoint.workflow_id}: {exc}"
            )
