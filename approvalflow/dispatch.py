"""Approval dispatcher: the submission phase of the workflow."""

from __future__ import annotations

import logging

from .constants import (
    STEP_AWAITING_APPROVAL,
    STEP_EXPENSE_SUBMITTED,
    STEP_NOTIFICATION_FAILED,
)
from .contracts import ExpenseReport, ExpenseSubmission, SubmissionResult
from .errors import (
    AlreadyProcessed,
    CheckpointNotFound,
    NotificationFailure,
    PreconditionFailed,
    WorkflowNotFound,
)
from .notify import BaseNotifier
from .persistence import CheckpointStore, WorkflowCheckpoint
from .security.tokens import new_approval_token, new_report_id, workflow_id_for
from .state_machine import WorkflowStatus
from .utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

SUBMITTED_MESSAGE = "Expense report submitted successfully"
SUSPENDED_INFO = (
    "Manager approval email sent. Workflow is now suspended until manager responds."
)
UNNOTIFIED_INFO = (
    "Workflow is suspended awaiting manager approval, but the approval email "
    "could not be sent. It can be re-sent later."
)


class ApprovalDispatcher:
    """Service responsible for starting new approval workflows.

    The checkpoint is written and suspended before the approver is notified,
    so every link that goes out refers to a checkpoint that can be validated
    later.
    """

    def __init__(
        self,
        store: CheckpointStore,
        notifier: BaseNotifier,
        clock: Clock = utc_now,
        fail_on_notification_error: bool = False,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock
        self._fail_on_notification_error = fail_on_notification_error

    async def submit(self, submission: ExpenseSubmission) -> SubmissionResult:
        """Create, persist and suspend a workflow for ``submission``.

        Returns:
            The workflow identifiers and the suspended status.

        Raises:
            StoreUnavailable: if the checkpoint could not be persisted. No
                notification is sent in that case.
            NotificationFailure: only when ``fail_on_notification_error`` is
                set; the checkpoint is then marked ``FAILED``.
        """
        now = self._clock()
        report_id = new_report_id()
        workflow_id = workflow_id_for(report_id)
        report = ExpenseReport.from_submission(submission, report_id, now)

        logger.info(
            f"Processing expense report: {report_id} from employee: {report.employee_name}"
        )

        checkpoint = WorkflowCheckpoint(
            workflow_id=workflow_id,
            subject_id=report_id,
            status=WorkflowStatus.SUBMITTED,
            payload=report,
            approval_token=new_approval_token(),
            created_at=now,
            updated_at=now,
            current_step=STEP_EXPENSE_SUBMITTED,
        )
        await self._store.create(checkpoint)
        logger.info(f"Workflow state saved: {workflow_id}")

        checkpoint = await self._store.update_status_if(
            workflow_id,
            WorkflowStatus.SUBMITTED,
            WorkflowStatus.PENDING_APPROVAL,
            STEP_AWAITING_APPROVAL,
            suspended_at=self._clock(),
        )
        logger.info(f"Workflow suspended, waiting for manager approval: {workflow_id}")

        notification_sent = await self._send_approval_request(checkpoint)
        return SubmissionResult(
            workflow_id=workflow_id,
            report_id=report_id,
            status=checkpoint.status,
            message=SUBMITTED_MESSAGE,
            info=SUSPENDED_INFO if notification_sent else UNNOTIFIED_INFO,
            notification_sent=notification_sent,
        )

    async def resend_approval_request(self, workflow_id: str) -> WorkflowCheckpoint:
        """Send the approval request again for a still-suspended workflow."""
        checkpoint = await self._store.get(workflow_id)
        if checkpoint is None:
            raise WorkflowNotFound(workflow_id)
        if not checkpoint.is_suspended:
            raise AlreadyProcessed(workflow_id, checkpoint.status)
        await self._notifier.notify_approval_requested(checkpoint)
        logger.info(f"Approval request re-sent for workflow: {workflow_id}")
        return checkpoint

    async def _send_approval_request(self, checkpoint: WorkflowCheckpoint) -> bool:
        try:
            await self._notifier.notify_approval_requested(checkpoint)
        except NotificationFailure as exc:
            logger.error(
                f"Failed to send approval request for workflow {checkpoint.workflow_id}: {exc}"
            )
            if self._fail_on_notification_error:
                await self._mark_failed(checkpoint.workflow_id)
                raise
            return False
        logger.info(f"Approval email sent to manager: {checkpoint.payload.manager_email}")
        return True

    async def _mark_failed(self, workflow_id: str) -> None:
        try:
            await self._store.update_status_if(
                workflow_id,
                WorkflowStatus.PENDING_APPROVAL,
                WorkflowStatus.FAILED,
                STEP_NOTIFICATION_FAILED,
            )
        except (PreconditionFailed, CheckpointNotFound) as exc:
            logger.warning(f"Could not mark workflow {workflow_id} as failed: {exc}")
