"""FastAPI app factory.

Endpoints are thin wrappers over the dispatcher and executor.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse

from . import __version__
from .config import ApprovalConfig, load_config
from .contracts import ExpenseSubmission, SubmissionResult
from .dispatch import ApprovalDispatcher
from .errors import ApprovalWorkflowError
from .execute import DecisionExecutor
from .notify import BaseNotifier, get_notifier
from .payments import PaymentExecutor, get_payment_executor
from .persistence import CheckpointStore, WorkflowCheckpoint, get_store
from .rendering import render_error_page, render_success_page
from .utils.duration import format_duration

logger = logging.getLogger(__name__)

MISSING_PARAMETERS = "Missing required parameters"


def status_view(checkpoint: WorkflowCheckpoint, suspended_seconds: int) -> dict[str, Any]:
    """Public JSON view of a checkpoint. The approval token is left out."""
    report = checkpoint.payload
    return {
        "workflowId": checkpoint.workflow_id,
        "reportId": checkpoint.subject_id,
        "status": checkpoint.status.value,
        "currentStep": checkpoint.current_step,
        "employeeName": report.employee_name,
        "managerEmail": report.manager_email,
        "amount": str(report.amount),
        "createdAt": checkpoint.created_at.isoformat(),
        "updatedAt": checkpoint.updated_at.isoformat(),
        "suspendedAt": checkpoint.suspended_at.isoformat() if checkpoint.suspended_at else None,
        "resumedAt": checkpoint.resumed_at.isoformat() if checkpoint.resumed_at else None,
        "rejectionReason": checkpoint.rejection_reason,
        "suspendedSeconds": suspended_seconds,
        "suspensionDuration": format_duration(suspended_seconds),
    }


def create_app(
    config: Optional[ApprovalConfig] = None,
    store: Optional[CheckpointStore] = None,
    notifier: Optional[BaseNotifier] = None,
    payments: Optional[PaymentExecutor] = None,
) -> FastAPI:
    config = config or load_config()
    store = store or get_store(config=config)
    notifier = notifier or get_notifier(config=config)
    payments = payments or get_payment_executor(config)

    dispatcher = ApprovalDispatcher(
        store, notifier, fail_on_notification_error=config.fail_on_notification_error
    )
    executor = DecisionExecutor(store, notifier, payments)

    app = FastAPI(
        title="approvalflow",
        version=__version__,
        description="Suspend and resume expense approval workflows.",
    )
    app.state.config = config
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.executor = executor

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/expenses", response_model=SubmissionResult)
    async def submit_expense(submission: ExpenseSubmission) -> SubmissionResult:
        try:
            return await dispatcher.submit(submission)
        except ApprovalWorkflowError as e:
            logger.error(f"Error processing expense submission: {e}")
            raise HTTPException(status_code=e.status_code, detail=e.user_message) from e

    @app.get("/approval", response_class=HTMLResponse)
    async def approval_callback(
        workflow_id: Optional[str] = Query(None, alias="workflowId"),
        token: Optional[str] = Query(None),
        action: Optional[str] = Query(None),
        reason: Optional[str] = Query(None),
    ) -> HTMLResponse:
        if not workflow_id or not token or not action:
            return HTMLResponse(render_error_page(MISSING_PARAMETERS), status_code=400)
        try:
            result = await executor.resume(workflow_id, token, action, reason=reason)
        except ApprovalWorkflowError as e:
            return HTMLResponse(render_error_page(e.user_message), status_code=e.status_code)
        except Exception as e:
            logger.exception(f"Unexpected error processing callback for {workflow_id}: {e}")
            return HTMLResponse(
                render_error_page(ApprovalWorkflowError.user_message), status_code=500
            )
        return HTMLResponse(
            render_success_page(result.title, result.message, result.suspension_duration)
        )

    @app.get("/workflows/{workflow_id}")
    async def get_workflow(workflow_id: str) -> dict[str, Any]:
        try:
            checkpoint, seconds = await executor.suspension_status(workflow_id)
        except ApprovalWorkflowError as e:
            raise HTTPException(status_code=e.status_code, detail=e.user_message) from e
        return status_view(checkpoint, seconds)

    return app
