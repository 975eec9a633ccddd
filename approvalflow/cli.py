"""Command line interface for approvalflow workflows."""

from __future__ import annotations

import asyncio
import logging
from typing import NoReturn, Optional

import typer
from pydantic import ValidationError

from .config import load_config
from .contracts import ExpenseSubmission
from .dispatch import ApprovalDispatcher
from .errors import ApprovalWorkflowError
from .execute import DecisionExecutor
from .notify import get_notifier
from .payments import get_payment_executor
from .persistence import get_store
from .utils.duration import format_duration

app = typer.Typer(help="CLI for approvalflow expense approval workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for inspecting workflows")

app.add_typer(workflow_app, name="workflow")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (default: config log_level)"
    ),
) -> None:
    """approvalflow CLI entry point."""
    level = (log_level or load_config().log_level).upper()
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def _dispatcher() -> ApprovalDispatcher:
    config = load_config()
    return ApprovalDispatcher(
        get_store(config=config),
        get_notifier(config=config),
        fail_on_notification_error=config.fail_on_notification_error,
    )


def _executor() -> DecisionExecutor:
    config = load_config()
    return DecisionExecutor(
        get_store(config=config),
        get_notifier(config=config),
        get_payment_executor(config),
    )


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


@app.command("submit")
def submit(
    employee_name: str = typer.Option(..., help="Name of the employee"),
    manager_email: str = typer.Option(..., help="Address the approval request goes to"),
    amount: str = typer.Option(..., help="Expense amount, e.g. 125.50"),
    employee_id: Optional[str] = typer.Option(None),
    employee_email: Optional[str] = typer.Option(None),
    manager_id: Optional[str] = typer.Option(None),
    category: Optional[str] = typer.Option(None),
    description: Optional[str] = typer.Option(None),
) -> None:
    """
    Submit an expense report and suspend it until the manager decides.

    Example:
        approvalflow submit --employee-name "John Doe" \\
            --manager-email manager@example.com --amount 125.50
        # Output: Expense report submitted successfully
        #         Workflow ID: workflow-3f0c...
    """
    try:
        submission = ExpenseSubmission(
            employee_name=employee_name,
            manager_email=manager_email,
            amount=amount,
            employee_id=employee_id,
            employee_email=employee_email,
            manager_id=manager_id,
            category=category,
            description=description,
        )
    except ValidationError as exc:
        _fail(f"Invalid expense report: {exc}")

    try:
        result = asyncio.run(_dispatcher().submit(submission))
    except ApprovalWorkflowError as exc:
        _fail(exc.user_message)

    typer.echo(result.message)
    typer.echo(f"Workflow ID: {result.workflow_id}")
    typer.echo(f"Report ID: {result.report_id}")
    typer.echo(f"Status: {result.status.value}")
    typer.echo(result.info)


@app.command("resume")
def resume(
    workflow_id: str,
    token: str = typer.Option(..., help="Approval token from the callback link"),
    decision: str = typer.Option(..., help="approve or reject"),
    reason: Optional[str] = typer.Option(None, help="Rejection reason"),
) -> None:
    """Resume a suspended workflow with the manager's decision."""
    try:
        result = asyncio.run(
            _executor().resume(workflow_id, token, decision, reason=reason)
        )
    except ApprovalWorkflowError as exc:
        _fail(exc.user_message)

    typer.echo(result.title)
    typer.echo(result.message)
    typer.echo(f"Workflow was suspended for: {result.suspension_duration}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    port: int = typer.Option(8000, help="Port to listen on"),
) -> None:
    """Run the HTTP API (submission, approval callback, status)."""
    import uvicorn

    from .server import create_app

    uvicorn.run(create_app(), host=host, port=port)


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all workflows with their current status.

    Example:
        approvalflow workflow list
        # Output: workflow-3f0c...    PENDING_APPROVAL    AWAITING_MANAGER_APPROVAL
    """
    store = get_store()
    try:
        checkpoints = asyncio.run(store.list_checkpoints())
    except ApprovalWorkflowError as exc:
        _fail(exc.user_message)
    if not checkpoints:
        typer.echo("No workflows found")
        return
    for cp in checkpoints:
        typer.echo(f"{cp.workflow_id}\t{cp.status.value}\t{cp.current_step}")


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """
    Show the state of a single workflow.

    Prints status, step, the expense summary and how long the workflow has
    been (or was) suspended. The approval token is never printed.
    """
    try:
        checkpoint, seconds = asyncio.run(_executor().suspension_status(workflow_id))
    except ApprovalWorkflowError as exc:
        _fail(exc.user_message)

    report = checkpoint.payload
    typer.echo(f"Workflow {checkpoint.workflow_id}: {checkpoint.status.value}")
    typer.echo(f"Step: {checkpoint.current_step}")
    typer.echo(f"Expense: ${report.amount} from {report.employee_name}")
    typer.echo(f"Manager: {report.manager_email}")
    if checkpoint.suspended_at:
        typer.echo(f"Suspended for: {format_duration(seconds)}")
    if checkpoint.rejection_reason:
        typer.echo(f"Rejection reason: {checkpoint.rejection_reason}")


@workflow_app.command("resend")
def workflow_resend(workflow_id: str) -> None:
    """Re-send the approval request for a workflow still awaiting a decision."""
    try:
        asyncio.run(_dispatcher().resend_approval_request(workflow_id))
    except ApprovalWorkflowError as exc:
        _fail(exc.user_message)
    typer.echo(f"Approval request re-sent for workflow: {workflow_id}")


if __name__ == "__main__":
    app()
