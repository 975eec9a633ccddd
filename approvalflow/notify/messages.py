"""Rendering of approval request and decision notice messages."""

from __future__ import annotations

from html import escape
from typing import Literal, Optional
from urllib.parse import urlencode

from pydantic import BaseModel

from ..contracts import Decision
from ..persistence.models import WorkflowCheckpoint


class NotificationMessage(BaseModel):
    """A rendered message ready for delivery."""

    kind: Literal["approval_request", "decision"]
    workflow_id: str
    to: Optional[str]
    from_email: Optional[str] = None
    subject: str
    text: str
    html: Optional[str] = None
    approve_url: Optional[str] = None
    reject_url: Optional[str] = None
    approved: Optional[bool] = None


def callback_url(base_url: str, workflow_id: str, token: str, decision: Decision) -> str:
    query = urlencode({"workflowId": workflow_id, "token": token, "action": decision.value})
    return f"{base_url.rstrip('/')}/approval?{query}"


def approval_request_message(
    checkpoint: WorkflowCheckpoint, base_url: str, from_email: Optional[str] = None
) -> NotificationMessage:
    report = checkpoint.payload
    token = checkpoint.approval_token or ""
    approve_url = callback_url(base_url, checkpoint.workflow_id, token, Decision.APPROVE)
    reject_url = callback_url(base_url, checkpoint.workflow_id, token, Decision.REJECT)

    rows = [
        ("Employee", report.employee_name),
        ("Amount", f"${report.amount}"),
        ("Category", report.category or ""),
        ("Description", report.description or ""),
        ("Submitted", report.submitted_at.isoformat()),
    ]
    text = "Expense Report Approval Request\n\n"
    text += "".join(f"{label}: {value}\n" for label, value in rows)
    text += f"\nTo APPROVE, click: {approve_url}\nTo REJECT, click: {reject_url}\n"

    table = "".join(
        f"<tr><td style='padding: 8px; font-weight: bold;'>{label}:</td>"
        f"<td style='padding: 8px;'>{escape(value)}</td></tr>"
        for label, value in rows
    )
    html = (
        "<html><body>"
        "<h2>Expense Report Approval Request</h2>"
        "<p>A new expense report requires your approval:</p>"
        f"<table style='border-collapse: collapse; margin: 20px 0;'>{table}</table>"
        "<div style='margin: 30px 0;'>"
        f"<a href='{escape(approve_url)}' style='background-color: #28a745; color: white; "
        "padding: 12px 30px; text-decoration: none; border-radius: 5px; "
        "margin-right: 10px;'>&#10003; APPROVE</a>"
        f"<a href='{escape(reject_url)}' style='background-color: #dc3545; color: white; "
        "padding: 12px 30px; text-decoration: none; border-radius: 5px;'>&#10007; REJECT</a>"
        "</div>"
        "<p style='color: #666; font-size: 12px;'>Click one of the buttons above to "
        "approve or reject this expense report.</p>"
        "</body></html>"
    )

    return NotificationMessage(
        kind="approval_request",
        workflow_id=checkpoint.workflow_id,
        to=report.manager_email,
        from_email=from_email,
        subject=f"Expense Approval Required: ${report.amount} from {report.employee_name}",
        text=text,
        html=html,
        approve_url=approve_url,
        reject_url=reject_url,
    )


def decision_message(
    checkpoint: WorkflowCheckpoint, approved: bool, from_email: Optional[str] = None
) -> NotificationMessage:
    report = checkpoint.payload
    if approved:
        subject = f"Expense Report Approved: ${report.amount}"
        text = (
            f"Good news! Your expense report for ${report.amount} has been approved "
            "by your manager. Payment processing will begin shortly."
        )
    else:
        subject = f"Expense Report Rejected: ${report.amount}"
        reason = checkpoint.rejection_reason or "No reason provided"
        text = f"Your expense report for ${report.amount} has been rejected. Reason: {reason}"

    return NotificationMessage(
        kind="decision",
        workflow_id=checkpoint.workflow_id,
        to=report.employee_email,
        from_email=from_email,
        subject=subject,
        text=text,
        approved=approved,
    )
