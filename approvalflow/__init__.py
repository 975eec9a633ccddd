"""approvalflow: durable suspend/resume workflows for expense approvals."""

from .contracts import Decision, ExpenseReport, ExpenseSubmission, ResumeResult, SubmissionResult
from .dispatch import ApprovalDispatcher
from .execute import DecisionExecutor
from .notify import get_notifier
from .payments import get_payment_executor
from .persistence import get_store
from .state_machine import WorkflowStatus

__version__ = "0.1.0"
__all__ = [
    "ApprovalDispatcher",
    "Decision",
    "DecisionExecutor",
    "ExpenseReport",
    "ExpenseSubmission",
    "ResumeResult",
    "SubmissionResult",
    "WorkflowStatus",
    "get_notifier",
    "get_payment_executor",
    "get_store",
]
