"""Request, payload and result contracts for the approval workflow."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import InvalidDecision
from .state_machine import WorkflowStatus

CENTS = Decimal("0.01")


class ExpenseSubmission(BaseModel):
    """Inbound expense report as submitted by an employee.

    Accepts both snake_case and the camelCase field names used by the
    JSON API (``employeeName``, ``managerEmail`` ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    employee_name: str = Field(min_length=1)
    manager_email: str = Field(min_length=3)
    amount: Decimal = Field(gt=0)
    employee_id: Optional[str] = None
    employee_email: Optional[str] = None
    manager_id: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _cents(cls, value: Decimal) -> Decimal:
        # 150.00 arrives from JSON as 150.0; keep at least two places.
        if value.as_tuple().exponent > -2:
            value = value.quantize(CENTS)
        return value


class ExpenseReport(ExpenseSubmission):
    """Snapshot of the business data needed to finish the workflow.

    Captured once when the workflow is created and never mutated afterwards.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    report_id: str
    submitted_at: datetime

    @classmethod
    def from_submission(
        cls, submission: ExpenseSubmission, report_id: str, submitted_at: datetime
    ) -> "ExpenseReport":
        return cls(
            report_id=report_id,
            submitted_at=submitted_at,
            **submission.model_dump(),
        )


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @classmethod
    def parse(cls, value: "str | Decision") -> "Decision":
        if isinstance(value, Decision):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            raise InvalidDecision(f"Unknown decision: {value!r}") from None


class SubmissionResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    workflow_id: str
    report_id: str
    status: WorkflowStatus
    message: str
    info: str
    notification_sent: bool = True


class ResumeResult(BaseModel):
    """Outcome of a successful resume callback."""

    workflow_id: str
    status: WorkflowStatus
    decision: Decision
    title: str
    message: str
    suspended_seconds: int
    suspension_duration: str
