"""Data models for persisted workflow checkpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel

from ..constants import STEP_INITIALIZATION
from ..contracts import ExpenseReport
from ..state_machine import SUSPENDED_STATE, WorkflowStatus
from ..utils.clock import ensure_utc, utc_now
from .codec import decode_payload, encode_payload

# Fields a status update may touch besides status/current_step/updated_at.
UPDATABLE_FIELDS = frozenset({"suspended_at", "resumed_at", "rejection_reason"})

# Only written while still unset.
WRITE_ONCE_FIELDS = frozenset({"suspended_at", "resumed_at"})

CHECKPOINT_COLUMNS = (
    "workflow_id",
    "subject_id",
    "status",
    "payload",
    "approval_token",
    "created_at",
    "updated_at",
    "suspended_at",
    "resumed_at",
    "rejection_reason",
    "current_step",
)


class WorkflowCheckpoint(BaseModel):
    """The durable record of a workflow's current state.

    Everything the resume phase needs lives here: no in-process state
    survives between submission and the approver's callback.
    """

    workflow_id: str
    subject_id: str
    status: WorkflowStatus = WorkflowStatus.SUBMITTED
    payload: ExpenseReport
    approval_token: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    suspended_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    current_step: str = STEP_INITIALIZATION

    @property
    def is_suspended(self) -> bool:
        return self.status == SUSPENDED_STATE

    def suspension_duration_seconds(self, now: Optional[datetime] = None) -> int:
        """Whole seconds spent suspended, up to ``resumed_at`` or ``now``."""
        if self.suspended_at is None:
            return 0
        end = self.resumed_at or now or utc_now()
        elapsed = (ensure_utc(end) - ensure_utc(self.suspended_at)).total_seconds()
        return max(0, int(elapsed))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value is not None else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return ensure_utc(datetime.fromisoformat(value)) if value else None


def checkpoint_to_record(checkpoint: WorkflowCheckpoint) -> dict[str, Optional[str]]:
    """Flatten a checkpoint into string columns for key-value backends."""
    return {
        "workflow_id": checkpoint.workflow_id,
        "subject_id": checkpoint.subject_id,
        "status": checkpoint.status.value,
        "payload": encode_payload(checkpoint.payload),
        "approval_token": checkpoint.approval_token,
        "created_at": _iso(checkpoint.created_at),
        "updated_at": _iso(checkpoint.updated_at),
        "suspended_at": _iso(checkpoint.suspended_at),
        "resumed_at": _iso(checkpoint.resumed_at),
        "rejection_reason": checkpoint.rejection_reason,
        "current_step": checkpoint.current_step,
    }


def checkpoint_from_record(record: dict) -> WorkflowCheckpoint:
    return WorkflowCheckpoint(
        workflow_id=record["workflow_id"],
        subject_id=record["subject_id"],
        status=WorkflowStatus(record["status"]),
        payload=decode_payload(record["payload"]),
        approval_token=record.get("approval_token") or None,
        created_at=_parse(record["created_at"]),
        updated_at=_parse(record["updated_at"]),
        suspended_at=_parse(record.get("suspended_at")),
        resumed_at=_parse(record.get("resumed_at")),
        rejection_reason=record.get("rejection_reason") or None,
        current_step=record.get("current_step") or STEP_INITIALIZATION,
    )


def update_values(
    new_status: WorkflowStatus,
    current_step: str,
    updated_at: datetime,
    fields: dict,
) -> dict[str, Optional[str]]:
    """Validate extra update fields and return the string columns to write."""
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    values: dict[str, Optional[str]] = {
        "status": new_status.value,
        "current_step": current_step,
        "updated_at": _iso(updated_at),
    }
    for name in ("suspended_at", "resumed_at"):
        if name in fields:
            values[name] = _iso(fields[name])
    if "rejection_reason" in fields:
        values["rejection_reason"] = fields["rejection_reason"]
    return values


def statuses_up_to(status: WorkflowStatus) -> list[WorkflowStatus]:
    """Statuses an unconditional update may move away from to reach ``status``.

    Status never moves backwards along the graph, so only checkpoints whose
    current rank is not above the target's rank qualify.
    """
    return [s for s in WorkflowStatus if s.rank <= status.rank]


def set_clause(
    values: dict[str, Any], placeholder: Callable[[int], str]
) -> tuple[str, list[Any]]:
    """Build an UPDATE ``SET`` clause; write-once columns keep existing values."""
    parts: list[str] = []
    params: list[Any] = []
    for idx, (column, value) in enumerate(values.items(), start=1):
        mark = placeholder(idx)
        if column in WRITE_ONCE_FIELDS:
            parts.append(f"{column} = COALESCE({column}, {mark})")
        else:
            parts.append(f"{column} = {mark}")
        params.append(value)
    return ", ".join(parts), params
