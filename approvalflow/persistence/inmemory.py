"""In-memory implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from ..errors import CheckpointAlreadyExists, CheckpointNotFound, PreconditionFailed
from ..state_machine import IllegalTransitionError, WorkflowStatus
from ..utils.clock import Clock, utc_now
from .models import (
    WRITE_ONCE_FIELDS,
    WorkflowCheckpoint,
    checkpoint_from_record,
    checkpoint_to_record,
    update_values,
)
from .repository import CheckpointStore


class InMemoryCheckpointStore(CheckpointStore):
    """Store checkpoints in local memory.

    Useful for tests or when no database is configured. Records go through
    the same serialization as the durable backends, but nothing survives a
    process restart.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._records: Dict[str, dict[str, Optional[str]]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    # ------------------------------------------------------------------
    async def create(self, checkpoint: WorkflowCheckpoint) -> None:
        async with self._lock:
            if checkpoint.workflow_id in self._records:
                raise CheckpointAlreadyExists(checkpoint.workflow_id)
            self._records[checkpoint.workflow_id] = checkpoint_to_record(checkpoint)

    async def get(self, workflow_id: str) -> WorkflowCheckpoint | None:
        record = self._records.get(workflow_id)
        return checkpoint_from_record(record) if record else None

    async def update_status(
        self,
        workflow_id: str,
        new_status: WorkflowStatus,
        current_step: str,
        **fields: Any,
    ) -> WorkflowCheckpoint:
        async with self._lock:
            return self._apply(workflow_id, None, new_status, current_step, fields)

    async def update_status_if(
        self,
        workflow_id: str,
        expected_status: WorkflowStatus,
        new_status: WorkflowStatus,
        current_step: str,
        **fields: Any,
    ) -> WorkflowCheckpoint:
        async with self._lock:
            return self._apply(
                workflow_id, expected_status, new_status, current_step, fields
            )

    async def list_checkpoints(self) -> list[WorkflowCheckpoint]:
        return [checkpoint_from_record(r) for r in self._records.values()]

    # ------------------------------------------------------------------
    def _apply(
        self,
        workflow_id: str,
        expected: Optional[WorkflowStatus],
        new_status: WorkflowStatus,
        current_step: str,
        fields: dict,
    ) -> WorkflowCheckpoint:
        values = update_values(new_status, current_step, self._clock(), fields)
        record = self._records.get(workflow_id)
        if record is None:
            raise CheckpointNotFound(workflow_id)
        actual = WorkflowStatus(record["status"])
        if expected is not None and actual != expected:
            raise PreconditionFailed(workflow_id, expected, actual)
        if expected is None and actual.rank > new_status.rank:
            raise IllegalTransitionError(f"Illegal transition: {actual.value} -> {new_status.value}")
        for name in WRITE_ONCE_FIELDS:
            if name in values and record.get(name) is not None:
                values.pop(name)
        record.update(values)
        return checkpoint_from_record(record)
