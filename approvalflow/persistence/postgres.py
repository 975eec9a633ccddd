"""PostgreSQL implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import asyncpg

from ..errors import (
    CheckpointAlreadyExists,
    CheckpointNotFound,
    PreconditionFailed,
    StoreUnavailable,
)
from ..state_machine import IllegalTransitionError, WorkflowStatus
from ..utils.clock import Clock, utc_now
from .models import (
    CHECKPOINT_COLUMNS,
    WorkflowCheckpoint,
    checkpoint_from_record,
    checkpoint_to_record,
    set_clause,
    statuses_up_to,
    update_values,
)
from .repository import CheckpointStore

logger = logging.getLogger(__name__)

_TIMESTAMP_COLUMNS = ("created_at", "updated_at", "suspended_at", "resumed_at")


def _to_db(values: dict[str, Optional[str]]) -> dict[str, Any]:
    out: dict[str, Any] = dict(values)
    for column in _TIMESTAMP_COLUMNS:
        if out.get(column):
            out[column] = datetime.fromisoformat(out[column])
    return out


def _from_db(row: asyncpg.Record) -> dict[str, Optional[str]]:
    record = dict(row)
    for column in _TIMESTAMP_COLUMNS:
        if record.get(column) is not None:
            record[column] = record[column].isoformat()
    return record


class PostgresCheckpointStore(CheckpointStore):
    """Persist checkpoints using PostgreSQL.

    The conditional update is a single ``UPDATE ... WHERE status = $n``
    statement, so two racing resume calls cannot both win.
    """

    def __init__(self, dsn: str, timeout: float = 5.0, clock: Clock = utc_now):
        self._dsn = dsn
        self._timeout = timeout
        self._clock = clock
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(
                self._dsn, timeout=self._timeout, command_timeout=self._timeout
            )
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as exc:
            logger.error(f"Cannot connect to PostgreSQL checkpoint store: {exc}")
            raise StoreUnavailable(str(exc)) from exc
        if not self._initialized:
            try:
                await self._ensure_schema(conn)
            except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as exc:
                await conn.close()
                logger.error(f"Cannot create PostgreSQL checkpoint schema: {exc}")
                raise StoreUnavailable(str(exc)) from exc
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                workflow_id TEXT PRIMARY KEY,
                subject_id TEXT NOT NULL,
                status TEXT NOT NULL,
                payload JSONB NOT NULL,
                approval_token TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                suspended_at TIMESTAMPTZ,
                resumed_at TIMESTAMPTZ,
                rejection_reason TEXT,
                current_step TEXT NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    async def create(self, checkpoint: WorkflowCheckpoint) -> None:
        values = _to_db(checkpoint_to_record(checkpoint))
        placeholders = ", ".join(f"${i}" for i in range(1, len(CHECKPOINT_COLUMNS) + 1))
        conn = await self._connect()
        try:
            await conn.execute(
                f"INSERT INTO checkpoints ({', '.join(CHECKPOINT_COLUMNS)}) VALUES ({placeholders})",
                *(values[c] for c in CHECKPOINT_COLUMNS),
            )
        except asyncpg.UniqueViolationError:
            raise CheckpointAlreadyExists(checkpoint.workflow_id) from None
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as exc:
            raise StoreUnavailable(str(exc)) from exc
        finally:
            await conn.close()

    async def get(self, workflow_id: str) -> WorkflowCheckpoint | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {', '.join(CHECKPOINT_COLUMNS)} FROM checkpoints WHERE workflow_id = $1",
                workflow_id,
            )
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as exc:
            raise StoreUnavailable(str(exc)) from exc
        finally:
            await conn.close()
        return checkpoint_from_record(_from_db(row)) if row else None

    async def update_status(
        self,
        workflow_id: str,
        new_status: WorkflowStatus,
        current_step: str,
        **fields: Any,
    ) -> WorkflowCheckpoint:
        return await self._update(workflow_id, None, new_status, current_step, fields)

    async def update_status_if(
        self,
        workflow_id: str,
        expected_status: WorkflowStatus,
        new_status: WorkflowStatus,
        current_step: str,
        **fields: Any,
    ) -> WorkflowCheckpoint:
        return await self._update(
            workflow_id, expected_status, new_status, current_step, fields
        )

    async def list_checkpoints(self) -> list[WorkflowCheckpoint]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                f"SELECT {', '.join(CHECKPOINT_COLUMNS)} FROM checkpoints ORDER BY created_at"
            )
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as exc:
            raise StoreUnavailable(str(exc)) from exc
        finally:
            await conn.close()
        return [checkpoint_from_record(_from_db(r)) for r in rows]

    # ------------------------------------------------------------------
    async def _update(
        self,
        workflow_id: str,
        expected: Optional[WorkflowStatus],
        new_status: WorkflowStatus,
        current_step: str,
        fields: dict,
    ) -> WorkflowCheckpoint:
        values = _to_db(update_values(new_status, current_step, self._clock(), fields))
        clause, params = set_clause(values, lambda i: f"${i}")
        params.append(workflow_id)
        query = f"UPDATE checkpoints SET {clause} WHERE workflow_id = ${len(params)}"
        if expected is not None:
            params.append(expected.value)
            query += f" AND status = ${len(params)}"
        else:
            params.append([s.value for s in statuses_up_to(new_status)])
            query += f" AND status = ANY(${len(params)})"
        query += f" RETURNING {', '.join(CHECKPOINT_COLUMNS)}"

        conn = await self._connect()
        try:
            row = await conn.fetchrow(query, *params)
            current = None
            if row is None:
                current = await conn.fetchval(
                    "SELECT status FROM checkpoints WHERE workflow_id = $1", workflow_id
                )
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as exc:
            raise StoreUnavailable(str(exc)) from exc
        finally:
            await conn.close()

        if row is None:
            if current is None:
                raise CheckpointNotFound(workflow_id)
            if expected is None:
                raise IllegalTransitionError(
                    f"Illegal transition: {current} -> {new_status.value}"
                )
            raise PreconditionFailed(workflow_id, expected, WorkflowStatus(current))
        return checkpoint_from_record(_from_db(row))
