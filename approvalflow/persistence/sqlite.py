"""SQLite implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

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


class SQLiteCheckpointStore(CheckpointStore):
    """Persist checkpoints using SQLite."""

    def __init__(
        self, db_path: str | Path, timeout: float = 5.0, clock: Clock = utc_now
    ):
        self.db_path = str(db_path)
        self._clock = clock
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(
                self.db_path, timeout=timeout, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
            self._ensure_schema()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Cannot open SQLite store {self.db_path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                workflow_id TEXT PRIMARY KEY,
                subject_id TEXT NOT NULL,
                status TEXT NOT NULL,
                payload TEXT NOT NULL,
                approval_token TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                suspended_at TEXT,
                resumed_at TEXT,
                rejection_reason TEXT,
                current_step TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _fetchone(self, workflow_id: str) -> Optional[sqlite3.Row]:
        cur = self._conn.execute(
            f"SELECT {', '.join(CHECKPOINT_COLUMNS)} FROM checkpoints WHERE workflow_id = ?",
            (workflow_id,),
        )
        return cur.fetchone()

    def _insert(self, record: dict[str, Optional[str]]) -> None:
        with self._lock:
            try:
                self._conn.execute(
                    f"INSERT INTO checkpoints ({', '.join(CHECKPOINT_COLUMNS)}) "
                    f"VALUES ({', '.join('?' for _ in CHECKPOINT_COLUMNS)})",
                    tuple(record[c] for c in CHECKPOINT_COLUMNS),
                )
                self._conn.commit()
            except sqlite3.IntegrityError:
                self._conn.rollback()
                raise CheckpointAlreadyExists(record["workflow_id"]) from None

    def _select(self, workflow_id: str) -> Optional[dict]:
        with self._lock:
            row = self._fetchone(workflow_id)
        return dict(row) if row else None

    def _select_all(self) -> list[dict]:
        with self._lock:
            cur = self._conn.execute(
                f"SELECT {', '.join(CHECKPOINT_COLUMNS)} FROM checkpoints ORDER BY created_at"
            )
            return [dict(r) for r in cur.fetchall()]

    def _update(
        self,
        workflow_id: str,
        expected: Optional[WorkflowStatus],
        values: dict[str, Optional[str]],
    ) -> dict:
        clause, params = set_clause(values, lambda _: "?")
        query = f"UPDATE checkpoints SET {clause} WHERE workflow_id = ?"
        params.append(workflow_id)
        if expected is not None:
            query += " AND status = ?"
            params.append(expected.value)
        else:
            allowed = statuses_up_to(WorkflowStatus(values["status"]))
            query += f" AND status IN ({', '.join('?' for _ in allowed)})"
            params.extend(s.value for s in allowed)
        with self._lock:
            cur = self._conn.execute(query, params)
            self._conn.commit()
            row = self._fetchone(workflow_id)
        if row is None:
            raise CheckpointNotFound(workflow_id)
        if cur.rowcount == 0:
            actual = WorkflowStatus(row["status"])
            if expected is not None:
                raise PreconditionFailed(workflow_id, expected, actual)
            raise IllegalTransitionError(
                f"Illegal transition: {actual.value} -> {values['status']}"
            )
        return dict(row)

    async def _run(self, func, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            logger.error(f"SQLite store error on {self.db_path}: {exc}")
            raise StoreUnavailable(str(exc)) from exc

    # ------------------------------------------------------------------
    # Store API
    async def create(self, checkpoint: WorkflowCheckpoint) -> None:
        await self._run(self._insert, checkpoint_to_record(checkpoint))

    async def get(self, workflow_id: str) -> WorkflowCheckpoint | None:
        record = await self._run(self._select, workflow_id)
        return checkpoint_from_record(record) if record else None

    async def update_status(
        self,
        workflow_id: str,
        new_status: WorkflowStatus,
        current_step: str,
        **fields: Any,
    ) -> WorkflowCheckpoint:
        values = update_values(new_status, current_step, self._clock(), fields)
        record = await self._run(self._update, workflow_id, None, values)
        return checkpoint_from_record(record)

    async def update_status_if(
        self,
        workflow_id: str,
        expected_status: WorkflowStatus,
        new_status: WorkflowStatus,
        current_step: str,
        **fields: Any,
    ) -> WorkflowCheckpoint:
        values = update_values(new_status, current_step, self._clock(), fields)
        record = await self._run(self._update, workflow_id, expected_status, values)
        return checkpoint_from_record(record)

    async def list_checkpoints(self) -> list[WorkflowCheckpoint]:
        records = await self._run(self._select_all)
        return [checkpoint_from_record(r) for r in records]

    def close(self) -> None:
        self._conn.close()
