"""Redis implementation of the checkpoint store.

Each checkpoint is a hash under ``approvalflow:checkpoint:<workflow_id>``.
Creation and conditional updates run inside ``WATCH``/``MULTI`` transactions.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from ..errors import (
    CheckpointAlreadyExists,
    CheckpointNotFound,
    PreconditionFailed,
    StoreUnavailable,
)
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

logger = logging.getLogger(__name__)

KEY_PREFIX = "approvalflow:checkpoint:"
INDEX_KEY = "approvalflow:checkpoints"

class RedisCheckpointStore(CheckpointStore):
    """Persist checkpoints in Redis hashes."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        timeout: float = 5.0,
        clock: Clock = utc_now,
        max_attempts: int = 5,
    ) -> None:
        self.url = url
        self._clock = clock
        self._max_attempts = max_attempts
        self._redis = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )

    async def disconnect(self) -> None:
        await self._redis.aclose()

    @staticmethod
    def _key(workflow_id: str) -> str:
        return f"{KEY_PREFIX}{workflow_id}"

    # ------------------------------------------------------------------
    async def create(self, checkpoint: WorkflowCheckpoint) -> None:
        key = self._key(checkpoint.workflow_id)
        mapping = {k: v for k, v in checkpoint_to_record(checkpoint).items() if v is not None}
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                if await pipe.exists(key):
                    raise CheckpointAlreadyExists(checkpoint.workflow_id)
                pipe.multi()
                pipe.hset(key, mapping=mapping)
                pipe.sadd(INDEX_KEY, checkpoint.workflow_id)
                await pipe.execute()
        except WatchError:
            raise CheckpointAlreadyExists(checkpoint.workflow_id) from None
        except RedisError as exc:
            logger.error(f"Redis store error creating {checkpoint.workflow_id}: {exc}")
            raise StoreUnavailable(str(exc)) from exc

    async def get(self, workflow_id: str) -> WorkflowCheckpoint | None:
        try:
            record = await self._redis.hgetall(self._key(workflow_id))
        except RedisError as exc:
            raise StoreUnavailable(str(exc)) from exc
        return checkpoint_from_record(record) if record else None

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
        try:
            ids = await self._redis.smembers(INDEX_KEY)
            records = [await self._redis.hgetall(self._key(i)) for i in sorted(ids)]
        except RedisError as exc:
            raise StoreUnavailable(str(exc)) from exc
        checkpoints = [checkpoint_from_record(r) for r in records if r]
        return sorted(checkpoints, key=lambda c: c.created_at)

    # ------------------------------------------------------------------
    async def _update(
        self,
        workflow_id: str,
        expected: Optional[WorkflowStatus],
        new_status: WorkflowStatus,
        current_step: str,
        fields: dict,
    ) -> WorkflowCheckpoint:
        values = update_values(new_status, current_step, self._clock(), fields)
        key = self._key(workflow_id)
        try:
            for _ in range(self._max_attempts):
                try:
                    return await self._try_update(key, workflow_id, expected, values)
                except WatchError:
                    # Another writer touched the key; re-read and re-check.
                    continue
        except RedisError as exc:
            logger.error(f"Redis store error updating {workflow_id}: {exc}")
            raise StoreUnavailable(str(exc)) from exc
        raise StoreUnavailable(f"Too much contention updating {workflow_id}")

    async def _try_update(
        self,
        key: str,
        workflow_id: str,
        expected: Optional[WorkflowStatus],
        values: dict[str, Optional[str]],
    ) -> WorkflowCheckpoint:
        async with self._redis.pipeline(transaction=True) as pipe:
            await pipe.watch(key)
            record = await pipe.hgetall(key)
            if not record:
                raise CheckpointNotFound(workflow_id)
            actual = WorkflowStatus(record["status"])
            if expected is not None and actual != expected:
                raise PreconditionFailed(workflow_id, expected, actual)
            if expected is None and actual.rank > WorkflowStatus(values["status"]).rank:
                raise IllegalTransitionError(
                    f"Illegal transition: {actual.value} -> {values['status']}"
                )

            to_set = {}
            to_delete = []
            for name, value in values.items():
                if name in WRITE_ONCE_FIELDS and record.get(name):
                    continue
                if value is None:
                    to_delete.append(name)
                else:
                    to_set[name] = value

            pipe.multi()
            pipe.hset(key, mapping=to_set)
            if to_delete:
                pipe.hdel(key, *to_delete)
            await pipe.execute()

        record.update(to_set)
        for name in to_delete:
            record.pop(name, None)
        return checkpoint_from_record(record)
