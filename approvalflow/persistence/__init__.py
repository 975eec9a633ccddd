"""Checkpoint persistence for approval workflows."""

from __future__ import annotations

from typing import Optional

from ..config import ApprovalConfig, load_config
from .codec import decode_payload, encode_payload
from .inmemory import InMemoryCheckpointStore
from .models import WorkflowCheckpoint
from .repository import CheckpointStore
from .sqlite import SQLiteCheckpointStore


def get_store(
    database_url: Optional[str] = None, config: Optional[ApprovalConfig] = None
) -> CheckpointStore:
    """Factory function to obtain a checkpoint store.

    The backend is selected from ``database_url``, which can be passed
    explicitly or come from the loaded configuration (itself overridable via
    ``APPROVALFLOW_DATABASE_URL`` or ``DATABASE_URL``). Without a database an
    in-memory store is returned. Every call builds a new store; callers own
    its lifetime.
    """

    config = config or load_config()
    database_url = database_url or config.database_url
    timeout = config.store_timeout

    if not database_url:
        return InMemoryCheckpointStore()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteCheckpointStore(path, timeout=timeout)
    if database_url.startswith(("postgres://", "postgresql://")):
        from .postgres import PostgresCheckpointStore

        return PostgresCheckpointStore(database_url, timeout=timeout)
    if database_url.startswith(("redis://", "rediss://")):
        from .redis import RedisCheckpointStore

        return RedisCheckpointStore(database_url, timeout=timeout)
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "CheckpointStore",
    "WorkflowCheckpoint",
    "InMemoryCheckpointStore",
    "SQLiteCheckpointStore",
    "decode_payload",
    "encode_payload",
    "get_store",
]
