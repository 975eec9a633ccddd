"""Identifiers and approval tokens for resume callbacks."""

from __future__ import annotations

import hmac
import secrets
import uuid
from typing import TYPE_CHECKING, Optional

from ..constants import WORKFLOW_ID_PREFIX
from ..errors import Unauthorized

if TYPE_CHECKING:
    from ..persistence.models import WorkflowCheckpoint


def new_report_id() -> str:
    return str(uuid.uuid4())


def workflow_id_for(report_id: str) -> str:
    return f"{WORKFLOW_ID_PREFIX}{report_id}"


def new_approval_token() -> str:
    """Return a 128-bit random token, hex encoded."""
    return secrets.token_hex(16)


def tokens_match(expected: Optional[str], presented: Optional[str]) -> bool:
    """Compare tokens in constant time; a missing stored token never matches."""
    if not expected or presented is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


def verify_approval_token(checkpoint: "WorkflowCheckpoint", token: Optional[str]) -> None:
    """Raise :class:`Unauthorized` unless ``token`` matches the checkpoint."""
    if not tokens_match(checkpoint.approval_token, token):
        raise Unauthorized(f"Invalid approval token for workflow {checkpoint.workflow_id}")
