"""Base notifier interface for approval workflow messages."""

from __future__ import annotations

import abc
from typing import Optional

from ..persistence.models import WorkflowCheckpoint
from .messages import NotificationMessage, approval_request_message, decision_message


class BaseNotifier(metaclass=abc.ABCMeta):
    """Abstract base notifier.

    Subclasses implement :meth:`deliver`; delivery errors must be raised as
    :class:`~approvalflow.errors.NotificationFailure`.
    """

    def __init__(
        self,
        callback_base_url: str = "http://localhost:8000",
        from_email: Optional[str] = None,
    ) -> None:
        self.callback_base_url = callback_base_url
        self.from_email = from_email

    async def notify_approval_requested(self, checkpoint: WorkflowCheckpoint) -> None:
        """Send the approver a message carrying the approve/reject links."""
        message = approval_request_message(
            checkpoint, self.callback_base_url, from_email=self.from_email
        )
        await self.deliver(message)

    async def notify_decision(self, checkpoint: WorkflowCheckpoint, approved: bool) -> None:
        """Tell the requester about the approver's decision."""
        await self.deliver(decision_message(checkpoint, approved, from_email=self.from_email))

    @abc.abstractmethod
    async def deliver(self, message: NotificationMessage) -> None:
        raise NotImplementedError
