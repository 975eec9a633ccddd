"""Notifier that writes messages to the log."""

from __future__ import annotations

import logging

from .base import BaseNotifier
from .messages import NotificationMessage

logger = logging.getLogger(__name__)


class LogNotifier(BaseNotifier):
    """Logs rendered messages. Handy for local runs without a mail relay."""

    async def deliver(self, message: NotificationMessage) -> None:
        logger.info(
            f"[{message.kind}] to={message.to} subject={message.subject!r} "
            f"workflow_id={message.workflow_id}"
        )
        logger.debug(message.text)
