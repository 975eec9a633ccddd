"""Webhook notifier posting rendered messages to an HTTP endpoint."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..errors import NotificationFailure
from .base import BaseNotifier
from .messages import NotificationMessage

logger = logging.getLogger(__name__)


class WebhookNotifier(BaseNotifier):
    """POSTs each message as JSON, e.g. to a mail relay or chat integration."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def deliver(self, message: NotificationMessage) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(self.url, json=message.model_dump(mode="json"))
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(
                f"Failed to deliver {message.kind} for workflow {message.workflow_id}: {exc}"
            )
            raise NotificationFailure(str(exc)) from exc
        logger.info(
            f"Delivered {message.kind} for workflow {message.workflow_id} to {self.url}"
        )
