"""In-memory notifier for testing."""

from __future__ import annotations

from typing import List

from .base import BaseNotifier
from .messages import NotificationMessage


class InMemoryNotifier(BaseNotifier):
    """Keeps delivered messages in ``sent`` instead of sending them."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.sent: List[NotificationMessage] = []

    async def deliver(self, message: NotificationMessage) -> None:
        self.sent.append(message)

    def of_kind(self, kind: str) -> List[NotificationMessage]:
        return [m for m in self.sent if m.kind == kind]
