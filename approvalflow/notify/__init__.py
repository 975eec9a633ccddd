"""Notifier factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import ApprovalConfig, load_config
from .base import BaseNotifier
from .inmemory import InMemoryNotifier
from .log import LogNotifier
from .messages import NotificationMessage


def get_notifier(
    backend: Optional[str] = None, config: Optional[ApprovalConfig] = None
) -> BaseNotifier:
    """Factory function to get the configured notifier."""

    config = config or load_config()
    notifier_conf = config.notifier
    backend = (backend or os.getenv("APPROVALFLOW_NOTIFIER") or notifier_conf.backend).lower()
    common = {
        "callback_base_url": notifier_conf.callback_base_url,
        "from_email": notifier_conf.from_email,
    }

    if backend == "inmemory":
        return InMemoryNotifier(**common)
    elif backend == "log":
        return LogNotifier(**common)
    elif backend == "webhook":
        from .webhook import WebhookNotifier

        if not notifier_conf.webhook_url:
            raise ValueError("notifier.webhook_url is required for the webhook backend")
        return WebhookNotifier(
            notifier_conf.webhook_url, timeout=notifier_conf.timeout, **common
        )
    else:
        raise ValueError(f"Unsupported notifier backend: {backend}")


__all__ = [
    "BaseNotifier",
    "InMemoryNotifier",
    "LogNotifier",
    "NotificationMessage",
    "get_notifier",
]
