from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field


class NotifierConfig(BaseModel):
    """Configuration for outbound notifications."""

    backend: Literal["inmemory", "log", "webhook"] = "log"
    callback_base_url: str = "http://localhost:8000"
    from_email: Optional[str] = None
    webhook_url: Optional[str] = None
    timeout: float = 10.0


class PaymentConfig(BaseModel):
    """Configuration for the payment side effect."""

    simulated_delay: float = 0.0


class ApprovalConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    store_timeout: float = 5.0
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)
    payment: PaymentConfig = Field(default_factory=PaymentConfig)
    fail_on_notification_error: bool = False
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> ApprovalConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to APPROVALFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("APPROVALFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ApprovalConfig(**data)
    else:
        config = ApprovalConfig()

    env_db_url = os.getenv("APPROVALFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    if os.getenv("APPROVALFLOW_CALLBACK_BASE_URL"):
        config.notifier.callback_base_url = os.environ["APPROVALFLOW_CALLBACK_BASE_URL"]
    if os.getenv("APPROVALFLOW_FROM_EMAIL"):
        config.notifier.from_email = os.environ["APPROVALFLOW_FROM_EMAIL"]
    if os.getenv("APPROVALFLOW_NOTIFIER"):
        config.notifier = config.notifier.model_copy(
            update={"backend": os.environ["APPROVALFLOW_NOTIFIER"]}
        )
    return config
