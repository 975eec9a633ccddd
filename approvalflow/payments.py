"""Payment side effect triggered once an expense is approved."""

from __future__ import annotations

import abc
import asyncio
import logging
import uuid
from typing import Dict, Optional

from .config import ApprovalConfig
from .contracts import ExpenseReport

logger = logging.getLogger(__name__)


class PaymentExecutor(metaclass=abc.ABCMeta):
    """Executes the payment for an approved expense report.

    Implementations must be idempotent per ``report_id``: a repeated call for
    the same report returns the original payment reference without paying
    twice. Failures are raised as exceptions.
    """

    @abc.abstractmethod
    async def execute_payment(self, report: ExpenseReport) -> str:
        raise NotImplementedError


class SimulatedPaymentExecutor(PaymentExecutor):
    """Stand-in for a payment processor integration."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.processed: Dict[str, str] = {}

    async def execute_payment(self, report: ExpenseReport) -> str:
        existing = self.processed.get(report.report_id)
        if existing is not None:
            logger.info(f"Payment for report {report.report_id} already processed: {existing}")
            return existing

        logger.info(
            f"Processing payment of ${report.amount} to employee: {report.employee_name}"
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        reference = f"pay-{uuid.uuid4()}"
        self.processed[report.report_id] = reference
        logger.info(f"Payment processed successfully: {reference}")
        return reference


def get_payment_executor(config: Optional[ApprovalConfig] = None) -> PaymentExecutor:
    config = config or ApprovalConfig()
    return SimulatedPaymentExecutor(delay=config.payment.simulated_delay)
