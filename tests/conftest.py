from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from approvalflow.contracts import ExpenseSubmission
from approvalflow.errors import NotificationFailure
from approvalflow.notify import BaseNotifier, InMemoryNotifier
from approvalflow.payments import PaymentExecutor, SimulatedPaymentExecutor
from approvalflow.persistence import InMemoryCheckpointStore


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FailingNotifier(BaseNotifier):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.attempts = 0

    async def deliver(self, message) -> None:
        self.attempts += 1
        raise NotificationFailure("relay unreachable")


class FailingPaymentExecutor(PaymentExecutor):
    async def execute_payment(self, report) -> str:
        raise RuntimeError("payment processor timed out")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for name in (
        "APPROVALFLOW_CONFIG",
        "APPROVALFLOW_DATABASE_URL",
        "DATABASE_URL",
        "APPROVALFLOW_CALLBACK_BASE_URL",
        "APPROVALFLOW_FROM_EMAIL",
        "APPROVALFLOW_NOTIFIER",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APPROVALFLOW_CONFIG", str(tmp_path / "missing-config.yaml"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryCheckpointStore(clock=clock)


@pytest.fixture
def notifier():
    return InMemoryNotifier(callback_base_url="https://approvals.example.com")


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


@pytest.fixture
def payments():
    return SimulatedPaymentExecutor()


@pytest.fixture
def failing_payments():
    return FailingPaymentExecutor()


@pytest.fixture
def submission():
    return ExpenseSubmission(
        employee_name="John Doe",
        employee_id="EMP-001",
        employee_email="john.doe@example.com",
        manager_email="manager@example.com",
        manager_id="MGR-001",
        amount=Decimal("125.50"),
        category="Travel",
        description="Taxi to client site",
    )
