"""Example showing a full submit -> suspend -> resume round trip."""

import asyncio
from decimal import Decimal

from approvalflow import ApprovalDispatcher, DecisionExecutor, ExpenseSubmission
from approvalflow.notify import InMemoryNotifier
from approvalflow.payments import SimulatedPaymentExecutor
from approvalflow.persistence import SQLiteCheckpointStore


async def main():
    """Submit an expense, then approve it from a "different process"."""
    store = SQLiteCheckpointStore("approvals.db")
    notifier = InMemoryNotifier(callback_base_url="http://localhost:8000")

    dispatcher = ApprovalDispatcher(store, notifier)
    result = await dispatcher.submit(
        ExpenseSubmission(
            employee_name="John Doe",
            employee_email="john.doe@example.com",
            manager_email="manager@example.com",
            amount=Decimal("125.50"),
            category="Travel",
        )
    )
    print(f"✅ {result.message}")
    print(f"📋 Workflow ID: {result.workflow_id}")

    request = notifier.of_kind("approval_request")[0]
    print(f"🔗 Approve link: {request.approve_url}")
    store.close()

    # Nothing from above is reused except the database file and the link.
    token = request.approve_url.split("token=")[1].split("&")[0]
    store = SQLiteCheckpointStore("approvals.db")
    executor = DecisionExecutor(store, InMemoryNotifier(), SimulatedPaymentExecutor())
    outcome = await executor.resume(result.workflow_id, token, "approve")
    print(f"✅ {outcome.title}: {outcome.message}")
    print(f"⏱️  Suspended for {outcome.suspension_duration}")
    store.close()


if __name__ == "__main__":
    asyncio.run(main())
