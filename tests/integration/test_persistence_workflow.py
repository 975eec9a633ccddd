import pytest

from approvalflow.dispatch import ApprovalDispatcher
from approvalflow.errors import AlreadyProcessed
from approvalflow.execute import DecisionExecutor
from approvalflow.notify import InMemoryNotifier
from approvalflow.payments import SimulatedPaymentExecutor
from approvalflow.persistence import SQLiteCheckpointStore
from approvalflow.state_machine import WorkflowStatus


@pytest.mark.asyncio
async def test_workflow_resumes_after_restart(tmp_path, clock, submission):
    db_path = tmp_path / "approvals.db"

    # Submission process.
    submit_store = SQLiteCheckpointStore(db_path, clock=clock)
    submit_notifier = InMemoryNotifier(callback_base_url="https://approvals.example.com")
    result = await ApprovalDispatcher(submit_store, submit_notifier, clock=clock).submit(
        submission
    )
    approve_url = submit_notifier.sent[0].approve_url
    submit_store.close()

    token = approve_url.split("token=")[1].split("&")[0]
    clock.advance(3 * 86400 + 4 * 3600)

    # A fresh process with no shared memory handles the callback.
    resume_store = SQLiteCheckpointStore(db_path, clock=clock)
    resume_notifier = InMemoryNotifier()
    payments = SimulatedPaymentExecutor()
    executor = DecisionExecutor(resume_store, resume_notifier, payments, clock=clock)

    outcome = await executor.resume(result.workflow_id, token, "approve")
    assert outcome.status == WorkflowStatus.PAYMENT_PROCESSED
    assert outcome.suspension_duration == "3 days, 4 hours"
    assert len(resume_notifier.of_kind("decision")) == 1

    # A duplicate click from yet another process is refused.
    resume_store.close()
    replay_store = SQLiteCheckpointStore(db_path, clock=clock)
    replay = DecisionExecutor(replay_store, InMemoryNotifier(), payments, clock=clock)
    with pytest.raises(AlreadyProcessed):
        await replay.resume(result.workflow_id, token, "approve")

    checkpoint = await replay_store.get(result.workflow_id)
    assert checkpoint.status == WorkflowStatus.PAYMENT_PROCESSED
    assert checkpoint.current_step == "COMPLETED"
    assert checkpoint.payload.amount == submission.amount
    assert len(payments.processed) == 1
    replay_store.close()


@pytest.mark.asyncio
async def test_concurrent_resumes_across_store_instances(tmp_path, clock, submission):
    import asyncio

    db_path = tmp_path / "approvals.db"
    store = SQLiteCheckpointStore(db_path, clock=clock)
    result = await ApprovalDispatcher(store, InMemoryNotifier(), clock=clock).submit(submission)
    token = (await store.get(result.workflow_id)).approval_token

    executors = [
        DecisionExecutor(
            SQLiteCheckpointStore(db_path, clock=clock),
            InMemoryNotifier(),
            SimulatedPaymentExecutor(),
            clock=clock,
        )
        for _ in range(4)
    ]
    outcomes = await asyncio.gather(
        *(e.resume(result.workflow_id, token, "reject") for e in executors),
        return_exceptions=True,
    )

    assert sum(1 for o in outcomes if not isinstance(o, Exception)) == 1
    assert all(isinstance(o, AlreadyProcessed) for o in outcomes if isinstance(o, Exception))
    assert (await store.get(result.workflow_id)).status == WorkflowStatus.REJECTED
