import asyncio
import logging

import pytest

from approvalflow.contracts import Decision
from approvalflow.dispatch import ApprovalDispatcher
from approvalflow.errors import (
    AlreadyProcessed,
    InvalidDecision,
    PaymentFailure,
    PreconditionFailed,
    Unauthorized,
    WorkflowNotFound,
)
from approvalflow.execute import DecisionExecutor
from approvalflow.persistence import InMemoryCheckpointStore
from approvalflow.state_machine import WorkflowStatus


async def _submit(store, notifier, clock, submission):
    result = await ApprovalDispatcher(store, notifier, clock=clock).submit(submission)
    checkpoint = await store.get(result.workflow_id)
    return result.workflow_id, checkpoint.approval_token


@pytest.mark.asyncio
async def test_approve_processes_payment_and_notifies(
    store, notifier, payments, clock, submission
):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    clock.advance(2 * 3600 + 15 * 60)

    executor = DecisionExecutor(store, notifier, payments, clock=clock)
    result = await executor.resume(workflow_id, token, "approve")

    assert result.status == WorkflowStatus.PAYMENT_PROCESSED
    assert result.decision == Decision.APPROVE
    assert result.title == "Expense Approved"
    assert "$125.50 from John Doe has been approved" in result.message
    assert result.suspended_seconds == 8100
    assert result.suspension_duration == "2 hours, 15 minutes"

    checkpoint = await store.get(workflow_id)
    assert checkpoint.status == WorkflowStatus.PAYMENT_PROCESSED
    assert checkpoint.current_step == "COMPLETED"
    assert checkpoint.resumed_at == clock.now
    assert checkpoint.rejection_reason is None

    report_id = checkpoint.payload.report_id
    assert report_id in payments.processed

    decisions = notifier.of_kind("decision")
    assert len(decisions) == 1
    assert decisions[0].approved is True
    assert decisions[0].to == "john.doe@example.com"
    assert decisions[0].subject == "Expense Report Approved: $125.50"


@pytest.mark.asyncio
async def test_reject_records_reason_and_skips_payment(
    store, notifier, payments, clock, submission
):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    clock.advance(90)

    executor = DecisionExecutor(store, notifier, payments, clock=clock)
    result = await executor.resume(workflow_id, token, "REJECT", reason="Missing receipt")

    assert result.status == WorkflowStatus.REJECTED
    assert result.title == "Expense Rejected"
    assert result.suspension_duration == "1 minute, 30 seconds"
    checkpoint = await store.get(workflow_id)
    assert checkpoint.current_step == "REJECTED"
    assert checkpoint.rejection_reason == "Missing receipt"
    assert payments.processed == {}

    notice = notifier.of_kind("decision")[0]
    assert notice.approved is False
    assert "Reason: Missing receipt" in notice.text


@pytest.mark.asyncio
async def test_reject_without_reason_uses_default(
    store, notifier, payments, clock, submission
):
    workflow_id, token = await _submit(store, notifier, clock, submission)

    executor = DecisionExecutor(store, notifier, payments, clock=clock)
    await executor.resume(workflow_id, token, Decision.REJECT)

    checkpoint = await store.get(workflow_id)
    assert checkpoint.rejection_reason == "Manager declined the expense report"


@pytest.mark.asyncio
async def test_wrong_token_is_rejected_without_changes(
    store, notifier, payments, clock, submission
):
    workflow_id, _ = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, notifier, payments, clock=clock)

    with pytest.raises(Unauthorized):
        await executor.resume(workflow_id, "0" * 32, "approve")
    with pytest.raises(Unauthorized):
        await executor.resume(workflow_id, None, "approve")

    checkpoint = await store.get(workflow_id)
    assert checkpoint.status == WorkflowStatus.PENDING_APPROVAL
    assert checkpoint.resumed_at is None


@pytest.mark.asyncio
async def test_tokens_are_not_interchangeable(store, notifier, payments, clock, submission):
    first_id, first_token = await _submit(store, notifier, clock, submission)
    second_id, second_token = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, notifier, payments, clock=clock)

    with pytest.raises(Unauthorized):
        await executor.resume(first_id, second_token, "approve")

    result = await executor.resume(second_id, second_token, "approve")
    assert result.status == WorkflowStatus.PAYMENT_PROCESSED
    assert (await store.get(first_id)).status == WorkflowStatus.PENDING_APPROVAL


@pytest.mark.asyncio
async def test_unknown_workflow(store, notifier, payments):
    executor = DecisionExecutor(store, notifier, payments)
    with pytest.raises(WorkflowNotFound):
        await executor.resume("workflow-does-not-exist", "token", "approve")


@pytest.mark.asyncio
async def test_unknown_decision_is_refused_before_lookup(store, notifier, payments):
    executor = DecisionExecutor(store, notifier, payments)
    with pytest.raises(InvalidDecision):
        await executor.resume("workflow-does-not-exist", "token", "maybe")


@pytest.mark.asyncio
async def test_second_resume_is_already_processed(
    store, notifier, payments, clock, submission
):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, notifier, payments, clock=clock)
    await executor.resume(workflow_id, token, "approve")
    first = await store.get(workflow_id)

    clock.advance(600)
    with pytest.raises(AlreadyProcessed) as excinfo:
        await executor.resume(workflow_id, token, "reject")

    assert excinfo.value.status == WorkflowStatus.PAYMENT_PROCESSED
    assert "Current status: PAYMENT_PROCESSED" in excinfo.value.user_message
    after = await store.get(workflow_id)
    assert after.status == WorkflowStatus.PAYMENT_PROCESSED
    assert after.resumed_at == first.resumed_at
    assert len(payments.processed) == 1
    assert len(notifier.of_kind("decision")) == 1


class _InterleavingStore(InMemoryCheckpointStore):
    """Yields after every read so racing resumes all see the suspended state."""

    async def get(self, workflow_id):
        checkpoint = await super().get(workflow_id)
        await asyncio.sleep(0)
        return checkpoint


@pytest.mark.asyncio
async def test_concurrent_resumes_have_a_single_winner(
    notifier, payments, clock, submission
):
    store = _InterleavingStore(clock=clock)
    workflow_id, token = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, notifier, payments, clock=clock)

    outcomes = await asyncio.gather(
        executor.resume(workflow_id, token, "approve"),
        executor.resume(workflow_id, token, "reject"),
        return_exceptions=True,
    )

    successes = [o for o in outcomes if not isinstance(o, Exception)]
    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], AlreadyProcessed)
    # Both racers passed the suspended check; the loser lost the conditional update.
    assert isinstance(failures[0].__cause__, PreconditionFailed)
    assert len(notifier.of_kind("decision")) == 1
    assert (await store.get(workflow_id)).status == successes[0].status


@pytest.mark.asyncio
async def test_invalid_token_is_logged(store, notifier, payments, clock, submission, caplog):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, notifier, payments, clock=clock)

    with caplog.at_level(logging.WARNING, logger="approvalflow.execute"):
        with pytest.raises(Unauthorized):
            await executor.resume(workflow_id, "0" * 32, "approve")

    assert f"Invalid approval token for workflow: {workflow_id}" in caplog.text
    assert token not in caplog.text


@pytest.mark.asyncio
async def test_payment_failure_marks_workflow_failed(
    store, notifier, failing_payments, clock, submission
):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, notifier, failing_payments, clock=clock)

    with pytest.raises(PaymentFailure):
        await executor.resume(workflow_id, token, "approve")

    checkpoint = await store.get(workflow_id)
    assert checkpoint.status == WorkflowStatus.FAILED
    assert checkpoint.current_step == "PAYMENT_FAILED"
    assert checkpoint.resumed_at is not None
    assert notifier.of_kind("decision") == []

    with pytest.raises(AlreadyProcessed):
        await executor.resume(workflow_id, token, "approve")


@pytest.mark.asyncio
async def test_decision_notification_failure_does_not_undo_decision(
    store, notifier, failing_notifier, payments, clock, submission
):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, failing_notifier, payments, clock=clock)

    result = await executor.resume(workflow_id, token, "approve")

    assert result.status == WorkflowStatus.PAYMENT_PROCESSED
    assert failing_notifier.attempts == 1
    assert (await store.get(workflow_id)).status == WorkflowStatus.PAYMENT_PROCESSED


@pytest.mark.asyncio
async def test_suspension_status_grows_until_resumed(
    store, notifier, payments, clock, submission
):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, notifier, payments, clock=clock)

    observed = []
    for _ in range(3):
        clock.advance(45)
        _, seconds = await executor.suspension_status(workflow_id)
        observed.append(seconds)
    assert observed == sorted(observed) == [45, 90, 135]

    await executor.resume(workflow_id, token, "reject")
    clock.advance(3600)
    checkpoint, seconds = await executor.suspension_status(workflow_id)
    assert checkpoint.status == WorkflowStatus.REJECTED
    assert seconds == 135


@pytest.mark.asyncio
async def test_status_only_moves_forward(store, notifier, payments, clock, submission):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    ranks = [(await store.get(workflow_id)).status.rank]

    await DecisionExecutor(store, notifier, payments, clock=clock).resume(
        workflow_id, token, "approve"
    )
    ranks.append((await store.get(workflow_id)).status.rank)

    assert ranks == sorted(ranks)
    assert ranks[-1] > ranks[0]


@pytest.mark.asyncio
async def test_mark_failed(store, notifier, payments, clock, submission):
    workflow_id, token = await _submit(store, notifier, clock, submission)
    executor = DecisionExecutor(store, notifier, payments, clock=clock)

    checkpoint = await executor.mark_failed(workflow_id, "OPERATOR_ABORTED")
    assert checkpoint.status == WorkflowStatus.FAILED
    assert checkpoint.current_step == "OPERATOR_ABORTED"

    with pytest.raises(AlreadyProcessed):
        await executor.mark_failed(workflow_id, "OPERATOR_ABORTED")
    with pytest.raises(AlreadyProcessed):
        await executor.resume(workflow_id, token, "approve")
    with pytest.raises(WorkflowNotFound):
        await executor.mark_failed("workflow-missing", "OPERATOR_ABORTED")
