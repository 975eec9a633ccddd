"""Step markers recorded in ``current_step`` for observability."""

STEP_INITIALIZATION = "INITIALIZATION"
STEP_EXPENSE_SUBMITTED = "EXPENSE_SUBMITTED"
STEP_AWAITING_APPROVAL = "AWAITING_MANAGER_APPROVAL"
STEP_PROCESSING_PAYMENT = "PROCESSING_PAYMENT"
STEP_COMPLETED = "COMPLETED"
STEP_REJECTED = "REJECTED"
STEP_PAYMENT_FAILED = "PAYMENT_FAILED"
STEP_NOTIFICATION_FAILED = "NOTIFICATION_FAILED"

DEFAULT_REJECTION_REASON = "Manager declined the expense report"
WORKFLOW_ID_PREFIX = "workflow-"
