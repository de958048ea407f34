"""
pysyncteams: asyncio client for the SyncTeams workflow API.

Starts remote workflow runs, polls or awaits their completion, and resumes
runs that pause for human approval.

Design Pattern: Façade Pattern
This module provides a simplified interface to the client, hiding the
transport's retry loop and the cancellation plumbing.

Example:
    ```python
    import asyncio
    from pysyncteams import ApprovalDecision, WorkflowClient

    async def approve(status):
        await client.decide(status.task_id, ApprovalDecision.APPROVE)
        return True

    async def main():
        async with WorkflowClient(api_key="sts_...") as client:
            result = await client.trigger_and_wait(
                "workflow-1", {"foo": "bar"}, on_waiting=approve
            )
            print(result.status)

    asyncio.run(main())
    ```
"""

# Defined before the submodule imports: the transport reads it for the User-Agent
__version__ = "0.1.0"

# Models
from pysyncteams.models import (
    DEFAULT_RETRYABLE_STATUSES,
    DEFAULT_TERMINAL_STATUSES,
    ApprovalDecision,
    RetryPolicy,
    TaskEventLog,
    TaskStatusResponse,
    TriggerResponse,
    WebhookEventPayload,
    WorkflowEventType,
    WorkflowStatus,
)

# Errors
from pysyncteams.errors import (
    OperationCancelledError,
    PollTimeoutError,
    RequestDescriptor,
    WorkflowAPIError,
    WorkflowValidationError,
    is_workflow_api_error,
)

# Configuration
from pysyncteams.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_WAIT_TIME_MS,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_REQUEST_TIMEOUT_MS,
    ClientConfig,
)

# Transport
from pysyncteams.transport import CancellationToken, HttpClient

# Orchestration
from pysyncteams.client import WorkflowClient

__all__ = [
    # Client
    "WorkflowClient",
    "ClientConfig",
    "HttpClient",
    "CancellationToken",

    # Models
    "WorkflowStatus",
    "ApprovalDecision",
    "WorkflowEventType",
    "TaskEventLog",
    "TriggerResponse",
    "TaskStatusResponse",
    "WebhookEventPayload",
    "RetryPolicy",
    "DEFAULT_RETRYABLE_STATUSES",
    "DEFAULT_TERMINAL_STATUSES",

    # Errors
    "WorkflowAPIError",
    "PollTimeoutError",
    "WorkflowValidationError",
    "OperationCancelledError",
    "RequestDescriptor",
    "is_workflow_api_error",

    # Defaults
    "DEFAULT_BASE_URL",
    "DEFAULT_REQUEST_TIMEOUT_MS",
    "DEFAULT_POLL_INTERVAL_MS",
    "DEFAULT_MAX_WAIT_TIME_MS",

    # Metadata
    "__version__",
]
