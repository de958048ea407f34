"""Data models for remote workflow tasks.

Defines task statuses, approval decisions, the event-type catalog,
the response records and retry behavior.

Design: Dependency-Free Models
These types have no dependencies on transport or client modules to
prevent circular imports and enable clean layering.
"""

from pysyncteams.models.event_types import WorkflowEventType
from pysyncteams.models.retry import DEFAULT_RETRYABLE_STATUSES, RetryPolicy
from pysyncteams.models.status import DEFAULT_TERMINAL_STATUSES, ApprovalDecision, WorkflowStatus
from pysyncteams.models.task import (
    TaskEventLog,
    TaskStatusResponse,
    TriggerResponse,
    WebhookEventPayload,
)

__all__ = [
    "WorkflowStatus",
    "ApprovalDecision",
    "DEFAULT_TERMINAL_STATUSES",
    "WorkflowEventType",
    "TaskEventLog",
    "TriggerResponse",
    "TaskStatusResponse",
    "WebhookEventPayload",
    "RetryPolicy",
    "DEFAULT_RETRYABLE_STATUSES",
]
