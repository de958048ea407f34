"""Status enumerations for remote workflow tasks.

Defines the lifecycle states a task reports on each status fetch and
the decisions a caller can send to a task paused for approval.
"""

from enum import Enum


class WorkflowStatus(Enum):
    """Status of a remote workflow task.

    Lifecycle:
        QUEUED → PENDING → RUNNING → (WAITING → RUNNING)* → COMPLETED/FAILED/CANCELED

    The client never changes a status itself; it only observes what the
    service reports on each poll.
    """

    QUEUED = "QUEUED"
    """Task accepted, waiting to be scheduled."""

    PENDING = "PENDING"
    """Task scheduled, not yet started."""

    RUNNING = "RUNNING"
    """Task is executing."""

    WAITING = "WAITING"
    """Task is paused until an APPROVE or REJECT decision arrives.

    Semi-terminal: no progress happens without external input, but the
    task resumes once a decision is sent.
    """

    CANCELED = "CANCELED"
    """Task was canceled on the service side."""

    FAILED = "FAILED"
    """Task finished with an error."""

    COMPLETED = "COMPLETED"
    """Task finished successfully."""

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal under the default terminal set."""
        return self in DEFAULT_TERMINAL_STATUSES

    @property
    def is_waiting(self) -> bool:
        """Check if this status is the approval pause."""
        return self == WorkflowStatus.WAITING

    def __str__(self) -> str:
        return self.value


DEFAULT_TERMINAL_STATUSES: frozenset[WorkflowStatus] = frozenset(
    {
        WorkflowStatus.COMPLETED,
        WorkflowStatus.FAILED,
        WorkflowStatus.CANCELED,
    }
)


class ApprovalDecision(Enum):
    """Decision sent to a task paused in WAITING."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"

    def __str__(self) -> str:
        return self.value
