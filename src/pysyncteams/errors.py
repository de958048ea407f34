"""Error types raised by the workflow client.

Taxonomy:
- WorkflowValidationError: malformed caller input, raised before any I/O
- WorkflowAPIError: non-2xx response, unparseable body, or network failure
  (status 0); the only error carrying request/response context
- PollTimeoutError: a WorkflowAPIError synthesized when a wait runs out of time
- OperationCancelledError: the caller's CancellationToken fired

Validation and cancellation errors are not WorkflowAPIError subclasses.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

__all__ = [
    "RequestDescriptor",
    "WorkflowAPIError",
    "PollTimeoutError",
    "WorkflowValidationError",
    "OperationCancelledError",
    "is_workflow_api_error",
]


@dataclass(frozen=True)
class RequestDescriptor:
    """The request that produced an error.

    Attributes:
        method: Upper-case HTTP method
        url: Fully resolved URL
        body: JSON-safe snapshot of the request body, None if absent
    """

    method: str
    url: str
    body: Any = None


def _normalize_headers(headers: Mapping[str, str] | Iterable[tuple[str, str]] | None) -> dict[str, str]:
    if not headers:
        return {}
    items = headers.items() if isinstance(headers, Mapping) else headers
    return {str(key): str(value) for key, value in items}


class WorkflowAPIError(Exception):
    """
    The service returned a non-2xx response or the request failed irrecoverably.

    Surfaces HTTP metadata and the parsed response body to aid in caller
    debugging.

    Attributes:
        status: HTTP status, 0 for failures without a response
        status_text: Reason phrase, or a code such as NETWORK_ERROR / POLL_TIMEOUT
        headers: Response headers, case as received
        data: Parsed response body (JSON value or text), None if empty
        request: Descriptor of the originating request
        cause: Underlying exception, also chained as __cause__
    """

    def __init__(
        self,
        message: str,
        *,
        status: int,
        request: RequestDescriptor,
        status_text: str = "",
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        data: Any = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.status_text = status_text
        self.headers = _normalize_headers(headers)
        self.data = data
        self.request = request
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def is_network_error(self) -> bool:
        return self.status == 0

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status={self.status}, "
            f"status_text={self.status_text!r}, message={self.message!r}, "
            f"request={self.request.method} {self.request.url})"
        )


class PollTimeoutError(WorkflowAPIError):
    """Waiting for a task ran past its max wait time.

    Ends the wait; nothing is retried.
    """

    def __init__(self, task_id: str, last_status: Any, max_wait_time_ms: float, request: RequestDescriptor):
        super().__init__(
            f"Timed out after {max_wait_time_ms}ms waiting for task {task_id}",
            status=0,
            status_text="POLL_TIMEOUT",
            data={"taskId": task_id, "lastStatus": str(last_status) if last_status is not None else None},
            request=request,
        )
        self.task_id = task_id
        self.last_status = last_status


class WorkflowValidationError(ValueError):
    """Caller input rejected locally, before any network call.

    Never retried and never a WorkflowAPIError.
    """

    pass


class OperationCancelledError(Exception):
    """The operation was aborted through its CancellationToken.

    Distinct from timeouts and network failures: it is never retried and
    always propagates to the caller.
    """

    def __init__(self, reason: Any = None):
        message = "The operation was cancelled"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.reason = reason


def is_workflow_api_error(error: object) -> bool:
    """Return True if ``error`` is a WorkflowAPIError (including poll timeouts)."""
    return isinstance(error, WorkflowAPIError)
