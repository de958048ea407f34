"""Workflow client: trigger, observe and resume remote workflow runs.

WorkflowClient turns the service's fire-and-forget HTTP API into awaitable
operations. Each operation issues one logical request through HttpClient
(which retries transient failures internally); wait_for_completion and
trigger_and_wait add a polling loop and the approval-pause interrupt on top.

State machine of wait_for_completion:

    POLLING --(terminal status, or WAITING with exit_on_waiting)--> DONE
    POLLING --(max wait elapsed)--> PollTimeoutError
    POLLING --(token fired)--> OperationCancelledError
    POLLING --(request failed)--> WorkflowAPIError (never retried here)

Example:
    ```python
    async with WorkflowClient(api_key="sts_...") as client:
        result = await client.trigger_and_wait(
            "workflow-1",
            {"topic": "quarterly report"},
            on_waiting=approve_in_ui,
        )
        print(result.status)
    ```
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar
from urllib.parse import urlencode

from pysyncteams.config import (
    DEFAULT_MAX_WAIT_TIME_MS,
    DEFAULT_POLL_INTERVAL_MS,
    ClientConfig,
)
from pysyncteams.errors import (
    PollTimeoutError,
    RequestDescriptor,
    WorkflowAPIError,
    WorkflowValidationError,
)
from pysyncteams.models import (
    DEFAULT_TERMINAL_STATUSES,
    ApprovalDecision,
    RetryPolicy,
    TaskStatusResponse,
    TriggerResponse,
    WorkflowStatus,
)
from pysyncteams.transport import CancellationToken, HttpClient, sleep

logger = logging.getLogger(__name__)

T = TypeVar("T", TriggerResponse, TaskStatusResponse)

TRIGGER_PATH = "/api/v1"
STATUS_PATH = "/api/v1/status"
CONTINUE_PATH = "/api/v1/continue"

UpdateCallback = Callable[[TaskStatusResponse], Awaitable[None] | None]
WaitingHandler = Callable[[TaskStatusResponse], Awaitable[bool] | bool]


def _require_string(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise WorkflowValidationError(f"{field} must be a non-empty string")
    return value


def _ensure_serializable(value: Any, field: str) -> None:
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise WorkflowValidationError(f"{field} must be JSON serializable") from e


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class WorkflowClient:
    """Client for the SyncTeams workflow API.

    Construct with keyword options or a prepared ClientConfig; the
    configuration is fixed for the client's lifetime and shared by all
    concurrent calls.

    Usage:
        client = WorkflowClient(api_key="sts_...", base_url="https://...")
        triggered = await client.trigger("workflow-1", {"foo": "bar"})
        final = await client.wait_for_completion(triggered.task_id)
        await client.aclose()
    """

    def __init__(self, config: ClientConfig | None = None, **options: Any):
        if config is None:
            config = ClientConfig(**options)
        elif options:
            raise TypeError("pass either a ClientConfig or keyword options, not both")
        self._config = config
        self._http = HttpClient(config)

    @classmethod
    def from_env(cls, **overrides: Any) -> WorkflowClient:
        """Create a client from SYNCTEAMS_* environment variables."""
        return cls(ClientConfig.from_env(**overrides))

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> WorkflowClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"WorkflowClient(base_url={self._config.base_url!r})"

    # ========================================================================
    # Single-request operations
    # ========================================================================

    async def trigger(
        self,
        workflow_id: str,
        input: Mapping[str, Any],
        unique_id: str | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> TriggerResponse:
        """
        Start a workflow run.

        Args:
            workflow_id: Workflow to run
            input: JSON-serializable workflow input
            unique_id: Optional caller-side identifier echoed in webhooks

        Returns:
            The new task's id and the status the service reported

        Raises:
            WorkflowValidationError: Bad workflow_id or non-serializable input
            WorkflowAPIError: The request failed
        """
        _require_string(workflow_id, "workflow_id")
        _ensure_serializable(input, "input")

        payload: dict[str, Any] = {"workflowId": workflow_id}
        if unique_id is not None:
            payload["uniqueId"] = unique_id
        payload["input"] = input

        logger.debug(f"Triggering workflow {workflow_id}")
        data = await self._http.request(
            TRIGGER_PATH,
            method="POST",
            body=payload,
            retry_policy=retry_policy,
            cancel_token=cancel_token,
        )
        triggered = self._parse(TriggerResponse, data, "POST", TRIGGER_PATH)
        logger.info(f"Workflow {workflow_id} started as task {triggered.task_id} ({triggered.status})")
        return triggered

    async def get_status(
        self,
        task_id: str,
        *,
        retry_policy: RetryPolicy | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> TaskStatusResponse:
        """Fetch the latest status and event logs of a task."""
        _require_string(task_id, "task_id")

        path = self._status_path(task_id)
        data = await self._http.request(
            path, method="GET", retry_policy=retry_policy, cancel_token=cancel_token
        )
        return self._parse(TaskStatusResponse, data, "GET", path)

    async def decide(
        self,
        task_id: str,
        decision: ApprovalDecision | str,
        message: str | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> TaskStatusResponse:
        """
        Continue a task paused in WAITING with an approval decision.

        Args:
            task_id: Task to continue
            decision: APPROVE or REJECT
            message: Reason for the decision; required for REJECT

        Raises:
            WorkflowValidationError: Bad task_id, unknown decision, or REJECT
                without a message. Raised before any request is made.
            WorkflowAPIError: The request failed
        """
        _require_string(task_id, "task_id")
        try:
            decision = ApprovalDecision(decision)
        except ValueError:
            raise WorkflowValidationError(
                f"decision must be APPROVE or REJECT, got {decision!r}"
            ) from None

        if decision == ApprovalDecision.REJECT and not message:
            raise WorkflowValidationError("message is required when decision is REJECT")

        payload: dict[str, Any] = {"taskId": task_id, "type": decision.value}
        if message is not None:
            payload["message"] = message

        logger.info(f"Sending {decision} for task {task_id}")
        data = await self._http.request(
            CONTINUE_PATH,
            method="POST",
            body=payload,
            retry_policy=retry_policy,
            cancel_token=cancel_token,
        )
        return self._parse(TaskStatusResponse, data, "POST", CONTINUE_PATH)

    async def approve(
        self,
        task_id: str,
        message: str | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> TaskStatusResponse:
        return await self.decide(
            task_id, ApprovalDecision.APPROVE, message, cancel_token=cancel_token
        )

    async def reject(
        self,
        task_id: str,
        message: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> TaskStatusResponse:
        return await self.decide(
            task_id, ApprovalDecision.REJECT, message, cancel_token=cancel_token
        )

    # ========================================================================
    # Polling operations
    # ========================================================================

    async def wait_for_completion(
        self,
        task_id: str,
        *,
        poll_interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
        max_wait_time_ms: float = DEFAULT_MAX_WAIT_TIME_MS,
        terminal_statuses: Iterable[WorkflowStatus] | None = None,
        exit_on_waiting: bool = False,
        cancel_token: CancellationToken | None = None,
        on_update: UpdateCallback | None = None,
    ) -> TaskStatusResponse:
        """
        Poll a task until it reaches a stopping status.

        Polls are strictly sequential. ``on_update`` fires once per distinct
        consecutive status, in the order observed, never once per poll.

        Args:
            task_id: Task to wait for
            poll_interval_ms: Pause between polls
            max_wait_time_ms: Give up once this much time has passed
            terminal_statuses: Statuses that end the wait
                (default: COMPLETED, FAILED, CANCELED)
            exit_on_waiting: Also stop when the task pauses in WAITING
            cancel_token: Aborts the wait, including an in-flight poll
            on_update: Called (or awaited) with each new status record

        Returns:
            The last fetched status record

        Raises:
            PollTimeoutError: max_wait_time_ms elapsed first
            OperationCancelledError: The token fired
            WorkflowAPIError: A poll failed
        """
        _require_string(task_id, "task_id")

        terminal = (
            frozenset(WorkflowStatus(s) for s in terminal_statuses)
            if terminal_statuses is not None
            else DEFAULT_TERMINAL_STATUSES
        )
        started_at = time.monotonic()
        last_status: WorkflowStatus | None = None

        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            current = await self.get_status(task_id, cancel_token=cancel_token)
            logger.debug(f"Task {task_id} polled: {current.status}")

            if current.status != last_status:
                last_status = current.status
                logger.info(f"Task {task_id} is now {current.status}")
                if on_update is not None:
                    await _maybe_await(on_update(current))

            if current.status in terminal:
                return current
            if current.status.is_waiting and exit_on_waiting:
                return current

            elapsed_ms = (time.monotonic() - started_at) * 1000.0
            if elapsed_ms >= max_wait_time_ms:
                raise PollTimeoutError(
                    task_id=task_id,
                    last_status=current.status,
                    max_wait_time_ms=max_wait_time_ms,
                    request=RequestDescriptor(
                        method="GET", url=self._http.resolve_url(self._status_path(task_id))
                    ),
                )

            await sleep(poll_interval_ms, cancel_token)

    async def trigger_and_wait(
        self,
        workflow_id: str,
        input: Mapping[str, Any],
        unique_id: str | None = None,
        *,
        on_waiting: WaitingHandler | None = None,
        poll_interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
        max_wait_time_ms: float = DEFAULT_MAX_WAIT_TIME_MS,
        terminal_statuses: Iterable[WorkflowStatus] | None = None,
        cancel_token: CancellationToken | None = None,
        on_update: UpdateCallback | None = None,
    ) -> TaskStatusResponse:
        """
        Start a workflow and wait for it, handling approval pauses.

        Each time the task pauses in WAITING, ``on_waiting`` is called (or
        awaited) with the current record. It should handle the approval,
        typically by calling decide(), and return True to keep polling or
        False to stop and return the WAITING record. Without a handler the
        WAITING record is returned as soon as the pause is seen, and the
        caller resumes the task out of band.

        After the handler returns True the next poll waits one
        ``poll_interval_ms``, so a task still reported as WAITING is not
        re-polled in a tight loop.

        Each wait phase gets the full ``max_wait_time_ms`` budget.
        """
        triggered = await self.trigger(
            workflow_id, input, unique_id, cancel_token=cancel_token
        )

        while True:
            current = await self.wait_for_completion(
                triggered.task_id,
                poll_interval_ms=poll_interval_ms,
                max_wait_time_ms=max_wait_time_ms,
                terminal_statuses=terminal_statuses,
                exit_on_waiting=True,
                cancel_token=cancel_token,
                on_update=on_update,
            )

            if not current.status.is_waiting or on_waiting is None:
                return current

            logger.info(f"Task {triggered.task_id} paused for approval")
            if not await _maybe_await(on_waiting(current)):
                return current
            await sleep(poll_interval_ms, cancel_token)

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def _status_path(task_id: str) -> str:
        return f"{STATUS_PATH}?{urlencode({'taskId': task_id})}"

    def _parse(self, model: type[T], data: Any, method: str, path: str) -> T:
        try:
            return model.from_dict(data)
        except ValueError as e:
            raise WorkflowAPIError(
                f"Unexpected response from {method} {path}: {e}",
                status=0,
                status_text="INVALID_RESPONSE",
                data=data,
                request=RequestDescriptor(method=method, url=self._http.resolve_url(path)),
                cause=e,
            ) from e
