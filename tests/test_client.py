"""Tests for WorkflowClient: trigger, status, decisions, polling and approval pauses."""

import asyncio
import logging
import math
import time

import httpx
import pytest

import pysyncteams.client as client_module
from conftest import API_KEY, BASE_URL, FAST_RETRY, json_response, request_json
from pysyncteams import (
    DEFAULT_BASE_URL,
    ApprovalDecision,
    CancellationToken,
    ClientConfig,
    OperationCancelledError,
    PollTimeoutError,
    RetryPolicy,
    WorkflowAPIError,
    WorkflowClient,
    WorkflowEventType,
    WorkflowStatus,
    WorkflowValidationError,
    is_workflow_api_error,
)


def _statuses(records):
    return [record.status for record in records]


def _status_body(status, task_id="task-1"):
    return lambda r: json_response({"taskId": task_id, "status": status})


# ==============================================================================
# Construction
# ==============================================================================


def test_requires_api_key():
    """Test that an empty API key is rejected at construction."""
    with pytest.raises(WorkflowValidationError, match="api_key is required"):
        WorkflowClient(api_key="")


def test_config_and_options_are_exclusive():
    """Test that a config and keyword options cannot be combined."""
    config = ClientConfig(api_key=API_KEY)
    with pytest.raises(TypeError):
        WorkflowClient(config, base_url=BASE_URL)


async def test_accepts_prepared_config():
    """Test construction from a prepared ClientConfig."""
    config = ClientConfig(api_key=API_KEY, base_url=f"{BASE_URL}/")
    async with WorkflowClient(config) as client:
        assert client.config is config
        assert client.config.base_url == BASE_URL
        assert API_KEY not in repr(client)


async def test_default_routing(queue_transport):
    """Test requests go to the default origin when no base URL is set."""
    queue = queue_transport([_status_body("PENDING", "t-1"), _status_body("RUNNING", "t-1")])
    async with WorkflowClient(api_key=API_KEY, transport=queue.transport()) as client:
        await client.trigger("workflow-1", {})
        await client.get_status("t-1")

    urls = [str(r.url) for r in queue.requests]
    assert urls == [
        f"{DEFAULT_BASE_URL}/api/v1",
        f"{DEFAULT_BASE_URL}/api/v1/status?taskId=t-1",
    ]


# ==============================================================================
# trigger / get_status
# ==============================================================================


async def test_trigger_sends_expected_request(client, service):
    """Test trigger sends the API key, JSON content type and payload."""
    triggered = await client.trigger("workflow-1", {"foo": "bar"}, "order-42")

    request = service.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1"
    assert request.headers["x-api-key"] == API_KEY
    assert request.headers["content-type"] == "application/json"
    assert request_json(request) == {
        "workflowId": "workflow-1",
        "uniqueId": "order-42",
        "input": {"foo": "bar"},
    }

    assert triggered.status is WorkflowStatus.PENDING
    task = service.tasks[triggered.task_id]
    assert task.unique_id == "order-42"
    assert task.input == {"foo": "bar"}


async def test_trigger_omits_unique_id_when_not_given(client, service):
    """Test uniqueId is left out of the payload when not given."""
    await client.trigger("workflow-1", {"n": 1})
    assert request_json(service.requests[0]) == {"workflowId": "workflow-1", "input": {"n": 1}}


async def test_trigger_assigns_distinct_task_ids(client):
    """Test each trigger creates a separate task."""
    first = await client.trigger("workflow-1", {})
    second = await client.trigger("workflow-1", {})
    assert first.task_id != second.task_id


async def test_trigger_logs_started_task(client, caplog):
    """Test trigger logs the new task id."""
    with caplog.at_level(logging.INFO, logger="pysyncteams"):
        triggered = await client.trigger("workflow-1", {})
    assert f"started as task {triggered.task_id}" in caplog.text


@pytest.mark.parametrize("workflow_id", ["", "   ", None, 42])
async def test_trigger_rejects_bad_workflow_id(client, service, workflow_id):
    """Test invalid workflow ids fail before any request."""
    with pytest.raises(WorkflowValidationError):
        await client.trigger(workflow_id, {})
    assert service.calls() == 0


async def test_trigger_rejects_unserializable_input(client, service):
    """Test non-JSON input fails before any request."""
    with pytest.raises(WorkflowValidationError, match="JSON serializable"):
        await client.trigger("workflow-1", {"when": object()})
    assert service.calls() == 0


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
async def test_trigger_rejects_non_finite_numbers(client, service, value):
    """Test NaN and infinities in input fail before any request."""
    with pytest.raises(WorkflowValidationError, match="JSON serializable"):
        await client.trigger("workflow-1", {"score": value})
    assert service.calls() == 0


async def test_get_status_returns_event_logs(client, service):
    """Test get_status parses the task's event logs."""
    triggered = await client.trigger("workflow-1", {})
    status = await client.get_status(triggered.task_id)

    assert status.task_id == triggered.task_id
    assert status.event_logs is not None
    assert status.event_logs[0].event_type is WorkflowEventType.FlowCreatedEvent


async def test_get_status_encodes_task_id(queue_transport):
    """Test the task id is URL-encoded in the query string."""
    queue = queue_transport([_status_body("RUNNING", "a b&c")])
    async with WorkflowClient(api_key=API_KEY, base_url=BASE_URL, transport=queue.transport()) as client:
        await client.get_status("a b&c")

    assert queue.requests[0].url.params["taskId"] == "a b&c"


async def test_get_status_unknown_task_is_api_error(client):
    """Test a missing task surfaces as a 404 WorkflowAPIError."""
    with pytest.raises(WorkflowAPIError) as exc_info:
        await client.get_status("missing")
    assert exc_info.value.status == 404
    assert is_workflow_api_error(exc_info.value)


async def test_wrong_api_key_is_rejected(service):
    """Test a 401 is raised without retrying."""
    async with WorkflowClient(
        api_key="sts_wrong", base_url=BASE_URL, transport=service.transport()
    ) as client:
        with pytest.raises(WorkflowAPIError) as exc_info:
            await client.trigger("workflow-1", {})

    assert exc_info.value.status == 401
    assert service.calls() == 1


async def test_transient_failures_are_retried(client, service):
    """Test 503 responses are retried until the trigger succeeds."""
    service.fail_next(503, count=2)
    triggered = await client.trigger("workflow-1", {})

    assert triggered.status is WorkflowStatus.PENDING
    assert service.calls("/api/v1") == 3


async def test_per_call_retry_policy(client, service):
    """Test a per-call policy overrides the client default."""
    service.fail_next(503)
    with pytest.raises(WorkflowAPIError) as exc_info:
        await client.trigger("workflow-1", {}, retry_policy=RetryPolicy.NONE)

    assert exc_info.value.status == 503
    assert service.calls() == 1


@pytest.mark.parametrize(
    "body",
    [
        {"status": "PENDING"},
        {"taskId": "t-1", "status": "EXPLODED"},
        "not json at all",
    ],
)
async def test_malformed_response_is_invalid_response(queue_transport, body):
    """Test unexpected success bodies raise INVALID_RESPONSE."""
    resolver = (lambda r: httpx.Response(200, text=body)) if isinstance(body, str) else (
        lambda r: json_response(body)
    )
    queue = queue_transport([resolver])
    async with WorkflowClient(api_key=API_KEY, base_url=BASE_URL, transport=queue.transport()) as client:
        with pytest.raises(WorkflowAPIError) as exc_info:
            await client.trigger("workflow-1", {})

    error = exc_info.value
    assert error.status == 0
    assert error.status_text == "INVALID_RESPONSE"
    assert error.request.url == f"{BASE_URL}/api/v1"
    assert isinstance(error.__cause__, ValueError)
    assert queue.call_count == 1


# ==============================================================================
# Decisions
# ==============================================================================


async def test_approve_waiting_task(client, service):
    """Test approve continues a WAITING task without a message."""
    task = service.add_task("task-1", ["WAITING"])
    await client.get_status("task-1")

    result = await client.approve("task-1")

    assert request_json(service.requests[-1]) == {"taskId": "task-1", "type": "APPROVE"}
    assert task.decisions == [(ApprovalDecision.APPROVE, None)]
    assert result.event_logs[-1].event_type is WorkflowEventType.TaskApprovalResponseEvent


async def test_reject_sends_message(client, service):
    """Test reject sends the REJECT type and message."""
    task = service.add_task("task-1", ["WAITING"])
    await client.get_status("task-1")

    await client.reject("task-1", "numbers look wrong")

    assert request_json(service.requests[-1]) == {
        "taskId": "task-1",
        "type": "REJECT",
        "message": "numbers look wrong",
    }
    assert task.decisions == [(ApprovalDecision.REJECT, "numbers look wrong")]


async def test_decide_accepts_string_decision(client, service):
    """Test decide accepts the decision as a plain string."""
    service.add_task("task-1", ["WAITING"])
    await client.get_status("task-1")

    await client.decide("task-1", "APPROVE", "ok")
    assert request_json(service.requests[-1])["type"] == "APPROVE"


@pytest.mark.parametrize("message", [None, ""])
async def test_reject_without_message_fails_locally(client, service, message):
    """Test REJECT without a message fails before any request."""
    service.add_task("task-1", ["WAITING"])

    with pytest.raises(WorkflowValidationError, match="message is required"):
        await client.decide("task-1", ApprovalDecision.REJECT, message)
    assert service.calls() == 0


async def test_unknown_decision_fails_locally(client, service):
    """Test an unknown decision fails before any request."""
    with pytest.raises(WorkflowValidationError, match="APPROVE or REJECT"):
        await client.decide("task-1", "MAYBE")
    assert service.calls() == 0


async def test_decision_on_running_task_is_conflict(client, service):
    """Test deciding on a task that is not WAITING returns 409."""
    service.add_task("task-1", ["RUNNING"])
    await client.get_status("task-1")

    with pytest.raises(WorkflowAPIError) as exc_info:
        await client.approve("task-1")

    assert exc_info.value.status == 409
    assert exc_info.value.data == {"message": "task is RUNNING, not WAITING"}
    assert service.calls("/api/v1/continue") == 1


# ==============================================================================
# wait_for_completion
# ==============================================================================


async def test_wait_polls_until_terminal(client, service):
    """Test wait_for_completion polls until a terminal status."""
    service.add_task("task-1", ["PENDING", "RUNNING", "COMPLETED"])
    updates = []

    result = await client.wait_for_completion("task-1", poll_interval_ms=1, on_update=updates.append)

    assert result.status is WorkflowStatus.COMPLETED
    assert service.calls("/api/v1/status") == 3
    assert _statuses(updates) == [
        WorkflowStatus.PENDING,
        WorkflowStatus.RUNNING,
        WorkflowStatus.COMPLETED,
    ]


async def test_update_fires_once_per_distinct_status(client, service):
    """Test on_update fires on status changes, not on every poll."""
    service.add_task(
        "task-1", ["PENDING", "RUNNING", "RUNNING", "RUNNING", "PENDING", "FAILED"]
    )
    updates = []

    result = await client.wait_for_completion("task-1", poll_interval_ms=1, on_update=updates.append)

    assert result.status is WorkflowStatus.FAILED
    assert service.calls("/api/v1/status") == 6
    assert _statuses(updates) == [
        WorkflowStatus.PENDING,
        WorkflowStatus.RUNNING,
        WorkflowStatus.PENDING,
        WorkflowStatus.FAILED,
    ]


async def test_async_update_callback_is_awaited(client, service):
    """Test a coroutine on_update callback is awaited."""
    service.add_task("task-1", ["RUNNING", "CANCELED"])
    seen = []

    async def on_update(record):
        await asyncio.sleep(0)
        seen.append(record.status)

    await client.wait_for_completion("task-1", poll_interval_ms=1, on_update=on_update)
    assert seen == [WorkflowStatus.RUNNING, WorkflowStatus.CANCELED]


async def test_waiting_keeps_polling_by_default(client, service):
    """Test WAITING does not end the wait unless asked."""
    service.add_task("task-1", ["WAITING", "WAITING", "COMPLETED"])

    result = await client.wait_for_completion("task-1", poll_interval_ms=1)

    assert result.status is WorkflowStatus.COMPLETED
    assert service.calls("/api/v1/status") == 3


async def test_exit_on_waiting(client, service):
    """Test exit_on_waiting returns the WAITING record."""
    service.add_task("task-1", ["RUNNING", "WAITING", "COMPLETED"])

    result = await client.wait_for_completion("task-1", poll_interval_ms=1, exit_on_waiting=True)

    assert result.status is WorkflowStatus.WAITING
    assert service.calls("/api/v1/status") == 2


async def test_custom_terminal_statuses(client, service):
    """Test a custom terminal set ends the wait early."""
    service.add_task("task-1", ["QUEUED", "RUNNING", "COMPLETED"])

    result = await client.wait_for_completion(
        "task-1", poll_interval_ms=1, terminal_statuses=[WorkflowStatus.RUNNING]
    )

    assert result.status is WorkflowStatus.RUNNING
    assert service.calls("/api/v1/status") == 2


async def test_wait_times_out_with_last_status(client, service):
    """Test the poll timeout carries the last observed status."""
    service.add_task("task-1", ["RUNNING"])

    with pytest.raises(PollTimeoutError) as exc_info:
        await client.wait_for_completion("task-1", poll_interval_ms=5, max_wait_time_ms=30)

    error = exc_info.value
    assert error.last_status is WorkflowStatus.RUNNING
    assert error.task_id == "task-1"
    assert error.status == 0
    assert error.status_text == "POLL_TIMEOUT"
    assert error.data == {"taskId": "task-1", "lastStatus": "RUNNING"}
    assert error.request.url == f"{BASE_URL}/api/v1/status?taskId=task-1"
    assert is_workflow_api_error(error)


async def test_poll_failure_is_not_retried_by_wait(client, service):
    """Test a failed poll ends the wait immediately."""
    service.add_task("task-1", ["RUNNING"])
    service.fail_next(400, body={"error": "bad request"})

    with pytest.raises(WorkflowAPIError) as exc_info:
        await client.wait_for_completion("task-1", poll_interval_ms=1)

    assert exc_info.value.status == 400
    assert str(exc_info.value) == "400 Bad Request: bad request"
    assert service.calls() == 1


async def test_cancel_during_poll_sleep(client, service):
    """Test cancelling during the poll interval stops the wait promptly."""
    service.add_task("task-1", ["RUNNING"])
    token = CancellationToken()

    def cancel_soon(record):
        asyncio.get_running_loop().call_later(0.02, token.cancel, "page closed")

    started = time.monotonic()
    with pytest.raises(OperationCancelledError) as exc_info:
        await client.wait_for_completion(
            "task-1", poll_interval_ms=10_000, cancel_token=token, on_update=cancel_soon
        )

    assert time.monotonic() - started < 2.0
    assert exc_info.value.reason == "page closed"
    assert not isinstance(exc_info.value, WorkflowAPIError)
    assert service.calls("/api/v1/status") == 1


async def test_already_cancelled_wait_makes_no_request(client, service):
    """Test a cancelled token stops the wait before the first poll."""
    service.add_task("task-1", ["RUNNING"])
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        await client.wait_for_completion("task-1", cancel_token=token)
    assert service.calls() == 0


async def test_task_cancellation_propagates(client, service):
    """Test cancelling the asyncio task raises CancelledError."""
    service.add_task("task-1", ["RUNNING"])
    wait = asyncio.create_task(client.wait_for_completion("task-1", poll_interval_ms=10_000))

    while service.calls() == 0:
        await asyncio.sleep(0.001)
    wait.cancel()

    with pytest.raises(asyncio.CancelledError):
        await wait


async def test_wait_rejects_bad_task_id(client, service):
    """Test an empty task id fails before any request."""
    with pytest.raises(WorkflowValidationError):
        await client.wait_for_completion("")
    assert service.calls() == 0


# ==============================================================================
# trigger_and_wait
# ==============================================================================


async def test_trigger_and_wait_approval_interrupt(queue_transport):
    """Test the handler runs once and polling resumes to completion."""
    queue = queue_transport(
        [
            _status_body("PENDING"),
            _status_body("WAITING"),
            _status_body("RUNNING"),
            _status_body("COMPLETED"),
        ]
    )
    paused = []

    def on_waiting(record):
        paused.append(record)
        return True

    async with WorkflowClient(
        api_key=API_KEY, base_url=BASE_URL, transport=queue.transport(), retry_policy=FAST_RETRY
    ) as client:
        result = await client.trigger_and_wait(
            "workflow-1", {}, on_waiting=on_waiting, poll_interval_ms=1
        )

    assert result.status is WorkflowStatus.COMPLETED
    assert queue.call_count == 4
    assert _statuses(paused) == [WorkflowStatus.WAITING]


async def test_trigger_and_wait_handler_approves(client, service):
    """Test an approving handler drives the task to completion."""
    service.script_workflow("review", ["PENDING", "WAITING", "RUNNING", "COMPLETED"])
    updates = []

    async def on_waiting(record):
        await client.approve(record.task_id, "looks good")
        return True

    result = await client.trigger_and_wait(
        "review", {"doc": 1}, on_waiting=on_waiting, poll_interval_ms=1, on_update=updates.append
    )

    assert result.status is WorkflowStatus.COMPLETED
    task = service.tasks[result.task_id]
    assert task.decisions == [(ApprovalDecision.APPROVE, "looks good")]
    assert service.calls("/api/v1/continue") == 1
    assert _statuses(updates) == [
        WorkflowStatus.WAITING,
        WorkflowStatus.RUNNING,
        WorkflowStatus.COMPLETED,
    ]


async def test_trigger_and_wait_handles_repeated_pauses(client, service):
    """Test the handler runs once per approval pause."""
    service.script_workflow(
        "two-step", ["PENDING", "WAITING", "RUNNING", "WAITING", "COMPLETED"]
    )
    calls = []

    async def on_waiting(record):
        calls.append(record.task_id)
        await client.approve(record.task_id)
        return True

    result = await client.trigger_and_wait("two-step", {}, on_waiting=on_waiting, poll_interval_ms=1)

    assert result.status is WorkflowStatus.COMPLETED
    assert len(calls) == 2


async def test_trigger_and_wait_handler_can_stop(client, service):
    """Test a handler returning False stops at the WAITING record."""
    service.script_workflow("review", ["PENDING", "WAITING", "COMPLETED"])

    result = await client.trigger_and_wait(
        "review", {}, on_waiting=lambda record: False, poll_interval_ms=1
    )

    assert result.status is WorkflowStatus.WAITING
    assert service.calls("/api/v1/status") == 1


async def test_trigger_and_wait_without_handler_returns_waiting(client, service):
    """Test trigger_and_wait returns WAITING when no handler is given."""
    service.script_workflow("review", ["PENDING", "RUNNING", "WAITING", "COMPLETED"])

    result = await client.trigger_and_wait("review", {}, poll_interval_ms=1)

    assert result.status is WorkflowStatus.WAITING
    assert service.calls("/api/v1/status") == 2


async def test_trigger_and_wait_without_pause(client, service):
    service.script_workflow("simple", ["QUEUED", "RUNNING", "FAILED"])
    handler_calls = []

    result = await client.trigger_and_wait(
        "simple", {}, on_waiting=handler_calls.append, poll_interval_ms=1
    )

    assert result.status is WorkflowStatus.FAILED
    assert handler_calls == []


async def test_trigger_and_wait_propagates_trigger_failure(client, service):
    """Test a failed trigger is raised without polling."""
    service.fail_next(422, body={"message": "unknown workflow"})

    with pytest.raises(WorkflowAPIError) as exc_info:
        await client.trigger_and_wait("nope", {})

    assert exc_info.value.status == 422
    assert service.calls() == 1


async def test_trigger_and_wait_sleeps_before_repolling(client, service, monkeypatch):
    """Test the poll interval is observed after the handler resumes polling."""
    service.script_workflow("review", ["PENDING", "WAITING", "WAITING", "COMPLETED"])
    delays = []
    handled = []

    async def fake_sleep(delay_ms, cancel_token=None):
        delays.append(delay_ms)

    def on_waiting(record):
        handled.append(record.status)
        return True

    monkeypatch.setattr(client_module, "sleep", fake_sleep)
    result = await client.trigger_and_wait(
        "review", {}, on_waiting=on_waiting, poll_interval_ms=250
    )

    assert result.status is WorkflowStatus.COMPLETED
    assert handled == [WorkflowStatus.WAITING, WorkflowStatus.WAITING]
    assert delays == [250, 250]
    assert service.calls("/api/v1/status") == 3


async def test_trigger_and_wait_cancel_from_handler(client, service):
    """Test cancelling from inside the handler stops before the next poll."""
    service.script_workflow("review", ["PENDING", "WAITING"])
    token = CancellationToken()

    def on_waiting(record):
        token.cancel("reviewer left")
        return True

    with pytest.raises(OperationCancelledError) as exc_info:
        await client.trigger_and_wait(
            "review", {}, on_waiting=on_waiting, poll_interval_ms=10_000, cancel_token=token
        )

    assert exc_info.value.reason == "reviewer left"
    assert service.calls("/api/v1/status") == 1
