"""In-memory stand-in for the workflow service.

Design Pattern: Adapter Pattern
FakeWorkflowService adapts in-memory dictionaries to the service's HTTP
surface, so it can be plugged into any client as an ``httpx.MockTransport``
without changing client code.

Instance is immediately usable after __init__.

Usage:
    service = FakeWorkflowService(api_key="sts_test")
    service.script_workflow("wf-1", ["PENDING", "RUNNING", "COMPLETED"])
    client = WorkflowClient(api_key="sts_test", transport=service.transport())
"""

from __future__ import annotations

import json
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx
from uuid_extensions import uuid7

from pysyncteams.models import ApprovalDecision, WorkflowEventType, WorkflowStatus

__all__ = ["FakeWorkflowService", "FakeTask"]


def _as_status(value: WorkflowStatus | str) -> WorkflowStatus:
    return WorkflowStatus(value)


@dataclass
class FakeTask:
    """Server-side state of one fake task."""

    task_id: str
    workflow_id: str
    status: WorkflowStatus
    input: Any = None
    unique_id: str | None = None
    pending_statuses: deque[WorkflowStatus] = field(default_factory=deque)
    """Statuses reported by successive status polls; the last one sticks."""

    event_logs: list[dict[str, Any]] = field(default_factory=list)
    decisions: list[tuple[ApprovalDecision, str | None]] = field(default_factory=list)

    def advance(self) -> None:
        if self.pending_statuses:
            self.status = self.pending_statuses.popleft()

    def log_event(self, event_type: WorkflowEventType | str, data: Mapping[str, Any] | None = None) -> None:
        self.event_logs.append(
            {
                "eventType": str(event_type),
                "eventData": dict(data or {}),
                "createdAt": datetime.now(UTC).isoformat(),
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "status": self.status.value,
            "eventLogs": list(self.event_logs),
        }


class FakeWorkflowService:
    """In-memory workflow service for tests.

    - POST /api/v1 creates a task with a uuid7 id
    - GET /api/v1/status reports the next scripted status for the task
    - POST /api/v1/continue records a decision for a WAITING task

    Every request is recorded in ``requests``. Failures can be queued with
    fail_next() to exercise retry paths.
    """

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key
        self.tasks: dict[str, FakeTask] = {}
        self.requests: list[httpx.Request] = []
        self._scripts: dict[str, list[WorkflowStatus]] = {}
        self._failures: deque[httpx.Response] = deque()

    def __repr__(self) -> str:
        return f"FakeWorkflowService(tasks={len(self.tasks)}, requests={len(self.requests)})"

    # ========================================================================
    # Test setup
    # ========================================================================

    def script_workflow(self, workflow_id: str, statuses: Iterable[WorkflowStatus | str]) -> None:
        """Script tasks of ``workflow_id``: the first status is returned by
        the trigger, the rest by successive status polls."""
        script = [_as_status(s) for s in statuses]
        if not script:
            raise ValueError("a workflow script needs at least one status")
        self._scripts[workflow_id] = script

    def add_task(
        self,
        task_id: str,
        statuses: Iterable[WorkflowStatus | str],
        workflow_id: str = "workflow",
    ) -> FakeTask:
        """Register a task whose status polls return ``statuses`` in order."""
        script = deque(_as_status(s) for s in statuses)
        if not script:
            raise ValueError("a task needs at least one status")
        task = FakeTask(
            task_id=task_id,
            workflow_id=workflow_id,
            status=WorkflowStatus.QUEUED,
            pending_statuses=script,
        )
        self.tasks[task_id] = task
        return task

    def fail_next(self, status_code: int, count: int = 1, body: Any = None) -> None:
        """Answer the next ``count`` requests with ``status_code``."""
        for _ in range(count):
            if body is None:
                self._failures.append(httpx.Response(status_code))
            else:
                self._failures.append(httpx.Response(status_code, json=body))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls(self, path: str | None = None) -> int:
        """Number of recorded requests, optionally only those for ``path``."""
        if path is None:
            return len(self.requests)
        return sum(1 for r in self.requests if r.url.path == path)

    # ========================================================================
    # Request handling
    # ========================================================================

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.api_key is not None and request.headers.get("x-api-key") != self.api_key:
            return httpx.Response(401, json={"message": "invalid api key"})

        if self._failures:
            return self._failures.popleft()

        route = (request.method, request.url.path)
        if route == ("POST", "/api/v1"):
            return self._trigger(request)
        if route == ("GET", "/api/v1/status"):
            return self._status(request)
        if route == ("POST", "/api/v1/continue"):
            return self._continue(request)
        return httpx.Response(404, json={"message": f"no route for {request.method} {request.url.path}"})

    def _trigger(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        workflow_id = payload.get("workflowId")
        if not workflow_id:
            return httpx.Response(400, json={"message": "workflowId is required"})

        script = list(self._scripts.get(workflow_id, [WorkflowStatus.PENDING]))
        task = FakeTask(
            task_id=str(uuid7()),
            workflow_id=workflow_id,
            status=script[0],
            input=payload.get("input"),
            unique_id=payload.get("uniqueId"),
            pending_statuses=deque(script[1:]),
        )
        task.log_event(WorkflowEventType.FlowCreatedEvent, {"workflowId": workflow_id})
        self.tasks[task.task_id] = task
        return httpx.Response(200, json={"taskId": task.task_id, "status": task.status.value})

    def _status(self, request: httpx.Request) -> httpx.Response:
        task = self.tasks.get(request.url.params.get("taskId", ""))
        if task is None:
            return httpx.Response(404, json={"message": "task not found"})
        task.advance()
        return httpx.Response(200, json=task.to_dict())

    def _continue(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        task = self.tasks.get(payload.get("taskId", ""))
        if task is None:
            return httpx.Response(404, json={"message": "task not found"})
        if task.status != WorkflowStatus.WAITING:
            return httpx.Response(409, json={"message": f"task is {task.status.value}, not WAITING"})

        try:
            decision = ApprovalDecision(payload.get("type"))
        except ValueError:
            return httpx.Response(400, json={"message": "type must be APPROVE or REJECT"})
        message = payload.get("message")
        if decision == ApprovalDecision.REJECT and not message:
            return httpx.Response(400, json={"message": "message is required when rejecting"})

        task.decisions.append((decision, message))
        task.log_event(
            WorkflowEventType.TaskApprovalResponseEvent,
            {"type": decision.value, "message": message},
        )
        return httpx.Response(200, json=task.to_dict())
