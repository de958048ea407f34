"""Task records returned by the workflow service.

Every status fetch returns a full snapshot; these value objects hold one
snapshot each and are never mutated by the client.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pysyncteams.models.event_types import WorkflowEventType
from pysyncteams.models.status import WorkflowStatus

__all__ = [
    "TaskEventLog",
    "TriggerResponse",
    "TaskStatusResponse",
    "WebhookEventPayload",
]


def _parse_timestamp(value: Any) -> datetime | str | None:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return text


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


def _require_task_id(data: Mapping[str, Any]) -> str:
    task_id = data.get("taskId")
    if not isinstance(task_id, str) or not task_id:
        raise ValueError("response is missing 'taskId'")
    return task_id


def _parse_status(data: Mapping[str, Any]) -> WorkflowStatus:
    raw = data.get("status")
    try:
        return WorkflowStatus(raw)
    except ValueError:
        raise ValueError(f"unknown workflow status: {raw!r}") from None


def _parse_event_logs(data: Mapping[str, Any]) -> list[TaskEventLog] | None:
    logs = data.get("eventLogs")
    if logs is None:
        return None
    if not isinstance(logs, list):
        raise ValueError("'eventLogs' must be a list")
    return [TaskEventLog.from_dict(entry) for entry in logs]


@dataclass(frozen=True)
class TaskEventLog:
    """One entry of a task's event history.

    Purely observational: built from server data, never sent back.
    """

    event_type: WorkflowEventType | str
    """Cataloged event type, or the raw name for event types the catalog lacks."""

    event_data: dict[str, Any] = field(default_factory=dict)
    """Execution details specific to the event type."""

    created_at: datetime | str | None = None
    """When the event was recorded (raw string if not ISO-8601)."""

    updated_at: datetime | str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> TaskEventLog:
        data = _require_mapping(data, "event log entry")
        event_data = data.get("eventData")
        return cls(
            event_type=WorkflowEventType.parse(str(data.get("eventType", ""))),
            event_data=dict(event_data) if isinstance(event_data, Mapping) else {},
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )

    @property
    def is_known_type(self) -> bool:
        return isinstance(self.event_type, WorkflowEventType)


@dataclass(frozen=True)
class TriggerResponse:
    """Result of starting a workflow run."""

    task_id: str
    status: WorkflowStatus
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    """Response body as received, including fields not modeled here."""

    @classmethod
    def from_dict(cls, data: Any) -> TriggerResponse:
        data = _require_mapping(data, "trigger response")
        return cls(task_id=_require_task_id(data), status=_parse_status(data), raw=dict(data))


@dataclass(frozen=True)
class TaskStatusResponse:
    """Snapshot of a task's status and event history."""

    task_id: str
    status: WorkflowStatus
    event_logs: list[TaskEventLog] | None = None
    """Server's current filtered view of the history, or None if omitted."""

    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Any) -> TaskStatusResponse:
        data = _require_mapping(data, "status response")
        return cls(
            task_id=_require_task_id(data),
            status=_parse_status(data),
            event_logs=_parse_event_logs(data),
            raw=dict(data),
        )

    @property
    def is_waiting(self) -> bool:
        return self.status.is_waiting


@dataclass(frozen=True)
class WebhookEventPayload:
    """Body the service posts to a configured webhook.

    Parsing only: receiving and verifying webhooks is up to the caller.
    """

    task_id: str
    status: WorkflowStatus
    unique_id: str | None = None
    event_logs: list[TaskEventLog] | None = None

    @classmethod
    def from_dict(cls, data: Any) -> WebhookEventPayload:
        data = _require_mapping(data, "webhook payload")
        unique_id = data.get("uniqueId")
        return cls(
            task_id=_require_task_id(data),
            status=_parse_status(data),
            unique_id=str(unique_id) if unique_id is not None else None,
            event_logs=_parse_event_logs(data),
        )
