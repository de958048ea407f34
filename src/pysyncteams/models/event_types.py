"""Catalog of workflow lifecycle event names.

The service may add event types at any time, so parsing never rejects
an unknown name: it is kept as the raw string instead.
"""

from __future__ import annotations

from enum import Enum


class WorkflowEventType(Enum):
    """Known event names reported in a task's event logs."""

    # Inputs and approvals
    UserInputEvent = "UserInputEvent"
    ConnectorInputEvent = "ConnectorInputEvent"
    TaskApprovalRequestEvent = "TaskApprovalRequestEvent"
    TaskApprovalResponseEvent = "TaskApprovalResponseEvent"

    # Crew lifecycle
    CrewKickoffStartedEvent = "CrewKickoffStartedEvent"
    CrewKickoffCompletedEvent = "CrewKickoffCompletedEvent"
    CrewKickoffFailedEvent = "CrewKickoffFailedEvent"
    CrewTestStartedEvent = "CrewTestStartedEvent"
    CrewTestCompletedEvent = "CrewTestCompletedEvent"
    CrewTestFailedEvent = "CrewTestFailedEvent"
    CrewTrainStartedEvent = "CrewTrainStartedEvent"
    CrewTrainCompletedEvent = "CrewTrainCompletedEvent"
    CrewTestResultEvent = "CrewTestResultEvent"
    CrewTrainFailedEvent = "CrewTrainFailedEvent"

    # Agents
    AgentExecutionStartedEvent = "AgentExecutionStartedEvent"
    AgentExecutionCompletedEvent = "AgentExecutionCompletedEvent"
    AgentExecutionErrorEvent = "AgentExecutionErrorEvent"
    AgentReasoningStartedEvent = "AgentReasoningStartedEvent"
    AgentReasoningCompletedEvent = "AgentReasoningCompletedEvent"
    AgentReasoningFailedEvent = "AgentReasoningFailedEvent"

    # Tasks
    TaskStartedEvent = "TaskStartedEvent"
    TaskCompletedEvent = "TaskCompletedEvent"
    TaskFailedEvent = "TaskFailedEvent"
    TaskEvaluationEvent = "TaskEvaluationEvent"
    TaskOutput = "TaskOutput"

    # Tools
    ToolUsageStartedEvent = "ToolUsageStartedEvent"
    ToolUsageFinishedEvent = "ToolUsageFinishedEvent"
    ToolUsageErrorEvent = "ToolUsageErrorEvent"
    ToolValidateInputErrorEvent = "ToolValidateInputErrorEvent"
    ToolExecutionErrorEvent = "ToolExecutionErrorEvent"
    ToolSelectionErrorEvent = "ToolSelectionErrorEvent"

    # Knowledge
    KnowledgeRetrievalStartedEvent = "KnowledgeRetrievalStartedEvent"
    KnowledgeRetrievalCompletedEvent = "KnowledgeRetrievalCompletedEvent"
    KnowledgeQueryStartedEvent = "KnowledgeQueryStartedEvent"
    KnowledgeQueryCompletedEvent = "KnowledgeQueryCompletedEvent"
    KnowledgeQueryFailedEvent = "KnowledgeQueryFailedEvent"
    KnowledgeSearchQueryFailedEvent = "KnowledgeSearchQueryFailedEvent"

    # Flows
    FlowCreatedEvent = "FlowCreatedEvent"
    FlowStartedEvent = "FlowStartedEvent"
    FlowFinishedEvent = "FlowFinishedEvent"
    FlowPlotEvent = "FlowPlotEvent"
    MethodExecutionStartedEvent = "MethodExecutionStartedEvent"
    MethodExecutionFinishedEvent = "MethodExecutionFinishedEvent"
    MethodExecutionFailedEvent = "MethodExecutionFailedEvent"

    # LLM calls
    LLMCallStartedEvent = "LLMCallStartedEvent"
    LLMCallCompletedEvent = "LLMCallCompletedEvent"
    LLMCallFailedEvent = "LLMCallFailedEvent"
    LLMStreamChunkEvent = "LLMStreamChunkEvent"

    @classmethod
    def parse(cls, value: str) -> WorkflowEventType | str:
        """Return the matching member, or ``value`` unchanged if it is not cataloged."""
        try:
            return cls(value)
        except ValueError:
            return value

    def __str__(self) -> str:
        return self.value
