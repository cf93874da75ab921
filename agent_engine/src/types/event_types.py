# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from uuid import uuid4
from datetime import datetime
from dataclasses import field, dataclass


class EventType(str, Enum):
    WORKFLOW_STATE = "workflowState"
    STATUS = "status"
    SYSTEM_PROMPT = "system_prompt"
    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"
    REASONING = "reasoning"
    TOOL_CALL = "tool_call"
    TOOL_CALL_RESULT = "tool_call_result"
    ERROR = "error"


class WorkflowState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    TIMED_OUT = "timedOut"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {WorkflowState.COMPLETED, WorkflowState.ERROR, WorkflowState.TIMED_OUT}
)


class StatusLevel(str, Enum):
    STATUS = "status"
    INFO = "info"
    WARN = "warn"


@dataclass
class Event:
    """A single entry in a workflow run's event chain.

    `sequence` and `timestamp` are assigned by the event log when the event is
    appended; a producer normally leaves them unset. Type-specific payload
    lives in `metadata` (see the constructors below for the keys used by each
    event type).
    """

    type: EventType
    content: str | None = None
    metadata: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime | None = None
    sequence: int | None = None
    parent_id: str | None = None

    @property
    def is_lifecycle(self) -> bool:
        return self.type == EventType.WORKFLOW_STATE

    @property
    def state(self) -> WorkflowState | None:
        if not self.is_lifecycle:
            return None
        return WorkflowState(self.metadata["state"])

    # Constructors ============================================================

    @classmethod
    def workflow_state(cls, state: WorkflowState, content: str | None = None) -> "Event":
        return cls(
            type=EventType.WORKFLOW_STATE,
            content=content,
            metadata=dict(state=WorkflowState(state).value),
        )

    @classmethod
    def status(cls, content: str, level: StatusLevel = StatusLevel.STATUS) -> "Event":
        return cls(type=EventType.STATUS, content=content, metadata=dict(level=level.value))

    @classmethod
    def error(cls, content: str) -> "Event":
        return cls(type=EventType.ERROR, content=content)

    @classmethod
    def tool_call(cls, tool_name: str, tool_call_id: str, arguments: str) -> "Event":
        return cls(
            type=EventType.TOOL_CALL,
            metadata=dict(
                tool_name=tool_name, tool_call_id=tool_call_id, arguments=arguments
            ),
        )

    @classmethod
    def tool_call_result(cls, tool_name: str, tool_call_id: str, content: str) -> "Event":
        return cls(
            type=EventType.TOOL_CALL_RESULT,
            content=content,
            metadata=dict(tool_name=tool_name, tool_call_id=tool_call_id),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "sequence": self.sequence,
            "parent_id": self.parent_id,
        }
