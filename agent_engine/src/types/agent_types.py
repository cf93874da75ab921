# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import os

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from .llm_types import TokenUsage


class AgentStatus(str, Enum):
    """Possible states of an agent execution."""

    SUCCESS = "success"
    ERROR = "error"
    RUNNING = "running"


class AgentMetrics(BaseModel):
    """Metrics about the agent execution."""

    start_time: datetime
    end_time: Optional[datetime] = None
    token_usage: TokenUsage = TokenUsage()
    iterations: int = 0
    tool_calls: int = 0
    failed_tool_calls: int = 0

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate execution duration if completed."""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None


class AgentResult(BaseModel):
    """
    Represents the result of an agent execution.

    The `result` is the final assistant message, i.e. the text of the first
    completion that requested no further tool calls.
    """

    agent_name: str
    status: AgentStatus
    metrics: AgentMetrics
    result: str = Field(description="A string-valued agent result")
    errors: Optional[str] = None
    invocation_id: str = Field(default_factory=lambda: os.urandom(4).hex())
    metadata: dict = Field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"{self.agent_name} finished with status {self.status.value}", self.result]
        if self.errors:
            parts.append(f"Errors: {self.errors}")
        if self.metrics.duration_seconds:
            parts.append(
                f"Completed in {self.metrics.duration_seconds:.2f}s over "
                f"{self.metrics.iterations} turns and {self.metrics.tool_calls} tool calls "
                f"using {self.metrics.token_usage.total_tokens} tokens"
            )
        return "\n".join(parts)
