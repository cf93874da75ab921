# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Base models and shared functionality for LLM interactions."""

from typing import Literal, Optional
from datetime import datetime, timedelta
from pydantic import BaseModel, Field

from ..types.llm_types import (
    TokenUsage,
    StopReason,
    TextContent,
    ReasoningContent,
    ToolCallContent,
    ToolResultContent,
    ContentTypes,
)


class Message(BaseModel):
    """A message in a conversation with an LLM.

    The system prompt is not a message: it is passed to the completion port
    separately. Tool results travel in user messages.
    """

    role: Literal["user", "assistant"]
    content: list[ContentTypes]

    @property
    def text(self) -> str:
        return "".join(c.text for c in self.content if isinstance(c, TextContent))

    def __str__(self) -> str:
        parts = [f"Message from role={self.role}"]
        for c in self.content:
            if isinstance(c, TextContent):
                parts.append(f"Text {'-'*10}\n{c.text}")
            elif isinstance(c, ReasoningContent):
                parts.append(f"Reasoning {'-'*10}\n{c.text}")
            elif isinstance(c, ToolCallContent):
                parts.append(f"{'-'*10}\nTool call {c.tool_name} (id: {c.call_id}): {c.arguments}\n{'-'*10}")
            elif isinstance(c, ToolResultContent):
                parts.append(f"{'-'*10}\nTool result {c.tool_name} (id: {c.call_id}): {c.content}\n{'-'*10}")
        return "\n".join(parts)


class TimingInfo(BaseModel):
    """Timing information for LLM interactions."""

    start_time: datetime = Field(description="When the request started")
    end_time: datetime = Field(description="When the response completed")
    total_duration: timedelta = Field(description="Total duration of the request")
    tokens_per_second: Optional[float] = Field(
        None, description="Average tokens per second for completion"
    )

    @classmethod
    def measure(cls, start_time: datetime, completion_tokens: int) -> "TimingInfo":
        end_time = datetime.now()
        duration = end_time - start_time
        seconds = duration.total_seconds()
        return cls(
            start_time=start_time,
            end_time=end_time,
            total_duration=duration,
            tokens_per_second=completion_tokens / seconds if seconds > 0 else None,
        )

    def __str__(self) -> str:
        fmt = "%Y-%m-%d %H:%M:%S"
        parts = [
            f"- Start {self.start_time.strftime(fmt)}, End {self.end_time.strftime(fmt)}",
            f"- Duration: {self.total_duration}",
        ]
        if self.tokens_per_second is not None:
            parts.append(f"- TPS: {self.tokens_per_second:.2f}")
        return "\n".join(parts)


# Completion Types ============================================================


class Completion(BaseModel):
    """A completion response from an LLM."""

    id: str
    content: list[ContentTypes]
    model: str
    usage: TokenUsage = TokenUsage()
    timing: Optional[TimingInfo] = None
    stop_reason: StopReason = StopReason.COMPLETE
    raw_response: Optional[dict] = Field(default=None, exclude=True)

    @property
    def tool_calls(self) -> list[ToolCallContent]:
        return [c for c in self.content if isinstance(c, ToolCallContent)]

    @property
    def text(self) -> str:
        return "".join(c.text for c in self.content if isinstance(c, TextContent))

    @property
    def reasoning(self) -> str | None:
        parts = [c.text for c in self.content if isinstance(c, ReasoningContent)]
        return "\n".join(parts) if parts else None

    @property
    def hit_token_limit(self) -> bool:
        """Check if completion stopped due to token length."""
        return self.stop_reason == StopReason.LENGTH

    def to_message(self) -> Message:
        return Message(role="assistant", content=list(self.content))
