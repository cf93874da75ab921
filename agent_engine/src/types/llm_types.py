# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from typing import Literal, Union
from pydantic import BaseModel, Field


class StopReason(str, Enum):
    COMPLETE = "complete"
    TOOL_USE = "tool_use"
    LENGTH = "length"
    ERROR = "error"


class LLMErrorCode(str, Enum):
    """Provider-agnostic failure codes for the completion port."""

    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    INVALID_REQUEST = "invalid_request"
    TIMEOUT = "timeout"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN = "unknown"


RETRYABLE_CODES = frozenset({LLMErrorCode.RATE_LIMITED, LLMErrorCode.SERVICE_UNAVAILABLE})


class TokenUsage(BaseModel):
    input_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.completion_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str

    def __str__(self) -> str:
        return self.text


class ReasoningContent(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str

    def __str__(self) -> str:
        return f"<reasoning>{self.text}</reasoning>"


class ToolCallContent(BaseModel):
    """A tool invocation requested by the model.

    `arguments` is the raw JSON string the provider returned; it is parsed and
    validated by the tool registry, never by the provider adapter.
    """

    type: Literal["tool_call"] = "tool_call"
    call_id: str
    tool_name: str
    arguments: str = "{}"

    def __str__(self) -> str:
        return f"Tool call {self.tool_name} (id: {self.call_id}): {self.arguments}"


class ToolResultContent(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    call_id: str
    tool_name: str
    content: str
    is_error: bool = False

    def __str__(self) -> str:
        return f"Tool result {self.tool_name} (id: {self.call_id}): {self.content}"


ContentTypes = Union[TextContent, ReasoningContent, ToolCallContent, ToolResultContent]


class ToolSchema(BaseModel):
    """What the model sees of a tool: name, description and argument schema."""

    name: str
    description: str
    parameters: dict = Field(default_factory=dict)
