# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Messages API tool use through the official anthropic SDK."""

import json
import logging

from typing import Any, Optional, Sequence
from datetime import datetime

import anthropic

from anthropic import AsyncAnthropic

from .base_provider import CompletionPort, code_for_status
from ..base import Message, Completion, TimingInfo
from ..errors import LLMError
from ...config import settings
from ...types.llm_types import (
    LLMErrorCode,
    StopReason,
    TokenUsage,
    TextContent,
    ReasoningContent,
    ToolCallContent,
    ToolResultContent,
    ToolSchema,
)

logger = logging.getLogger(__name__)

PROVIDER = "anthropic"


def map_anthropic_error(e: Exception) -> LLMError:
    if isinstance(e, anthropic.APITimeoutError):
        code = LLMErrorCode.TIMEOUT
    elif isinstance(e, anthropic.APIConnectionError):
        code = LLMErrorCode.SERVICE_UNAVAILABLE
    elif isinstance(e, anthropic.RateLimitError):
        code = LLMErrorCode.RATE_LIMITED
    elif isinstance(e, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        code = LLMErrorCode.UNAUTHORIZED
    elif isinstance(e, (anthropic.BadRequestError, anthropic.NotFoundError, anthropic.UnprocessableEntityError)):
        code = LLMErrorCode.INVALID_REQUEST
    elif isinstance(e, anthropic.APIStatusError):
        code = code_for_status(e.status_code)
    else:
        code = LLMErrorCode.UNKNOWN
    return LLMError(code, str(e), provider=PROVIDER)


def _parse_arguments(arguments: str) -> dict:
    try:
        parsed = json.loads(arguments) if arguments.strip() else {}
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


class AnthropicProvider(CompletionPort):
    def __init__(self, client: AsyncAnthropic | None = None, model: str | None = None):
        self.client = client or AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=settings.LLM_TIMEOUT,
            max_retries=0,
        )
        self.model = model or settings.MODEL

    def native_tool(self, tool: ToolSchema) -> dict:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.parameters,
        }

    def _prepare_messages(self, messages: Sequence[Message]) -> list[dict]:
        api_messages = []
        for msg in messages:
            blocks: list[dict[str, Any]] = []
            for block in msg.content:
                if isinstance(block, TextContent):
                    if block.text:
                        blocks.append({"type": "text", "text": block.text})
                elif isinstance(block, ToolCallContent):
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": block.call_id,
                            "name": block.tool_name,
                            "input": _parse_arguments(block.arguments),
                        }
                    )
                elif isinstance(block, ToolResultContent):
                    blocks.append(
                        {
                            "type": "tool_result",
                            "tool_use_id": block.call_id,
                            "content": block.content,
                            "is_error": block.is_error,
                        }
                    )
            if blocks:
                api_messages.append({"role": msg.role, "content": blocks})
        return api_messages

    def map_stop_reason(self, stop_reason: str | None) -> StopReason:
        if stop_reason == "tool_use":
            return StopReason.TOOL_USE
        if stop_reason == "max_tokens":
            return StopReason.LENGTH
        return StopReason.COMPLETE

    async def create_completion(
        self,
        messages: Sequence[Message],
        system: Optional[str] = None,
        tools: Optional[Sequence[ToolSchema]] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        start_time = datetime.now()
        args: dict[str, Any] = {
            "model": model or self.model,
            "messages": self._prepare_messages(messages),
            "max_tokens": max_tokens or settings.MAX_TOKENS,
        }
        if system:
            args["system"] = system
        if tools:
            args["tools"] = [self.native_tool(t) for t in tools]

        try:
            response = await self.client.messages.create(**args)
        except anthropic.AnthropicError as e:
            raise map_anthropic_error(e) from e

        content = []
        for block in response.content:
            if block.type == "text":
                content.append(TextContent(text=block.text))
            elif block.type == "thinking":
                content.append(ReasoningContent(text=block.thinking))
            elif block.type == "tool_use":
                content.append(
                    ToolCallContent(
                        call_id=block.id,
                        tool_name=block.name,
                        arguments=json.dumps(block.input),
                    )
                )

        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
        )
        return Completion(
            id=response.id,
            content=content,
            model=response.model,
            usage=usage,
            timing=TimingInfo.measure(start_time, usage.completion_tokens),
            stop_reason=self.map_stop_reason(response.stop_reason),
            raw_response={"stop_reason": response.stop_reason},
        )
