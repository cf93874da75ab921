# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Chat-completions tool calling through the official openai SDK."""

import logging

from typing import Any, Optional, Sequence
from datetime import datetime

import openai

from openai import AsyncOpenAI

from .base_provider import CompletionPort, code_for_status
from ..base import Message, Completion, TimingInfo
from ..errors import LLMError
from ...config import settings
from ...types.llm_types import (
    LLMErrorCode,
    StopReason,
    TokenUsage,
    TextContent,
    ToolCallContent,
    ToolResultContent,
    ToolSchema,
)

logger = logging.getLogger(__name__)

PROVIDER = "openai"


def map_openai_error(e: Exception) -> LLMError:
    # APITimeoutError subclasses APIConnectionError, so it is checked first
    if isinstance(e, openai.APITimeoutError):
        code = LLMErrorCode.TIMEOUT
    elif isinstance(e, openai.APIConnectionError):
        code = LLMErrorCode.SERVICE_UNAVAILABLE
    elif isinstance(e, openai.RateLimitError):
        code = LLMErrorCode.RATE_LIMITED
    elif isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        code = LLMErrorCode.UNAUTHORIZED
    elif isinstance(e, (openai.BadRequestError, openai.NotFoundError, openai.UnprocessableEntityError)):
        code = LLMErrorCode.INVALID_REQUEST
    elif isinstance(e, openai.APIStatusError):
        code = code_for_status(e.status_code)
    else:
        code = LLMErrorCode.UNKNOWN
    return LLMError(code, str(e), provider=PROVIDER)


class OpenAIProvider(CompletionPort):
    """Provider implementation for OpenAI-compatible chat completion APIs."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None):
        self.client = client or AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.LLM_TIMEOUT,
            max_retries=0,
        )
        self.model = model or settings.MODEL

    def native_tool(self, tool: ToolSchema) -> dict:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }

    def _prepare_messages(self, messages: Sequence[Message], system: Optional[str]) -> list[dict]:
        oai_messages: list[dict] = []
        if system:
            oai_messages.append({"role": "system", "content": system})

        for msg in messages:
            if msg.role == "assistant":
                text = ""
                tool_calls = []
                for block in msg.content:
                    # Reasoning is not sent back to the API
                    if isinstance(block, TextContent):
                        text += block.text
                    elif isinstance(block, ToolCallContent):
                        tool_calls.append(
                            {
                                "id": block.call_id,
                                "type": "function",
                                "function": {"name": block.tool_name, "arguments": block.arguments},
                            }
                        )
                message: dict[str, Any] = {"role": "assistant", "content": text or None}
                if tool_calls:
                    message["tool_calls"] = tool_calls
                oai_messages.append(message)
            else:
                text = ""
                for block in msg.content:
                    if isinstance(block, TextContent):
                        text += block.text
                    elif isinstance(block, ToolResultContent):
                        # Append what we have so far
                        if text:
                            oai_messages.append({"role": "user", "content": text})
                            text = ""
                        oai_messages.append(
                            {"role": "tool", "tool_call_id": block.call_id, "content": block.content}
                        )
                if text:
                    oai_messages.append({"role": "user", "content": text})

        return oai_messages

    def map_stop_reason(self, finish_reason: str | None) -> StopReason:
        if finish_reason == "tool_calls":
            return StopReason.TOOL_USE
        if finish_reason == "length":
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
            "messages": self._prepare_messages(messages, system),
            "max_completion_tokens": max_tokens or settings.MAX_TOKENS,
        }
        if tools:
            args["tools"] = [self.native_tool(t) for t in tools]

        try:
            response = await self.client.chat.completions.create(**args)
        except openai.OpenAIError as e:
            raise map_openai_error(e) from e

        if not response.choices:
            raise LLMError(LLMErrorCode.UNKNOWN, "Response contained no choices", provider=PROVIDER)
        choice = response.choices[0]
        message = choice.message

        content = []
        if message.content:
            content.append(TextContent(text=message.content))
        for tc in message.tool_calls or []:
            content.append(
                ToolCallContent(
                    call_id=tc.id,
                    tool_name=tc.function.name,
                    arguments=tc.function.arguments or "{}",
                )
            )

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
            )
        else:
            logger.warning("Missing usage information from OpenAI API response. Setting to 0")

        return Completion(
            id=response.id,
            content=content,
            model=response.model,
            usage=usage,
            timing=TimingInfo.measure(start_time, usage.completion_tokens),
            stop_reason=self.map_stop_reason(choice.finish_reason),
            raw_response={"finish_reason": choice.finish_reason, "created": response.created},
        )
