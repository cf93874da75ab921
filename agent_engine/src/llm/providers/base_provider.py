# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Base provider interface for LLM interactions."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..base import Message, Completion
from ...types.llm_types import LLMErrorCode, ToolSchema


class CompletionPort(ABC):
    """The single call the agent loop makes to a language model.

    Implementations raise `LLMError` for every provider failure, so callers
    handle one exception type whatever the backend.
    """

    @abstractmethod
    async def create_completion(
        self,
        messages: Sequence[Message],
        system: Optional[str] = None,
        tools: Optional[Sequence[ToolSchema]] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        pass


def code_for_status(status: int | None) -> LLMErrorCode:
    """Classify an HTTP status returned by a provider API."""
    if status is None:
        return LLMErrorCode.UNKNOWN
    if status == 429:
        return LLMErrorCode.RATE_LIMITED
    if status in (401, 403):
        return LLMErrorCode.UNAUTHORIZED
    if status == 408:
        return LLMErrorCode.TIMEOUT
    if status in (400, 404, 409, 413, 422):
        return LLMErrorCode.INVALID_REQUEST
    # 529 is Anthropic's "overloaded"
    if status >= 500:
        return LLMErrorCode.SERVICE_UNAVAILABLE
    return LLMErrorCode.UNKNOWN
