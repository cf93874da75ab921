# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import asyncio
import logging

from typing import Awaitable, Callable, Optional, Sequence

from .base import Message, Completion
from .errors import LLMError
from .providers.base_provider import CompletionPort
from ..types.llm_types import ToolSchema

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class RetryingCompletionPort(CompletionPort):
    """Retries rate-limited and unavailable completions with exponential backoff.

    Any other LLMError, and the last retryable one once attempts run out,
    propagates unchanged.
    """

    def __init__(
        self,
        inner: CompletionPort,
        max_retries: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.inner = inner
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def create_completion(
        self,
        messages: Sequence[Message],
        system: Optional[str] = None,
        tools: Optional[Sequence[ToolSchema]] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        attempt = 0
        while True:
            try:
                return await self.inner.create_completion(
                    messages, system=system, tools=tools, model=model, max_tokens=max_tokens
                )
            except LLMError as e:
                if not e.retryable or attempt >= self.max_retries:
                    raise
                delay = self.delay_for(attempt)
                attempt += 1
                logger.warning(
                    f"Completion failed with {e.code.value}, retry {attempt}/{self.max_retries} in {delay:.1f}s"
                )
                await self._sleep(delay)
