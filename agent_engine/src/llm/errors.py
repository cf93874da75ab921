# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from ..types.llm_types import LLMErrorCode, RETRYABLE_CODES


class LLMError(Exception):
    """A completion failure, classified independently of the provider."""

    def __init__(self, code: LLMErrorCode, message: str, provider: str | None = None):
        self.code = LLMErrorCode(code)
        self.provider = provider
        self.message = message
        prefix = f"[{provider}] " if provider else ""
        super().__init__(f"{prefix}{self.code.value}: {message}")

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES
