# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""LLM integration module for the agent engine.

This module provides a provider-agnostic completion port, with adapters for
the OpenAI and Anthropic APIs and a retry policy wrapper.
"""

import logging

from .base import Message, Completion, TimingInfo
from .errors import LLMError
from .retry import RetryingCompletionPort
from .llm_factory import create_completion_port
from .providers.base_provider import CompletionPort

# Quieten LLM API call logs to make stdout more useful
logging.getLogger("httpx").setLevel(logging.WARNING)

__all__ = [
    "Message",
    "Completion",
    "TimingInfo",
    "LLMError",
    "CompletionPort",
    "RetryingCompletionPort",
    "create_completion_port",
]
