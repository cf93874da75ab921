# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from ..config import Settings, settings as default_settings
from .retry import RetryingCompletionPort
from .providers.base_provider import CompletionPort


def create_completion_port(settings: Settings | None = None) -> CompletionPort:
    """Build the configured provider, wrapped in the retry policy."""
    settings = settings or default_settings

    if settings.LLM_PROVIDER == "anthropic":
        from .providers.anthropic_provider import AnthropicProvider

        provider: CompletionPort = AnthropicProvider(model=settings.MODEL)
    elif settings.LLM_PROVIDER == "openai":
        from .providers.openai_provider import OpenAIProvider

        provider = OpenAIProvider(model=settings.MODEL)
    else:
        raise ValueError(f"Unsupported LLM provider: {settings.LLM_PROVIDER}")

    if settings.LLM_MAX_RETRIES <= 0:
        return provider
    return RetryingCompletionPort(
        provider,
        max_retries=settings.LLM_MAX_RETRIES,
        base_delay=settings.LLM_RETRY_BASE_DELAY,
    )
