# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Engine configuration, read from the environment and an optional .env file.
"""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    LOG_LEVEL: str = "INFO"

    # LLM completion port
    LLM_PROVIDER: Literal["openai", "anthropic"] = "openai"
    MODEL: str = "gpt-4o"
    MAX_TOKENS: int = 8192
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    LLM_MAX_RETRIES: int = 3
    LLM_RETRY_BASE_DELAY: float = 2.0
    LLM_TIMEOUT: float = 600.0

    # Agent loop
    AGENT_MAX_ITERATIONS: int = 50

    # Environments
    COMMAND_TIMEOUT: float = 300.0
    CONTAINER_IMAGE: str = "python:3.12-slim"
    CONTAINER_MOUNT_PATH: str = "/workspace"
    CONTAINER_USER: str = "1000:1000"
    CONTAINER_EXEC_USER: str = "root:root"
    DOCKER_BASE_URL: Optional[str] = None
    KEEP_CONTAINER: bool = False

    # Workflow event log
    EVENT_DB_PATH: Optional[str] = None
    WORKFLOW_TIMEOUT: float = 1800.0

    # Web server
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8080


settings = Settings()
