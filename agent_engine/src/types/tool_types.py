# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import os
import json

from abc import ABC, abstractmethod
from typing import Any, ClassVar
from pydantic import BaseModel, ConfigDict, Field


class ToolResult(BaseModel):
    """Represents the result of a tool execution."""

    tool_name: str
    success: bool
    duration: float = 0.0  # on tool error paths, duration is often 0
    output: dict[str, Any] | str | None = None
    warnings: str | None = None
    errors: str | None = None
    invocation_id: str = Field(default_factory=lambda: os.urandom(4).hex())

    @classmethod
    def failure(cls, tool_name: str, errors: str, **kwargs) -> "ToolResult":
        return cls(tool_name=tool_name, success=False, errors=errors, **kwargs)

    def __str__(self):
        str_output = self.output if isinstance(self.output, str) else None
        if isinstance(self.output, dict):
            str_output = json.dumps(self.output, indent=2)

        tool_response_str = f"{self.tool_name} response:"
        tool_response_str += f"\nStatus: {'SUCCESS' if self.success else 'FAILURE'}"
        if str_output is not None:
            tool_response_str += f"\nResult: {str_output}"
        if self.warnings is not None:
            tool_response_str += f"\nWarnings: {self.warnings}"
        if self.errors is not None:
            tool_response_str += f"\nErrors: {self.errors}"
        if self.duration:
            tool_response_str += f"\nDuration: {self.duration:.3f}"

        return tool_response_str


class ToolInterface(BaseModel, ABC):
    """Abstract interface for all tools"""

    # Class variables
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    model_config = ConfigDict(extra="forbid")

    @abstractmethod
    async def run(self) -> ToolResult:
        """Execute the tool's functionality"""
        pass

