# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The per-run tool registry: a static name -> tool class map, validated when
tools are registered, that turns model tool calls into ToolResults.
"""

import re
import json
import time
import logging

from typing import Iterable
from pydantic import ValidationError

from .base_tool import BaseTool, ToolContext
from ..environment.errors import WorkspaceError
from ..containers.errors import ContainerError
from ..types.llm_types import ToolCallContent, ToolSchema
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# The tightest constraint across the supported providers
_TOOL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


class ToolRegistrationError(ValueError):
    pass


def format_validation_error(e: ValidationError) -> str:
    parts = []
    for error in e.errors():
        location = ".".join(str(part) for part in error["loc"]) or "(arguments)"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


class ToolRegistry:
    """The tools available to one agent in one run, all bound to one context.

    `dispatch` never raises for a bad call: unknown names, malformed or
    schema-violating arguments and handler failures all come back as a
    failed ToolResult the model can read and react to.
    """

    def __init__(self, context: ToolContext, tools: Iterable[type[BaseTool]] = ()):
        self.context = context
        self._tools: dict[str, type[BaseTool]] = {}
        for tool_cls in tools:
            self.register(tool_cls)

    def register(self, tool_cls: type[BaseTool]) -> None:
        name = getattr(tool_cls, "TOOL_NAME", None)
        if not isinstance(name, str) or not _TOOL_NAME_PATTERN.match(name):
            raise ToolRegistrationError(f"Invalid tool name {name!r} on {tool_cls.__name__}")
        if name in self._tools:
            raise ToolRegistrationError(f"Tool {name} is already registered")
        if not getattr(tool_cls, "TOOL_DESCRIPTION", "").strip():
            raise ToolRegistrationError(f"Tool {name} has no description")
        try:
            tool_cls.to_schema()
        except Exception as e:
            raise ToolRegistrationError(f"Could not build the argument schema of {name}: {e}") from e
        self._tools[name] = tool_cls

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[ToolSchema]:
        return [tool_cls.to_schema() for tool_cls in self._tools.values()]

    async def dispatch(self, call: ToolCallContent) -> ToolResult:
        tool_cls = self._tools.get(call.tool_name)
        if tool_cls is None:
            available = ", ".join(self._tools) or "none"
            return ToolResult.failure(
                call.tool_name,
                f"Unknown tool '{call.tool_name}'. Available tools: {available}",
            )

        try:
            args = json.loads(call.arguments) if call.arguments.strip() else {}
        except json.JSONDecodeError as e:
            return ToolResult.failure(call.tool_name, f"Could not parse tool arguments as JSON: {e}")
        if not isinstance(args, dict):
            return ToolResult.failure(call.tool_name, "Tool arguments must be a JSON object")

        try:
            tool = tool_cls(self.context, **args)
        except ValidationError as e:
            return ToolResult.failure(
                call.tool_name, f"Invalid arguments: {format_validation_error(e)}"
            )
        except TypeError as e:
            return ToolResult.failure(call.tool_name, f"Invalid arguments: {e}")

        start_time = time.time()
        try:
            result = await tool.run()
        except (WorkspaceError, ContainerError) as e:
            result = ToolResult.failure(call.tool_name, str(e))
        except Exception as e:
            logger.error(f"Error during tool execution: {str(e)}")
            result = ToolResult.failure(call.tool_name, f"Tool runtime error: {str(e)}")
        result.duration = time.time() - start_time
        return result
