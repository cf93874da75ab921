# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from typing import ClassVar
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult

# Keep tool results within a sensible share of the context window
MAX_OUTPUT_CHARS = 20_000


def truncate_output(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... (truncated {len(text) - limit} chars)"


class ExecuteCommand(BaseTool):
    """Tool for executing shell commands that are guaranteed to return."""

    TOOL_NAME: ClassVar[str] = "execute_command"
    TOOL_DESCRIPTION: ClassVar[
        str
    ] = """
Execute a shell command in the repository and return its stdout, stderr and exit code.

The command runs with `sh -c` from the repository root, or from `cwd` when given.
A non-zero exit code is reported in the result, it is not an error of the tool.

Commands that run indefinitely (like servers) are not supported and are killed
once the command timeout is reached.

Example usage:
- compiling or running programs
- running tests
- inspecting git history
"""

    command: str = Field(
        ...,
        description="A single or multi-line shell command.",
        min_length=1,
    )
    cwd: str | None = Field(
        default=None,
        description="Directory to run the command in, relative to the repository root.",
    )

    async def run(self) -> ToolResult:
        result = await self.environment.exec(self.command, cwd=self.cwd)
        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output=dict(
                stdout=truncate_output(result.stdout),
                stderr=truncate_output(result.stderr),
                exit_code=result.exit_code,
            ),
        )
