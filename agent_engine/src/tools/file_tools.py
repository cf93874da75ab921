# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pydantic import Field

from .base_tool import BaseTool
from ..environment.errors import PathNotFoundError
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

PATH_DESCRIPTION = (
    "Path of the file relative to the repository root, using '/' separators, "
    "e.g. 'src/main.py'. Absolute paths and '..' segments are rejected."
)


class GetFileContent(BaseTool):
    TOOL_NAME = "get_file_content"
    TOOL_DESCRIPTION = """Read the full text content of a single file in the repository.

Use this before editing a file so that any change is based on its current content.
Directories cannot be read; use list_directory to see what a directory holds.
"""

    path: str = Field(..., description=PATH_DESCRIPTION)
    show_line_numbers: bool = Field(
        False,
        description="When True, prefixes every line with its 1-based line number.",
    )

    async def run(self) -> ToolResult:
        try:
            content = await self.environment.read_file(self.path)
        except PathNotFoundError as e:
            return ToolResult.failure(
                self.TOOL_NAME,
                f"{e}. Use list_directory or search_code to locate the file.",
            )

        if self.show_line_numbers:
            lines = content.splitlines()
            width = len(str(len(lines)))
            content = "\n".join(f"{i:>{width}} | {line}" for i, line in enumerate(lines, 1))

        return ToolResult(tool_name=self.TOOL_NAME, success=True, output=content)


class WriteFile(BaseTool):
    TOOL_NAME = "write_file"
    TOOL_DESCRIPTION = """Create a file or replace the entire content of an existing one.

Missing parent directories are created. Always provide the complete file
content: anything not included is lost.
"""

    path: str = Field(..., description=PATH_DESCRIPTION)
    content: str = Field(..., description="The complete new content of the file.")

    async def run(self) -> ToolResult:
        await self.environment.write_file(self.path, self.content)
        line_count = len(self.content.splitlines())
        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output=f"Wrote {line_count} lines to {self.path}",
        )


class DeleteFile(BaseTool):
    TOOL_NAME = "delete_file"
    TOOL_DESCRIPTION = """Delete a single file from the repository. Directories are never deleted."""

    path: str = Field(..., description=PATH_DESCRIPTION)

    async def run(self) -> ToolResult:
        await self.environment.delete_file(self.path)
        return ToolResult(tool_name=self.TOOL_NAME, success=True, output=f"Deleted {self.path}")
