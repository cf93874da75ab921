# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import shlex
import logging

from pydantic import Field

from .base_tool import BaseTool
from ..environment.paths import validate_optional_cwd
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

RG_NO_MATCHES = 1


class SearchCode(BaseTool):
    """Tool for searching files using ripgrep with context and line numbers"""

    TOOL_NAME = "search_code"
    TOOL_DESCRIPTION = """Searches the repository for a regular expression using ripgrep (rg).

Returns matching lines grouped by file, each prefixed with its line number, with
a few lines of context around every match. These are snippets: read the whole
file with get_file_content before editing it.

If results are limited, the output says how many lines were omitted; search a
more specific directory or pattern to narrow them down.
"""

    query: str = Field(
        ...,
        description="The pattern to search for (ripgrep regex syntax), e.g. 'def parse_args'.",
        min_length=1,
    )
    path: str | None = Field(
        default=None,
        description="Directory to search, relative to the repository root. Defaults to the whole repository.",
    )
    ignore_case: bool = Field(
        default=False,
        description="Match regardless of case.",
    )
    hidden: bool = Field(
        default=False,
        description="Also search hidden files such as '.env'.",
    )
    follow: bool = Field(
        default=False,
        description="Follow symbolic links.",
    )
    context_lines: int = Field(
        default=3,
        description="Number of context lines to show before and after matches",
        ge=0,
        le=10,
    )
    max_lines: int = Field(
        default=200,
        description="Maximum number of output lines to return",
        ge=1,
        le=2000,
    )

    def build_command(self) -> str:
        directory = validate_optional_cwd(self.path) or "."
        flags = [
            "--line-number",
            "--heading",
            "--color never",
            "--max-filesize 200K",
            f"-C {self.context_lines}",
        ]
        if self.ignore_case:
            flags.append("-i")
        if self.hidden:
            flags.append("--hidden --glob '!.git'")
        if self.follow:
            flags.append("-L")
        return f"rg {' '.join(flags)} -e {shlex.quote(self.query)} -- {shlex.quote(directory)}"

    async def run(self) -> ToolResult:
        result = await self.environment.exec(self.build_command())

        if result.exit_code == RG_NO_MATCHES:
            return ToolResult(
                tool_name=self.TOOL_NAME,
                success=True,
                output="No matching results found in the codebase.",
            )
        if not result.ok:
            logger.info(f"ripgrep failed with exit code {result.exit_code}: {result.stderr}")
            return ToolResult.failure(
                self.TOOL_NAME,
                f"Ripgrep search failed (exit code {result.exit_code}): {result.stderr.strip()}",
            )

        lines = result.stdout.splitlines()
        warnings = None
        if len(lines) > self.max_lines:
            warnings = (
                f"{len(lines) - self.max_lines} more lines were omitted. "
                "Narrow the search with a more specific query or path."
            )
            lines = lines[: self.max_lines]

        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output="\n".join(lines),
            warnings=warnings,
        )
