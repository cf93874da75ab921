# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import shlex

from pydantic import Field

from .base_tool import BaseTool
from ..environment.paths import validate_optional_cwd
from ..types.tool_types import ToolResult

MAX_ENTRIES = 500


class ListDirectory(BaseTool):
    TOOL_NAME = "list_directory"
    TOOL_DESCRIPTION = """List the files and directories under a directory of the repository.

Directories are shown with a trailing '/'. The .git directory is always skipped.
"""

    path: str = Field(
        default=".",
        description="Directory to list, relative to the repository root. Defaults to the root.",
    )
    max_depth: int = Field(
        default=2,
        description="How many levels below the directory to descend.",
        ge=1,
        le=10,
    )
    show_hidden: bool = Field(
        default=False,
        description="Include entries whose name starts with '.'.",
    )

    def build_command(self) -> str:
        directory = validate_optional_cwd(self.path) or "."
        parts = [
            "find",
            shlex.quote(directory),
            "-mindepth 1",
            f"-maxdepth {self.max_depth}",
            r"-name .git -prune -o",
        ]
        if not self.show_hidden:
            parts.append(r"-name '.*' -prune -o")
        parts.append(r"\( -type d -printf '%p/\n' \) -o -printf '%p\n'")
        return " ".join(parts) + " | sort"

    async def run(self) -> ToolResult:
        result = await self.environment.exec(self.build_command())
        if not result.ok or "No such file or directory" in result.stderr:
            return ToolResult.failure(
                self.TOOL_NAME,
                f"Could not list {self.path}: {result.stderr.strip() or 'unknown error'}",
            )

        entries = [line.removeprefix("./") for line in result.stdout.splitlines() if line]
        warnings = None
        if len(entries) > MAX_ENTRIES:
            warnings = f"Showing {MAX_ENTRIES} of {len(entries)} entries; list a subdirectory or lower max_depth to see the rest."
            entries = entries[:MAX_ENTRIES]

        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output="\n".join(entries) if entries else "(empty directory)",
            warnings=warnings,
        )
