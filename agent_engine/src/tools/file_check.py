# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import re
import shlex

from pydantic import Field, field_validator

from .base_tool import BaseTool
from .execute_command import truncate_output
from ..types.tool_types import ToolResult

ALLOWED_CHECKERS = frozenset(
    {
        "mypy",
        "pyright",
        "ruff",
        "flake8",
        "pylint",
        "black",
        "tsc",
        "eslint",
        "prettier",
    }
)

# Launchers that may precede the checker itself, e.g. `npx tsc --noEmit`
LAUNCHERS = frozenset({"npx", "pnpm", "yarn", "uv", "poetry", "python", "python3"})
LAUNCHER_SUBCOMMANDS = frozenset({"exec", "run", "dlx", "-m"})

MUTATING_FLAGS = frozenset({"--fix", "--write", "--fix-only", "-w"})

_SHELL_METACHARACTERS = re.compile(r"[;&|`$<>(){}\n\\]")


def find_checker(argv: list[str]) -> str | None:
    """Return the allowed checker an argv invokes, skipping known launchers."""
    for token in argv:
        if token in LAUNCHERS or token in LAUNCHER_SUBCOMMANDS:
            continue
        return token if token in ALLOWED_CHECKERS else None
    return None


class FileCheck(BaseTool):
    TOOL_NAME = "file_check"
    TOOL_DESCRIPTION = f"""Run a READ-ONLY code-quality command (type-checker or linter) on the repository.

Allowed tools: {", ".join(sorted(ALLOWED_CHECKERS))}, optionally run through
npx, pnpm, yarn, uv, poetry or `python -m`. The command must not modify any
file: flags such as --fix or --write are refused, as are shell operators.
Black is only accepted with --check. Derive the command from the project's own
configuration when possible, and include the file paths to check.
"""

    command: str = Field(
        ...,
        description="The full check command, e.g. 'mypy src/app.py' or 'npx tsc --noEmit'.",
        min_length=1,
    )

    @field_validator("command")
    @classmethod
    def validate_command(cls, command: str) -> str:
        if _SHELL_METACHARACTERS.search(command):
            raise ValueError("shell operators and substitutions are not allowed")
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise ValueError(f"could not parse command: {e}") from e

        checker = find_checker(argv)
        if checker is None:
            raise ValueError(
                f"command not allowed, use one of: {', '.join(sorted(ALLOWED_CHECKERS))}"
            )
        mutating = [arg for arg in argv if arg.split("=")[0] in MUTATING_FLAGS]
        if mutating:
            raise ValueError(f"mutating flags are not allowed: {', '.join(mutating)}")
        if checker == "black" and "--check" not in argv:
            raise ValueError("black must be run with --check")
        return command

    async def run(self) -> ToolResult:
        argv = shlex.split(self.command)
        result = await self.environment.exec(shlex.join(argv))
        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output=dict(
                stdout=truncate_output(result.stdout),
                stderr=truncate_output(result.stderr),
                exit_code=result.exit_code,
            ),
        )
