# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Git tools. Git runs as a shell command inside the environment, so the same
tools work against a host checkout and a container workspace.
"""

import re
import shlex

from pydantic import Field, field_validator

from .base_tool import BaseTool
from ..types.tool_types import ToolResult

_BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/-]*$")


def validate_branch_name(branch: str) -> str:
    if (
        not _BRANCH_PATTERN.match(branch)
        or ".." in branch
        or "//" in branch
        or branch.endswith(("/", ".", ".lock"))
    ):
        raise ValueError(f"'{branch}' is not a valid branch name")
    return branch


def git_failure(tool_name: str, action: str, result) -> ToolResult:
    detail = result.stderr.strip() or result.stdout.strip()
    return ToolResult.failure(
        tool_name,
        f"{action} failed (exit code {result.exit_code}): {detail}",
    )


class CreateBranch(BaseTool):
    TOOL_NAME = "create_branch"
    TOOL_DESCRIPTION = """Check out a branch of the repository, creating it from the current HEAD when asked.

Check out a new branch before committing any change.
"""

    branch: str = Field(..., description="Name of the branch, e.g. 'fix/issue-42'.")
    create_if_not_exists: bool = Field(
        False,
        description="Create the branch if it does not exist yet.",
    )

    @field_validator("branch")
    @classmethod
    def check_branch(cls, branch: str) -> str:
        return validate_branch_name(branch)

    async def run(self) -> ToolResult:
        branch = shlex.quote(self.branch)
        exists = await self.environment.exec(
            f"git rev-parse --verify --quiet refs/heads/{branch}"
        )
        if exists.ok:
            result = await self.environment.exec(f"git checkout --quiet {branch}")
            if not result.ok:
                return git_failure(self.TOOL_NAME, f"Checking out '{self.branch}'", result)
            return ToolResult(
                tool_name=self.TOOL_NAME,
                success=True,
                output=dict(message=f"Checked out existing branch '{self.branch}'", created=False),
            )

        if not self.create_if_not_exists:
            return ToolResult.failure(
                self.TOOL_NAME,
                f"Branch '{self.branch}' does not exist. Set create_if_not_exists to true to create it.",
            )

        result = await self.environment.exec(f"git checkout --quiet -b {branch}")
        if not result.ok:
            return git_failure(self.TOOL_NAME, f"Creating '{self.branch}'", result)
        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output=dict(message=f"Created and checked out branch '{self.branch}'", created=True),
        )


class CommitChanges(BaseTool):
    TOOL_NAME = "commit_changes"
    TOOL_DESCRIPTION = """Stage every change in the working tree and commit it on the current branch."""

    message: str = Field(
        ...,
        description="The commit message. The first line is a short summary.",
        min_length=1,
    )

    async def run(self) -> ToolResult:
        staged = await self.environment.exec("git add --all")
        if not staged.ok:
            return git_failure(self.TOOL_NAME, "Staging", staged)

        pending = await self.environment.exec("git diff --cached --quiet")
        if pending.ok:
            return ToolResult.failure(self.TOOL_NAME, "There are no changes to commit.")

        result = await self.environment.exec(f"git commit --quiet -m {shlex.quote(self.message)}")
        if not result.ok:
            return git_failure(self.TOOL_NAME, "Commit", result)

        sha = await self.environment.exec("git rev-parse HEAD")
        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output=dict(commit=sha.stdout.strip(), message=self.message),
        )


class PushBranch(BaseTool):
    TOOL_NAME = "push_branch"
    TOOL_DESCRIPTION = """Push a local branch to the remote and set it as the upstream."""

    branch: str = Field(..., description="The local branch to push.")
    remote: str = Field("origin", description="Name of the remote.")

    @field_validator("branch")
    @classmethod
    def check_branch(cls, branch: str) -> str:
        return validate_branch_name(branch)

    async def run(self) -> ToolResult:
        result = await self.environment.exec(
            f"git push --set-upstream {shlex.quote(self.remote)} {shlex.quote(self.branch)}"
        )
        if not result.ok:
            return git_failure(self.TOOL_NAME, f"Pushing '{self.branch}'", result)
        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output=f"Pushed '{self.branch}' to {self.remote}",
        )
