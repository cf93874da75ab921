# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pydantic import Field, field_validator

from .base_tool import BaseTool
from .git_tools import validate_branch_name
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class CreatePullRequest(BaseTool):
    TOOL_NAME = "create_pull_request"
    TOOL_DESCRIPTION = """Open a pull request from a branch that has already been pushed.

The branch must exist on the remote and contain the changes to propose. Only one
pull request may be open per branch. When the run works on an issue, the body
links it automatically.
"""

    branch: str = Field(..., description="The pushed branch to open the pull request from.")
    title: str = Field(..., description="Title of the pull request.", min_length=1)
    body: str = Field(..., description="Description of the change, in markdown.")

    @field_validator("branch")
    @classmethod
    def check_branch(cls, branch: str) -> str:
        return validate_branch_name(branch)

    async def run(self) -> ToolResult:
        code_host = self._context.code_host
        repository = self._context.repository
        if code_host is None or repository is None:
            return ToolResult.failure(
                self.TOOL_NAME, "No code host is configured for this run."
            )

        existing = await code_host.find_pull_request(repository, self.branch)
        if existing is not None:
            return ToolResult.failure(
                self.TOOL_NAME,
                f"A pull request already exists for branch '{self.branch}': {existing.url}",
            )

        body = self.body
        if self._context.issue_number is not None:
            body += f"\n\nCloses #{self._context.issue_number}"

        pr = await code_host.create_pull_request(
            repository,
            head=self.branch,
            base=self._context.base_branch,
            title=self.title,
            body=body,
        )
        logger.info(f"Opened pull request #{pr.number} on {repository.full_name}")
        return ToolResult(tool_name=self.TOOL_NAME, success=True, output=pr.model_dump())
