# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Issue resolution agent"""

from pydantic import Field

from ..base_agent import BaseAgent
from ...tools import coding_toolkit, publishing_toolkit


class CoderAgent(BaseAgent):
    """
    Resolves an issue by editing the repository, and optionally publishes the
    change as a branch and pull request.
    """

    AGENT_NAME = "coder"

    AGENT_DESCRIPTION = """Resolves a code-hosting issue by reading and changing the repository, running its checks and tests."""

    SYSTEM_PROMPT = """You are an expert software engineer resolving an issue in an existing code base.

Key principles:
1. Understand the code before changing it: locate the relevant files and read them
2. Make the smallest change that fully resolves the issue
3. Follow the conventions of the surrounding code
4. Verify your change with the project's own tests, type-checkers and linters
5. Never modify files unrelated to the issue"""

    AVAILABLE_TOOLS = coding_toolkit

    problem_statement: str = Field(..., description="The issue to resolve, in full")
    issue_title: str | None = Field(default=None, description="Title of the issue, if any")
    publish: bool = Field(
        default=False,
        description="Commit the change on a new branch and open a pull request",
    )
    branch: str | None = Field(default=None, description="Branch to publish the change on")

    def available_tools(self):
        tools = list(self.AVAILABLE_TOOLS)
        if self.publish:
            tools += publishing_toolkit
        return tools

    async def construct_core_prompt(self) -> str:
        parts = []
        if self.issue_title:
            parts.append(f"# {self.issue_title}")
        parts.append(f"<issue>\n{self.problem_statement}\n</issue>")

        steps = [
            "Explore the repository to find the code related to the issue.",
            "Implement the fix.",
            "Run the relevant tests or checks and fix any failure you introduced.",
        ]
        if self.publish:
            branch = self.branch or "a new descriptively named branch"
            steps += [
                f"Check out {branch}, commit your change and push it.",
                "Open a pull request that explains the change.",
            ]
        steps.append("Reply with a short summary of what you changed and why.")
        parts.append("\n".join(f"{i}. {step}" for i, step in enumerate(steps, 1)))

        return "\n\n".join(parts)
