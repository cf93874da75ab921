# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from pydantic import Field

from ..base_agent import BaseAgent
from ...tools import review_toolkit


class ReviewerAgent(BaseAgent):
    """Reviews a pull request with read-only tools."""

    AGENT_NAME = "reviewer"

    AGENT_DESCRIPTION = """Reviews the changes of a pull request against the code base, without modifying anything."""

    SYSTEM_PROMPT = """You are a senior engineer reviewing a pull request.

You cannot change any file. Read the diff, then the surrounding code it touches,
and look for bugs, missing edge cases, missing tests and inconsistencies with
the rest of the code base. Be specific: cite file paths and line numbers."""

    AVAILABLE_TOOLS = review_toolkit

    title: str = Field(..., description="Title of the pull request")
    diff: str = Field(..., description="Unified diff of the pull request")
    description: str | None = Field(default=None, description="Body of the pull request")

    async def construct_core_prompt(self) -> str:
        parts = [f"# Pull request: {self.title}"]
        if self.description:
            parts.append(self.description)
        parts.append(f"<diff>\n{self.diff}\n</diff>")
        parts.append(
            "Review this pull request. Reply with your review as a markdown list of "
            "findings, most important first, and an overall recommendation."
        )
        return "\n\n".join(parts)
