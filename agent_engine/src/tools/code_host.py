# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from abc import ABC, abstractmethod
from pydantic import BaseModel

from ..types.workflow_types import RepositoryRef


class PullRequestInfo(BaseModel):
    number: int
    url: str
    head: str
    base: str


class CodeHostPort(ABC):
    """The part of a code-hosting provider the publishing tools need."""

    @abstractmethod
    async def create_pull_request(
        self,
        repository: RepositoryRef,
        head: str,
        base: str,
        title: str,
        body: str,
    ) -> PullRequestInfo:
        pass

    @abstractmethod
    async def find_pull_request(self, repository: RepositoryRef, head: str) -> PullRequestInfo | None:
        """The open pull request whose head is `head`, if there is one."""
        pass
