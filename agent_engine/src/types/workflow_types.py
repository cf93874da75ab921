# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from uuid import uuid4
from datetime import datetime
from pydantic import BaseModel, Field

from .common import utc_now


class WorkflowType(str, Enum):
    RESOLVE_ISSUE = "resolveIssue"
    REVIEW_PULL_REQUEST = "reviewPullRequest"
    AUTO_RESOLVE_ISSUE = "autoResolveIssue"


class RepositoryRef(BaseModel):
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> "RepositoryRef":
        owner, _, name = full_name.partition("/")
        if not owner or not name or "/" in name:
            raise ValueError(f"Expected 'owner/repo', got {full_name!r}")
        return cls(owner=owner, name=name)


class IssueRef(BaseModel):
    repository: RepositoryRef
    number: int

    @property
    def key(self) -> str:
        return f"{self.repository.full_name}#{self.number}"


class WorkflowTarget(BaseModel):
    repository: RepositoryRef | None = None
    issue: IssueRef | None = None
    branch: str | None = None


class WorkflowRunConfig(BaseModel):
    post_to_code_host: bool = False


class WorkflowRun(BaseModel):
    """One end-to-end agent execution.

    Immutable once created. The run's state is not stored here; it is derived
    from the most recent lifecycle event in its event chain.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    type: WorkflowType
    created_at: datetime = Field(default_factory=utc_now)
    initiator: str = "system"
    target: WorkflowTarget | None = None
    config: WorkflowRunConfig = Field(default_factory=WorkflowRunConfig)

    model_config = {"frozen": True}
