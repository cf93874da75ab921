# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from pydantic import BaseModel


class ContainerStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    REMOVED = "removed"
    NOT_FOUND = "not_found"


class Mount(BaseModel):
    host_path: str
    container_path: str
    read_only: bool = False

    def to_bind(self) -> str:
        return f"{self.host_path}:{self.container_path}{':ro' if self.read_only else ''}"


class ContainerInfo(BaseModel):
    id: str
    name: str
    image: str | None = None
    status: ContainerStatus
    labels: dict[str, str] = {}


class GitInfo(BaseModel):
    """Snapshot of the git state of a workspace inside a container."""

    branch: str = "unknown"
    status: str = ""
    diff_stat: str = ""
    diff: str = ""
