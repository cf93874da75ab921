# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from abc import ABC, abstractmethod
from typing import Sequence

from ..types.common import ExecResult
from ..types.container_types import ContainerInfo, ContainerStatus, Mount


class ContainerPort(ABC):
    """The narrow surface of a container runtime that the engine relies on.

    Implementations raise `ContainerNotFoundError` for operations on unknown
    names and `ContainerAlreadyExistsError` when `start` collides with an
    existing container. Redundancy handling (stop twice, remove twice) is the
    lifecycle manager's concern, not the port's.
    """

    @abstractmethod
    async def start(
        self,
        image: str,
        name: str,
        mounts: Sequence[Mount] = (),
        env: dict[str, str] | None = None,
        labels: dict[str, str] | None = None,
        workdir: str | None = None,
        user: str | None = None,
    ) -> str:
        """Create and start a container, returning its runtime id."""
        pass

    @abstractmethod
    async def exec(
        self,
        name: str,
        argv: Sequence[str],
        cwd: str | None = None,
        user: str | None = None,
    ) -> ExecResult:
        pass

    @abstractmethod
    async def write_file(self, name: str, path: str, data: bytes) -> None:
        """Place `data` at absolute `path` inside the container.

        The parent directory must already exist.
        """
        pass

    @abstractmethod
    async def stop(self, name: str) -> None:
        pass

    @abstractmethod
    async def remove(self, name: str) -> None:
        pass

    @abstractmethod
    async def status(self, name: str) -> ContainerStatus:
        """Never raises for an unknown name; returns NOT_FOUND instead."""
        pass

    @abstractmethod
    async def list_by_labels(self, labels: dict[str, str]) -> list[ContainerInfo]:
        pass
