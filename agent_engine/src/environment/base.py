# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from abc import ABC, abstractmethod
from typing import Annotated, ClassVar, Literal, Union
from pydantic import BaseModel, Field

from ..config import settings
from ..types.common import ExecResult


class Environment(ABC):
    """The file and command operations a tool may perform on a workspace.

    Paths are always relative to the workspace root. Implementations validate
    them before touching anything and raise the errors in
    `environment.errors`; `exec` never raises on a non-zero exit code.
    """

    KIND: ClassVar[str]

    @abstractmethod
    async def read_file(self, path: str) -> str:
        pass

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        pass

    @abstractmethod
    async def delete_file(self, path: str) -> None:
        pass

    @abstractmethod
    async def exec(self, command: str, cwd: str | None = None) -> ExecResult:
        pass

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable location, used in prompts and logs."""
        pass


class HostTarget(BaseModel):
    kind: Literal["host"] = "host"
    root: str


class ContainerTarget(BaseModel):
    kind: Literal["container"] = "container"
    name: str
    mount: str = Field(default_factory=lambda: settings.CONTAINER_MOUNT_PATH)


EnvironmentTarget = Annotated[Union[HostTarget, ContainerTarget], Field(discriminator="kind")]


def create_environment(target: HostTarget | ContainerTarget, manager=None) -> Environment:
    """Build the environment a target describes.

    Container targets need the lifecycle manager that owns the container.
    """
    if isinstance(target, HostTarget):
        from .host import HostEnvironment

        return HostEnvironment(target.root)

    if manager is None:
        raise ValueError("A container environment needs a ContainerLifecycleManager")
    from .container import ContainerEnvironment

    return ContainerEnvironment(manager, target.name, target.mount)
