# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from typing import TYPE_CHECKING

from .base import Environment
from .paths import join_container_path, validate_optional_cwd
from .errors import (
    WorkspaceError,
    PathNotFoundError,
    PathIsDirectoryError,
    RefusedDirectoryError,
)
from ..config import settings
from ..types.common import ExecResult

if TYPE_CHECKING:
    from ..containers.manager import ContainerLifecycleManager

# The file scripts report the two expected failure modes through exit codes,
# so a single exec round trip both checks and acts.
EXIT_NOT_FOUND = 2
EXIT_IS_DIRECTORY = 21

_READ_SCRIPT = """
if [ -d "$1" ]; then exit 21; fi
if [ ! -e "$1" ]; then exit 2; fi
cat -- "$1"
"""

_DELETE_SCRIPT = """
if [ -d "$1" ]; then exit 21; fi
if [ ! -e "$1" ] && [ ! -L "$1" ]; then exit 2; fi
rm -f -- "$1"
"""

_IS_DIR_SCRIPT = 'if [ -d "$1" ]; then exit 21; fi'


class ContainerEnvironment(Environment):
    """Operates on the workspace mounted inside a running container."""

    KIND = "container"

    def __init__(
        self,
        manager: "ContainerLifecycleManager",
        name: str,
        mount: str | None = None,
    ):
        self.manager = manager
        self.name = name
        self.mount = mount or settings.CONTAINER_MOUNT_PATH

    def describe(self) -> str:
        return f"container:{self.name}:{self.mount}"

    async def _script(self, script: str, path: str) -> ExecResult:
        return await self.manager.exec(self.name, ["sh", "-c", script, "sh", path])

    async def read_file(self, path: str) -> str:
        full = join_container_path(self.mount, path)
        result = await self._script(_READ_SCRIPT, full)
        if result.exit_code == EXIT_IS_DIRECTORY:
            raise PathIsDirectoryError(path)
        if result.exit_code == EXIT_NOT_FOUND:
            raise PathNotFoundError(path)
        if not result.ok:
            raise WorkspaceError(f"Could not read {path}: {result.stderr.strip()}")
        return result.stdout

    async def write_file(self, path: str, content: str) -> None:
        full = join_container_path(self.mount, path)
        result = await self._script(_IS_DIR_SCRIPT, full)
        if result.exit_code == EXIT_IS_DIRECTORY:
            raise PathIsDirectoryError(path)
        await self.manager.write_file(self.name, self.mount, path, content, make_dirs=True)

    async def delete_file(self, path: str) -> None:
        full = join_container_path(self.mount, path)
        result = await self._script(_DELETE_SCRIPT, full)
        if result.exit_code == EXIT_IS_DIRECTORY:
            raise RefusedDirectoryError(path)
        if result.exit_code == EXIT_NOT_FOUND:
            raise PathNotFoundError(path)
        if not result.ok:
            raise WorkspaceError(f"Could not delete {path}: {result.stderr.strip()}")

    async def exec(self, command: str, cwd: str | None = None) -> ExecResult:
        relative_cwd = validate_optional_cwd(cwd)
        workdir = join_container_path(self.mount, relative_cwd) if relative_cwd else self.mount
        return await self.manager.exec(self.name, command, cwd=workdir)
