# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The container lifecycle manager sits between the engine and a ContainerPort.

It adds the policies the port deliberately leaves out: exec fails fast when
the container is not running, stop and remove are safe to repeat, and a
removed container reports REMOVED rather than NOT_FOUND. Only the most
recent MAX_REMOVED_NAMES removals are remembered; older names fall back to
NOT_FOUND.
"""

import asyncio
import logging

from typing import Sequence
from collections import OrderedDict
from pathlib import PurePosixPath

from .port import ContainerPort
from .labels import container_labels
from .errors import (
    ContainerError,
    ContainerNotFoundError,
    ContainerNotRunningError,
    ContainerAlreadyExistsError,
)
from ..config import settings
from ..environment.paths import join_container_path
from ..types.common import ExecResult
from ..types.container_types import ContainerStatus, GitInfo, Mount

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_REMOVED_NAMES = 1024


class ContainerLifecycleManager:
    def __init__(self, port: ContainerPort, exec_user: str | None = None):
        self.port = port
        self.exec_user = exec_user if exec_user is not None else settings.CONTAINER_EXEC_USER
        self._removed: OrderedDict[str, None] = OrderedDict()

    async def start(
        self,
        image: str,
        name: str,
        mounts: Sequence[Mount] = (),
        env: dict[str, str] | None = None,
        labels: dict[str, str] | None = None,
        workdir: str | None = None,
        user: str | None = None,
        allow_existing: bool = False,
    ) -> str:
        """Create and start a container.

        With ``allow_existing`` a running container of the same name is reused
        as is, and a stopped one is replaced. Without it, a name collision
        raises ContainerAlreadyExistsError.
        """
        current = await self.port.status(name)
        if current != ContainerStatus.NOT_FOUND:
            if not allow_existing:
                raise ContainerAlreadyExistsError(name)
            if current == ContainerStatus.RUNNING:
                logger.info(f"Reusing running container {name}")
                self._removed.pop(name, None)
                return name
            logger.info(f"Replacing {current.value} container {name}")
            await self.teardown(name)

        await self.port.start(
            image,
            name,
            mounts=mounts,
            env=env,
            labels=labels,
            workdir=workdir,
            user=user if user is not None else settings.CONTAINER_USER,
        )
        self._removed.pop(name, None)
        return name

    async def exec(
        self,
        name: str,
        command: str | Sequence[str],
        cwd: str | None = None,
        user: str | None = None,
    ) -> ExecResult:
        """Run a command and wait for its complete output.

        A string is run through ``sh -c``; a sequence is passed as argv.
        """
        current = await self.status(name)
        if current != ContainerStatus.RUNNING:
            raise ContainerNotRunningError(name, current.value)

        argv = ["sh", "-c", command] if isinstance(command, str) else list(command)
        return await self.port.exec(
            name, argv, cwd=cwd, user=user if user is not None else self.exec_user
        )

    async def write_file(
        self,
        name: str,
        workdir: str,
        rel_path: str,
        contents: str | bytes,
        make_dirs: bool = True,
    ) -> str:
        full_path = join_container_path(workdir, rel_path)
        if make_dirs:
            parent = str(PurePosixPath(full_path).parent)
            result = await self.exec(name, ["mkdir", "-p", parent])
            if not result.ok:
                raise ContainerError(name, f"Could not create {parent}: {result.stderr.strip()}")
        else:
            current = await self.status(name)
            if current != ContainerStatus.RUNNING:
                raise ContainerNotRunningError(name, current.value)

        data = contents.encode() if isinstance(contents, str) else contents
        await self.port.write_file(name, full_path, data)
        return full_path

    async def stop(self, name: str) -> None:
        current = await self.status(name)
        if current not in (ContainerStatus.RUNNING, ContainerStatus.CREATED):
            logger.debug(f"Container {name} already {current.value}, nothing to stop")
            return
        try:
            await self.port.stop(name)
        except ContainerNotFoundError:
            logger.debug(f"Container {name} vanished before stop")

    async def remove(self, name: str) -> None:
        current = await self.status(name)
        if current in (ContainerStatus.REMOVED, ContainerStatus.NOT_FOUND):
            return
        try:
            await self.port.remove(name)
        except ContainerNotFoundError:
            logger.debug(f"Container {name} vanished before removal")
        self._remember_removed(name)
        logger.info(f"Removed container {name}")

    def _remember_removed(self, name: str) -> None:
        self._removed[name] = None
        self._removed.move_to_end(name)
        while len(self._removed) > MAX_REMOVED_NAMES:
            self._removed.popitem(last=False)

    async def teardown(self, name: str) -> None:
        """Graceful stop, then removal. Safe to call any number of times."""
        await self.stop(name)
        await self.remove(name)

    async def status(self, name: str) -> ContainerStatus:
        current = await self.port.status(name)
        if current == ContainerStatus.NOT_FOUND and name in self._removed:
            return ContainerStatus.REMOVED
        return current

    async def list_by_labels(self, labels: dict[str, str]) -> list[str]:
        return [info.name for info in await self.port.list_by_labels(labels)]

    async def remove_by_labels(self, labels: dict[str, str]) -> list[str]:
        names = await self.list_by_labels(labels)
        await asyncio.gather(*(self.teardown(name) for name in names))
        return names

    async def get_git_info(
        self, name: str, workdir: str | None = None, diff_limit: int = 10_000
    ) -> GitInfo:
        """Collect branch, porcelain status and diff against origin/main.

        Each git command is allowed to fail; its field then keeps the default.
        """
        workdir = workdir or settings.CONTAINER_MOUNT_PATH

        async def run(command: str) -> str | None:
            result = await self.exec(name, command, cwd=workdir)
            return result.stdout if result.ok else None

        branch = await run("git rev-parse --abbrev-ref HEAD")
        status = await run("git status --porcelain")
        diff_stat = await run("(git fetch origin main --quiet || true) && git diff --stat origin/main")
        diff = await run("git diff origin/main") or ""
        if len(diff) > diff_limit:
            diff = diff[:diff_limit] + f"\n... (truncated {len(diff) - diff_limit} chars)"

        return GitInfo(
            branch=branch.strip() if branch else "unknown",
            status=(status or "").strip(),
            diff_stat=(diff_stat or "").strip(),
            diff=diff,
        )


async def cleanup_pull_request_containers(
    manager: ContainerLifecycleManager, owner: str, repo: str, branch: str
) -> list[str]:
    """Remove every container created for a pull request's head branch."""
    labels = container_labels(owner=owner, repo=repo, branch=branch)
    removed = await manager.remove_by_labels(labels)
    logger.info(f"Removed {len(removed)} container(s) for {owner}/{repo}@{branch}")
    return removed
