# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Container port backed by the Docker Engine API (the `docker` SDK).

The SDK is synchronous, so every call is pushed onto a worker thread with
`asyncio.to_thread`. One client (and its connection pool) is shared by all
workflow runs in the process.
"""

import io
import time
import asyncio
import logging
import tarfile

from typing import Sequence
from pathlib import PurePosixPath

import docker

from docker.errors import APIError, NotFound

from .port import ContainerPort
from .errors import (
    ContainerError,
    ContainerNotFoundError,
    ContainerNotRunningError,
    ContainerAlreadyExistsError,
)
from ..config import settings
from ..types.common import ExecResult
from ..types.container_types import ContainerInfo, ContainerStatus, Mount

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

_STATUS_MAP = {
    "created": ContainerStatus.CREATED,
    "running": ContainerStatus.RUNNING,
    "restarting": ContainerStatus.RUNNING,
    "paused": ContainerStatus.STOPPED,
    "exited": ContainerStatus.STOPPED,
    "dead": ContainerStatus.STOPPED,
    "removing": ContainerStatus.STOPPED,
}


def map_docker_status(raw: str | None) -> ContainerStatus:
    return _STATUS_MAP.get((raw or "").lower(), ContainerStatus.STOPPED)


class DockerContainerClient(ContainerPort):
    def __init__(self, client: docker.DockerClient | None = None, stop_timeout: int = 10):
        if client is None:
            if settings.DOCKER_BASE_URL:
                client = docker.DockerClient(base_url=settings.DOCKER_BASE_URL)
            else:
                client = docker.from_env()
        self.client = client
        self.stop_timeout = stop_timeout

    def _get(self, name: str):
        try:
            return self.client.containers.get(name)
        except NotFound as e:
            raise ContainerNotFoundError(name) from e

    # Lifecycle ===============================================================

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
        def _run() -> str:
            try:
                container = self.client.containers.run(
                    image,
                    command=["tail", "-f", "/dev/null"],
                    name=name,
                    detach=True,
                    volumes=[m.to_bind() for m in mounts],
                    environment=env or {},
                    labels=labels or {},
                    working_dir=workdir,
                    user=user,
                )
            except APIError as e:
                if e.status_code == 409:
                    raise ContainerAlreadyExistsError(name) from e
                raise ContainerError(name, f"Failed to start container {name}: {e}") from e
            return container.id

        container_id = await asyncio.to_thread(_run)
        logger.info(f"Started container {name} ({container_id[:12]}) from {image}")
        return container_id

    async def stop(self, name: str) -> None:
        def _stop():
            container = self._get(name)
            try:
                container.stop(timeout=self.stop_timeout)
            except NotFound as e:
                raise ContainerNotFoundError(name) from e

        await asyncio.to_thread(_stop)

    async def remove(self, name: str) -> None:
        def _remove():
            container = self._get(name)
            try:
                container.remove(v=True, force=True)
            except NotFound as e:
                raise ContainerNotFoundError(name) from e
            except APIError as e:
                # 409 is "removal already in progress"
                if e.status_code != 409:
                    raise ContainerError(name, f"Failed to remove container {name}: {e}") from e

        await asyncio.to_thread(_remove)

    async def status(self, name: str) -> ContainerStatus:
        def _status() -> ContainerStatus:
            try:
                container = self.client.containers.get(name)
            except NotFound:
                return ContainerStatus.NOT_FOUND
            return map_docker_status(container.status)

        return await asyncio.to_thread(_status)

    async def list_by_labels(self, labels: dict[str, str]) -> list[ContainerInfo]:
        def _list() -> list[ContainerInfo]:
            filters = {"label": [f"{key}={value}" for key, value in labels.items()]}
            containers = self.client.containers.list(all=True, filters=filters)
            return [
                ContainerInfo(
                    id=c.id,
                    name=c.name,
                    image=c.attrs.get("Config", {}).get("Image"),
                    status=map_docker_status(c.status),
                    labels=c.labels or {},
                )
                for c in containers
            ]

        return await asyncio.to_thread(_list)

    # Exec and file transfer ==================================================

    async def exec(
        self,
        name: str,
        argv: Sequence[str],
        cwd: str | None = None,
        user: str | None = None,
    ) -> ExecResult:
        def _exec() -> ExecResult:
            container = self._get(name)
            if container.status != "running":
                raise ContainerNotRunningError(name, container.status)

            api = self.client.api
            try:
                exec_id = api.exec_create(
                    container.id,
                    list(argv),
                    stdout=True,
                    stderr=True,
                    workdir=cwd,
                    user=user or "",
                )["Id"]
            except APIError as e:
                if e.status_code == 409:
                    raise ContainerNotRunningError(name) from e
                raise ContainerError(name, f"exec failed in {name}: {e}") from e

            # Demultiplexed frames arrive as (stdout, stderr) pairs, one side None
            stdout_chunks: list[bytes] = []
            stderr_chunks: list[bytes] = []
            for out, err in api.exec_start(exec_id, stream=True, demux=True):
                if out:
                    stdout_chunks.append(out)
                if err:
                    stderr_chunks.append(err)

            exit_code = api.exec_inspect(exec_id).get("ExitCode")
            return ExecResult(
                stdout=b"".join(stdout_chunks).decode(errors="replace"),
                stderr=b"".join(stderr_chunks).decode(errors="replace"),
                exit_code=exit_code if exit_code is not None else -1,
            )

        return await asyncio.to_thread(_exec)

    async def write_file(self, name: str, path: str, data: bytes) -> None:
        target = PurePosixPath(path)

        archive = io.BytesIO()
        with tarfile.open(fileobj=archive, mode="w") as tar:
            info = tarfile.TarInfo(name=target.name)
            info.size = len(data)
            info.mtime = int(time.time())
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
        payload = archive.getvalue()

        def _put():
            container = self._get(name)
            try:
                ok = container.put_archive(str(target.parent), payload)
            except NotFound as e:
                raise ContainerError(name, f"Directory does not exist: {target.parent}") from e
            if not ok:
                raise ContainerError(name, f"Failed to write {path} in {name}")

        await asyncio.to_thread(_put)
