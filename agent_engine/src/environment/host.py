# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import asyncio
import logging

from pathlib import Path

from .base import Environment
from .paths import join_host_path, validate_optional_cwd
from .errors import PathNotFoundError, PathIsDirectoryError, RefusedDirectoryError
from ..config import settings
from ..types.common import ExecResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

TIMEOUT_EXIT_CODE = 124


class HostEnvironment(Environment):
    """Operates directly on a directory of the local filesystem."""

    KIND = "host"

    def __init__(self, root: str | Path, command_timeout: float | None = None):
        self.root = Path(root).resolve()
        self.command_timeout = command_timeout or settings.COMMAND_TIMEOUT

    def describe(self) -> str:
        return f"host:{self.root}"

    # Filesystem calls run in a worker thread

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(self._read_file, path)

    async def write_file(self, path: str, content: str) -> None:
        await asyncio.to_thread(self._write_file, path, content)

    async def delete_file(self, path: str) -> None:
        await asyncio.to_thread(self._delete_file, path)

    def _read_file(self, path: str) -> str:
        full = join_host_path(self.root, path)
        if full.is_dir():
            raise PathIsDirectoryError(path)
        if not full.exists():
            raise PathNotFoundError(path)
        return full.read_text(errors="replace")

    def _write_file(self, path: str, content: str) -> None:
        full = join_host_path(self.root, path)
        if full.is_dir():
            raise PathIsDirectoryError(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(content)

    def _delete_file(self, path: str) -> None:
        full = join_host_path(self.root, path)
        if full.is_dir():
            raise RefusedDirectoryError(path)
        if not full.exists():
            raise PathNotFoundError(path)
        full.unlink()

    async def exec(self, command: str, cwd: str | None = None) -> ExecResult:
        relative_cwd = validate_optional_cwd(cwd)
        workdir = join_host_path(self.root, relative_cwd) if relative_cwd else self.root

        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(workdir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.command_timeout
            )
        except asyncio.TimeoutError:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                process.kill()  # Force kill if terminate didn't work
                await process.wait()
            logger.warning(f"Command timed out after {self.command_timeout}s: {command}")
            return ExecResult(
                stdout="",
                stderr=f"Command timed out after {self.command_timeout} seconds",
                exit_code=TIMEOUT_EXIT_CODE,
            )

        return ExecResult(
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            exit_code=process.returncode if process.returncode is not None else -1,
        )
