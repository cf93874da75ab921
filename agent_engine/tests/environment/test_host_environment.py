# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import threading

from pathlib import Path

import pytest

from agent_engine.src.environment import (
    HostEnvironment,
    HostTarget,
    PathIsDirectoryError,
    PathNotFoundError,
    PathValidationError,
    RefusedDirectoryError,
    create_environment,
)


@pytest.fixture
def env(tmp_path):
    return HostEnvironment(tmp_path)


class TestHostFiles:
    async def test_write_then_read(self, env, tmp_path):
        await env.write_file("src/pkg/mod.py", "print('hi')\n")

        assert (tmp_path / "src/pkg/mod.py").read_text() == "print('hi')\n"
        assert await env.read_file("src/pkg/mod.py") == "print('hi')\n"

    async def test_write_replaces_content(self, env):
        await env.write_file("a.txt", "first")
        await env.write_file("a.txt", "second")
        assert await env.read_file("a.txt") == "second"

    async def test_read_missing_file(self, env):
        with pytest.raises(PathNotFoundError, match="File not found: missing.txt"):
            await env.read_file("missing.txt")

    async def test_read_directory(self, env, tmp_path):
        (tmp_path / "dir").mkdir()
        with pytest.raises(PathIsDirectoryError):
            await env.read_file("dir")

    async def test_write_over_directory(self, env, tmp_path):
        (tmp_path / "dir").mkdir()
        with pytest.raises(PathIsDirectoryError):
            await env.write_file("dir", "x")

    async def test_delete_file(self, env, tmp_path):
        (tmp_path / "gone.txt").write_text("bye")
        await env.delete_file("gone.txt")
        assert not (tmp_path / "gone.txt").exists()

    async def test_delete_missing_file(self, env):
        with pytest.raises(PathNotFoundError):
            await env.delete_file("gone.txt")

    async def test_delete_refuses_directories(self, env, tmp_path):
        (tmp_path / "dir").mkdir()
        with pytest.raises(RefusedDirectoryError):
            await env.delete_file("dir")
        assert (tmp_path / "dir").is_dir()

    @pytest.mark.parametrize("path", ["../escape.txt", "/etc/passwd", "a/./b"])
    async def test_paths_are_validated(self, env, path):
        with pytest.raises(PathValidationError):
            await env.read_file(path)
        with pytest.raises(PathValidationError):
            await env.write_file(path, "x")
        with pytest.raises(PathValidationError):
            await env.delete_file(path)

    async def test_file_io_runs_off_the_event_loop_thread(self, env, monkeypatch):
        threads = []
        read_text, write_text, unlink = Path.read_text, Path.write_text, Path.unlink

        def record(original):
            def wrapper(self, *args, **kwargs):
                threads.append(threading.get_ident())
                return original(self, *args, **kwargs)

            return wrapper

        monkeypatch.setattr(Path, "read_text", record(read_text))
        monkeypatch.setattr(Path, "write_text", record(write_text))
        monkeypatch.setattr(Path, "unlink", record(unlink))

        await env.write_file("a.txt", "x")
        await env.read_file("a.txt")
        await env.delete_file("a.txt")

        assert len(threads) == 3
        assert threading.get_ident() not in threads


class TestHostExec:
    async def test_exec_captures_output_and_exit_code(self, env):
        result = await env.exec("echo out; echo err >&2; exit 3")

        assert result.stdout == "out\n"
        assert result.stderr == "err\n"
        assert result.exit_code == 3
        assert not result.ok

    async def test_exec_runs_in_root(self, env, tmp_path):
        result = await env.exec("pwd")
        assert result.stdout.strip() == str(tmp_path.resolve())

    async def test_exec_with_cwd(self, env, tmp_path):
        (tmp_path / "sub").mkdir()
        result = await env.exec("pwd", cwd="sub")
        assert result.stdout.strip() == str((tmp_path / "sub").resolve())

    async def test_exec_rejects_escaping_cwd(self, env):
        with pytest.raises(PathValidationError):
            await env.exec("pwd", cwd="..")

    async def test_exec_timeout(self, tmp_path):
        env = HostEnvironment(tmp_path, command_timeout=0.2)
        result = await env.exec("sleep 5")

        assert result.exit_code == 124
        assert "timed out" in result.stderr


def test_create_environment_for_host_target(tmp_path):
    env = create_environment(HostTarget(root=str(tmp_path)))

    assert isinstance(env, HostEnvironment)
    assert env.describe() == f"host:{tmp_path.resolve()}"
