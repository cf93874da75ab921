# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import shutil
import subprocess

import pytest

from agent_engine.src.containers import (
    ContainerAlreadyExistsError,
    ContainerLifecycleManager,
    ContainerNotRunningError,
    cleanup_pull_request_containers,
)
from agent_engine.src.containers.labels import (
    BRANCH_LABEL,
    OWNER_LABEL,
    REPO_LABEL,
    WORKFLOW_RUN_LABEL,
    container_labels,
    container_name_for_run,
)
from agent_engine.src.types.container_types import ContainerStatus, Mount

from agent_engine.tests.fakes import LocalProcessContainerPort


@pytest.fixture
def port(tmp_path):
    return LocalProcessContainerPort(default_root=tmp_path)


@pytest.fixture
def manager(port):
    return ContainerLifecycleManager(port, exec_user="")


class TestLifecycle:
    async def test_start_and_status(self, manager):
        await manager.start("img", "box", workdir="/workspace")
        assert await manager.status("box") == ContainerStatus.RUNNING

    async def test_unknown_container_is_not_found(self, manager):
        assert await manager.status("ghost") == ContainerStatus.NOT_FOUND

    async def test_start_collision(self, manager):
        await manager.start("img", "box", workdir="/workspace")
        with pytest.raises(ContainerAlreadyExistsError):
            await manager.start("img", "box", workdir="/workspace")

    async def test_allow_existing_reuses_running_container(self, manager, port):
        await manager.start("img", "box", workdir="/workspace")
        first_id = port.containers["box"]["id"]

        await manager.start("img", "box", workdir="/workspace", allow_existing=True)
        assert port.containers["box"]["id"] == first_id

    async def test_allow_existing_replaces_stopped_container(self, manager, port):
        await manager.start("img", "box", workdir="/workspace")
        first_id = port.containers["box"]["id"]
        await manager.stop("box")

        await manager.start("img", "box", workdir="/workspace", allow_existing=True)
        assert port.containers["box"]["id"] != first_id
        assert await manager.status("box") == ContainerStatus.RUNNING

    async def test_stop_is_idempotent(self, manager, port):
        await manager.start("img", "box", workdir="/workspace")
        await manager.stop("box")
        await manager.stop("box")

        assert port.stop_calls == ["box"]
        assert await manager.status("box") == ContainerStatus.STOPPED

    async def test_remove_is_idempotent(self, manager, port):
        await manager.start("img", "box", workdir="/workspace")
        await manager.remove("box")
        await manager.remove("box")

        assert port.remove_calls == ["box"]
        assert await manager.status("box") == ContainerStatus.REMOVED

    async def test_stop_and_remove_unknown_container(self, manager, port):
        await manager.stop("ghost")
        await manager.remove("ghost")
        assert port.stop_calls == []
        assert port.remove_calls == []

    async def test_teardown(self, manager, port):
        await manager.start("img", "box", workdir="/workspace")
        await manager.teardown("box")
        await manager.teardown("box")

        assert port.stop_calls == ["box"]
        assert port.remove_calls == ["box"]
        assert await manager.status("box") == ContainerStatus.REMOVED

    async def test_start_after_remove_clears_removed_state(self, manager):
        await manager.start("img", "box", workdir="/workspace")
        await manager.teardown("box")
        await manager.start("img", "box", workdir="/workspace")
        assert await manager.status("box") == ContainerStatus.RUNNING
        assert "box" not in manager._removed

    async def test_removing_unknown_names_is_not_remembered(self, manager):
        for i in range(5):
            await manager.remove(f"ghost-{i}")
        assert len(manager._removed) == 0
        assert await manager.status("ghost-0") == ContainerStatus.NOT_FOUND

    async def test_removed_names_are_bounded(self, manager, monkeypatch):
        monkeypatch.setattr("agent_engine.src.containers.manager.MAX_REMOVED_NAMES", 2)
        for name in ("a", "b", "c"):
            await manager.start("img", name, workdir="/workspace")
            await manager.teardown(name)

        assert list(manager._removed) == ["b", "c"]
        assert await manager.status("a") == ContainerStatus.NOT_FOUND
        assert await manager.status("c") == ContainerStatus.REMOVED


class TestExec:
    async def test_string_command_runs_through_shell(self, manager, port):
        await manager.start("img", "box", workdir="/workspace")
        result = await manager.exec("box", "echo $((1 + 2))", cwd="/workspace")

        assert result.stdout == "3\n"
        assert port.exec_log[-1][1] == ["sh", "-c", "echo $((1 + 2))"]

    async def test_argv_command(self, manager, port):
        await manager.start("img", "box", workdir="/workspace")
        result = await manager.exec("box", ["echo", "a b"], cwd="/workspace")

        assert result.stdout == "a b\n"
        assert port.exec_log[-1][1] == ["echo", "a b"]

    @pytest.mark.parametrize("teardown", ["stop", "teardown"])
    async def test_exec_requires_running_container(self, manager, port, teardown):
        await manager.start("img", "box", workdir="/workspace")
        await getattr(manager, teardown)("box")

        with pytest.raises(ContainerNotRunningError):
            await manager.exec("box", "true")
        assert port.exec_log == []

    async def test_exec_unknown_container(self, manager):
        with pytest.raises(ContainerNotRunningError, match="not_found"):
            await manager.exec("ghost", "true")

    async def test_write_file_creates_parents(self, manager, tmp_path):
        await manager.start("img", "box", workdir="/workspace")
        full = await manager.write_file("box", "/workspace", "a/b/c.txt", "hello")

        assert full == "/workspace/a/b/c.txt"
        assert (tmp_path / "a/b/c.txt").read_text() == "hello"


class TestLabelsAndCleanup:
    def test_container_name_for_run(self):
        assert container_name_for_run("abc123") == "agent-abc123"
        assert container_name_for_run("run/with:odd chars") == "agent-run-with-odd-chars"
        assert container_name_for_run("x", prefix="_tmp") == "c_tmp-x"

    def test_container_labels_skip_missing_values(self):
        assert container_labels(owner="acme", repo="widgets") == {
            OWNER_LABEL: "acme",
            REPO_LABEL: "widgets",
        }
        labels = container_labels("acme", "widgets", "fix/1", "run-1")
        assert labels[BRANCH_LABEL] == "fix/1"
        assert labels[WORKFLOW_RUN_LABEL] == "run-1"

    async def test_cleanup_pull_request_containers(self, manager, port):
        await manager.start(
            "img", "pr-a", workdir="/workspace", labels=container_labels("acme", "widgets", "fix/1", "r1")
        )
        await manager.start(
            "img", "pr-b", workdir="/workspace", labels=container_labels("acme", "widgets", "fix/1", "r2")
        )
        await manager.start(
            "img", "other", workdir="/workspace", labels=container_labels("acme", "widgets", "main", "r3")
        )

        removed = await cleanup_pull_request_containers(manager, "acme", "widgets", "fix/1")

        assert sorted(removed) == ["pr-a", "pr-b"]
        assert list(port.containers) == ["other"]
        assert await manager.status("pr-a") == ContainerStatus.REMOVED

    @pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
    async def test_get_git_info(self, manager, tmp_path):
        subprocess.run(["git", "init", "-q", "-b", "feature", str(tmp_path)], check=True)
        subprocess.run(
            ["git", "-c", "user.name=t", "-c", "user.email=t@example.com", "commit", "-q", "--allow-empty", "-m", "init"],
            cwd=tmp_path,
            check=True,
        )
        (tmp_path / "new.txt").write_text("x")
        await manager.start("img", "box", workdir="/workspace")

        info = await manager.get_git_info("box", "/workspace")

        assert info.branch == "feature"
        assert "?? new.txt" in info.status
        assert info.diff == ""
