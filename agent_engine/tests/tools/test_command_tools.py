# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the tools that build shell commands: search, checks and git."""
import pytest

from pydantic import ValidationError

from agent_engine.src.tools.base_tool import ToolContext
from agent_engine.src.tools.file_check import FileCheck
from agent_engine.src.tools.git_tools import (
    CommitChanges,
    CreateBranch,
    PushBranch,
    validate_branch_name,
)
from agent_engine.src.tools.pull_request import CreatePullRequest
from agent_engine.src.tools.ripgrep_tool import SearchCode
from agent_engine.src.types.common import ExecResult
from agent_engine.src.types.workflow_types import RepositoryRef

from agent_engine.tests.fakes import FakeCodeHost, RecordingEnvironment


def context_for(env, **kwargs) -> ToolContext:
    return ToolContext(environment=env, **kwargs)


class TestSearchCode:
    def test_default_command(self):
        tool = SearchCode(context_for(RecordingEnvironment()), query="def main")
        assert tool.build_command() == (
            "rg --line-number --heading --color never --max-filesize 200K -C 3 -e 'def main' -- ."
        )

    def test_flags(self):
        tool = SearchCode(
            context_for(RecordingEnvironment()),
            query="TODO",
            path="src",
            ignore_case=True,
            hidden=True,
            follow=True,
            context_lines=0,
        )
        command = tool.build_command()
        assert " -C 0 -i --hidden --glob '!.git' -L " in command
        assert command.endswith("-e TODO -- src")

    async def test_no_matches(self):
        env = RecordingEnvironment({"rg ": ExecResult(exit_code=1)})
        result = await SearchCode(context_for(env), query="zzz").run()

        assert result.success
        assert result.output == "No matching results found in the codebase."

    async def test_rg_error(self):
        env = RecordingEnvironment({"rg ": ExecResult(stderr="regex parse error", exit_code=2)})
        result = await SearchCode(context_for(env), query="(").run()

        assert not result.success
        assert "regex parse error" in result.errors

    async def test_output_is_capped(self):
        stdout = "\n".join(f"{i}:match" for i in range(50))
        env = RecordingEnvironment({"rg ": ExecResult(stdout=stdout)})
        result = await SearchCode(context_for(env), query="match", max_lines=10).run()

        assert result.success
        assert len(result.output.splitlines()) == 10
        assert result.warnings.startswith("40 more lines were omitted")

    def test_path_is_validated(self):
        tool = SearchCode(context_for(RecordingEnvironment()), query="x", path="../outside")
        with pytest.raises(ValueError):
            tool.build_command()


class TestFileCheck:
    @pytest.mark.parametrize(
        "command",
        [
            "mypy src/app.py",
            "ruff check src",
            "npx tsc --noEmit",
            "python -m pyright src",
            "black --check src",
            "uv run flake8 .",
        ],
    )
    def test_allowed_commands(self, command):
        tool = FileCheck(context_for(RecordingEnvironment()), command=command)
        assert tool.command == command

    @pytest.mark.parametrize(
        "command",
        [
            "rm -rf /",
            "mypy src; rm -rf /",
            "ruff check --fix src",
            "prettier --write .",
            "black src",
            "mypy $(cat files)",
            "npx cowsay hi",
            "eslint src | tee out",
        ],
    )
    def test_refused_commands(self, command):
        with pytest.raises(ValidationError):
            FileCheck(context_for(RecordingEnvironment()), command=command)

    async def test_run_reports_exit_code(self):
        env = RecordingEnvironment({"mypy": ExecResult(stdout="error: x", exit_code=1)})
        result = await FileCheck(context_for(env), command="mypy 'src/my file.py'").run()

        assert result.success
        assert result.output["exit_code"] == 1
        assert env.commands == [("mypy 'src/my file.py'", None)]


class TestGitTools:
    @pytest.mark.parametrize("branch", ["fix/issue-42", "feature.x", "a"])
    def test_valid_branch_names(self, branch):
        assert validate_branch_name(branch) == branch

    @pytest.mark.parametrize("branch", ["-rf", "a..b", "a//b", "end/", "x.lock", "sp ace", "semi;colon"])
    def test_invalid_branch_names(self, branch):
        with pytest.raises(ValueError):
            validate_branch_name(branch)

    async def test_checkout_existing_branch(self):
        env = RecordingEnvironment()
        result = await CreateBranch(context_for(env), branch="fix/1").run()

        assert result.success
        assert result.output["created"] is False
        assert env.commands[-1][0] == "git checkout --quiet fix/1"

    async def test_missing_branch_without_create(self):
        env = RecordingEnvironment({"rev-parse": ExecResult(exit_code=1)})
        result = await CreateBranch(context_for(env), branch="fix/1").run()

        assert not result.success
        assert "does not exist" in result.errors

    async def test_create_branch(self):
        env = RecordingEnvironment({"rev-parse": ExecResult(exit_code=1)})
        result = await CreateBranch(context_for(env), branch="fix/1", create_if_not_exists=True).run()

        assert result.success
        assert result.output["created"] is True
        assert env.commands[-1][0] == "git checkout --quiet -b fix/1"

    async def test_commit_without_changes(self):
        env = RecordingEnvironment()
        result = await CommitChanges(context_for(env), message="Fix").run()

        assert not result.success
        assert result.errors == "There are no changes to commit."

    async def test_commit(self):
        env = RecordingEnvironment(
            {
                "diff --cached": ExecResult(exit_code=1),
                "rev-parse HEAD": ExecResult(stdout="abc123\n"),
            }
        )
        result = await CommitChanges(context_for(env), message="Fix the 'bug'").run()

        assert result.success
        assert result.output == {"commit": "abc123", "message": "Fix the 'bug'"}
        commands = [c for c, _ in env.commands]
        assert commands[0] == "git add --all"
        assert commands[2] == "git commit --quiet -m 'Fix the '\"'\"'bug'\"'\"''"

    async def test_push_failure(self):
        env = RecordingEnvironment({"git push": ExecResult(stderr="rejected", exit_code=1)})
        result = await PushBranch(context_for(env), branch="fix/1").run()

        assert not result.success
        assert result.errors == "Pushing 'fix/1' failed (exit code 1): rejected"


class TestCreatePullRequest:
    def setup_method(self):
        self.host = FakeCodeHost()
        self.repo = RepositoryRef(owner="acme", name="widgets")

    async def test_requires_code_host(self):
        tool = CreatePullRequest(context_for(RecordingEnvironment()), branch="fix/1", title="t", body="b")
        result = await tool.run()
        assert not result.success
        assert result.errors == "No code host is configured for this run."

    async def test_opens_pull_request_linked_to_issue(self):
        context = context_for(
            RecordingEnvironment(), code_host=self.host, repository=self.repo, issue_number=42
        )
        result = await CreatePullRequest(context, branch="fix/1", title="Fix", body="Details").run()

        assert result.success
        assert result.output["number"] == 1
        _, pr, title, body = self.host.pull_requests[0]
        assert pr.base == "main"
        assert title == "Fix"
        assert body == "Details\n\nCloses #42"

    async def test_one_pull_request_per_branch(self):
        context = context_for(RecordingEnvironment(), code_host=self.host, repository=self.repo)
        await CreatePullRequest(context, branch="fix/1", title="Fix", body="b").run()
        result = await CreatePullRequest(context, branch="fix/1", title="Again", body="b").run()

        assert not result.success
        assert "already exists" in result.errors
        assert len(self.host.pull_requests) == 1

    def test_branch_is_validated(self):
        with pytest.raises(ValidationError):
            CreatePullRequest(context_for(RecordingEnvironment()), branch="a..b", title="t", body="b")
