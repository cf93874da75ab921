# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .base_tool import BaseTool, ToolContext, tool_registry
from .registry import ToolRegistry, ToolRegistrationError
from .code_host import CodeHostPort, PullRequestInfo
from .file_tools import GetFileContent, WriteFile, DeleteFile
from .edit_tools import ApplyPatch
from .directory_tools import ListDirectory
from .ripgrep_tool import SearchCode
from .execute_command import ExecuteCommand
from .file_check import FileCheck
from .git_tools import CreateBranch, CommitChanges, PushBranch
from .pull_request import CreatePullRequest

# Tools that only look at the workspace
reading_tools = [GetFileContent, ListDirectory, SearchCode]

coding_toolkit = reading_tools + [
    WriteFile,
    ApplyPatch,
    DeleteFile,
    ExecuteCommand,
    FileCheck,
]

review_toolkit = reading_tools + [FileCheck]

publishing_toolkit = [CreateBranch, CommitChanges, PushBranch, CreatePullRequest]

toolkits: dict[str, list[type[BaseTool]]] = {
    "coding": coding_toolkit,
    "review": review_toolkit,
    "publishing": publishing_toolkit,
}
