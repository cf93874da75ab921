# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.


class WorkspaceError(Exception):
    """Base class for failures of a file/command operation on a workspace."""


class PathValidationError(WorkspaceError, ValueError):
    def __init__(self, path: object, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path {path!r}: {reason}")


class PathNotFoundError(WorkspaceError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"File not found: {path}")


class PathIsDirectoryError(WorkspaceError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path is a directory, not a file: {path}")


class RefusedDirectoryError(WorkspaceError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Refusing to delete directory: {path}")
