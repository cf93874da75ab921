# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.


class ContainerError(Exception):
    """Base class for container runtime failures."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(message)


class ContainerNotFoundError(ContainerError):
    def __init__(self, name: str):
        super().__init__(name, f"Container not found: {name}")


class ContainerNotRunningError(ContainerError):
    def __init__(self, name: str, status: str | None = None):
        self.status = status
        suffix = f" (status: {status})" if status else ""
        super().__init__(name, f"Container is not running: {name}{suffix}")


class ContainerAlreadyExistsError(ContainerError):
    def __init__(self, name: str):
        super().__init__(name, f"A container named {name} already exists")
