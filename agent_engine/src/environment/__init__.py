# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .base import (
    Environment,
    HostTarget,
    ContainerTarget,
    EnvironmentTarget,
    create_environment,
)
from .errors import (
    WorkspaceError,
    PathValidationError,
    PathNotFoundError,
    PathIsDirectoryError,
    RefusedDirectoryError,
)
from .host import HostEnvironment
from .container import ContainerEnvironment
