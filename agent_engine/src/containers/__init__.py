# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .port import ContainerPort
from .errors import (
    ContainerError,
    ContainerNotFoundError,
    ContainerNotRunningError,
    ContainerAlreadyExistsError,
)
from .labels import container_labels, container_name_for_run
from .manager import ContainerLifecycleManager, cleanup_pull_request_containers
