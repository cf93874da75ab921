# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""HTTP and websocket access to workflow runs."""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
