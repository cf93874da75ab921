# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Workflow events: the durable append-only log, the live per-run event bus, and
the reporter facade that writes to both.
"""
