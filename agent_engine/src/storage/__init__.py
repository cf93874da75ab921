# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Persistent storage for workflow runs and their event chains.
"""

from .event_repository import EventRepository, IssueRunState, Transaction, UnitOfWork
from .memory_repository import InMemoryEventRepository
from .sqlite_repository import SqliteEventRepository

__all__ = [
    "EventRepository",
    "IssueRunState",
    "Transaction",
    "UnitOfWork",
    "InMemoryEventRepository",
    "SqliteEventRepository",
]
