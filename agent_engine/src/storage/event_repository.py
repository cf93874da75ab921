# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The event repository port and the unit of work that scopes its writes.

Events of a run are stored as an ordered arena: each event carries a per-run
sequence number, assigned when it is linked at the end of the chain, plus the
id of its predecessor.
"""

from abc import ABC, abstractmethod
from typing import Iterable
from pydantic import BaseModel

from ..types.event_types import Event, WorkflowState
from ..types.workflow_types import IssueRef, WorkflowRun


class Transaction(ABC):
    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass


class IssueRunState(BaseModel):
    """The most recent run linked to an issue, and that run's state."""

    issue_key: str
    run_id: str
    state: WorkflowState


class EventRepository(ABC):
    @abstractmethod
    def begin(self) -> Transaction:
        pass

    # Runs ====================================================================

    @abstractmethod
    def create_run(self, run: WorkflowRun) -> None:
        pass

    @abstractmethod
    def get_run(self, run_id: str) -> WorkflowRun | None:
        pass

    @abstractmethod
    def list_runs_for_issue(self, issue: IssueRef) -> list[WorkflowRun]:
        """Runs targeting the issue, newest first."""
        pass

    # Events ==================================================================

    @abstractmethod
    def create_event(self, run_id: str, event: Event, tx: Transaction) -> None:
        """Store an event that is not yet part of the chain."""
        pass

    @abstractmethod
    def append_to_chain_end(
        self, run_id: str, event_id: str, parent_id: str | None, tx: Transaction
    ) -> int:
        """Link a created event at the end of the run's chain.

        The predecessor is `parent_id` when given, otherwise the current tail.
        Returns the sequence number assigned to the event. Raises
        EventOrderingError if `parent_id` is not an event of the run.
        """
        pass

    @abstractmethod
    def get_chain(self, run_id: str) -> list[Event]:
        pass

    @abstractmethod
    def get_chain_tail(self, run_id: str) -> Event | None:
        pass

    @abstractmethod
    def get_latest_lifecycle_event(self, run_id: str) -> Event | None:
        pass

    @abstractmethod
    def get_latest_states_for_issues(self, issues: Iterable[IssueRef]) -> dict[str, IssueRunState]:
        """One query for many issues: keyed by `IssueRef.key`.

        Only the most recent run of each issue counts; a run with no lifecycle
        event yet is PENDING. Issues without any run are left out.
        """
        pass


class UnitOfWork:
    """Transaction boundary for repository writes.

        with UnitOfWork(repository) as tx:
            repository.create_event(run_id, event, tx)
            repository.append_to_chain_end(run_id, event.id, None, tx)

    Commits when the block exits normally, rolls back if it raises.
    """

    def __init__(self, repository: EventRepository):
        self.repository = repository
        self._tx: Transaction | None = None

    def __enter__(self) -> Transaction:
        self._tx = self.repository.begin()
        return self._tx

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._tx is None:
            return
        if exc_type is None:
            self._tx.commit()
        else:
            self._tx.rollback()
        self._tx = None
