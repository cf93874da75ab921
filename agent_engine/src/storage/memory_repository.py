# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from typing import Callable, Iterable
from dataclasses import replace
from collections import defaultdict

from .event_repository import EventRepository, IssueRunState, Transaction
from ..events.errors import EventOrderingError, WorkflowRunNotFoundError
from ..types.event_types import Event, WorkflowState
from ..types.workflow_types import IssueRef, WorkflowRun


class MemoryTransaction(Transaction):
    """Writes apply immediately; rollback replays their undo actions."""

    def __init__(self):
        self._undo: list[Callable[[], None]] = []
        self.closed = False

    def on_rollback(self, action: Callable[[], None]) -> None:
        self._undo.append(action)

    def commit(self) -> None:
        self._undo.clear()
        self.closed = True

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()
        self.closed = True


class InMemoryEventRepository(EventRepository):
    """Process-local repository: one ordered list of events per run."""

    def __init__(self):
        self._runs: dict[str, WorkflowRun] = {}
        self._created: dict[str, dict[str, Event]] = defaultdict(dict)
        self._chains: dict[str, list[Event]] = defaultdict(list)

    def begin(self) -> MemoryTransaction:
        return MemoryTransaction()

    def _check_tx(self, tx: Transaction) -> MemoryTransaction:
        if not isinstance(tx, MemoryTransaction) or tx.closed:
            raise ValueError("An open transaction from this repository is required")
        return tx

    def create_run(self, run: WorkflowRun) -> None:
        if run.id in self._runs:
            raise ValueError(f"Workflow run {run.id} already exists")
        self._runs[run.id] = run

    def get_run(self, run_id: str) -> WorkflowRun | None:
        return self._runs.get(run_id)

    def list_runs_for_issue(self, issue: IssueRef) -> list[WorkflowRun]:
        runs = [
            run
            for run in self._runs.values()
            if run.target is not None and run.target.issue is not None and run.target.issue.key == issue.key
        ]
        return sorted(runs, key=lambda r: r.created_at, reverse=True)

    def create_event(self, run_id: str, event: Event, tx: Transaction) -> None:
        tx = self._check_tx(tx)
        if run_id not in self._runs:
            raise WorkflowRunNotFoundError(run_id)
        created = self._created[run_id]
        if event.id in created:
            raise EventOrderingError(f"Event {event.id} already exists in run {run_id}")
        created[event.id] = replace(event, metadata=dict(event.metadata))
        tx.on_rollback(lambda: created.pop(event.id, None))

    def append_to_chain_end(
        self, run_id: str, event_id: str, parent_id: str | None, tx: Transaction
    ) -> int:
        tx = self._check_tx(tx)
        event = self._created[run_id].get(event_id)
        if event is None:
            raise EventOrderingError(f"Event {event_id} was not created in run {run_id}")
        chain = self._chains[run_id]
        if any(e.id == event_id for e in chain):
            raise EventOrderingError(f"Event {event_id} is already linked in run {run_id}")

        if parent_id is not None:
            if not any(e.id == parent_id for e in chain):
                raise EventOrderingError(f"Parent event {parent_id} is not part of run {run_id}")
            predecessor = parent_id
        else:
            predecessor = chain[-1].id if chain else None

        sequence = len(chain)
        chain.append(replace(event, sequence=sequence, parent_id=predecessor))
        tx.on_rollback(chain.pop)
        return sequence

    def get_chain(self, run_id: str) -> list[Event]:
        return [replace(e, metadata=dict(e.metadata)) for e in self._chains.get(run_id, [])]

    def get_chain_tail(self, run_id: str) -> Event | None:
        chain = self._chains.get(run_id)
        return replace(chain[-1]) if chain else None

    def get_latest_lifecycle_event(self, run_id: str) -> Event | None:
        for event in reversed(self._chains.get(run_id, [])):
            if event.is_lifecycle:
                return replace(event)
        return None

    def get_latest_states_for_issues(self, issues: Iterable[IssueRef]) -> dict[str, IssueRunState]:
        states = {}
        for issue in issues:
            runs = self.list_runs_for_issue(issue)
            if not runs:
                continue
            latest = self.get_latest_lifecycle_event(runs[0].id)
            states[issue.key] = IssueRunState(
                issue_key=issue.key,
                run_id=runs[0].id,
                state=latest.state if latest else WorkflowState.PENDING,
            )
        return states
