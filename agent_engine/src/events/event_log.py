# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The workflow event log: a strictly ordered, append-only chain of events per
run, persisted through an EventRepository and mirrored to the live EventBus.
"""

import asyncio
import logging

from typing import Callable, Iterable, Sequence
from datetime import datetime

from .errors import EventOrderingError, WorkflowRunNotFoundError, WorkflowStateError
from .event_bus import EventBus
from ..storage.event_repository import EventRepository, IssueRunState, UnitOfWork
from ..types.common import utc_now
from ..types.event_types import Event, WorkflowState
from ..types.workflow_types import IssueRef, WorkflowRun

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def check_transition(current: WorkflowState | None, event: Event) -> str | None:
    """Return why `event` may not follow a run whose state is `current`."""
    if current is not None and current.is_terminal:
        return f"the run already reached the terminal state '{current.value}'"
    if not event.is_lifecycle:
        return None

    target = event.state
    if target == WorkflowState.PENDING:
        if current is not None:
            return f"cannot return to 'pending' from '{current.value}'"
    elif target == WorkflowState.RUNNING:
        if current not in (None, WorkflowState.PENDING):
            return f"the run is already '{current.value}'"
    elif current != WorkflowState.RUNNING:
        state = current.value if current else "pending"
        return f"'{target.value}' must follow 'running', the run is '{state}'"
    return None


class WorkflowEventLog:
    """Appends are serialised per run by an asyncio mutex.

    Under the mutex the log checks the lifecycle rules, stamps the event with
    a non-decreasing timestamp, links it at the chain end inside one unit of
    work, and then publishes it, so live subscribers see events in the same
    order as they are stored.
    """

    def __init__(
        self,
        repository: EventRepository,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.event_bus = event_bus
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, run_id: str) -> asyncio.Lock:
        lock = self._locks.get(run_id)
        if lock is None:
            lock = self._locks[run_id] = asyncio.Lock()
        return lock

    # Runs ====================================================================

    async def create_run(self, run: WorkflowRun) -> WorkflowRun:
        self.repository.create_run(run)
        if self.event_bus is not None:
            self.event_bus.open_channel(run.id)
        logger.info(f"Created workflow run {run.id} ({run.type.value})")
        return run

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        return self.repository.get_run(run_id)

    # Writes ==================================================================

    async def append(self, run_id: str, event: Event, parent_id: str | None = None) -> Event:
        """Link `event` at the end of the run's chain and return it.

        With `parent_id` the event is linked after that event instead of the
        current tail; its sequence number still places it last in the chain.
        """
        [event] = await self.append_all(run_id, [event], parent_id=parent_id)
        return event

    async def append_all(
        self, run_id: str, events: Sequence[Event], parent_id: str | None = None
    ) -> list[Event]:
        """Link several events in order as one unit: either all of them or none.

        Every event is checked against the lifecycle rules before anything is
        written. `parent_id` applies to the first event only.
        """
        events = list(events)
        async with self._lock_for(run_id):
            if self.repository.get_run(run_id) is None:
                raise WorkflowRunNotFoundError(run_id)

            latest = self.repository.get_latest_lifecycle_event(run_id)
            current = latest.state if latest else None
            for event in events:
                reason = check_transition(current, event)
                if reason is not None:
                    message = f"Rejected {event.type.value} event for run {run_id}: {reason}"
                    logger.error(message)
                    raise WorkflowStateError(message)
                if event.is_lifecycle:
                    current = event.state

            tail = self.repository.get_chain_tail(run_id)
            previous = tail
            for event in events:
                floor = previous.timestamp if previous is not None else None
                if event.timestamp is None:
                    now = self._clock()
                    # Keep timestamps non-decreasing even if the wall clock steps back
                    event.timestamp = max(now, floor) if floor else now
                elif floor and event.timestamp < floor:
                    message = (
                        f"Event {event.id} for run {run_id} is dated {event.timestamp.isoformat()}, "
                        f"before its predecessor {previous.id} at {floor.isoformat()}"
                    )
                    logger.error(message)
                    raise EventOrderingError(message)
                previous = event

            try:
                with UnitOfWork(self.repository) as tx:
                    for i, event in enumerate(events):
                        self.repository.create_event(run_id, event, tx)
                        event.sequence = self.repository.append_to_chain_end(
                            run_id, event.id, parent_id if i == 0 else None, tx
                        )
            except EventOrderingError as e:
                logger.error(f"Could not append events to run {run_id}: {e}")
                raise

            predecessor = parent_id if parent_id is not None else (tail.id if tail else None)
            for event in events:
                event.parent_id = predecessor
                predecessor = event.id

            for event in events:
                if self.event_bus is not None:
                    await self.event_bus.publish(run_id, event)
                if event.is_lifecycle and event.state.is_terminal:
                    if self.event_bus is not None:
                        self.event_bus.close_channel(run_id)
                    self._locks.pop(run_id, None)

            return events

    # Reads ===================================================================

    async def get_chain(self, run_id: str) -> list[Event]:
        return self.repository.get_chain(run_id)

    async def get_tail(self, run_id: str) -> Event | None:
        return self.repository.get_chain_tail(run_id)

    async def get_latest_lifecycle_event(self, run_id: str) -> Event | None:
        return self.repository.get_latest_lifecycle_event(run_id)

    async def get_state(self, run_id: str) -> WorkflowState:
        if self.repository.get_run(run_id) is None:
            raise WorkflowRunNotFoundError(run_id)
        latest = self.repository.get_latest_lifecycle_event(run_id)
        return latest.state if latest else WorkflowState.PENDING

    async def get_latest_states_for_issues(self, issues: Iterable[IssueRef]) -> dict[str, IssueRunState]:
        return self.repository.get_latest_states_for_issues(issues)

    async def list_runs_for_issue(self, issue: IssueRef) -> list[WorkflowRun]:
        return self.repository.list_runs_for_issue(issue)
