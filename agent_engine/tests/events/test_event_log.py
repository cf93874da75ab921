# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the append-only workflow event log."""
import asyncio

from datetime import datetime, timedelta, timezone

import pytest

from agent_engine.src.events.errors import (
    EventOrderingError,
    WorkflowRunNotFoundError,
    WorkflowStateError,
)
from agent_engine.src.events.event_log import WorkflowEventLog, check_transition
from agent_engine.src.storage.memory_repository import InMemoryEventRepository
from agent_engine.src.storage.sqlite_repository import SqliteEventRepository
from agent_engine.src.types.event_types import Event, EventType, WorkflowState

from agent_engine.tests.fakes import make_event_log, make_run


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    if request.param == "memory":
        return InMemoryEventRepository()
    return SqliteEventRepository(tmp_path / "events.db")


@pytest.fixture
async def log_and_run(repository):
    event_log, bus = make_event_log(repository)
    run = await event_log.create_run(make_run())
    return event_log, run


def state(value: WorkflowState, content: str | None = None) -> Event:
    return Event.workflow_state(value, content)


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (None, WorkflowState.RUNNING),
            (WorkflowState.PENDING, WorkflowState.RUNNING),
            (WorkflowState.RUNNING, WorkflowState.COMPLETED),
            (WorkflowState.RUNNING, WorkflowState.ERROR),
            (WorkflowState.RUNNING, WorkflowState.TIMED_OUT),
            (None, WorkflowState.PENDING),
        ],
    )
    def test_allowed(self, current, target):
        assert check_transition(current, state(target)) is None

    @pytest.mark.parametrize(
        "current,target",
        [
            (None, WorkflowState.COMPLETED),
            (WorkflowState.RUNNING, WorkflowState.RUNNING),
            (WorkflowState.RUNNING, WorkflowState.PENDING),
            (WorkflowState.COMPLETED, WorkflowState.RUNNING),
            (WorkflowState.ERROR, WorkflowState.COMPLETED),
        ],
    )
    def test_refused(self, current, target):
        assert check_transition(current, state(target)) is not None

    @pytest.mark.parametrize("terminal", [WorkflowState.COMPLETED, WorkflowState.ERROR, WorkflowState.TIMED_OUT])
    def test_nothing_follows_a_terminal_state(self, terminal):
        assert check_transition(terminal, Event.status("late")) is not None

    def test_progress_events_do_not_need_a_running_state(self):
        assert check_transition(None, Event.status("preparing")) is None


class TestAppend:
    async def test_chain_order_and_links(self, log_and_run):
        event_log, run = log_and_run
        first = await event_log.append(run.id, state(WorkflowState.RUNNING))
        second = await event_log.append(run.id, Event.status("working"))
        third = await event_log.append(run.id, Event.status("still working"))

        assert [first.sequence, second.sequence, third.sequence] == [0, 1, 2]
        assert first.parent_id is None
        assert second.parent_id == first.id
        assert third.parent_id == second.id

        chain = await event_log.get_chain(run.id)
        assert [e.id for e in chain] == [first.id, second.id, third.id]
        assert [e.parent_id for e in chain] == [None, first.id, second.id]
        assert (await event_log.get_tail(run.id)).id == third.id

    async def test_timestamps_never_decrease(self, repository):
        now = datetime(2025, 1, 1, 12, tzinfo=timezone.utc)
        ticks = iter([now, now - timedelta(seconds=30), now + timedelta(seconds=1)])
        event_log = WorkflowEventLog(repository, clock=lambda: next(ticks))
        run = await event_log.create_run(make_run())

        events = [await event_log.append(run.id, Event.status(str(i))) for i in range(3)]

        assert events[0].timestamp == now
        assert events[1].timestamp == now
        assert events[2].timestamp == now + timedelta(seconds=1)

    async def test_backdated_event_is_refused(self, log_and_run):
        event_log, run = log_and_run
        await event_log.append(run.id, Event.status("now"))

        late = Event.status("past")
        late.timestamp = datetime(2000, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(EventOrderingError):
            await event_log.append(run.id, late)
        assert len(await event_log.get_chain(run.id)) == 1

    async def test_append_to_unknown_run(self, log_and_run):
        event_log, _ = log_and_run
        with pytest.raises(WorkflowRunNotFoundError):
            await event_log.append("missing", Event.status("x"))

    async def test_duplicate_event_is_refused(self, log_and_run):
        event_log, run = log_and_run
        event = await event_log.append(run.id, Event.status("once"))
        again = Event.status("twice")
        again.id = event.id

        with pytest.raises(EventOrderingError):
            await event_log.append(run.id, again)
        assert len(await event_log.get_chain(run.id)) == 1

    async def test_explicit_parent(self, log_and_run):
        event_log, run = log_and_run
        first = await event_log.append(run.id, Event.status("a"))
        await event_log.append(run.id, Event.status("b"))
        reply = await event_log.append(run.id, Event.status("reply to a"), parent_id=first.id)

        assert reply.parent_id == first.id
        assert reply.sequence == 2

    async def test_unknown_parent(self, log_and_run):
        event_log, run = log_and_run
        with pytest.raises(EventOrderingError):
            await event_log.append(run.id, Event.status("orphan"), parent_id="nope")
        assert await event_log.get_chain(run.id) == []

    async def test_append_all_links_in_order(self, log_and_run):
        event_log, run = log_and_run
        await event_log.append(run.id, state(WorkflowState.RUNNING))
        events = await event_log.append_all(
            run.id, [Event.error("boom"), state(WorkflowState.ERROR, "boom")]
        )

        chain = await event_log.get_chain(run.id)
        assert [e.id for e in chain[1:]] == [e.id for e in events]
        assert [e.sequence for e in events] == [1, 2]
        assert events[1].parent_id == events[0].id
        assert await event_log.get_state(run.id) == WorkflowState.ERROR

    async def test_append_all_stores_nothing_when_one_event_is_refused(self, log_and_run):
        event_log, run = log_and_run
        with pytest.raises(WorkflowStateError):
            await event_log.append_all(
                run.id, [Event.error("boom"), state(WorkflowState.ERROR, "boom")]
            )
        assert await event_log.get_chain(run.id) == []

    async def test_concurrent_appends_form_one_chain(self, log_and_run):
        event_log, run = log_and_run
        await asyncio.gather(
            *(event_log.append(run.id, Event.status(f"event {i}")) for i in range(25))
        )

        chain = await event_log.get_chain(run.id)
        assert [e.sequence for e in chain] == list(range(25))
        assert all(chain[i].parent_id == chain[i - 1].id for i in range(1, 25))
        assert len({e.id for e in chain}) == 25


class TestLifecycle:
    async def test_state_is_derived_from_the_latest_lifecycle_event(self, log_and_run):
        event_log, run = log_and_run
        assert await event_log.get_state(run.id) == WorkflowState.PENDING

        await event_log.append(run.id, state(WorkflowState.RUNNING))
        await event_log.append(run.id, Event.status("progress"))
        assert await event_log.get_state(run.id) == WorkflowState.RUNNING

        await event_log.append(run.id, state(WorkflowState.COMPLETED, "done"))
        assert await event_log.get_state(run.id) == WorkflowState.COMPLETED
        latest = await event_log.get_latest_lifecycle_event(run.id)
        assert latest.content == "done"

    async def test_state_of_unknown_run(self, log_and_run):
        event_log, _ = log_and_run
        with pytest.raises(WorkflowRunNotFoundError):
            await event_log.get_state("missing")

    @pytest.mark.parametrize("terminal", [WorkflowState.COMPLETED, WorkflowState.ERROR, WorkflowState.TIMED_OUT])
    async def test_appends_after_terminal_state_are_refused(self, log_and_run, terminal, caplog):
        event_log, run = log_and_run
        await event_log.append(run.id, state(WorkflowState.RUNNING))
        await event_log.append(run.id, state(terminal))

        with pytest.raises(WorkflowStateError):
            await event_log.append(run.id, Event.status("too late"))
        with pytest.raises(WorkflowStateError):
            await event_log.append(run.id, state(WorkflowState.RUNNING))

        assert len(await event_log.get_chain(run.id)) == 2
        assert any(record.levelname == "ERROR" for record in caplog.records)

    async def test_completion_requires_running(self, log_and_run):
        event_log, run = log_and_run
        with pytest.raises(WorkflowStateError):
            await event_log.append(run.id, state(WorkflowState.COMPLETED))

    async def test_terminal_state_closes_the_live_channel(self, repository):
        event_log, bus = make_event_log(repository)
        run = await event_log.create_run(make_run())
        assert bus.is_open(run.id)

        await event_log.append(run.id, state(WorkflowState.RUNNING))
        await event_log.append(run.id, state(WorkflowState.ERROR, "boom"))
        assert not bus.is_open(run.id)


class TestRunQueries:
    async def test_runs_for_issue_newest_first(self, repository):
        event_log, _ = make_event_log(repository)
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        older = await event_log.create_run(make_run(issue_number=1, created_at=base))
        newer = await event_log.create_run(make_run(issue_number=1, created_at=base + timedelta(hours=1)))
        await event_log.create_run(make_run(issue_number=2))

        runs = await event_log.list_runs_for_issue(older.target.issue)
        assert [r.id for r in runs] == [newer.id, older.id]

    async def test_latest_states_for_issues(self, repository):
        event_log, _ = make_event_log(repository)
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)

        old_run = await event_log.create_run(make_run(issue_number=1, created_at=base))
        await event_log.append(old_run.id, state(WorkflowState.RUNNING))
        await event_log.append(old_run.id, state(WorkflowState.ERROR, "boom"))

        new_run = await event_log.create_run(make_run(issue_number=1, created_at=base + timedelta(hours=1)))
        await event_log.append(new_run.id, state(WorkflowState.RUNNING))
        await event_log.append(new_run.id, Event.status("busy"))

        pending_run = await event_log.create_run(make_run(issue_number=2, created_at=base))

        issues = [old_run.target.issue, pending_run.target.issue, make_run(issue_number=3).target.issue]
        states = await event_log.get_latest_states_for_issues(issues)

        assert set(states) == {"acme/widgets#1", "acme/widgets#2"}
        assert states["acme/widgets#1"].run_id == new_run.id
        assert states["acme/widgets#1"].state == WorkflowState.RUNNING
        assert states["acme/widgets#2"].run_id == pending_run.id
        assert states["acme/widgets#2"].state == WorkflowState.PENDING

    async def test_get_run_round_trip(self, repository):
        event_log, _ = make_event_log(repository)
        run = await event_log.create_run(make_run(initiator="octocat"))

        loaded = await event_log.get_run(run.id)
        assert loaded == run
        assert await event_log.get_run("missing") is None

    async def test_duplicate_run(self, repository):
        event_log, _ = make_event_log(repository)
        run = await event_log.create_run(make_run())
        with pytest.raises(ValueError):
            await event_log.create_run(run)
