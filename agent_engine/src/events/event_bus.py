# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Event bus module for live, per-run event streaming."""

import asyncio
import logging

from typing import Awaitable, Callable, ClassVar, Dict, List, Optional
from collections import OrderedDict
from pydantic import BaseModel, PrivateAttr

from ..types.event_types import Event

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

Subscriber = Callable[[Event], Awaitable[None]]

# Sentinel pushed to listeners when a channel closes
_CLOSED = object()

# Closed run ids remembered per bus; subscribe and listen never re-open these
MAX_CLOSED_RUNS = 4096


class RunChannel:
    """The live feed of one workflow run.

    Subscribers are awaited in registration order for every event; listeners
    get their own queue. Nothing is buffered for late subscribers: they read
    the durable log first.
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.subscribers: List[Subscriber] = []
        self.queues: List[asyncio.Queue] = []
        self.closed = False

    async def publish(self, event: Event) -> None:
        for queue in self.queues:
            queue.put_nowait(event)
        for callback in list(self.subscribers):
            try:
                await callback(event)
            except Exception as e:
                logger.error(f"Error in event subscriber {callback} for run {self.run_id}: {e}")

    def close(self) -> None:
        self.closed = True
        for queue in self.queues:
            queue.put_nowait(_CLOSED)
        self.subscribers.clear()


class EventBus(BaseModel):
    """
    Process-wide registry of per-run publish/subscribe channels.

    A channel is opened when a run starts and closed when the run reaches a
    terminal state, which drops its subscribers and ends its listeners.
    Publishing to a run without an open channel is a no-op, and subscribing to
    or listening on a recently closed run attaches nothing.
    """

    _instance: ClassVar[Optional["EventBus"]] = None
    _lock: ClassVar[Optional[asyncio.Lock]] = None

    _channels: Dict[str, RunChannel] = PrivateAttr(default_factory=dict)
    _closed_runs: OrderedDict[str, None] = PrivateAttr(default_factory=OrderedDict)

    def __new__(cls, *args, **kwargs) -> "EventBus":
        raise TypeError(
            "EventBus should not be instantiated directly. "
            "Use 'await EventBus.get_instance()' or 'EventBus.create()' instead."
        )

    @classmethod
    def create(cls) -> "EventBus":
        """A private bus, independent of the global one (tests, embedded use)."""
        instance = super(EventBus, cls).__new__(cls)
        instance.__init__()
        return instance

    @classmethod
    async def get_instance(cls) -> "EventBus":
        """Get or create the singleton instance.

        Returns:
            The global EventBus instance.
        """
        if not cls._lock:
            cls._lock = asyncio.Lock()

        async with cls._lock:
            if not cls._instance:
                cls._instance = cls.create()
            return cls._instance

    # Channel lifecycle =======================================================

    def open_channel(self, run_id: str) -> RunChannel:
        self._closed_runs.pop(run_id, None)
        channel = self._channels.get(run_id)
        if channel is None or channel.closed:
            channel = RunChannel(run_id)
            self._channels[run_id] = channel
        return channel

    def close_channel(self, run_id: str) -> None:
        channel = self._channels.pop(run_id, None)
        if channel is not None:
            channel.close()
            logger.debug(f"Closed event channel for run {run_id}")
        self._closed_runs[run_id] = None
        self._closed_runs.move_to_end(run_id)
        while len(self._closed_runs) > MAX_CLOSED_RUNS:
            self._closed_runs.popitem(last=False)

    def is_open(self, run_id: str) -> bool:
        return run_id in self._channels

    def is_closed(self, run_id: str) -> bool:
        """Whether the run's channel was closed, so no further events will arrive."""
        return run_id in self._closed_runs

    # Publish / subscribe =====================================================

    async def publish(self, run_id: str, event: Event) -> None:
        channel = self._channels.get(run_id)
        if channel is None:
            logger.debug(f"No open channel for run {run_id}, dropping {event.type.value}")
            return
        await channel.publish(event)

    def subscribe(self, run_id: str, callback: Subscriber) -> None:
        """Subscribe to the live events of a run, opening its channel if needed.

        A run whose channel was already closed gets no subscription.
        """
        if self.is_closed(run_id):
            logger.debug(f"Run {run_id} has finished, not subscribing {callback}")
            return
        self.open_channel(run_id).subscribers.append(callback)

    def unsubscribe(self, run_id: str, callback: Subscriber) -> None:
        channel = self._channels.get(run_id)
        if channel is not None and callback in channel.subscribers:
            channel.subscribers.remove(callback)

    def listen(self, run_id: str) -> "EventListener":
        """Start buffering the live events of a run.

        The listener is attached immediately, so nothing published after this
        call is missed even if iteration starts later. On a run whose channel
        was already closed the listener ends immediately.
        """
        if self.is_closed(run_id):
            listener = EventListener(RunChannel(run_id))
            listener.finished = True
            return listener
        channel = self.open_channel(run_id)
        listener = EventListener(channel)
        channel.queues.append(listener.queue)
        return listener

    def clear(self) -> None:
        """Close every channel (mainly for testing)."""
        for run_id in list(self._channels):
            self.close_channel(run_id)


class EventListener:
    """Async iterator over a run's live events, ending when the channel closes.

        with bus.listen(run_id) as listener:
            async for event in listener:
                ...
    """

    def __init__(self, channel: RunChannel):
        self.channel = channel
        self.queue: asyncio.Queue = asyncio.Queue()
        self.finished = False

    def __aiter__(self) -> "EventListener":
        return self

    async def __anext__(self) -> Event:
        if self.finished:
            raise StopAsyncIteration
        item = await self.queue.get()
        if item is _CLOSED:
            self.finished = True
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        if self.queue in self.channel.queues:
            self.channel.queues.remove(self.queue)
        self.finished = True

    def __enter__(self) -> "EventListener":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
