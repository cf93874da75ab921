# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from .event_log import WorkflowEventLog
from ..types.event_types import Event, EventType, StatusLevel, WorkflowState

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class WorkflowReporter:
    """The one interface workflow code and agents use to record progress.

    Every method appends to the run's event log (which also publishes to the
    live bus) and mirrors the message to the Python logger. `start`,
    `complete`, `error` and `timed_out` change the run's state; the other
    methods never do.
    """

    def __init__(self, run_id: str, event_log: WorkflowEventLog, scope: str | None = None):
        self.run_id = run_id
        self.event_log = event_log
        self.scope = scope

    def child(self, scope: str) -> "WorkflowReporter":
        """A reporter for the same run whose messages are prefixed by `scope`."""
        full_scope = f"{self.scope}: {scope}" if self.scope else scope
        return WorkflowReporter(self.run_id, self.event_log, full_scope)

    def _scoped(self, message: str) -> str:
        return f"{self.scope}: {message}" if self.scope else message

    async def _append(self, event: Event) -> Event:
        return await self.event_log.append(self.run_id, event)

    # Lifecycle ===============================================================

    async def start(self, message: str | None = None) -> Event:
        content = self._scoped(message) if message else None
        logger.info(f"[{self.run_id}] running{': ' + content if content else ''}")
        return await self._append(Event.workflow_state(WorkflowState.RUNNING, content))

    async def complete(self, message: str | None = None) -> Event:
        content = self._scoped(message) if message else None
        logger.info(f"[{self.run_id}] completed{': ' + content if content else ''}")
        return await self._append(Event.workflow_state(WorkflowState.COMPLETED, content))

    async def error(self, message: str) -> Event:
        """Record a terminal failure: an error event, then the `error` state.

        Both events are stored, or neither is if the run may not fail now.
        """
        content = self._scoped(message)
        logger.error(f"[{self.run_id}] {content}")
        events = await self.event_log.append_all(
            self.run_id, [Event.error(content), Event.workflow_state(WorkflowState.ERROR, content)]
        )
        return events[-1]

    async def timed_out(self, message: str | None = None) -> Event:
        content = self._scoped(message) if message else None
        logger.warning(f"[{self.run_id}] timed out{': ' + content if content else ''}")
        return await self._append(Event.workflow_state(WorkflowState.TIMED_OUT, content))

    # Progress ================================================================

    async def status(self, message: str) -> Event:
        content = self._scoped(message)
        logger.info(f"[{self.run_id}] {content}")
        return await self._append(Event.status(content, StatusLevel.STATUS))

    async def info(self, message: str) -> Event:
        content = self._scoped(message)
        logger.info(f"[{self.run_id}] {content}")
        return await self._append(Event.status(content, StatusLevel.INFO))

    async def warn(self, message: str) -> Event:
        content = self._scoped(message)
        logger.warning(f"[{self.run_id}] {content}")
        return await self._append(Event.status(content, StatusLevel.WARN))

    # Conversation ============================================================

    async def system_prompt(self, content: str) -> Event:
        return await self._append(Event(type=EventType.SYSTEM_PROMPT, content=content))

    async def user_message(self, content: str) -> Event:
        return await self._append(Event(type=EventType.USER_MESSAGE, content=content))

    async def assistant_message(self, content: str, metadata: dict | None = None) -> Event:
        return await self._append(
            Event(type=EventType.ASSISTANT_MESSAGE, content=content, metadata=metadata or {})
        )

    async def reasoning(self, content: str) -> Event:
        return await self._append(Event(type=EventType.REASONING, content=content))

    async def tool_call(self, tool_name: str, tool_call_id: str, arguments: str) -> Event:
        logger.info(f"[{self.run_id}] tool call {tool_name} ({tool_call_id})")
        return await self._append(Event.tool_call(tool_name, tool_call_id, arguments))

    async def tool_result(
        self, tool_name: str, tool_call_id: str, content: str, success: bool = True
    ) -> Event:
        event = Event.tool_call_result(tool_name, tool_call_id, content)
        event.metadata["success"] = success
        return await self._append(event)
