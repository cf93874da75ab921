# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import asyncio
import logging

from abc import abstractmethod
from uuid import uuid4
from typing import ClassVar, Optional, Type
from datetime import datetime
from pydantic import BaseModel, ConfigDict, PrivateAttr

from ..config import settings
from ..events.reporter import WorkflowReporter
from ..llm.base import Message
from ..llm.providers.base_provider import CompletionPort
from ..tools.base_tool import BaseTool, ToolContext
from ..tools.registry import ToolRegistry
from ..types.llm_types import TextContent, ToolCallContent, ToolResultContent
from ..types.tool_types import ToolResult
from ..types.agent_types import AgentMetrics, AgentResult, AgentStatus

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Registry of all concrete agent classes, by name
agent_registry: dict[str, type["BaseAgent"]] = {}


class AgentBudgetExceededError(Exception):
    """The agent used its whole turn budget without producing a final answer."""

    def __init__(self, agent_name: str, max_iterations: int):
        self.agent_name = agent_name
        self.max_iterations = max_iterations
        super().__init__(
            f"Agent {agent_name} exceeded its budget of {max_iterations} turns without a final answer"
        )


class BaseAgent(BaseModel):
    """
    Abstract base class for all agents.

    An agent drives one tool-calling conversation: every turn sends the whole
    message list and the tool schemas to the completion port. A response with
    no tool calls is the final answer. Otherwise every requested call is run
    (concurrently, within the turn) and the results are appended, in the order
    the calls were issued, before the next turn.

    The pydantic fields of a subclass are the agent's inputs.
    """

    AGENT_NAME: ClassVar[str]
    AGENT_DESCRIPTION: ClassVar[str]
    SYSTEM_PROMPT: ClassVar[str]

    AVAILABLE_TOOLS: ClassVar[list[Type[BaseTool]]] = []
    MODEL: ClassVar[Optional[str]] = None
    MAX_TOKENS: ClassVar[Optional[int]] = None
    MAX_ITERATIONS: ClassVar[Optional[int]] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    _id: str = PrivateAttr(default_factory=lambda: f"agent_{uuid4().hex[:8]}")
    _llm: CompletionPort = PrivateAttr()
    _tools: ToolRegistry = PrivateAttr()
    _reporter: WorkflowReporter = PrivateAttr()
    _max_iterations: int = PrivateAttr()
    _messages: list[Message] = PrivateAttr(default_factory=list)
    _metrics: AgentMetrics = PrivateAttr(
        default_factory=lambda: AgentMetrics(start_time=datetime.now())
    )

    def __init__(
        self,
        llm: CompletionPort,
        tool_context: ToolContext,
        reporter: WorkflowReporter,
        max_iterations: int | None = None,
        **data,
    ):
        super().__init__(**data)
        self._llm = llm
        self._reporter = reporter
        self._tools = ToolRegistry(tool_context, self.available_tools())
        self._max_iterations = (
            max_iterations or self.MAX_ITERATIONS or settings.AGENT_MAX_ITERATIONS
        )

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "AGENT_NAME" in cls.__dict__:
            agent_registry[cls.AGENT_NAME] = cls

    def available_tools(self) -> list[Type[BaseTool]]:
        return list(self.AVAILABLE_TOOLS)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    async def construct_system_prompt(self) -> str:
        environment = self._tools.context.environment
        return (
            f"{self.SYSTEM_PROMPT.strip()}\n\n"
            f"You are working in the repository at {environment.describe()}. "
            "All file paths you pass to tools are relative to the repository root.\n"
            "When you are done, reply with a final summary and no tool calls."
        )

    @abstractmethod
    async def construct_core_prompt(self) -> str:
        """The first user message: the task itself."""
        raise NotImplementedError()

    async def _run_tool_calls(self, calls: list[ToolCallContent]) -> list[ToolResultContent]:
        # Calls are recorded in issue order before any handler starts
        for call in calls:
            await self._reporter.tool_call(call.tool_name, call.call_id, call.arguments)

        results: list[ToolResult] = await asyncio.gather(
            *(self._tools.dispatch(call) for call in calls)
        )

        contents = []
        for call, result in zip(calls, results):
            self._metrics.tool_calls += 1
            if not result.success:
                self._metrics.failed_tool_calls += 1
            text = str(result)
            await self._reporter.tool_result(
                call.tool_name, call.call_id, text, success=result.success
            )
            contents.append(
                ToolResultContent(
                    call_id=call.call_id,
                    tool_name=call.tool_name,
                    content=text,
                    is_error=not result.success,
                )
            )
        return contents

    async def execute(self) -> AgentResult:
        """
        Run the conversation to a final answer.

        Returns:
            The final answer as an AgentResult

        Raises:
            AgentBudgetExceededError: no final answer within the turn budget
            LLMError: the completion port failed
        """
        self._metrics = AgentMetrics(start_time=datetime.now())

        system_prompt = await self.construct_system_prompt()
        await self._reporter.system_prompt(system_prompt)

        core_prompt = await self.construct_core_prompt()
        await self._reporter.user_message(core_prompt)
        self._messages = [Message(role="user", content=[TextContent(text=core_prompt)])]

        schemas = self._tools.schemas()

        for iteration in range(self._max_iterations):
            self._metrics.iterations += 1
            logger.info(
                f"{self._id} awaiting completion for iteration {iteration} ({len(self._messages)} messages)..."
            )
            completion = await self._llm.create_completion(
                self._messages,
                system=system_prompt,
                tools=schemas or None,
                model=self.MODEL,
                max_tokens=self.MAX_TOKENS,
            )
            self._metrics.token_usage += completion.usage

            if completion.reasoning:
                await self._reporter.reasoning(completion.reasoning)
            text = completion.text.rstrip()
            if text:
                await self._reporter.assistant_message(
                    text, metadata=dict(completion_id=completion.id, model=completion.model)
                )
            self._messages.append(completion.to_message())

            calls = completion.tool_calls
            if not calls:
                if completion.hit_token_limit:
                    await self._reporter.warn("The final answer was cut off by the token limit")
                self._metrics.end_time = datetime.now()
                return AgentResult(
                    agent_name=self.AGENT_NAME,
                    status=AgentStatus.SUCCESS,
                    metrics=self._metrics,
                    result=text,
                )

            tool_results = await self._run_tool_calls(calls)
            self._messages.append(Message(role="user", content=tool_results))

        self._metrics.end_time = datetime.now()
        raise AgentBudgetExceededError(self.AGENT_NAME, self._max_iterations)
