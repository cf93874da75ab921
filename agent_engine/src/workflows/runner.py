# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Runs one workflow end to end: lifecycle events, sandbox setup, the agent, and
teardown, under a watchdog that records `timedOut` when the run overruns.
"""

import asyncio
import logging

from typing import Callable
from pydantic import BaseModel, Field

from ..config import settings
from ..agents.base_agent import BaseAgent
from ..containers.labels import container_labels, container_name_for_run
from ..containers.manager import ContainerLifecycleManager
from ..environment import (
    ContainerTarget,
    Environment,
    HostTarget,
    create_environment,
)
from ..events.errors import EventLogError
from ..events.event_log import WorkflowEventLog
from ..events.reporter import WorkflowReporter
from ..llm.providers.base_provider import CompletionPort
from ..tools.base_tool import ToolContext
from ..tools.code_host import CodeHostPort
from ..types.agent_types import AgentResult
from ..types.container_types import Mount
from ..types.workflow_types import WorkflowRun

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

AgentFactory = Callable[[CompletionPort, ToolContext, WorkflowReporter], BaseAgent]


class SandboxSpec(BaseModel):
    """A fresh container for the run, torn down when the run ends."""

    kind: str = "sandbox"
    host_path: str | None = Field(
        default=None, description="Checkout on the host to mount as the workspace"
    )
    image: str = Field(default_factory=lambda: settings.CONTAINER_IMAGE)
    mount: str = Field(default_factory=lambda: settings.CONTAINER_MOUNT_PATH)
    env: dict[str, str] = Field(default_factory=dict)
    setup_commands: list[str] = Field(default_factory=list)
    keep_container: bool = Field(default_factory=lambda: settings.KEEP_CONTAINER)


class WorkflowTimeoutError(TimeoutError):
    def __init__(self, run_id: str, timeout: float):
        self.run_id = run_id
        self.timeout = timeout
        super().__init__(f"Workflow run {run_id} timed out after {timeout} seconds")


class WorkflowRunner:
    def __init__(
        self,
        event_log: WorkflowEventLog,
        llm: CompletionPort,
        container_manager: ContainerLifecycleManager | None = None,
        code_host: CodeHostPort | None = None,
        timeout: float | None = None,
    ):
        self.event_log = event_log
        self.llm = llm
        self.container_manager = container_manager
        self.code_host = code_host
        self.timeout = timeout if timeout is not None else settings.WORKFLOW_TIMEOUT

    async def _prepare_environment(
        self,
        run: WorkflowRun,
        target: HostTarget | ContainerTarget | SandboxSpec,
        reporter: WorkflowReporter,
        containers: list[str],
    ) -> Environment:
        """Build the run's environment.

        A sandbox container is added to `containers` as soon as it has started,
        so it is torn down even if a setup command fails or the run times out.
        """
        if not isinstance(target, SandboxSpec):
            environment = create_environment(target, self.container_manager)
            await reporter.info(f"Using {environment.describe()}")
            return environment

        if self.container_manager is None:
            raise ValueError("A sandboxed run needs a ContainerLifecycleManager")

        name = container_name_for_run(run.id)
        repository = run.target.repository if run.target else None
        labels = container_labels(
            owner=repository.owner if repository else None,
            repo=repository.name if repository else None,
            branch=run.target.branch if run.target else None,
            run_id=run.id,
        )
        mounts = [Mount(host_path=target.host_path, container_path=target.mount)] if target.host_path else []

        await reporter.status(f"Starting container {name} from {target.image}")
        await self.container_manager.start(
            target.image,
            name,
            mounts=mounts,
            env=target.env,
            labels=labels,
            workdir=target.mount,
        )
        containers.append(name)
        environment = create_environment(
            ContainerTarget(name=name, mount=target.mount), self.container_manager
        )

        for command in target.setup_commands:
            await reporter.status(f"Running {command}")
            result = await environment.exec(command)
            if not result.ok:
                raise RuntimeError(
                    f"Setup command failed with exit code {result.exit_code}: {command}\n{result.stderr.strip()}"
                )

        await reporter.info(f"Container {name} is ready")
        return environment

    async def _execute(
        self,
        run: WorkflowRun,
        agent_factory: AgentFactory,
        target: HostTarget | ContainerTarget | SandboxSpec,
        reporter: WorkflowReporter,
        containers: list[str],
    ) -> AgentResult:
        environment = await self._prepare_environment(
            run, target, reporter.child("container-setup"), containers
        )

        context = ToolContext(
            environment=environment,
            code_host=self.code_host if run.config.post_to_code_host else None,
            repository=run.target.repository if run.target else None,
            issue_number=run.target.issue.number if run.target and run.target.issue else None,
        )
        agent = agent_factory(self.llm, context, reporter)

        await reporter.status(f"Running agent {agent.AGENT_NAME}")
        return await agent.execute()

    async def run(
        self,
        run: WorkflowRun,
        agent_factory: AgentFactory,
        target: HostTarget | ContainerTarget | SandboxSpec,
    ) -> AgentResult:
        """Run the workflow and return the agent's result.

        Failures are recorded as the run's terminal `error` state and then
        re-raised; overrunning the timeout records `timedOut` and raises
        WorkflowTimeoutError.
        """
        if await self.event_log.get_run(run.id) is None:
            await self.event_log.create_run(run)
        reporter = WorkflowReporter(run.id, self.event_log)
        await reporter.start(f"Starting {run.type.value} workflow")

        containers: list[str] = []
        task = asyncio.create_task(self._execute(run, agent_factory, target, reporter, containers))
        keep_container = isinstance(target, SandboxSpec) and target.keep_container
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
            if not done:
                await reporter.timed_out(f"Workflow exceeded its {self.timeout}s limit")
                task.cancel()
                # Let the task unwind before its containers are removed
                await asyncio.gather(task, return_exceptions=True)
                raise WorkflowTimeoutError(run.id, self.timeout)

            try:
                result = task.result()
            except EventLogError:
                # The log itself is broken for this run; it has been logged
                raise
            except Exception as e:
                await reporter.error(str(e) or type(e).__name__)
                raise

            await reporter.complete(result.result or None)
            return result
        finally:
            if self.container_manager is not None and not keep_container:
                for name in containers:
                    await self._teardown(name)

    async def _teardown(self, name: str) -> None:
        try:
            await self.container_manager.teardown(name)
        except Exception as e:
            logger.error(f"Failed to tear down container {name}: {e}")
