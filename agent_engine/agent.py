# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The main entrypoint to the system: wires the event log, event bus, completion
port and container manager together and exposes the CLI's operations.
"""

import asyncio
import logging

from pathlib import Path
from dotenv import load_dotenv

from .src.config import settings
from .src.containers.manager import (
    ContainerLifecycleManager,
    cleanup_pull_request_containers,
)
from .src.environment.base import HostTarget
from .src.events.event_bus import EventBus
from .src.events.event_bus_utils import log_to_stdout
from .src.events.event_log import WorkflowEventLog
from .src.llm.llm_factory import create_completion_port
from .src.llm.providers.base_provider import CompletionPort
from .src.agents.implementations.coder import CoderAgent
from .src.storage.memory_repository import InMemoryEventRepository
from .src.storage.sqlite_repository import SqliteEventRepository
from .src.types.agent_types import AgentResult
from .src.types.workflow_types import (
    IssueRef,
    RepositoryRef,
    WorkflowRun,
    WorkflowTarget,
    WorkflowType,
)
from .src.web_server import create_app, run_server
from .src.workflows import SandboxSpec, WorkflowRunner

load_dotenv()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


def create_event_log(event_bus: EventBus, db_path: str | None = None) -> WorkflowEventLog:
    """An event log persisted to sqlite when a database path is configured."""
    db_path = db_path or settings.EVENT_DB_PATH
    if db_path:
        repository = SqliteEventRepository(db_path)
    else:
        repository = InMemoryEventRepository()
    return WorkflowEventLog(repository, event_bus=event_bus)


def create_container_manager() -> ContainerLifecycleManager:
    from .src.containers.docker_client import DockerContainerClient

    return ContainerLifecycleManager(DockerContainerClient())


async def resolve_issue(
    problem_statement: str,
    workdir: str | Path,
    title: str | None = None,
    repository: str | None = None,
    issue_number: int | None = None,
    use_container: bool = False,
    image: str | None = None,
    keep_container: bool | None = None,
    setup_commands: list[str] | None = None,
    db_path: str | None = None,
    serve: bool = False,
    llm: CompletionPort | None = None,
) -> AgentResult:
    """Run a resolve-issue workflow against a host directory or a fresh container."""
    event_bus = await EventBus.get_instance()
    event_log = create_event_log(event_bus, db_path)

    repo = RepositoryRef.parse(repository) if repository else None
    issue = IssueRef(repository=repo, number=issue_number) if repo and issue_number else None
    run = WorkflowRun(
        type=WorkflowType.RESOLVE_ISSUE,
        initiator="cli",
        target=WorkflowTarget(repository=repo, issue=issue),
    )
    await event_log.create_run(run)
    event_bus.subscribe(run.id, log_to_stdout)

    root = str(Path(workdir).resolve())
    if use_container:
        target = SandboxSpec(
            host_path=root,
            image=image or settings.CONTAINER_IMAGE,
            keep_container=settings.KEEP_CONTAINER if keep_container is None else keep_container,
            setup_commands=setup_commands or [],
        )
        manager = create_container_manager()
    else:
        target = HostTarget(root=root)
        manager = None

    runner = WorkflowRunner(
        event_log,
        llm or create_completion_port(),
        container_manager=manager,
    )

    def agent_factory(llm, context, reporter):
        return CoderAgent(
            llm,
            context,
            reporter,
            problem_statement=problem_statement,
            issue_title=title,
        )

    server_task = None
    if serve:
        server_task = asyncio.create_task(run_server(create_app(event_log, event_bus)))
        logger.info(
            f"Streaming run {run.id} on ws://{settings.SERVER_HOST}:{settings.SERVER_PORT}/ws/workflow-runs/{run.id}"
        )
    try:
        return await runner.run(run, agent_factory, target)
    finally:
        if server_task is not None:
            server_task.cancel()
            await asyncio.gather(server_task, return_exceptions=True)


async def cleanup_containers(owner: str, repo: str, branch: str) -> list[str]:
    """Remove the containers of a closed pull request."""
    return await cleanup_pull_request_containers(create_container_manager(), owner, repo, branch)


async def serve(host: str | None = None, port: int | None = None, db_path: str | None = None) -> None:
    """Serve the runs recorded in the event database."""
    event_bus = await EventBus.get_instance()
    event_log = create_event_log(event_bus, db_path)
    await run_server(create_app(event_log, event_bus), host=host, port=port)
