# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
HTTP and websocket access to workflow runs.

The websocket endpoint replays the durable chain and then follows the live
feed, so a client that connects mid-run sees every event exactly once and in
order.
"""

import asyncio
import logging

from typing import List, Optional
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import uvicorn

from ..config import settings
from ..events.event_bus import EventBus
from ..events.event_log import WorkflowEventLog
from ..types.event_types import Event, WorkflowState
from ..types.workflow_types import IssueRef, RepositoryRef

logger = logging.getLogger(__name__)


class RunStateResponse(BaseModel):
    run_id: str
    state: WorkflowState
    last_sequence: Optional[int]


class IssueStatesRequest(BaseModel):
    issues: List[str]


def parse_issue_key(key: str) -> IssueRef:
    repo, sep, number = key.rpartition("#")
    if not sep or not number.isdigit():
        raise ValueError(f"Expected 'owner/repo#number', got {key!r}")
    return IssueRef(repository=RepositoryRef.parse(repo), number=int(number))


async def stream_run_events(websocket: WebSocket, run_id: str, event_log: WorkflowEventLog, event_bus: EventBus):
    """Send the run's chain, then its live events until it reaches a terminal state."""
    last_sequence = -1

    async def send(event: Event) -> bool:
        nonlocal last_sequence
        if event.sequence is not None and event.sequence <= last_sequence:
            return False
        if event.sequence is not None:
            last_sequence = event.sequence
        await websocket.send_json(event.to_dict())
        return event.is_lifecycle and event.state is not None and event.state.is_terminal

    if (await event_log.get_state(run_id)).is_terminal:
        for event in await event_log.get_chain(run_id):
            await send(event)
        return

    # Attach before replaying so nothing published in between is lost
    with event_bus.listen(run_id) as listener:
        for event in await event_log.get_chain(run_id):
            if await send(event):
                return
        async for event in listener:
            if await send(event):
                return


def create_app(event_log: WorkflowEventLog, event_bus: EventBus) -> FastAPI:
    app = FastAPI(title="Workflow Runs")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def require_run(run_id: str):
        run = await event_log.get_run(run_id)
        if run is None:
            raise HTTPException(status_code=404, detail=f"Workflow run {run_id} not found")
        return run

    @app.get("/api/workflow-runs/{run_id}")
    async def get_run(run_id: str):
        run = await require_run(run_id)
        return run.model_dump(mode="json")

    @app.get("/api/workflow-runs/{run_id}/events")
    async def get_events(run_id: str):
        await require_run(run_id)
        return [event.to_dict() for event in await event_log.get_chain(run_id)]

    @app.get("/api/workflow-runs/{run_id}/state", response_model=RunStateResponse)
    async def get_state(run_id: str):
        await require_run(run_id)
        tail = await event_log.get_tail(run_id)
        return RunStateResponse(
            run_id=run_id,
            state=await event_log.get_state(run_id),
            last_sequence=tail.sequence if tail else None,
        )

    @app.post("/api/issues/states")
    async def get_issue_states(request: IssueStatesRequest):
        try:
            issues = [parse_issue_key(key) for key in request.issues]
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        states = await event_log.get_latest_states_for_issues(issues)
        return {
            key: {"run_id": state.run_id, "state": state.state.value}
            for key, state in states.items()
        }

    @app.websocket("/ws/workflow-runs/{run_id}")
    async def websocket_endpoint(websocket: WebSocket, run_id: str):
        await websocket.accept()
        if await event_log.get_run(run_id) is None:
            await websocket.close(code=4404, reason=f"Workflow run {run_id} not found")
            return
        try:
            await stream_run_events(websocket, run_id, event_log, event_bus)
        except WebSocketDisconnect:
            logger.info(f"Client disconnected from run {run_id}")
            return
        await websocket.close()

    return app


class UvicornServer(uvicorn.Server):
    """Customized uvicorn server with graceful shutdown."""

    async def shutdown(self, sockets: Optional[List] = None) -> None:
        try:
            await super().shutdown(sockets)
        except Exception as e:
            logger.warning(f"Error during server shutdown: {e}")


async def run_server(app: FastAPI, host: str | None = None, port: int | None = None):
    """Run the FastAPI server using uvicorn with graceful shutdown."""
    config = uvicorn.Config(
        app,
        host=host or settings.SERVER_HOST,
        port=port or settings.SERVER_PORT,
        log_level="error",
    )
    server = UvicornServer(config=config)

    try:
        await server.serve()
    except asyncio.CancelledError:
        logger.info("Web server task cancelled, shutting down gracefully...")
        await server.shutdown()
