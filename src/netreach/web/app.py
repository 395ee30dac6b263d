"""FastAPI application exposing the monitored network status."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from netreach.reachability import NetworkStatus, NotifierError, Reachability
from netreach.web.models import StatusResponse, WatchResponse
from netreach.web.websocket import ConnectionManager, StatusChangedEvent, StatusSnapshotEvent

logger = logging.getLogger(__name__)


def create_app(reachability: Reachability) -> FastAPI:
    """Create and configure FastAPI application.

    Statuses published by the monitor are forwarded to every connected
    WebSocket client for as long as the application is running.

    Args:
        reachability: Monitor whose status is exposed

    Returns:
        Configured FastAPI application
    """
    manager = ConnectionManager()

    def on_status(status: NetworkStatus) -> None:
        manager.broadcast_threadsafe(StatusChangedEvent(status=status))

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        manager.bind_loop(asyncio.get_running_loop())
        subscription = reachability.subscribe(on_status)
        try:
            yield
        finally:
            reachability.unsubscribe(subscription)
            manager.bind_loop(None)

    app = FastAPI(
        title="netreach",
        description="Network reachability status",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store references for API handlers
    app.state.reachability = reachability
    app.state.connection_manager = manager

    @app.get("/api/status", response_model=StatusResponse)
    def get_status() -> StatusResponse:
        """Get the current network status."""
        r: Reachability = app.state.reachability
        status = r.current_status()
        return StatusResponse(
            status=status.value,
            description=status.description,
            watching=r.is_watching,
            target=r.target.description if r.target else None,
        )

    @app.post("/api/watch/start", response_model=WatchResponse)
    def start_watching() -> WatchResponse:
        """Start publishing status changes."""
        r: Reachability = app.state.reachability
        try:
            r.start_watching()
        except NotifierError as e:
            raise HTTPException(status_code=503, detail=f"Failed to start watching: {e}") from e
        return WatchResponse(success=True, watching=r.is_watching, message="Watching started")

    @app.post("/api/watch/stop", response_model=WatchResponse)
    def stop_watching() -> WatchResponse:
        """Stop publishing status changes."""
        r: Reachability = app.state.reachability
        r.stop_watching()
        return WatchResponse(success=True, watching=r.is_watching, message="Watching stopped")

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Stream status events to a client, starting with the current status."""
        await manager.connect(websocket)
        status = await run_in_threadpool(app.state.reachability.current_status)
        await manager.send_event(StatusSnapshotEvent(status=status), websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            await manager.disconnect(websocket)

    return app
