"""Main FastAPI application with the broadcast WebSocket endpoint."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from core.connection import WebSocketConnection, CLOSE_TRY_AGAIN_LATER, CLOSE_GOING_AWAY
from core.exceptions import CapacityExceeded, HubClosed
from core.hub import BroadcastHub
from core.settings import Settings, settings as default_settings

# Configure logging
logging.basicConfig(level=default_settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build an application owning its own broadcast hub."""
    settings = settings or default_settings
    hub = BroadcastHub(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await hub.shutdown()

    app = FastAPI(title="Broadcast Hub", version="1.0.0", lifespan=lifespan)
    app.state.hub = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        hub: BroadcastHub = request.app.state.hub
        return {
            "status": "healthy",
            "connected_clients": hub.client_count,
            "max_clients": hub.settings.MAX_CLIENTS
        }

    @app.get("/clients")
    async def list_clients(request: Request):
        """Currently registered clients."""
        hub: BroadcastHub = request.app.state.hub
        return {"clients": [client.to_dict() for client in hub.snapshot()]}

    @app.websocket("/ws")
    @app.websocket("/ws/{channel:path}")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint relaying every message to all connected clients.

        Args:
            websocket: WebSocket connection
        """
        hub: BroadcastHub = websocket.app.state.hub
        await websocket.accept()
        connection = WebSocketConnection(websocket)
        try:
            await hub.serve(connection, websocket.url.path)
        except CapacityExceeded as e:
            logger.warning(f"Rejecting connection on {websocket.url.path}: {str(e)}")
            await connection.close(CLOSE_TRY_AGAIN_LATER, "Server is full")
        except HubClosed:
            await connection.close(CLOSE_GOING_AWAY, "Server shutting down")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=default_settings.APP_HOST,
        port=default_settings.APP_PORT,
        log_level=default_settings.LOG_LEVEL
    )
