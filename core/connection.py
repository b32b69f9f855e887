"""Connection abstraction used by the hub to talk to a transport."""

from abc import ABC, abstractmethod
from typing import Union

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from core.exceptions import ConnectionClosed

CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_INTERNAL_ERROR = 1011
CLOSE_TRY_AGAIN_LATER = 1013


class Connection(ABC):
    """
    Read/write/close capability over one established connection.

    Implementations deliver whole text messages; framing is the transport's job.
    """

    @abstractmethod
    async def send_text(self, payload: str) -> None:
        """Write one text message to the peer."""

    @abstractmethod
    async def receive(self) -> Union[str, bytes]:
        """
        Wait for the next inbound message.

        Raises:
            ConnectionClosed: If the peer has disconnected
        """

    @abstractmethod
    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """Close the connection. Closing twice must be harmless."""


class WebSocketConnection(Connection):
    """Connection backed by a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    @property
    def path(self) -> str:
        return self.websocket.url.path

    async def send_text(self, payload: str) -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            raise ConnectionClosed("WebSocket is not connected")
        try:
            await self.websocket.send_text(payload)
        except WebSocketDisconnect as e:
            raise ConnectionClosed(f"Peer disconnected with code {e.code}") from e

    async def receive(self) -> Union[str, bytes]:
        if self.websocket.client_state == WebSocketState.DISCONNECTED:
            raise ConnectionClosed("WebSocket is closed")
        try:
            message = await self.websocket.receive()
        except (WebSocketDisconnect, RuntimeError) as e:
            raise ConnectionClosed(str(e)) from e

        if message["type"] == "websocket.disconnect":
            raise ConnectionClosed(f"Peer disconnected with code {message.get('code', CLOSE_NORMAL)}")
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        if self.websocket.client_state == WebSocketState.DISCONNECTED:
            return
        await self.websocket.close(code=code, reason=reason)

    def __repr__(self) -> str:
        return f"WebSocketConnection(path={self.path!r})"
