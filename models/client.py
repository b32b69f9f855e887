"""Client model for managing connected clients."""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, NewType

from core.connection import Connection, CLOSE_NORMAL
from core.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)

ClientID = NewType("ClientID", int)

_id_counter = itertools.count(1)


def next_client_id() -> ClientID:
    """Allocate a process-unique client identifier. Identifiers are never reused."""
    return ClientID(next(_id_counter))


class ClientState(Enum):
    """Lifecycle states of a registered client."""
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


_ORDER = {ClientState.OPEN: 0, ClientState.CLOSING: 1, ClientState.CLOSED: 2}


@dataclass(eq=False)
class Client:
    """Represents a connected client and the sink used to reach it."""

    id: ClientID
    connection: Connection
    path: str = "/"
    state: ClientState = ClientState.OPEN
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    messages_delivered: int = 0
    _write_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_open(self) -> bool:
        return self.state is ClientState.OPEN

    def transition(self, new_state: ClientState) -> None:
        """Move the client forward in its lifecycle. Moving backwards is an error."""
        if _ORDER[new_state] < _ORDER[self.state]:
            raise ValueError(f"Client {self.id} cannot go from {self.state.value} to {new_state.value}")
        self.state = new_state

    async def write(self, payload: str) -> None:
        """
        Write a payload to this client's sink.

        Writes are serialised per client, in the order they were requested.

        Raises:
            ConnectionClosed: If the client is no longer open
        """
        async with self._write_lock:
            if not self.is_open:
                raise ConnectionClosed(f"Client {self.id} is {self.state.value}")
            await self.connection.send_text(payload)
            self.messages_delivered += 1

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "", timeout: float = 1.0) -> None:
        """Close the underlying connection and mark the client closed."""
        if self.state is ClientState.CLOSED:
            return
        self.transition(ClientState.CLOSING)
        try:
            await asyncio.wait_for(self.connection.close(code, reason), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug(f"Timed out closing connection of client {self.id}")
        except Exception as e:
            logger.debug(f"Error closing connection of client {self.id}: {str(e)}")
        finally:
            self.transition(ClientState.CLOSED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert client to dictionary representation."""
        return {
            'id': self.id,
            'path': self.path,
            'state': self.state.value,
            'connected_at': self.connected_at.isoformat(),
            'messages_delivered': self.messages_delivered
        }

    def __repr__(self) -> str:
        return f"Client(id={self.id!r}, path={self.path!r}, state={self.state.value!r})"
