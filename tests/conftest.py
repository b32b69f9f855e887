"""Shared fixtures and fake connections for the test suite."""

import asyncio
from typing import List, Optional, Union

import pytest

from core.connection import Connection, CLOSE_NORMAL
from core.exceptions import ConnectionClosed
from core.hub import BroadcastHub
from core.settings import Settings


class FakeConnection(Connection):
    """In-memory connection recording what the hub writes to it."""

    def __init__(self, path: str = "/ws", fail_sends: bool = False, block_sends: bool = False,
                 block_close: bool = False):
        self.path = path
        self.fail_sends = fail_sends
        self.block_sends = block_sends
        self.block_close = block_close
        self.sent: List[str] = []
        self.closed = False
        self.close_code: Optional[int] = None
        self.inbox: asyncio.Queue = asyncio.Queue()

    async def send_text(self, payload: str) -> None:
        if self.closed:
            raise ConnectionClosed("fake connection closed")
        if self.fail_sends:
            raise ConnectionError("broken pipe")
        if self.block_sends:
            await asyncio.Event().wait()
        self.sent.append(payload)

    async def receive(self) -> Union[str, bytes]:
        if self.closed and self.inbox.empty():
            raise ConnectionClosed("fake connection closed")
        item = await self.inbox.get()
        if item is None:
            raise ConnectionClosed("fake connection closed")
        return item

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        if self.block_close:
            await asyncio.Event().wait()
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self.inbox.put_nowait(None)

    def feed(self, payload: Union[str, bytes]) -> None:
        """Queue an inbound message for the reader."""
        self.inbox.put_nowait(payload)

    def hang_up(self) -> None:
        """Simulate the peer closing the connection."""
        self.inbox.put_nowait(None)


@pytest.fixture
def settings():
    """Hub settings with short timeouts for testing."""
    return Settings(MAX_CLIENTS=3, SEND_TIMEOUT=0.2, MAX_MESSAGE_SIZE=64,
                    ECHO_TO_SENDER=True, SEND_WELCOME=False)


@pytest.fixture
def hub(settings):
    """BroadcastHub instance for testing."""
    return BroadcastHub(settings)


@pytest.fixture
def make_connection():
    """Factory for fake connections."""
    return FakeConnection
