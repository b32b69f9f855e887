"""Broadcast hub owning the client registry and fan-out of messages."""

import asyncio
import logging
from typing import Dict, List, Optional, Union

from core.connection import (
    Connection,
    CLOSE_GOING_AWAY,
    CLOSE_INTERNAL_ERROR,
    CLOSE_NORMAL,
)
from core.exceptions import (
    CapacityExceeded,
    ConnectionClosed,
    DeliveryFailed,
    HubClosed,
    InvalidMessage,
)
from core.settings import Settings, settings as default_settings
from models.client import Client, ClientID, ClientState, next_client_id
from models.message import Message

logger = logging.getLogger(__name__)


class BroadcastHub:
    """
    Tracks connected clients and relays every message to all of them.

    All registry mutations happen under a single asyncio.Lock. The lock is only
    held to read or change membership, never while waiting on a transport.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self._clients: Dict[ClientID, Client] = {}
        self._ids: Dict[Connection, ClientID] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def closed(self) -> bool:
        return self._closed

    def get_client(self, client_id: ClientID) -> Optional[Client]:
        return self._clients.get(client_id)

    def snapshot(self) -> List[Client]:
        """Registered clients at this instant."""
        return list(self._clients.values())

    async def register(self, connection: Connection, path: Optional[str] = None) -> ClientID:
        """
        Register a connection whose handshake has completed.

        Args:
            connection: Connection used to deliver messages to the client
            path: Request path the connection was opened on

        Returns:
            The fresh identifier of the new client

        Raises:
            CapacityExceeded: If MAX_CLIENTS clients are already registered
            HubClosed: If the hub has been shut down
        """
        async with self._lock:
            if self._closed:
                raise HubClosed("Hub is shut down")
            if connection in self._ids:
                raise ValueError(f"Connection already registered as client {self._ids[connection]}")
            if len(self._clients) >= self.settings.MAX_CLIENTS:
                raise CapacityExceeded(self.settings.MAX_CLIENTS)

            client_id = next_client_id()
            self._clients[client_id] = Client(
                id=client_id,
                connection=connection,
                path=path or getattr(connection, "path", "/")
            )
            self._ids[connection] = client_id
            count = len(self._clients)

        logger.info(f"Client {client_id} connected ({count} total)")
        return client_id

    async def unregister(self, client_id: ClientID, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """
        Remove a client and close its connection. Unknown ids are ignored.

        Args:
            client_id: ID of the client to remove
            code: Close code sent to the peer
            reason: Close reason sent to the peer
        """
        async with self._lock:
            client = self._clients.pop(client_id, None)
            if client is None:
                logger.debug(f"Client {client_id} is not registered")
                return
            self._ids.pop(client.connection, None)
            client.transition(ClientState.CLOSING)
            count = len(self._clients)

        await client.close(code, reason, timeout=self.settings.SEND_TIMEOUT)
        logger.info(f"Client {client_id} disconnected ({count} total)")

    async def send(self, client_id: ClientID, payload: str) -> bool:
        """
        Deliver a payload to a single client.

        Returns:
            True if the payload was written, False if the client is unknown or the
            write failed. A failed client is unregistered.
        """
        async with self._lock:
            client = self._clients.get(client_id)
        if client is None:
            logger.debug(f"Client {client_id} is not registered")
            return False

        failure = await self._deliver(client, payload)
        if failure is not None:
            await self._evict([failure])
            return False
        return True

    async def broadcast(self, sender_id: ClientID, payload: Union[str, bytes]) -> List[ClientID]:
        """
        Relay a payload to every registered client.

        The sender is included unless ECHO_TO_SENDER is disabled. Delivery to each
        recipient is bounded by SEND_TIMEOUT; recipients that fail are evicted
        after the fan-out without affecting the others.

        Args:
            sender_id: ID of the client that sent the payload
            payload: Raw message payload

        Returns:
            IDs of the clients the message was delivered to
        """
        try:
            message = Message.parse(sender_id, payload, self.settings.MAX_MESSAGE_SIZE)
        except InvalidMessage as e:
            logger.warning(f"Dropping message from client {sender_id}: {str(e)}")
            return []

        async with self._lock:
            if sender_id not in self._clients:
                logger.debug(f"Dropping message from unregistered client {sender_id}")
                return []
            recipients = [
                client for client in self._clients.values()
                if self.settings.ECHO_TO_SENDER or client.id != sender_id
            ]

        results = await asyncio.gather(
            *(self._deliver(client, message.payload) for client in recipients)
        )

        failures = [failure for failure in results if failure is not None]
        if failures:
            await self._evict(failures)

        failed_ids = {failure.client_id for failure in failures}
        return [client.id for client in recipients if client.id not in failed_ids]

    async def on_open(self, connection: Connection, path: Optional[str] = None) -> str:
        """
        Register a new connection and acknowledge it.

        Returns:
            The acknowledgement payload

        Raises:
            CapacityExceeded: If the hub is full
        """
        path = path or getattr(connection, "path", "/")
        client_id = await self.register(connection, path)
        ack = f"Connected to {path}"
        if self.settings.SEND_WELCOME:
            await self.send(client_id, ack)
        return ack

    async def on_message(self, connection: Connection, payload: Union[str, bytes]) -> List[ClientID]:
        """Broadcast a payload received on a connection."""
        client_id = self._ids.get(connection)
        if client_id is None:
            logger.debug(f"Ignoring message from unregistered connection {connection!r}")
            return []
        return await self.broadcast(client_id, payload)

    async def on_close(self, connection: Connection) -> None:
        """Unregister the client behind a connection that has closed."""
        client_id = self._ids.get(connection)
        if client_id is None:
            return
        await self.unregister(client_id)

    async def serve(self, connection: Connection, path: Optional[str] = None) -> None:
        """
        Run the lifecycle of one connection until it closes.

        Raises:
            CapacityExceeded: If the hub is full; nothing has been read yet
            HubClosed: If the hub has been shut down
        """
        await self.on_open(connection, path)
        try:
            while connection in self._ids:
                payload = await connection.receive()
                await self.on_message(connection, payload)
        except ConnectionClosed as e:
            logger.debug(f"Connection {connection!r} closed: {str(e)}")
        except Exception as e:
            logger.error(f"Connection error for {connection!r}: {str(e)}")
        finally:
            await self.on_close(connection)

    async def shutdown(self) -> None:
        """Close every client and refuse further registrations."""
        async with self._lock:
            self._closed = True
            client_ids = list(self._clients)

        await asyncio.gather(
            *(self.unregister(client_id, CLOSE_GOING_AWAY, "Server shutting down") for client_id in client_ids)
        )
        logger.info("Hub shut down")

    async def _deliver(self, client: Client, payload: str) -> Optional[DeliveryFailed]:
        """Write to one client within SEND_TIMEOUT. Returns the failure, if any."""
        try:
            await asyncio.wait_for(client.write(payload), timeout=self.settings.SEND_TIMEOUT)
        except asyncio.TimeoutError:
            failure = DeliveryFailed(client.id, f"timed out after {self.settings.SEND_TIMEOUT}s")
        except Exception as e:
            failure = DeliveryFailed(client.id, str(e) or type(e).__name__)
        else:
            return None

        logger.warning(str(failure))
        return failure

    async def _evict(self, failures: List[DeliveryFailed]) -> None:
        await asyncio.gather(
            *(self.unregister(failure.client_id, CLOSE_INTERNAL_ERROR, "Delivery failed") for failure in failures)
        )
