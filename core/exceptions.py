"""Custom exceptions for the broadcast hub."""


class HubError(Exception):
    """Base exception for hub-related errors."""
    pass


class CapacityExceeded(HubError):
    """Exception raised when a registration would exceed the client limit."""

    def __init__(self, max_clients: int):
        super().__init__(f"Client limit of {max_clients} reached")
        self.max_clients = max_clients


class HubClosed(HubError):
    """Exception raised when registering with a hub that has been shut down."""
    pass


class DeliveryFailed(HubError):
    """A write to one client failed or timed out during delivery."""

    def __init__(self, client_id: int, reason: str):
        super().__init__(f"Delivery to client {client_id} failed: {reason}")
        self.client_id = client_id
        self.reason = reason


class InvalidMessage(HubError):
    """Exception raised for payloads that cannot be relayed."""
    pass


class ConnectionClosed(HubError):
    """Exception raised by a connection whose peer has gone away."""
    pass
