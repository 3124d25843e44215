"""
Custom exceptions for the relay client.
"""


class ClientError(Exception):
    """Base exception for client errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class RelayConnectionError(ClientError):
    """The relay could not be reached or dropped the WebSocket."""
    pass


class NotConnectedError(ClientError):
    """A send was attempted without an open relay connection."""
    pass
