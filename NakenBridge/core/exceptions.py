"""
Exceptions shared by the relay components.
"""


class BridgeError(Exception):
    """Base exception for bridge errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ControlMessageError(BridgeError):
    """Raised when a setTarget directive is missing a usable host or port."""
    pass


class UpstreamConnectError(BridgeError):
    """Raised when the chat server cannot be resolved or connected to."""
    pass
