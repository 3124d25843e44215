"""
Control protocol between the browser-side client and the relay.

Only two structured frames exist; everything else on the wire is plain
chat text:
- ``{"type": "setTarget", "host": ..., "port": ...}`` (client -> relay)
- ``{"type": "error", "message": ...}`` (relay -> client, transport failures only)
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from NakenBridge.core.exceptions import ControlMessageError


class MessageType(Enum):
    """
    Enumeration of structured frame types.
    """
    SET_TARGET = "setTarget"  # Routing directive naming the chat server
    ERROR = "error"  # Transport-level failure reported by the relay


@dataclass
class SetTarget:
    """
    Routing directive sent once by the client after the WebSocket opens.

    Attributes:
        host (str): Chat server host name or address
        port (int): Chat server TCP port
    """
    host: str
    port: int

    def serialize(self) -> str:
        return json.dumps({
            "type": MessageType.SET_TARGET.value,
            "host": self.host,
            "port": self.port
        })


@dataclass
class ErrorEnvelope:
    """
    Machine-readable transport error, never used for chat content.

    Attributes:
        message (str): Human-readable description shown to the user
    """
    message: str

    def serialize(self) -> str:
        return json.dumps({
            "type": MessageType.ERROR.value,
            "message": self.message
        })


def _load_object(data: str) -> Optional[dict]:
    text = data.strip()
    if not text.startswith("{"):
        return None
    try:
        obj = json.loads(text)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _valid_port(value) -> Optional[int]:
    # bool is an int subclass; "true" is not a port
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and 1 <= value <= 65535:
        return value
    return None


def parse_set_target(data: str) -> Optional[SetTarget]:
    """
    Parse a routing directive.

    Args:
        data (str): Raw text frame from the client

    Returns:
        SetTarget, or None when the frame is not a setTarget directive at all

    Raises:
        ControlMessageError: The frame is a setTarget directive without a
            usable host or port
    """
    obj = _load_object(data)
    if obj is None or obj.get("type") != MessageType.SET_TARGET.value:
        return None

    host = obj.get("host")
    port = _valid_port(obj.get("port"))
    if not isinstance(host, str) or not host.strip() or port is None:
        raise ControlMessageError(
            "Expected setTarget message with host and port.",
            {"host": host, "port": obj.get("port")}
        )
    return SetTarget(host=host.strip(), port=port)


def parse_error_envelope(data: str) -> Optional[ErrorEnvelope]:
    """
    Recognise a whole frame as an error envelope.

    Args:
        data (str): Raw text frame from the relay

    Returns:
        ErrorEnvelope, or None for ordinary chat text
    """
    obj = _load_object(data)
    if obj is None or obj.get("type") != MessageType.ERROR.value:
        return None
    message = obj.get("message")
    if not isinstance(message, str) or not message:
        return None
    return ErrorEnvelope(message=message)
