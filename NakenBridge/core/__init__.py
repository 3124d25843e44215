from .exceptions import BridgeError, ControlMessageError, UpstreamConnectError
from .message.protocol import ErrorEnvelope, MessageType, SetTarget

__all__ = [
    'BridgeError', 'ControlMessageError', 'UpstreamConnectError',
    'ErrorEnvelope', 'MessageType', 'SetTarget'
]
