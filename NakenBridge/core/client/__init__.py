"""
Client module for NakenBridge.
Provides the relay client, its console front-end and local persistence.
"""

from .client import BridgeClient
from .console import ConsoleClient
from .exceptions import ClientError, NotConnectedError, RelayConnectionError
from .persistence import PersistenceService

__all__ = [
    'BridgeClient', 'ConsoleClient', 'PersistenceService',
    'ClientError', 'NotConnectedError', 'RelayConnectionError'
]
