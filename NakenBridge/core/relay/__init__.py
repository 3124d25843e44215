"""
WebSocket-to-TCP relay.

Components:
    TargetRegistry - chosen chat server per session
    UpstreamLink   - raw TCP connection to the chat server
    RelaySession   - one client's lifecycle and error translation
    RelayServer    - accept loop and session table
"""

from .server import MODE_FIXED, MODE_NEGOTIATED, RELAY_MODES, RelayServer, create_server
from .session import RelaySession
from .targets import Target, TargetRegistry
from .upstream import LinkState, UpstreamLink

__all__ = [
    'LinkState',
    'MODE_FIXED',
    'MODE_NEGOTIATED',
    'RELAY_MODES',
    'RelayServer',
    'RelaySession',
    'Target',
    'TargetRegistry',
    'UpstreamLink',
    'create_server',
]
