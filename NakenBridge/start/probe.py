"""
Connectivity check against a chat server, without the relay.
"""

import asyncio
import logging

from NakenBridge.config import config
from NakenBridge.core.exceptions import UpstreamConnectError
from NakenBridge.core.relay import Target, UpstreamLink

__all__ = ['probe', 'check_connection']

logger = logging.getLogger(__name__)

TROUBLESHOOTING = (
    "Troubleshooting:\n"
    "1. Make sure your chat server is running on port {port}\n"
    "2. Check if the server is accessible from this machine\n"
    "3. Verify no firewall is blocking the connection\n"
    "4. Try running: telnet {host} {port}"
)


async def _ignore(*_args):
    pass


async def check_connection(host: str, port: int, timeout: float = config.PROBE_TIMEOUT) -> None:
    """
    Open and immediately close one connection to the chat server.

    Raises:
        UpstreamConnectError: The server could not be reached in time
    """
    link = UpstreamLink("probe", Target(host, port), _ignore, _ignore, _ignore)
    await link.open(timeout)
    await link.close()


def probe(host=config.DEFAULT_TARGET_HOST, port=config.DEFAULT_TARGET_PORT, timeout=config.PROBE_TIMEOUT):
    """
    Test whether the chat server accepts connections.

    Returns:
        int: Process exit status, 0 on success
    """
    print(f"Testing connection to {host}:{port}...")
    try:
        asyncio.run(check_connection(host, port, timeout))
    except UpstreamConnectError as e:
        print("Failed to connect to chat server:")
        print(f"   Error: {e.message}")
        print()
        print(TROUBLESHOOTING.format(host=host, port=port))
        return 1
    print("Successfully connected to chat server!")
    print("The relay should work correctly.")
    return 0
