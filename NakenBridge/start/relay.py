"""
Relay startup module for NakenBridge.
Provides the entry point for running the WebSocket-to-TCP relay.
"""

import asyncio
import logging

from NakenBridge.config import config
from NakenBridge.core.relay import create_server

__all__ = ['relay']

logger = logging.getLogger(__name__)


def relay(host=config.DEFAULT_HOST, port=config.DEFAULT_RELAY_PORT, mode=config.RELAY_MODE,
          target_host=None, target_port=None, connect_timeout=config.CONNECT_TIMEOUT):
    """
    Run the relay until interrupted.

    Args:
        host (str): Listen address (default: 0.0.0.0)
        port (int): Listen port (default: 7666)
        mode (str): "negotiated" (clients send setTarget) or "fixed"
        target_host (str): Chat server host in fixed mode
        target_port (int): Chat server port in fixed mode
        connect_timeout (float): Upstream connect timeout, 0 to disable
    """
    server = create_server(
        mode, target_host, target_port,
        connect_timeout=connect_timeout or None
    )

    async def serve_forever():
        async with server.run(host, port):
            await asyncio.Future()

    print(f"Naken relay listening on ws://{host}:{port} ({mode} mode)")
    try:
        asyncio.run(serve_forever())
    except KeyboardInterrupt:
        print("Closed by user.")
