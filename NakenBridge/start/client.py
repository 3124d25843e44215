"""
Client startup module for NakenBridge.
Provides the entry point for the console chat client.
"""

import asyncio

from NakenBridge.config import config
from NakenBridge.core.client import ConsoleClient, PersistenceService, RelayConnectionError

__all__ = ['client']


def client(relay_url=config.DEFAULT_RELAY_ADDRESS, server=None, port=None, username=None):
    """
    Start the console client.

    Values left as None fall back to the settings saved by the last run.

    Args:
        relay_url (str): Relay WebSocket URL
        server (str): Chat server host
        port (int): Chat server port
        username (str): Name to use in the chat
    """
    persistence = PersistenceService()

    async def run():
        settings = await persistence.load_settings()
        console = ConsoleClient(
            relay_url,
            server or settings["server"],
            int(port or settings["port"]),
            username if username is not None else settings["username"],
            persistence=persistence,
            hide_welcome=bool(settings["hide_welcome"])
        )
        print(f"Current setting: relay={relay_url}, server={console.client.server}:{console.client.port}")
        print("Type /help for client commands, .h for chat commands.")
        await console.run()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("Disconnected.")
    except RelayConnectionError as e:
        print(f"Failed to connect: {e}")
