"""
Configuration module for NakenBridge application.
Stores all relay and client settings.
"""

import os
from typing import Dict, Any


class Config:
    """Application configuration class."""

    # Relay listener
    DEFAULT_HOST = os.environ.get("NAKENBRIDGE_HOST", "0.0.0.0")
    DEFAULT_RELAY_PORT = int(os.environ.get("NAKENBRIDGE_PORT", "7666"))

    # "negotiated": every session sends setTarget; "fixed": every session uses DEFAULT_TARGET_*
    RELAY_MODE = os.environ.get("NAKENBRIDGE_MODE", "negotiated")

    # Upstream chat server
    DEFAULT_TARGET_HOST = os.environ.get("NAKENBRIDGE_TARGET_HOST", "localhost")
    DEFAULT_TARGET_PORT = int(os.environ.get("NAKENBRIDGE_TARGET_PORT", "6666"))

    # Seconds; 0 leaves the connect attempt to the OS timeout
    CONNECT_TIMEOUT = float(os.environ.get("NAKENBRIDGE_CONNECT_TIMEOUT", "10"))

    MAX_SESSIONS = int(os.environ.get("NAKENBRIDGE_MAX_SESSIONS", "100"))
    READ_CHUNK_SIZE = 4096

    # Relay notices
    GREETING = "Welcome to Naken Chat Client!\n"
    CONNECTED_NOTICE = "Connected to server\n"
    UPSTREAM_CLOSED_NOTICE = "Chat server connection closed\n"
    NO_TARGET_NOTICE = "Error: No server target set. Expected setTarget message with host and port.\n"
    CONNECT_FAILED_MESSAGE = "Could not connect to target server. Please check the address and try again."

    # Client timers (seconds)
    PENDING_SEND_TIMEOUT = 10.0
    ROSTER_REFRESH_DELAY = 0.5
    INITIAL_ROSTER_DELAY = 1.0
    AUTO_REFRESH_INTERVAL = 30.0
    SWEEP_INTERVAL = 1.0
    PROBE_TIMEOUT = 5.0

    # Client state
    STATE_DIR = os.environ.get("NAKENBRIDGE_STATE_DIR", "./state")
    DEFAULT_RELAY_ADDRESS = "ws://localhost:7666"

    # Extra emoticon replacements merged over the built-in table
    CUSTOM_EMOJIS: Dict[str, str] = {}

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """Get all configuration values as a dictionary."""
        return {
            "DEFAULT_HOST": cls.DEFAULT_HOST,
            "DEFAULT_RELAY_PORT": cls.DEFAULT_RELAY_PORT,
            "RELAY_MODE": cls.RELAY_MODE,
            "DEFAULT_TARGET_HOST": cls.DEFAULT_TARGET_HOST,
            "DEFAULT_TARGET_PORT": cls.DEFAULT_TARGET_PORT,
            "CONNECT_TIMEOUT": cls.CONNECT_TIMEOUT,
            "MAX_SESSIONS": cls.MAX_SESSIONS,
            "READ_CHUNK_SIZE": cls.READ_CHUNK_SIZE,
            "PENDING_SEND_TIMEOUT": cls.PENDING_SEND_TIMEOUT,
            "ROSTER_REFRESH_DELAY": cls.ROSTER_REFRESH_DELAY,
            "INITIAL_ROSTER_DELAY": cls.INITIAL_ROSTER_DELAY,
            "AUTO_REFRESH_INTERVAL": cls.AUTO_REFRESH_INTERVAL,
            "SWEEP_INTERVAL": cls.SWEEP_INTERVAL,
            "PROBE_TIMEOUT": cls.PROBE_TIMEOUT,
            "STATE_DIR": cls.STATE_DIR,
            "DEFAULT_RELAY_ADDRESS": cls.DEFAULT_RELAY_ADDRESS,
        }


# Create config instance
config = Config()
