"""
Relay server: accepts WebSocket clients and runs one RelaySession each.

One relay serves both target policies:
    negotiated - every client names its chat server with setTarget
    fixed      - every client is connected to the configured server
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from websockets.asyncio.server import Server, ServerConnection, serve

from NakenBridge.config import config
from NakenBridge.core.relay.session import RelaySession
from NakenBridge.core.relay.targets import Target, TargetRegistry

logger = logging.getLogger(__name__)

MODE_NEGOTIATED = "negotiated"
MODE_FIXED = "fixed"
RELAY_MODES = (MODE_NEGOTIATED, MODE_FIXED)


class RelayServer:
    """
    WebSocket-to-TCP relay.

    Example:
        relay = RelayServer(mode="negotiated")

        async with relay.run("0.0.0.0", 7666):
            await asyncio.Future()
    """

    def __init__(
        self,
        mode: str = config.RELAY_MODE,
        fixed_target: Optional[Target] = None,
        connect_timeout: Optional[float] = config.CONNECT_TIMEOUT,
        max_sessions: int = config.MAX_SESSIONS,
        chunk_size: int = config.READ_CHUNK_SIZE
    ):
        """
        Initialize the relay.

        Args:
            mode: "negotiated" or "fixed"
            fixed_target: Target used in fixed mode (defaults to the configured target)
            connect_timeout: Upstream connect timeout in seconds
            max_sessions: Concurrent clients accepted before refusing new ones
            chunk_size: Upstream read size
        """
        if mode not in RELAY_MODES:
            raise ValueError(f"Unknown relay mode {mode!r}, expected one of {RELAY_MODES}")
        if mode == MODE_FIXED and fixed_target is None:
            fixed_target = Target(config.DEFAULT_TARGET_HOST, config.DEFAULT_TARGET_PORT)

        self._mode = mode
        self._fixed_target = fixed_target if mode == MODE_FIXED else None
        self._connect_timeout = connect_timeout
        self._max_sessions = max_sessions
        self._chunk_size = chunk_size

        self._registry = TargetRegistry()
        self._sessions: Dict[str, RelaySession] = {}
        self._server: Optional[Server] = None
        self._host: Optional[str] = None
        self._port: Optional[int] = None
        self._running = False

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def registry(self) -> TargetRegistry:
        return self._registry

    @property
    def sessions(self) -> Dict[str, RelaySession]:
        """Active sessions by id (copy)."""
        return self._sessions.copy()

    @property
    def port(self) -> Optional[int]:
        """Bound port; resolves port 0 to the one the OS picked."""
        if self._server is not None:
            for sock in self._server.sockets:
                return sock.getsockname()[1]
        return self._port

    @property
    def is_running(self) -> bool:
        return self._running

    @asynccontextmanager
    async def run(self, host: str = config.DEFAULT_HOST, port: int = config.DEFAULT_RELAY_PORT):
        """
        Run the relay as an async context manager.

        Yields:
            The relay instance
        """
        await self.start(host, port)
        try:
            yield self
        finally:
            await self.stop()

    async def start(self, host: str = config.DEFAULT_HOST, port: int = config.DEFAULT_RELAY_PORT) -> None:
        """Start listening for WebSocket clients."""
        self._host = host
        self._port = port
        self._server = await serve(self._handle_connection, host, port)
        self._running = True

        logger.info("Relay listening on ws://%s:%s (%s mode)", host, self.port, self._mode)
        if self._fixed_target is not None:
            logger.info("Proxying every client to chat server at %s", self._fixed_target)

    async def stop(self) -> None:
        """Tear down every session, then close the listener."""
        self._running = False
        for session in list(self._sessions.values()):
            await session.teardown()

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        logger.info("Relay stopped")

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        if len(self._sessions) >= self._max_sessions:
            logger.warning("Refusing connection: %d sessions active", len(self._sessions))
            await websocket.close(code=1013, reason="Relay is full")
            return

        session = RelaySession(
            websocket,
            self._registry,
            fixed_target=self._fixed_target,
            connect_timeout=self._connect_timeout,
            chunk_size=self._chunk_size,
            on_teardown=self._forget_session
        )
        self._sessions[session.session_id] = session
        logger.info("New WebSocket connection: %s", session.session_id)

        await session.run()

    def _forget_session(self, session: RelaySession) -> None:
        self._sessions.pop(session.session_id, None)


def create_server(
    mode: str = config.RELAY_MODE,
    target_host: Optional[str] = None,
    target_port: Optional[int] = None,
    **kwargs
) -> RelayServer:
    """
    Factory function to create a configured relay.

    Args:
        mode: "negotiated" or "fixed"
        target_host: Fixed-mode chat server host
        target_port: Fixed-mode chat server port
        **kwargs: Additional arguments passed to RelayServer

    Returns:
        RelayServer instance
    """
    fixed_target = None
    if mode == MODE_FIXED:
        fixed_target = Target(
            target_host or config.DEFAULT_TARGET_HOST,
            target_port or config.DEFAULT_TARGET_PORT
        )
    return RelayServer(mode=mode, fixed_target=fixed_target, **kwargs)
