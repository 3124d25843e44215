"""
Relay client: one WebSocket to the relay, driving a ProtocolInterpreter.

The client names the chat server with a setTarget frame, sets the user
name, and keeps the roster fresh: once shortly after connecting, every
30 seconds while connected, and half a second after every presence line.
"""

import asyncio
import logging
import re
from typing import Callable, List, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from NakenBridge.config import config
from NakenBridge.core.interpreter import (
    ClassifiedBatch,
    ProtocolInterpreter,
    RelayNotice,
    RosterRefreshRequested,
)
from NakenBridge.core.message.protocol import SetTarget
from .exceptions import NotConnectedError, RelayConnectionError
from .persistence import PersistenceService

logger = logging.getLogger(__name__)

PRIVATE_SEND_RE = re.compile(r"^\.p\s+(\d+)\s+(.+)$")
SET_NAME_RE = re.compile(r"^\.n\s+(\S+)")
LIST_USERS = ".w"
QUIT = ".q"

BatchCallback = Callable[[ClassifiedBatch], None]


class BridgeClient:
    """
    Chat client speaking to a Naken server through the relay.

    Example:
        client = BridgeClient("ws://localhost:7666", "chat.example.org", 6666, "alice")
        await client.connect()
        await client.send_input("hello everyone")
        await client.receive()
    """

    def __init__(
        self,
        relay_url: str = config.DEFAULT_RELAY_ADDRESS,
        server: str = config.DEFAULT_TARGET_HOST,
        port: int = config.DEFAULT_TARGET_PORT,
        username: str = "",
        persistence: Optional[PersistenceService] = None,
        on_batch: Optional[BatchCallback] = None,
        roster_refresh_delay: float = config.ROSTER_REFRESH_DELAY,
        initial_roster_delay: float = config.INITIAL_ROSTER_DELAY,
        auto_refresh_interval: float = config.AUTO_REFRESH_INTERVAL,
        sweep_interval: float = config.SWEEP_INTERVAL,
        pending_timeout: float = config.PENDING_SEND_TIMEOUT
    ):
        """
        Initialize the client.

        Args:
            relay_url: WebSocket URL of the relay
            server: Chat server host sent in setTarget
            port: Chat server port sent in setTarget
            username: Name set with ``.n`` after connecting (empty: keep the server's)
            persistence: Where settings and histories are saved (None: not saved)
            on_batch: Called with every batch of interpreted events
            roster_refresh_delay: Delay before ``.w`` after a presence line
            initial_roster_delay: Delay before the first ``.w``
            auto_refresh_interval: Period of the automatic ``.w``
            sweep_interval: Period of the pending-send expiry sweep
            pending_timeout: Seconds a private send waits for its confirmation
        """
        self.relay_url = relay_url
        self.server = server
        self.port = port
        self.username = username
        self.interpreter = ProtocolInterpreter(own_name=username, pending_timeout=pending_timeout)
        self._persistence = persistence
        self._on_batch = on_batch
        self._roster_refresh_delay = roster_refresh_delay
        self._initial_roster_delay = initial_roster_delay
        self._auto_refresh_interval = auto_refresh_interval
        self._sweep_interval = sweep_interval

        self._websocket: Optional[ClientConnection] = None
        self._tasks: List[asyncio.Task] = []
        self._refresh_handles: List[asyncio.TimerHandle] = []
        self._send_tasks: set = set()

    @property
    def is_connected(self) -> bool:
        return self._websocket is not None

    @property
    def threads(self):
        return self.interpreter.threads

    @property
    def roster(self):
        return self.interpreter.roster

    async def connect(self) -> None:
        """
        Open the relay connection and start the session.

        Raises:
            RelayConnectionError: The relay could not be reached
        """
        if self._websocket is not None:
            return
        try:
            self._websocket = await connect(self.relay_url)
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            raise RelayConnectionError(
                f"Could not connect to relay at {self.relay_url}",
                {"reason": str(e) or type(e).__name__}
            ) from e
        logger.info("Connected to relay %s", self.relay_url)

        self.interpreter.reset_connection()
        self.interpreter.threads.clear()
        if self._persistence is not None:
            await self._persistence.reset_histories()
            await self._persistence.save_settings(self.server, self.port, self.username)

        await self.send_raw(SetTarget(self.server, self.port).serialize())
        if self.username:
            await self.send_raw(f".n {self.username}")

        self._tasks = [
            asyncio.create_task(self._auto_refresh()),
            asyncio.create_task(self._sweep()),
        ]

    async def disconnect(self) -> None:
        """Stop timers and close the relay connection. Idempotent."""
        self._stop_timers()
        for task in list(self._send_tasks):
            task.cancel()

        websocket, self._websocket = self._websocket, None
        if websocket is not None:
            await websocket.close()
            logger.info("Disconnected from relay")

        self.interpreter.pending.clear()
        self.interpreter.threads.clear_private()

    async def run(self) -> None:
        """Connect and process frames until the relay connection ends."""
        await self.connect()
        try:
            await self.receive()
        finally:
            await self.disconnect()

    async def receive(self) -> None:
        """Read frames until the relay closes the connection."""
        websocket = self._websocket
        if websocket is None:
            raise NotConnectedError("Not connected to a relay")
        try:
            async for frame in websocket:
                if isinstance(frame, bytes):
                    frame = frame.decode("utf-8", errors="replace")
                await self.handle_frame(frame)
        except ConnectionClosed as e:
            logger.info("Relay connection closed: %s", e)
        self.interpreter.flush()

    async def handle_frame(self, frame: str) -> ClassifiedBatch:
        """Interpret one frame and act on what it contained."""
        batch = self.interpreter.feed_frame(frame)

        for event in batch.events:
            if isinstance(event, RosterRefreshRequested):
                self.schedule_roster_refresh()
            elif isinstance(event, RelayNotice) and event.text == config.UPSTREAM_CLOSED_NOTICE.strip():
                self._stop_timers()

        if self.threads.dirty:
            await self.save_histories()
        if self._on_batch is not None:
            self._on_batch(batch)
        return batch

    async def send_input(self, text: str) -> None:
        """
        Send a line typed by the user.

        In an active private thread, plain text is sent to the peer with
        ``.p``. Private sends arm the pending send so the server's terse
        confirmation can be matched to the message.

        Raises:
            NotConnectedError: No relay connection
        """
        text = text.strip()
        if not text:
            return

        if text == QUIT:
            await self.send_raw(text)
            await self.disconnect()
            return

        match = PRIVATE_SEND_RE.match(text)
        if match:
            slot, message = match.groups()
            self.interpreter.arm_private_send(slot, message)
            await self.send_raw(text)
            return

        match = SET_NAME_RE.match(text)
        if match:
            await self.set_username(match.group(1))

        active = self.threads.active
        if active.is_private and not text.startswith("."):
            self.interpreter.arm_private_send(active.peer_slot, text, active.peer_name)
            await self.send_raw(f".p {active.peer_slot} {text}")
            return

        await self.send_raw(text)

    async def send_raw(self, text: str) -> None:
        """
        Send a frame to the relay unchanged.

        Raises:
            NotConnectedError: No relay connection
            RelayConnectionError: The connection closed during the send
        """
        if self._websocket is None:
            raise NotConnectedError("Not connected to a relay", {"text": text})
        try:
            await self._websocket.send(text)
        except ConnectionClosed as e:
            raise RelayConnectionError("Relay connection closed", {"reason": str(e)}) from e
        logger.debug("Sent: %s", text)

    async def set_username(self, name: str) -> None:
        self.username = name
        self.interpreter.own_name = name
        if self._persistence is not None:
            await self._persistence.save_settings(self.server, self.port, name)

    def schedule_roster_refresh(self, delay: Optional[float] = None) -> None:
        """Query the user list after ``delay``; requests are not coalesced."""
        loop = asyncio.get_running_loop()
        now = loop.time()
        self._refresh_handles = [h for h in self._refresh_handles if h.when() > now]
        handle = loop.call_later(
            self._roster_refresh_delay if delay is None else delay,
            self._send_in_background, LIST_USERS
        )
        self._refresh_handles.append(handle)

    async def load_histories(self) -> bool:
        """
        Restore the threads saved by the previous run.

        The next successful connect starts a fresh history, so this is
        only useful before connecting.

        Returns:
            True if any saved thread was restored
        """
        if self._persistence is None:
            return False
        histories = await self._persistence.load_histories()
        if not histories:
            return False
        self.threads.restore(histories)
        logger.info("Restored %d saved threads", len(self.threads.keys()))
        return True

    async def save_histories(self) -> None:
        self.threads.dirty = False
        if self._persistence is not None:
            await self._persistence.save_histories(self.threads.snapshot())

    async def export_thread(self, key: str) -> Optional[str]:
        """Write one thread to a text file; returns its path."""
        if self._persistence is None:
            return None
        return await self._persistence.export_thread(key, self.threads.export(key))

    def _send_in_background(self, text: str) -> None:
        if self._websocket is None:
            return
        task = asyncio.create_task(self._send_quietly(text))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send_quietly(self, text: str) -> None:
        try:
            await self.send_raw(text)
        except (NotConnectedError, RelayConnectionError) as e:
            logger.debug("Scheduled send of %r skipped: %s", text, e)

    async def _auto_refresh(self) -> None:
        await asyncio.sleep(self._initial_roster_delay)
        while self._websocket is not None:
            await self._send_quietly(LIST_USERS)
            await asyncio.sleep(self._auto_refresh_interval)

    async def _sweep(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.interpreter.sweep()

    def _stop_timers(self) -> None:
        for handle in self._refresh_handles:
            handle.cancel()
        self._refresh_handles = []
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            if task is not asyncio.current_task():
                task.cancel()
