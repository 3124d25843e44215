"""
Upstream link: one raw TCP connection to the chat server.

The link owns the socket and a pump task that forwards everything the
server sends back to the owning relay session, in read order.
"""

import asyncio
import codecs
import logging
from contextlib import suppress
from enum import Enum
from typing import Awaitable, Callable, Optional

from NakenBridge.config import config
from NakenBridge.core.exceptions import UpstreamConnectError
from NakenBridge.core.logging.utils import LogTimer
from NakenBridge.core.relay.targets import Target

logger = logging.getLogger(__name__)


class LinkState(Enum):
    """Connection state of an upstream link."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"


DataCallback = Callable[[str], Awaitable[object]]
ClosedCallback = Callable[['UpstreamLink'], Awaitable[None]]
ErrorCallback = Callable[['UpstreamLink', BaseException], Awaitable[None]]


class UpstreamLink:
    """
    Raw stream connection to the chat server for one relay session.

    Lifecycle: CONNECTING -> OPEN -> CLOSED, or -> FAILED when the connect
    attempt or a later read fails. A link is never reopened; the session
    creates a new one on retry.
    """

    def __init__(
        self,
        session_id: str,
        target: Target,
        on_data: DataCallback,
        on_closed: ClosedCallback,
        on_error: ErrorCallback,
        chunk_size: int = config.READ_CHUNK_SIZE
    ):
        """
        Initialize an upstream link.

        Args:
            session_id: Owning relay session
            target: Chat server to connect to
            on_data: Awaited with each decoded chunk read from the server
            on_closed: Awaited once when the server closes the stream
            on_error: Awaited once when a read fails mid-session
            chunk_size: Maximum bytes per read
        """
        self.session_id = session_id
        self.target = target
        self._on_data = on_data
        self._on_closed = on_closed
        self._on_error = on_error
        self._chunk_size = chunk_size
        self._state = LinkState.CONNECTING
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._pump_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is LinkState.OPEN

    async def open(self, timeout: Optional[float] = None) -> None:
        """
        Connect to the target.

        Args:
            timeout: Seconds to wait for the connection; None or 0 waits
                for the operating system's own timeout

        Raises:
            UpstreamConnectError: Resolution, connection or timeout failure
        """
        if self._state is not LinkState.CONNECTING:
            raise UpstreamConnectError(
                "Upstream link cannot be reopened", {"state": self._state.value}
            )

        logger.info("Creating chat server connection for %s to %s", self.session_id, self.target)
        try:
            with LogTimer(f"connect {self.target}", logger):
                connect = asyncio.open_connection(self.target.host, self.target.port)
                if timeout:
                    reader, writer = await asyncio.wait_for(connect, timeout)
                else:
                    reader, writer = await connect
        except (OSError, asyncio.TimeoutError) as e:
            self._state = LinkState.FAILED
            reason = str(e) or type(e).__name__
            raise UpstreamConnectError(
                f"Could not connect to {self.target}: {reason}",
                {"session_id": self.session_id}
            ) from e

        if self._state is not LinkState.CONNECTING:
            # closed by teardown while the connect was in flight
            writer.close()
            raise UpstreamConnectError(
                "Upstream link closed while connecting", {"session_id": self.session_id}
            )

        self._reader, self._writer = reader, writer
        self._state = LinkState.OPEN
        logger.info("Chat server connected for %s", self.session_id)

    def start(self) -> None:
        """Begin forwarding server output to the session."""
        if self._state is LinkState.OPEN and self._pump_task is None:
            self._pump_task = asyncio.create_task(self._pump())

    async def write(self, text: str) -> bool:
        """
        Write text to the server.

        Returns:
            True if the bytes were handed to the socket
        """
        if self._state is not LinkState.OPEN or self._writer is None:
            return False
        try:
            self._writer.write(text.encode("utf-8"))
            await self._writer.drain()
        except OSError as e:
            # the pump sees the same failure and reports it
            logger.warning("Write to chat server failed for %s: %s", self.session_id, e)
            return False
        return True

    async def close(self) -> None:
        """Close the link without a shutdown handshake. Idempotent."""
        if self._state in (LinkState.CLOSED, LinkState.FAILED) and self._writer is None:
            return
        self._state = LinkState.CLOSED

        task, self._pump_task = self._pump_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        writer = self._release()
        if writer is not None:
            with suppress(OSError):
                await writer.wait_closed()
        logger.info("Chat server connection closed for %s", self.session_id)

    def _release(self) -> Optional[asyncio.StreamWriter]:
        writer, self._writer = self._writer, None
        self._reader = None
        if writer is not None:
            writer.close()
        return writer

    async def _pump(self) -> None:
        # incremental decoding keeps multi-byte characters split across reads intact
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        reader = self._reader
        try:
            while True:
                chunk = await reader.read(self._chunk_size)
                if not chunk:
                    tail = decoder.decode(b"", final=True)
                    if tail:
                        await self._on_data(tail)
                    break
                text = decoder.decode(chunk)
                if text:
                    logger.debug("Chat server data for %s: %r", self.session_id, text)
                    await self._on_data(text)
        except OSError as e:
            if self._state is not LinkState.OPEN:
                return
            logger.error("Chat server error for %s: %s", self.session_id, e)
            self._state = LinkState.FAILED
            self._pump_task = None
            self._release()
            await self._on_error(self, e)
            return

        if self._state is LinkState.OPEN:
            self._state = LinkState.CLOSED
            self._pump_task = None
            self._release()
            logger.info("Chat server closed the connection for %s", self.session_id)
            await self._on_closed(self)
