"""
Relay session: one WebSocket client paired with at most one upstream link.

Lifecycle:
    accept -> greeting -> [setTarget -> upstream connect] -> passthrough
    either side closes -> teardown (idempotent)

Policies:
    - Before a target is set, anything other than a well-formed setTarget
      is answered with a text notice and the session keeps listening.
    - A setTarget while a link is connecting or open is ignored; after the
      link failed or closed a new setTarget is accepted as a retry.
    - Upstream failures reach the client as error envelopes, never as chat
      text, and leave the WebSocket open.
"""

import logging
import time
import uuid
from contextlib import suppress
from typing import Callable, Optional, Union

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from NakenBridge.config import config
from NakenBridge.core.exceptions import ControlMessageError, UpstreamConnectError
from NakenBridge.core.message.protocol import ErrorEnvelope, parse_set_target
from NakenBridge.core.relay.targets import Target, TargetRegistry
from NakenBridge.core.relay.upstream import LinkState, UpstreamLink

logger = logging.getLogger(__name__)


class RelaySession:
    """
    Connection context for a single WebSocket client.

    The session reads client frames one at a time, so its state is never
    touched by two coroutines at once apart from the upstream callbacks,
    which only clear the link and notify the client.
    """

    def __init__(
        self,
        connection: ServerConnection,
        registry: TargetRegistry,
        fixed_target: Optional[Target] = None,
        connect_timeout: Optional[float] = config.CONNECT_TIMEOUT,
        chunk_size: int = config.READ_CHUNK_SIZE,
        on_teardown: Optional[Callable[['RelaySession'], None]] = None
    ):
        """
        Initialize a relay session.

        Args:
            connection: Accepted WebSocket connection
            registry: Target registry shared by the relay
            fixed_target: Connect here on accept and ignore setTarget
            connect_timeout: Upstream connect timeout in seconds (0/None: OS default)
            chunk_size: Upstream read size
            on_teardown: Called once when the session is torn down
        """
        self.session_id: str = uuid.uuid4().hex
        self.created_at: float = time.time()
        self._connection = connection
        self._registry = registry
        self._fixed_target = fixed_target
        self._connect_timeout = connect_timeout
        self._chunk_size = chunk_size
        self._on_teardown = on_teardown
        self._link: Optional[UpstreamLink] = None
        self._closed = False

    @property
    def link(self) -> Optional[UpstreamLink]:
        """Current upstream link, None until a target is connected."""
        return self._link

    @property
    def target(self) -> Optional[Target]:
        return self._registry.get(self.session_id)

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def run(self) -> None:
        """Serve the client until its WebSocket closes, then tear down."""
        try:
            await self.send_text(config.GREETING)
            if self._fixed_target is not None:
                await self._connect(self._fixed_target)

            async for raw_message in self._connection:
                try:
                    await self.handle_message(raw_message)
                except ConnectionClosed:
                    raise
                except Exception as e:
                    logger.exception("Error processing message from %s: %s", self.session_id, e)
        except ConnectionClosed:
            logger.debug("WebSocket closed for %s", self.session_id)
        finally:
            await self.teardown()

    async def handle_message(self, raw_message: Union[str, bytes]) -> None:
        """
        Dispatch one client frame: routing directive or chat passthrough.
        """
        if isinstance(raw_message, bytes):
            raw_message = raw_message.decode("utf-8", errors="replace")
        logger.debug("Message from %s: %s", self.session_id, raw_message.strip())

        try:
            directive = parse_set_target(raw_message)
        except ControlMessageError as e:
            logger.warning("Malformed setTarget from %s: %s", self.session_id, e)
            if self._link is None:
                await self.send_text(config.NO_TARGET_NOTICE)
            return

        if directive is not None:
            await self.set_target(directive.host, directive.port)
            return

        if not self._registry.is_confirmed(self.session_id):
            logger.warning("No target set for %s", self.session_id)
            await self.send_text(config.NO_TARGET_NOTICE)
            return

        await self.relay(raw_message)

    async def set_target(self, host: str, port: int) -> bool:
        """
        Choose the chat server and connect to it.

        Returns:
            True if a new upstream link is now open
        """
        if self._closed:
            return False
        if self._fixed_target is not None:
            logger.debug("Ignoring setTarget from %s: relay target is fixed", self.session_id)
            return False
        if self._link is not None:
            logger.info(
                "Ignoring setTarget from %s: upstream link already %s",
                self.session_id, self._link.state.value
            )
            return False
        return await self._connect(Target(host, port))

    async def _connect(self, target: Target) -> bool:
        self._registry.propose(self.session_id, target)
        link = UpstreamLink(
            self.session_id,
            target,
            on_data=self.send_text,
            on_closed=self._handle_link_closed,
            on_error=self._handle_link_error,
            chunk_size=self._chunk_size
        )
        self._link = link

        try:
            await link.open(self._connect_timeout)
        except UpstreamConnectError as e:
            logger.warning("Chat server connect failed for %s: %s", self.session_id, e)
            if self._link is link:
                self._link = None
            self._registry.discard(self.session_id)
            await self.send_error(config.CONNECT_FAILED_MESSAGE)
            return False

        if self._closed or self._link is not link:
            await link.close()
            return False

        self._registry.confirm(self.session_id)
        await self.send_text(config.CONNECTED_NOTICE)
        link.start()
        return True

    async def relay(self, text: str) -> bool:
        """
        Forward one client message to the chat server with a single newline.

        Returns:
            False (message dropped) when the link is not open
        """
        link = self._link
        if link is None or link.state is not LinkState.OPEN:
            logger.debug("Dropping message from %s: upstream not open", self.session_id)
            return False
        return await link.write(text.rstrip("\r\n") + "\n")

    async def send_text(self, text: str) -> bool:
        """
        Send a text frame to the client.

        Returns:
            True if the frame was sent
        """
        if self._closed:
            return False
        try:
            await self._connection.send(text)
            return True
        except ConnectionClosed as e:
            logger.debug("Failed to send to %s: %s", self.session_id, e)
            return False

    async def send_error(self, message: str) -> bool:
        """Send a transport error envelope to the client."""
        return await self.send_text(ErrorEnvelope(message).serialize())

    async def _handle_link_closed(self, link: UpstreamLink) -> None:
        if self._link is link:
            self._link = None
        await self.send_text(config.UPSTREAM_CLOSED_NOTICE)

    async def _handle_link_error(self, link: UpstreamLink, error: BaseException) -> None:
        if self._link is link:
            self._link = None
        reason = str(error) or type(error).__name__
        await self.send_error(f"Connection to chat server lost: {reason}")

    async def teardown(self) -> None:
        """Close both sides and drop the session's records. Idempotent."""
        if self._closed:
            return
        self._closed = True
        logger.info("WebSocket connection closed: %s", self.session_id)

        link, self._link = self._link, None
        if link is not None:
            await link.close()
        self._registry.discard(self.session_id)

        if self._on_teardown is not None:
            try:
                self._on_teardown(self)
            except Exception as e:
                logger.exception("Error in teardown callback for %s: %s", self.session_id, e)

        with suppress(ConnectionClosed, OSError):
            await self._connection.close()
