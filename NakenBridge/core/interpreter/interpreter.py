"""
Client-side protocol interpreter.

Takes the frames a client receives from the relay and maintains the
structured chat state the server never sends explicitly: roster, private
threads, welcome banner and help text.
"""

import logging
import time
from typing import Callable, List, Optional

from NakenBridge.config import config
from NakenBridge.core.message.protocol import parse_error_envelope

from .classifier import LineClassifier
from .events import (
    ChatLine,
    ClassifiedBatch,
    HelpBlock,
    PrivateMessage,
    RelayNotice,
    RosterUpdated,
    TransportError,
    WelcomeBanner,
)
from .lines import LineBuffer
from .pending import PendingSendSlot
from .render import MessageRenderer
from .roster import Roster
from .threads import MAIN_THREAD, ThreadEntry, ThreadRouter

logger = logging.getLogger(__name__)

RELAY_NOTICES = frozenset((
    config.GREETING,
    config.CONNECTED_NOTICE,
    config.UPSTREAM_CLOSED_NOTICE,
    config.NO_TARGET_NOTICE,
))


class ProtocolInterpreter:
    """
    Per-connection interpreter state.

    Example:
        interpreter = ProtocolInterpreter(own_name="alice")
        batch = interpreter.feed_frame("<2>bob (private): hi there\\n")
        interpreter.threads.get("pm_2").entries[0].content
        # 'bob: hi there'
    """

    def __init__(
        self,
        own_name: str = "",
        pending_timeout: float = config.PENDING_SEND_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        renderer: Optional[MessageRenderer] = None
    ):
        self.roster = Roster()
        self.threads = ThreadRouter()
        self.pending = PendingSendSlot(timeout=pending_timeout, clock=clock)
        self.renderer = renderer or MessageRenderer(own_name)
        self.classifier = LineClassifier(self.roster, self.pending, own_name)
        self.lines = LineBuffer()
        self.banner_shown = False
        self._own_name = own_name

    @property
    def own_name(self) -> str:
        return self._own_name

    @own_name.setter
    def own_name(self, name: str) -> None:
        self._own_name = name
        self.classifier.own_name = name
        self.renderer.own_name = name

    def feed_frame(self, frame: str) -> ClassifiedBatch:
        """
        Process one frame from the relay.

        A frame that is entirely an error envelope is reported as a
        TransportError and never classified; the relay's own status
        notices are recorded as system lines. Anything else is split into
        lines; completed lines are classified in order and applied to
        roster and thread state.

        Returns:
            The events produced, with the lines that produced them
        """
        envelope = parse_error_envelope(frame)
        if envelope is not None:
            error = TransportError(envelope.message)
            logger.warning("Relay reported: %s", envelope.message)
            self.threads.add_chat(envelope.message, kind="error", rendered=True)
            return ClassifiedBatch(events=[error], error=error)

        if frame in RELAY_NOTICES:
            # an unterminated last line from the server ends where the notice starts
            tail = self.lines.flush()
            events = self.classifier.classify_lines(tail)
            for event in events:
                self.apply(event)
            notice = RelayNotice(frame.strip())
            self.threads.add_chat(notice.text, kind="system", rendered=True)
            events.append(notice)
            return ClassifiedBatch(events=events, lines=tail)

        lines = self.lines.feed(frame)
        events = self.classifier.classify_lines(lines)
        for event in events:
            self.apply(event)
        return ClassifiedBatch(events=events, lines=lines)

    def apply(self, event) -> None:
        """Update thread state for one classified event."""
        if isinstance(event, PrivateMessage):
            self.threads.dispatch(event)
        elif isinstance(event, ChatLine):
            self.threads.add_entry(MAIN_THREAD, self.renderer.render(ThreadEntry(event.text)))
        elif isinstance(event, HelpBlock):
            self.threads.add_chat(event.text, kind="system", rendered=True)
        elif isinstance(event, WelcomeBanner):
            self.banner_shown = True
        elif isinstance(event, RosterUpdated) and not event.replaced:
            logger.debug("Keeping previous roster of %d users", len(self.roster))

    def arm_private_send(self, slot, message: str, name: Optional[str] = None) -> None:
        """
        Record an outgoing private message before it is sent.

        The peer name defaults to the thread's name for the slot, then to
        the roster's.
        """
        if not name:
            name = self.threads.peer_name(slot)
        if not name:
            user = self.roster.get(str(slot))
            name = user.name if user is not None else ""
        self.pending.arm(slot, name, message)

    def sweep(self) -> bool:
        return self.pending.sweep()

    def reset_connection(self, expect_banner: bool = True) -> None:
        """
        Forget per-connection state before a new connection.

        Private threads and the pending send are cleared, since slot
        numbers are reassigned by the server; the main history is kept.
        """
        self.lines.reset()
        self.pending.clear()
        self.threads.clear_private()
        self.roster.clear()
        self.classifier.reset()
        if not expect_banner:
            self.classifier.skip_banner()

    def flush(self) -> List:
        """Classify a trailing partial line, if any (used when the connection ends)."""
        events = self.classifier.classify_lines(self.lines.flush())
        for event in events:
            self.apply(event)
        return events
