"""
Events produced by the line classifier.

Each completed upstream line yields zero or more of these, in order; the
interpreter applies them to roster and thread state and hands them to the
front-end.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .roster import UserEntry


class Direction(Enum):
    """Which way a private message travelled."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass
class WelcomeBanner:
    """Login banner, delivered once per connection."""
    text: str


@dataclass
class HelpBlock:
    """Curated command summary shown instead of the server's help text."""
    commands: Tuple[Tuple[str, str], ...]

    @property
    def text(self) -> str:
        width = max(len(usage) for usage, _ in self.commands)
        rows = [f"  {usage.ljust(width)}  {summary}" for usage, summary in self.commands]
        return "\n".join(["Available Commands:"] + rows)


@dataclass
class RosterUpdated:
    """
    Result of one user-list response.

    Attributes:
        entries: Entries parsed from the response
        replaced: False when the parse found no entries and the previous
            roster was kept
    """
    entries: List[UserEntry]
    replaced: bool


@dataclass
class RosterRefreshRequested:
    """Presence changed; the roster should be queried again shortly."""
    reason: str


@dataclass
class PrivateMessage:
    """
    A private message recognised by one of the known wire shapes.

    Attributes:
        slot: Peer slot number
        peer_name: Peer display name
        message: Message body
        direction: INCOMING or OUTGOING
        sender: Display name the entry is attributed to
        shape: Priority number of the wire shape that matched
        from_pending: True when the body came from the pending send record
    """
    slot: str
    peer_name: str
    message: str
    direction: Direction
    sender: str
    shape: int
    from_pending: bool = False


@dataclass
class ChatLine:
    """Plain line for the main thread."""
    text: str


@dataclass
class TransportError:
    """Error envelope from the relay; never classified as chat."""
    message: str


@dataclass
class ClassifiedBatch:
    """Events from one received frame, with the lines that produced them."""
    events: list = field(default_factory=list)
    lines: List[str] = field(default_factory=list)
    error: Optional[TransportError] = None


@dataclass
class RelayNotice:
    """Status text written by the relay itself (greeting, connected, closed)."""
    text: str
