"""
Client-side interpretation of the chat server's text stream.
"""

from .classifier import ClassifierState, LineClassifier
from .events import (
    ChatLine,
    ClassifiedBatch,
    Direction,
    HelpBlock,
    PrivateMessage,
    RelayNotice,
    RosterRefreshRequested,
    RosterUpdated,
    TransportError,
    WelcomeBanner,
)
from .interpreter import ProtocolInterpreter
from .lines import LineBuffer, clean_line
from .patterns import SHAPES, match_private
from .pending import PendingSend, PendingSendSlot
from .render import MessageRenderer
from .roster import Roster, UserEntry, is_roster_header, parse_roster_block
from .threads import MAIN_THREAD, ConversationThread, ThreadEntry, ThreadRouter, private_key

__all__ = [
    "ChatLine",
    "ClassifiedBatch",
    "ClassifierState",
    "ConversationThread",
    "Direction",
    "HelpBlock",
    "LineBuffer",
    "LineClassifier",
    "MAIN_THREAD",
    "MessageRenderer",
    "PendingSend",
    "PendingSendSlot",
    "PrivateMessage",
    "ProtocolInterpreter",
    "RelayNotice",
    "Roster",
    "RosterRefreshRequested",
    "RosterUpdated",
    "SHAPES",
    "ThreadEntry",
    "ThreadRouter",
    "TransportError",
    "UserEntry",
    "WelcomeBanner",
    "clean_line",
    "is_roster_header",
    "match_private",
    "parse_roster_block",
    "private_key",
]
