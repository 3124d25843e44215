"""
Line classifier: turns the server's human-oriented text into events.

States:
    AWAITING_BANNER    -> collect the login banner until the logged-on line
    NORMAL             -> classify one line at a time
    SUPPRESSING_HELP   -> drop the server's help text
    COLLECTING_ROSTER  -> buffer a user-list response until its Total line
"""

import logging
import re
from enum import Enum
from typing import List

from .events import ChatLine, RosterRefreshRequested, RosterUpdated, WelcomeBanner
from .help import help_block
from .patterns import match_private
from .pending import PendingSendSlot
from .roster import TOTAL_PREFIX, TOTAL_RE, Roster, is_roster_header, parse_roster_block

logger = logging.getLogger(__name__)

BANNER_END_RE = re.compile(r"^>> You just logged on line \d+ from:")
HELP_START = "List of commands:"
PRESENCE_RE = re.compile(
    r"has joined|has left|has quit|logged on line|logged off|disconnected",
    re.IGNORECASE
)


class ClassifierState(Enum):
    AWAITING_BANNER = "awaiting_banner"
    NORMAL = "normal"
    SUPPRESSING_HELP = "suppressing_help"
    COLLECTING_ROSTER = "collecting_roster"


class LineClassifier:
    """
    Stateful classifier for one connection.

    Lines must be fed in arrival order. ``classify`` never raises: a line
    that fails is logged and dropped, and the classifier falls back to the
    NORMAL state so later lines are still handled.
    """

    def __init__(self, roster: Roster, pending: PendingSendSlot, own_name: str = ""):
        self.roster = roster
        self.pending = pending
        self.own_name = own_name
        self._state = ClassifierState.AWAITING_BANNER
        self._banner: List[str] = []
        self._roster_lines: List[str] = []

    @property
    def state(self) -> ClassifierState:
        return self._state

    def reset(self) -> None:
        """Start over for a new connection: the banner is expected again."""
        self._state = ClassifierState.AWAITING_BANNER
        self._banner = []
        self._roster_lines = []

    def skip_banner(self) -> None:
        """Treat the next line as ordinary output (no banner expected)."""
        self._state = ClassifierState.NORMAL
        self._banner = []

    def classify(self, line: str) -> list:
        """
        Classify one cleaned line.

        Args:
            line: Line with NULs, carriage returns and outer whitespace removed

        Returns:
            Events produced by the line, possibly none
        """
        try:
            return self._dispatch(line)
        except Exception as e:
            logger.exception("Error classifying line %r: %s", line, e)
            self._state = ClassifierState.NORMAL
            self._roster_lines = []
            return []

    def classify_lines(self, lines: List[str]) -> list:
        events = []
        for line in lines:
            events.extend(self.classify(line))
        return events

    def _dispatch(self, line: str) -> list:
        if self._state is ClassifierState.AWAITING_BANNER:
            return self._on_banner(line)
        if self._state is ClassifierState.SUPPRESSING_HELP:
            return self._on_help(line)
        if self._state is ClassifierState.COLLECTING_ROSTER:
            return self._on_roster(line)
        return self._on_normal(line)

    def _on_banner(self, line: str) -> list:
        if line or self._banner:
            self._banner.append(line)
        if not BANNER_END_RE.match(line):
            return []

        banner = WelcomeBanner("\n".join(self._banner))
        self._banner = []
        self._state = ClassifierState.NORMAL
        logger.debug("Welcome banner complete")
        return [banner]

    def _on_help(self, line: str) -> list:
        if not line or is_roster_header(line) or line.startswith("["):
            self._state = ClassifierState.NORMAL
            return self._on_normal(line)
        return []

    def _on_roster(self, line: str) -> list:
        self._roster_lines.append(line)
        if not line.startswith(TOTAL_PREFIX):
            return []

        lines, self._roster_lines = self._roster_lines, []
        self._state = ClassifierState.NORMAL
        entries = parse_roster_block(lines)
        replaced = self.roster.replace(entries)
        logger.debug("User list parsed: %d entries", len(entries))
        return [RosterUpdated(entries=entries, replaced=replaced)]

    def _on_normal(self, line: str) -> list:
        if not line:
            return []

        if line.startswith(HELP_START):
            self._state = ClassifierState.SUPPRESSING_HELP
            return [help_block()]

        if is_roster_header(line):
            self._state = ClassifierState.COLLECTING_ROSTER
            self._roster_lines = [line]
            return []

        if TOTAL_RE.match(line):
            return []

        private = match_private(line, self.pending, self.own_name)
        if private is not None:
            return [private]

        if PRESENCE_RE.search(line):
            return [RosterRefreshRequested(reason=line), ChatLine(line)]

        return [ChatLine(line)]

