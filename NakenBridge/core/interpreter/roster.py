"""
User roster parsed from the server's user-list response.

A response looks like:

    Name                       Channel        Idle Location
    [0]Derrick            ----E Main             1m localhost
    [1]mike               ----- Main                Mac.mikekohn.net
    --------------------------------------------------------
    Total: 2

The idle column is missing on some servers.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

_ENTRY_RE = re.compile(
    r"^\[(?P<slot>\d+)\](?P<name>\S+)\s+(?P<status>[-A-Za-z]+)\s+(?P<channel>\S+)\s+"
    r"(?:(?P<idle>\d+[smhd]?)\s+)?(?P<location>.+)$"
)
TOTAL_PREFIX = "Total:"
TOTAL_RE = re.compile(r"^Total: \d+")


@dataclass
class UserEntry:
    """
    One line of the user list.

    Attributes:
        slot: Server-assigned connection number (not stable across reconnects)
        name: Display name
        status: Status flags column, e.g. "----E" (E = echo, A = admin)
        channel: Channel name
        idle: Idle time, empty when the server omits the column
        location: Host the user connected from
    """
    slot: str
    name: str
    status: str
    channel: str
    idle: str
    location: str

    @property
    def is_admin(self) -> bool:
        return "A" in self.status

    @property
    def has_echo(self) -> bool:
        return "E" in self.status


def is_roster_header(line: str) -> bool:
    """Header line of a user-list response (name and location columns)."""
    return line.startswith("Name") and "Location" in line


def parse_entry(line: str) -> Optional[UserEntry]:
    match = _ENTRY_RE.match(line)
    if match is None:
        return None
    return UserEntry(
        slot=match.group("slot"),
        name=match.group("name"),
        status=match.group("status"),
        channel=match.group("channel"),
        idle=match.group("idle") or "",
        location=match.group("location").strip(),
    )


def parse_roster_block(lines: Iterable[str]) -> List[UserEntry]:
    """
    Parse a buffered user-list response.

    Lines before the header are ignored, as are separators and the
    Total line. Lines that do not fit the grammar are logged and skipped.

    Returns:
        Entries in response order (possibly empty)
    """
    lines = [line.strip() for line in lines]
    header_idx = next((i for i, line in enumerate(lines) if is_roster_header(line)), None)
    if header_idx is None:
        logger.warning("User list header not found")
        return []

    entries: List[UserEntry] = []
    for line in lines[header_idx + 1:]:
        if not line or line.startswith("-") or line.startswith(TOTAL_PREFIX):
            continue
        entry = parse_entry(line)
        if entry is None:
            logger.warning("User line not parsed: %r", line)
            continue
        entries.append(entry)
    return entries


class Roster:
    """
    Current user list, replaced wholesale on every non-empty parse.
    """

    def __init__(self):
        self._users: Dict[str, UserEntry] = {}

    def replace(self, entries: List[UserEntry]) -> bool:
        """
        Install a freshly parsed list.

        An empty list keeps the current roster: malformed server output
        has been seen to hide a valid list otherwise.

        Returns:
            True if the roster was replaced
        """
        if not entries:
            logger.warning("No users parsed from user list, keeping current roster")
            return False
        self._users = {entry.slot: entry for entry in entries}
        return True

    def clear(self) -> None:
        self._users = {}

    def get(self, slot: str) -> Optional[UserEntry]:
        return self._users.get(str(slot))

    @property
    def entries(self) -> List[UserEntry]:
        """Entries sorted by slot number."""
        return sorted(self._users.values(), key=lambda user: int(user.slot))

    def __len__(self) -> int:
        return len(self._users)

    def __contains__(self, slot: object) -> bool:
        return str(slot) in self._users
