"""
Target registry: which chat server each relay session asked for.

A target is recorded as soon as the client names it and becomes
*confirmed* once the upstream connection to it succeeds. A failed attempt
discards the entry so the client can name another server.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    """Upstream chat server address."""
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class TargetEntry:
    target: Target
    confirmed: bool = False


class TargetRegistry:
    """
    Per-session target bookkeeping shared by all sessions of one relay.

    Only the owning session touches its entry, so no locking is needed
    beyond the event loop's ordering.
    """

    def __init__(self):
        self._entries: Dict[str, TargetEntry] = {}

    def propose(self, session_id: str, target: Target) -> None:
        """Record an unconfirmed target, replacing any previous entry."""
        self._entries[session_id] = TargetEntry(target)
        logger.info("Set target for %s: %s", session_id, target)

    def confirm(self, session_id: str) -> bool:
        """
        Mark the session's target as connected.

        Returns:
            False if the session has no target recorded
        """
        entry = self._entries.get(session_id)
        if entry is None:
            return False
        entry.confirmed = True
        return True

    def get(self, session_id: str) -> Optional[Target]:
        entry = self._entries.get(session_id)
        return entry.target if entry else None

    def is_confirmed(self, session_id: str) -> bool:
        entry = self._entries.get(session_id)
        return bool(entry and entry.confirmed)

    def discard(self, session_id: str) -> Optional[Target]:
        """Forget the session's target. Safe to call repeatedly."""
        entry = self._entries.pop(session_id, None)
        return entry.target if entry else None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._entries
