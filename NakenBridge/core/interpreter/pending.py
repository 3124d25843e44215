"""
Pending send: correlates a terse delivery confirmation with the private
message that caused it.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from NakenBridge.config import config

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class PendingSend:
    """Outstanding private message awaiting its confirmation line."""
    slot: str
    name: str
    message: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class PendingSendSlot:
    """
    Holds at most one PendingSend for an interpreter session.

    Expiry is checked on every lookup and by ``sweep``, which the client
    calls periodically so an unconfirmed record does not linger.
    """

    def __init__(self, timeout: float = config.PENDING_SEND_TIMEOUT, clock: Clock = time.monotonic):
        self._timeout = timeout
        self._clock = clock
        self._pending: Optional[PendingSend] = None

    @property
    def timeout(self) -> float:
        return self._timeout

    def arm(self, slot, name: str, message: str) -> PendingSend:
        """Record a send, replacing any previous record."""
        self._pending = PendingSend(
            slot=str(slot),
            name=name or "",
            message=message,
            expires_at=self._clock() + self._timeout,
        )
        logger.debug("Armed pending send to #%s", slot)
        return self._pending

    def peek(self) -> Optional[PendingSend]:
        """Current unexpired record, without consuming it."""
        self.sweep()
        return self._pending

    def matches(self, slot) -> bool:
        pending = self.peek()
        return pending is not None and pending.slot == str(slot)

    def take(self, slot) -> Optional[PendingSend]:
        """Consume the record if it is unexpired and for ``slot``."""
        if not self.matches(slot):
            return None
        pending, self._pending = self._pending, None
        return pending

    def sweep(self) -> bool:
        """
        Drop an expired record.

        Returns:
            True if a record was dropped
        """
        if self._pending is not None and self._pending.is_expired(self._clock()):
            logger.debug("Clearing pending send to #%s after timeout", self._pending.slot)
            self._pending = None
            return True
        return False

    def clear(self) -> None:
        self._pending = None
