"""
Private-message wire shapes.

Chat servers in the wild print private messages in several historical
formats. Each line is tried against the table below in priority order and
the first structural match wins. Terse confirmations (shapes 3, 8 and 9)
carry no body of their own; they only match while a pending send for the
same slot is armed, and the body is taken from that record.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .events import Direction, PrivateMessage
from .pending import PendingSendSlot

logger = logging.getLogger(__name__)

CONFIRMATION_SENDER = "You"


@dataclass(frozen=True)
class PrivateShape:
    """
    One entry of the shape table.

    Attributes:
        priority: Position in the table (1 is tried first)
        pattern: Compiled line pattern; group 1 is always the peer slot
        direction: INCOMING or OUTGOING
        needs_pending: Only matches with an unexpired pending send for the slot
        example: Sample line, used in logs and tests
    """
    priority: int
    pattern: "re.Pattern"
    direction: Direction
    needs_pending: bool
    example: str

    def match(self, line: str) -> Optional["re.Match"]:
        return self.pattern.match(line)


SHAPES: Tuple[PrivateShape, ...] = (
    PrivateShape(
        1, re.compile(r"^>> Message sent to \[(\d+)\](.*?): <\d+>(.+?) \(private\): (.+)$"),
        Direction.OUTGOING, False, ">> Message sent to [1]bob: <0>Derrick (private): hi",
    ),
    PrivateShape(
        2, re.compile(r"^<(\d+)>(.*?) \(private\): (.+)$"),
        Direction.INCOMING, False, "<1>bob (private): hello",
    ),
    PrivateShape(
        3, re.compile(r"^>> Message sent to \[(\d+)\](.*)\.$"),
        Direction.OUTGOING, True, ">> Message sent to [1]bob.",
    ),
    PrivateShape(
        4, re.compile(r"^<(\d+)>(.*?): (.+?) \(private\)$"),
        Direction.INCOMING, False, "<1>bob: hello (private)",
    ),
    PrivateShape(
        5, re.compile(r"^\[(\d+)\](.*?) \(private\): (.+)$"),
        Direction.INCOMING, False, "[1]bob (private): hello",
    ),
    PrivateShape(
        6, re.compile(r"^>> \[(\d+)\](.*?): (.+?) \(private\)$"),
        Direction.INCOMING, False, ">> [1]bob: hello (private)",
    ),
    PrivateShape(
        7, re.compile(r"^>> \[(\d+)\](.*?) \(private\): (.+)$"),
        Direction.INCOMING, False, ">> [1]bob (private): hello",
    ),
    PrivateShape(
        8, re.compile(r"^>> Message sent to \[(\d+)\](.*?): (.+)$"),
        Direction.OUTGOING, True, ">> Message sent to [1]bob: hello",
    ),
    PrivateShape(
        9, re.compile(r"^>> Message sent to \[(\d+)\](\S+?)\.?$"),
        Direction.OUTGOING, True, ">> Message sent to [1]bob",
    ),
)


def _build(shape: PrivateShape, match: "re.Match", pending: PendingSendSlot, own_name: str) -> PrivateMessage:
    slot = match.group(1)
    peer_name = match.group(2).strip()

    if shape.priority == 1:
        return PrivateMessage(
            slot=slot, peer_name=peer_name, message=match.group(4),
            direction=Direction.OUTGOING, sender=match.group(3).strip(), shape=1,
        )

    if shape.direction is Direction.INCOMING:
        return PrivateMessage(
            slot=slot, peer_name=peer_name, message=match.group(3),
            direction=Direction.INCOMING, sender=peer_name, shape=shape.priority,
        )

    record = pending.take(slot)
    if shape.priority == 8:
        return PrivateMessage(
            slot=slot, peer_name=peer_name or record.name, message=match.group(3),
            direction=Direction.OUTGOING, sender=own_name or CONFIRMATION_SENDER,
            shape=8, from_pending=False,
        )

    # shapes 3 and 9: the body only exists in the pending record
    return PrivateMessage(
        slot=slot, peer_name=peer_name or record.name, message=record.message,
        direction=Direction.OUTGOING, sender=CONFIRMATION_SENDER,
        shape=shape.priority, from_pending=True,
    )


def match_private(line: str, pending: PendingSendSlot, own_name: str = "") -> Optional[PrivateMessage]:
    """
    Try every shape against a cleaned line.

    A shape that needs a pending send is skipped unless the armed record
    is unexpired and for the captured slot; evaluation then continues
    with the next shape.

    Args:
        line: Cleaned upstream line
        pending: The session's pending send holder; consumed on a terse match
        own_name: Current user name, used as the sender of shape 8 lines

    Returns:
        PrivateMessage, or None when the line is not a private message
    """
    for shape in SHAPES:
        match = shape.match(line)
        if match is None:
            continue
        if shape.needs_pending and not pending.matches(match.group(1)):
            continue

        message = _build(shape, match, pending, own_name)
        if shape.priority == 1:
            # a full echo settles any send still waiting on this slot
            pending.take(message.slot)
        logger.debug("Private message shape %d matched: %r", shape.priority, line)
        return message
    return None
