"""
Conversation threads: the main room plus one thread per private peer.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .events import Direction, PrivateMessage

logger = logging.getLogger(__name__)

MAIN_THREAD = "main"
PRIVATE_PREFIX = "pm_"


def private_key(slot) -> str:
    return f"{PRIVATE_PREFIX}{slot}"


@dataclass
class ThreadEntry:
    """
    One line of a thread.

    Attributes:
        content: Display text
        kind: "user" for chat content, "system" for notices
        rendered: True once the text is in display form; the renderer
            passes such entries through untouched
        links: URLs found in the content
        author: Name the entry is attributed to, if known
    """
    content: str
    kind: str = "user"
    rendered: bool = False
    links: List[str] = field(default_factory=list)
    author: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "type": self.kind,
            "rendered": self.rendered,
            "links": list(self.links),
            "author": self.author,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ThreadEntry':
        return cls(
            content=str(data.get("content", "")),
            kind=str(data.get("type", "user")),
            rendered=bool(data.get("rendered", False)),
            links=list(data.get("links") or []),
            author=data.get("author"),
        )


@dataclass
class ConversationThread:
    key: str
    peer_name: str = ""
    peer_slot: Optional[str] = None
    entries: List[ThreadEntry] = field(default_factory=list)
    active: bool = False
    flashing: bool = False

    @property
    def is_private(self) -> bool:
        return self.peer_slot is not None

    @property
    def title(self) -> str:
        if not self.is_private:
            return "Main"
        return f"{self.peer_name} (#{self.peer_slot})"


def render_private(message: PrivateMessage) -> ThreadEntry:
    """Build the display entry for a recognised private message."""
    if message.direction is Direction.OUTGOING:
        content = f"{message.sender} (you): {message.message}"
    else:
        content = f"{message.sender}: {message.message}"
    return ThreadEntry(content=content, kind="user", rendered=True, author=message.sender)


class ThreadRouter:
    """
    Owns every thread of one client session.

    ``main`` always exists. Private threads are created on first use, keep
    the slot they were created with, and are removed on ``close`` or in bulk
    by ``clear_private``. ``dirty`` is set whenever history changes so the
    client knows to persist it.
    """

    def __init__(self):
        self._threads: Dict[str, ConversationThread] = {
            MAIN_THREAD: ConversationThread(MAIN_THREAD, active=True)
        }
        self._active = MAIN_THREAD
        self.dirty = False

    @property
    def active_key(self) -> str:
        return self._active

    @property
    def active(self) -> ConversationThread:
        return self._threads[self._active]

    @property
    def main(self) -> ConversationThread:
        return self._threads[MAIN_THREAD]

    def keys(self) -> List[str]:
        return list(self._threads)

    def get(self, key: str) -> Optional[ConversationThread]:
        return self._threads.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._threads

    def __len__(self) -> int:
        return len(self._threads)

    def peer_name(self, slot) -> Optional[str]:
        thread = self._threads.get(private_key(slot))
        return thread.peer_name if thread is not None else None

    def open_private(self, slot, name: str = "") -> Tuple[ConversationThread, bool]:
        """
        Resolve or create the thread for a peer slot.

        Returns:
            (thread, created)
        """
        key = private_key(slot)
        thread = self._threads.get(key)
        if thread is not None:
            if name and not thread.peer_name:
                thread.peer_name = name
            return thread, False

        thread = ConversationThread(key, peer_name=name or f"#{slot}", peer_slot=str(slot))
        self._threads[key] = thread
        self.dirty = True
        logger.debug("Created private thread %s for %s", key, thread.peer_name)
        return thread, True

    def dispatch(self, message: PrivateMessage) -> Tuple[ConversationThread, ThreadEntry]:
        """
        Route a private message to its peer thread.

        A new thread becomes active; an existing inactive one starts
        flashing.
        """
        thread, created = self.open_private(message.slot, message.peer_name)
        if created:
            self.switch(thread.key)
        elif not thread.active:
            thread.flashing = True

        entry = render_private(message)
        self._append(thread, entry)
        return thread, entry

    def add_chat(self, content: str, kind: str = "user", rendered: bool = False) -> ThreadEntry:
        """Append a line to the main thread."""
        entry = ThreadEntry(content=content, kind=kind, rendered=rendered)
        if not self.main.active:
            self.main.flashing = True
        self._append(self.main, entry)
        return entry

    def add_entry(self, key: str, entry: ThreadEntry) -> ThreadEntry:
        thread = self._threads.get(key)
        if thread is None:
            raise KeyError(key)
        if not thread.active:
            thread.flashing = True
        self._append(thread, entry)
        return entry

    def switch(self, key: str) -> ConversationThread:
        """Make a thread active and stop it flashing."""
        thread = self._threads.get(key)
        if thread is None:
            raise KeyError(key)
        self.active.active = False
        thread.active = True
        thread.flashing = False
        self._active = key
        return thread

    def close(self, key: str) -> bool:
        """
        Remove a private thread.

        Returns:
            False for ``main`` or an unknown key
        """
        if key == MAIN_THREAD or key not in self._threads:
            return False
        was_active = key == self._active
        del self._threads[key]
        if was_active:
            self._active = MAIN_THREAD
            self.main.active = True
            self.main.flashing = False
        self.dirty = True
        logger.debug("Closed thread %s", key)
        return True

    def clear_private(self) -> None:
        """Drop every private thread (disconnect or reconnect)."""
        for key in [k for k in self._threads if k != MAIN_THREAD]:
            del self._threads[key]
        self._active = MAIN_THREAD
        self.main.active = True
        self.main.flashing = False
        self.dirty = True

    def clear(self) -> None:
        """Drop private threads and the main history."""
        self.clear_private()
        self.main.entries.clear()

    def export(self, key: str) -> str:
        """Plain-text dump of one thread, one ``[kind] content`` line per entry."""
        thread = self._threads.get(key)
        if thread is None:
            raise KeyError(key)
        return "\n".join(f"[{entry.kind}] {entry.content}" for entry in thread.entries)

    def snapshot(self) -> Dict[str, List[dict]]:
        """Thread key to serialised entry list."""
        return {
            key: [entry.to_dict() for entry in thread.entries]
            for key, thread in self._threads.items()
        }

    def restore(self, histories: Dict[str, List[dict]]) -> None:
        """Rebuild threads from a snapshot; unknown key shapes are skipped."""
        for key, entries in histories.items():
            if key == MAIN_THREAD:
                thread = self.main
            elif key.startswith(PRIVATE_PREFIX) and key[len(PRIVATE_PREFIX):].isdigit():
                thread, _ = self.open_private(key[len(PRIVATE_PREFIX):])
            else:
                logger.warning("Skipping saved history with unknown key %r", key)
                continue
            thread.entries = [ThreadEntry.from_dict(item) for item in entries if isinstance(item, dict)]
        self.dirty = False

    def _append(self, thread: ConversationThread, entry: ThreadEntry) -> None:
        thread.entries.append(entry)
        self.dirty = True
