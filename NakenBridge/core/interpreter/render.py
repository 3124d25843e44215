"""
Display rendering for thread entries.
"""

import re
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from NakenBridge.config import config

from .threads import ThreadEntry

EMOTICONS: Dict[str, str] = {
    ":D": "\U0001F600", ":P": "\U0001F61B", ":)": "\U0001F642", ":(": "\U0001F61E",
    ";)": "\U0001F609", ":O": "\U0001F62E", ":o": "\U0001F62E", ":|": "\U0001F610",
    ":/": "\U0001F615", ":\\": "\U0001F615",
    "8)": "\U0001F60E", "8-)": "\U0001F60E", "B)": "\U0001F60E", "B-)": "\U0001F60E",
    "<3": "❤️", "</3": "\U0001F494", ":heart:": "❤️",
    ":smile:": "\U0001F60A", ":sad:": "\U0001F622", ":wink:": "\U0001F609",
    ":lol:": "\U0001F602", ":rofl:": "\U0001F923", ":cool:": "\U0001F60E",
    ":thumbsup:": "\U0001F44D", ":thumbsdown:": "\U0001F44E",
    ":wave:": "\U0001F44B", ":clap:": "\U0001F44F", ":pray:": "\U0001F64F",
}

CHAT_RE = re.compile(r"^\[(\d+)\](\S+?):(.*)$", re.DOTALL)
URL_RE = re.compile(
    r"\b(https?://[^\s]+|www\.[^\s]+|[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}(?:/[\w\-./?%&=]*)?)"
)
_BOUNDARY = set(" \t\n.,!?;:()[]{}<>\"'")


def _is_boundary(ch: Optional[str]) -> bool:
    return ch is None or ch in _BOUNDARY


class MessageRenderer:
    """
    Turns raw chat lines into display text.

    Example:
        renderer = MessageRenderer(own_name="alice")
        renderer.render(ThreadEntry("[0]alice:hi :)")).content
        # '#0 *alice: hi \U0001F642'
    """

    def __init__(self, own_name: str = "", emojis: Optional[Dict[str, str]] = None):
        self.own_name = own_name
        self._emojis = dict(EMOTICONS)
        self._emojis.update(config.CUSTOM_EMOJIS)
        if emojis:
            self._emojis.update(emojis)
        # longest codes first
        codes = sorted(self._emojis, key=len, reverse=True)
        self._emoji_re = re.compile("|".join(re.escape(code) for code in codes))

    def render(self, entry: ThreadEntry) -> ThreadEntry:
        """
        Render an entry for display.

        Entries that are already rendered come back unchanged (the same
        object), so replaying history never formats a line twice.

        Returns:
            A new rendered entry, or ``entry`` itself if already rendered
        """
        if entry.rendered:
            return entry

        content, author = self.render_text(entry.content)
        return replace(
            entry,
            content=content,
            rendered=True,
            links=self.find_links(content),
            author=entry.author or author,
        )

    def render_text(self, text: str) -> Tuple[str, Optional[str]]:
        """
        Format one raw line.

        Returns:
            (display text, author name or None)
        """
        prefix, author, body = "", None, text
        match = CHAT_RE.match(text)
        if match:
            slot, author, body = match.groups()
            marker = "*" if author == self.own_name else ""
            prefix = f"#{slot} {marker}{author}: "
        return prefix + self.replace_emoticons(body.strip()), author

    def replace_emoticons(self, text: str) -> str:
        def substitute(match: "re.Match") -> str:
            start, end = match.span()
            before = text[start - 1] if start > 0 else None
            after = text[end] if end < len(text) else None
            if _is_boundary(before) and _is_boundary(after):
                return self._emojis[match.group(0)]
            return match.group(0)

        return self._emoji_re.sub(substitute, text)

    @staticmethod
    def find_links(text: str) -> List[str]:
        """URLs in ``text``, with ``http://`` added where the scheme is missing."""
        links = []
        for url in URL_RE.findall(text):
            links.append(url if re.match(r"^https?://", url) else "http://" + url)
        return links
