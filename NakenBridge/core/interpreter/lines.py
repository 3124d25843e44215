"""
Line splitting for the upstream text stream.

Frames from the relay carry arbitrary slices of the server output; a line
is only handed on once its terminator has arrived.
"""

from typing import List

_NUL = "\0"


def clean_line(line: str) -> str:
    """Strip NUL bytes, carriage returns and surrounding whitespace."""
    return line.replace(_NUL, "").replace("\r", "").strip()


class LineBuffer:
    """Accumulates text and yields completed, cleaned lines."""

    def __init__(self):
        self._partial = ""

    @property
    def pending(self) -> str:
        """Text received after the last line terminator."""
        return self._partial

    def feed(self, text: str) -> List[str]:
        """
        Add received text.

        Returns:
            Completed lines in arrival order, cleaned; blank lines included
        """
        data = self._partial + text
        parts = data.split("\n")
        self._partial = parts.pop()
        return [clean_line(part) for part in parts]

    def flush(self) -> List[str]:
        """Return the partial line (if any) as a final line."""
        rest, self._partial = self._partial, ""
        rest = clean_line(rest)
        return [rest] if rest else []

    def reset(self) -> None:
        self._partial = ""
