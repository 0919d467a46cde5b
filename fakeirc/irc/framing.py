# fakeirc/irc/framing.py

"""
Line framing for the IRC wire protocol.

Outbound lines are terminated with CRLF. Inbound bytes are buffered until a
terminator arrives; a bare LF is accepted as well since some clients and
test tools send it.
"""

import logging
from typing import List

logger = logging.getLogger(__name__)

LINE_TERMINATOR = b"\r\n"
ENCODING = "utf-8"

# Default upper bound for an unterminated inbound line
DEFAULT_MAX_LINE_BYTES = 8192


def strip_terminator(text: str) -> str:
    """Remove any trailing CR/LF characters from a line."""
    return text.rstrip("\r\n")


def encode_line(text: str) -> bytes:
    """
    Frame a single outbound line.

    Args:
        text: Line payload, with or without a trailing terminator

    Returns:
        UTF-8 bytes ending in exactly one CRLF
    """
    return strip_terminator(text).encode(ENCODING) + LINE_TERMINATOR


def decode_line(raw: bytes) -> str:
    """Decode one inbound line, dropping its terminator."""
    if raw.endswith(b"\n"):
        raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode(ENCODING, errors="replace")


class LineDecoder:
    """
    Incremental decoder for an inbound byte stream.

    Not thread-safe; each session owns its own decoder.
    """

    def __init__(self, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES):
        self.max_line_bytes = max_line_bytes
        self._buffer = b""

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a complete line."""
        return len(self._buffer)

    def feed(self, data: bytes) -> List[str]:
        """
        Add received bytes and return every line completed by them.

        Args:
            data: Raw bytes read from the socket

        Returns:
            Complete lines in arrival order, terminators removed
        """
        self._buffer += data
        lines = []
        while b"\n" in self._buffer:
            raw, self._buffer = self._buffer.split(b"\n", 1)
            lines.append(decode_line(raw))

        if len(self._buffer) > self.max_line_bytes:
            logger.warning(
                f"Discarding {len(self._buffer)} buffered bytes without line terminator "
                f"(limit {self.max_line_bytes})"
            )
            self._buffer = b""

        return lines
