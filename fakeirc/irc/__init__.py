"""
IRC wire helpers.

Line framing, a minimal message parser and the canned replies needed to
keep a real client connected.
"""

from fakeirc.irc.framing import LineDecoder, encode_line, strip_terminator
from fakeirc.irc.message import IrcMessage, IrcParseError

__all__ = [
    "LineDecoder",
    "encode_line",
    "strip_terminator",
    "IrcMessage",
    "IrcParseError",
]
