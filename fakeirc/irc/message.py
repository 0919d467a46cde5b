# fakeirc/irc/message.py

"""
A rather small parser for inbound IRC messages.

Format: [@tags] [:prefix] COMMAND [params...] [:trailing]
Input is expected without its CRLF; see fakeirc.irc.framing.
"""

from dataclasses import dataclass, field
from typing import List, Optional


class IrcParseError(ValueError):
    """Raised when a line carries no command."""


def _split_word(rest: str):
    """Split off the first whitespace-delimited word."""
    rest = rest.lstrip()
    if not rest:
        return "", ""
    parts = rest.split(None, 1)
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


@dataclass
class IrcMessage:
    """Parsed IRC message."""
    command: str
    params: List[str] = field(default_factory=list)
    prefix: Optional[str] = None
    tags: Optional[str] = None

    @classmethod
    def parse(cls, line: str) -> "IrcMessage":
        """
        Parse a single line.

        Raises:
            IrcParseError: If the line has no command
        """
        rest = line
        tags = None
        prefix = None

        word, remainder = _split_word(rest)
        if word.startswith("@"):
            tags = word[1:]
            rest = remainder
            word, remainder = _split_word(rest)
        if word.startswith(":"):
            prefix = word[1:]
            rest = remainder
            word, remainder = _split_word(rest)

        if not word:
            raise IrcParseError(f"No command in line: {line!r}")

        return cls(
            command=word,
            params=cls._parse_params(remainder),
            prefix=prefix,
            tags=tags,
        )

    @staticmethod
    def _parse_params(rest: str) -> List[str]:
        params = []
        rest = rest.lstrip()
        while rest:
            if rest.startswith(":"):
                # trailing param takes the rest of the line verbatim
                params.append(rest[1:])
                break
            word, rest = _split_word(rest)
            params.append(word)
            rest = rest.lstrip()
        return params

    def is_command(self, name: str) -> bool:
        """Case-insensitive command comparison."""
        return self.command.upper() == name.upper()

    def param(self, index: int, default: Optional[str] = None) -> Optional[str]:
        """Return the param at index, or default if absent."""
        if index < len(self.params):
            return self.params[index]
        return default
