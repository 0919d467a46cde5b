"""
Fake IRC server for testing IRC client plugins.

Accepts real IRC clients, keeps them connected with minimal replies, and
broadcasts every line the operator types to all of them.
"""

from fakeirc.config import FakeIrcConfig
from fakeirc.service import FakeIrcService

__all__ = [
    "FakeIrcConfig",
    "FakeIrcService",
]
