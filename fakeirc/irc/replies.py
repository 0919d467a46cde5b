# fakeirc/irc/replies.py

"""
Canned server replies: keep-alive PONG and the registration welcome burst.

Lines are returned unframed; the client handle applies CRLF framing.
"""

from typing import List

PROGRAM_VERSION = "fake-irc-server-v0.1.0"

# Fixed creation date reported in RPL_CREATED
CREATED_AT = "Sep 22 2018 at 19:19:32"

USER_MODES = "CDGPRSabcdfgijklnorsuwxyz"
CHANNEL_MODES = "bciklmnopstvzeIMRS"
CHANNEL_MODES_WITH_PARAM = "bkloveI"


def pong(server_name: str, token: str) -> str:
    """Reply to a PING carrying token."""
    return f":{server_name} PONG {token}"


def welcome_burst(server_name: str, nick: str, user: str, host: str, port: int) -> List[str]:
    """
    Build the 001-005 numerics sent once NICK and USER are known.

    Args:
        server_name: Name used as the message prefix
        nick: Client nickname
        user: Client username
        host: Address the server is bound to
        port: Port the server is listening on
    """
    return [
        f":{server_name} 001 {nick} :Welcome to the Local Network, {nick}!{user}@{server_name}",
        f":{server_name} 002 {nick} :Your host is {server_name}[{host}/{port}], "
        f"running version {PROGRAM_VERSION}",
        f":{server_name} 003 {nick} :This server was created {CREATED_AT}",
        f":{server_name} 004 {nick} {server_name} {PROGRAM_VERSION} "
        f"{USER_MODES} {CHANNEL_MODES} {CHANNEL_MODES_WITH_PARAM}",
        f":{server_name} 005 {nick} NICKLEN=30 :are supported by this server",
    ]
