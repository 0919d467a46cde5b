# fakeirc/server/session.py

"""
Per-connection session: read loop, keep-alive replies and cleanup.
"""

import logging
from typing import Optional

from fakeirc.irc import replies
from fakeirc.irc.framing import DEFAULT_MAX_LINE_BYTES, LineDecoder
from fakeirc.irc.message import IrcMessage, IrcParseError
from fakeirc.server.registry import ClientClosedError, ClientHandle, ClientRegistry

logger = logging.getLogger(__name__)

DEFAULT_READ_CHUNK_SIZE = 4096


class ClientSession:
    """
    Reads from one client until it disconnects.

    Answers PING with PONG and completes the NICK/USER registration with
    the welcome numerics. Anything else is logged and discarded. On exit
    the handle is unregistered and closed exactly once.
    """

    def __init__(
        self,
        handle: ClientHandle,
        registry: ClientRegistry,
        server_name: str = "localhost",
        listen_address: tuple = ("127.0.0.1", 0),
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        welcome_enabled: bool = True,
    ):
        self.handle = handle
        self.registry = registry
        self.server_name = server_name
        self.listen_address = listen_address
        self.read_chunk_size = read_chunk_size
        self.welcome_enabled = welcome_enabled
        self._decoder = LineDecoder(max_line_bytes=max_line_bytes)

        self.nick: Optional[str] = None
        self.user: Optional[str] = None
        self.realname: Optional[str] = None
        self.registration_finished = False

    def run(self) -> None:
        """Session thread body."""
        client_id = self.handle.client_id
        reason = "peer closed connection"
        try:
            while True:
                try:
                    data = self.handle.sock.recv(self.read_chunk_size)
                except (OSError, ConnectionError) as e:
                    reason = f"read failed: {e}"
                    if not self.handle.closed:
                        logger.warning(f"Read from client {client_id} failed: {e}")
                    break
                if not data:
                    break
                for line in self._decoder.feed(data):
                    self.handle_line(line)
        except ClientClosedError:
            reason = "closed while replying"
        finally:
            self.registry.unregister(client_id)
            self.handle.close(reason)
            logger.info(f"Client {client_id} disconnected ({reason})")

    def handle_line(self, line: str) -> None:
        """
        React to one inbound line.

        Raises:
            ClientClosedError: If a reply cannot be queued
        """
        try:
            message = IrcMessage.parse(line)
        except IrcParseError:
            return

        if message.is_command("PING"):
            # not traced: clients ping often
            self.handle.deliver(replies.pong(self.server_name, message.param(0, "")))
            return

        logger.debug(f"=== Message from {self.handle.client_id}: {line}")

        if message.is_command("NICK"):
            self.nick = message.param(0)
        elif message.is_command("USER"):
            self.user = message.param(0)
            self.realname = message.param(3)

        if not self.registration_finished:
            self._maybe_finish_registration()

    def _maybe_finish_registration(self) -> None:
        if self.nick is None or self.user is None or self.realname is None:
            return
        self.registration_finished = True
        if not self.welcome_enabled:
            return
        host, port = self.listen_address[:2]
        for line in replies.welcome_burst(self.server_name, self.nick, self.user, host, port):
            logger.debug(f"=== Sending to {self.handle.client_id}: {line}")
            self.handle.deliver(line)
        logger.info(f"Client {self.handle.client_id} registered as {self.nick}")
