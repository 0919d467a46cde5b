# fakeirc/service.py

import logging
import sys
import threading
from typing import IO, Optional

from fakeirc.config import FakeIrcConfig
from fakeirc.server.acceptor import ConnectionAcceptor
from fakeirc.server.dispatcher import BroadcastDispatcher
from fakeirc.server.registry import ClientHandle, ClientRegistry
from fakeirc.server.session import ClientSession

logger = logging.getLogger(__name__)


class FakeIrcService:
    """
    Owns the client registry and wires it into the acceptor, the sessions
    and the broadcast dispatcher.
    """

    def __init__(self, config: Optional[FakeIrcConfig] = None, operator_input: Optional[IO[str]] = None):
        """
        Args:
            config: Server configuration (default: FakeIrcConfig())
            operator_input: Stream of lines to broadcast (default: sys.stdin)
        """
        self.config = config or FakeIrcConfig()
        self.registry = ClientRegistry()
        self.acceptor = ConnectionAcceptor(
            host=self.config.host,
            port=self.config.port,
            registry=self.registry,
            session_factory=self._make_session,
            queue_size=self.config.outbound_queue_size,
        )
        self.dispatcher = BroadcastDispatcher(
            self.registry,
            operator_input if operator_input is not None else sys.stdin,
        )
        self.running = False
        self._stop_lock = threading.Lock()

    @property
    def address(self) -> tuple:
        """Bound (host, port) of the listening socket."""
        return self.acceptor.address

    def _make_session(self, handle: ClientHandle):
        session = ClientSession(
            handle,
            self.registry,
            server_name=self.config.server_name,
            listen_address=self.acceptor.address,
            read_chunk_size=self.config.read_chunk_size,
            max_line_bytes=self.config.max_line_bytes,
            welcome_enabled=self.config.welcome_enabled,
        )
        return session.run

    def start(self) -> None:
        """
        Bind the listening socket and start accepting clients.

        Raises:
            ServerBindError: If the port cannot be bound
        """
        if self.running:
            raise RuntimeError("Service already started")
        logger.info("=== Fake IRC server starting ===")
        self.acceptor.start()
        self.running = True

    def run(self) -> None:
        """Start, broadcast operator input until EOF, then stop."""
        self.start()
        try:
            self.dispatcher.run()
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop accepting, flush and close every client. Safe to call twice."""
        with self._stop_lock:
            if not self.running:
                return
            self.running = False

        logger.info("=== Fake IRC server stopping ===")
        self.dispatcher.stop()
        self.acceptor.stop()
        self.registry.close_all(flush=True)
        logger.info("=== Fake IRC server stopped ===")
