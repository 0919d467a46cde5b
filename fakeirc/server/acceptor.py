# fakeirc/server/acceptor.py

"""
Listening socket and accept loop.
"""

import logging
import socket
import threading
import time
from typing import Callable, Optional

from fakeirc.server.registry import ClientHandle, ClientRegistry

logger = logging.getLogger(__name__)

DEFAULT_PORT = 1234

LISTEN_BACKLOG = 16

# Pause after a failed accept(), e.g. EMFILE
ACCEPT_ERROR_BACKOFF_SEC = 0.1


class ServerBindError(OSError):
    """Raised when the listening socket cannot be bound."""


class ConnectionAcceptor:
    """
    Accepts client connections and hands each one to a new session thread.

    Each accepted socket is wrapped in a ClientHandle with a fresh id,
    registered, and its writer and session threads are started.
    """

    def __init__(
        self,
        host: str,
        port: int,
        registry: ClientRegistry,
        session_factory: Callable[[ClientHandle], Callable[[], None]],
        queue_size: Optional[int] = None,
    ):
        """
        Args:
            host: Host to bind to
            port: Port to bind to (0 picks a free port)
            registry: Shared client registry
            session_factory: Called with each new handle; returns the session thread body
            queue_size: Outbound queue bound for new handles (None = handle default)
        """
        self.host = host
        self.port = port
        self.registry = registry
        self.session_factory = session_factory
        self.queue_size = queue_size
        self.running = False
        self._server_sock: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None

    @property
    def address(self) -> tuple:
        """Bound (host, port); only valid after bind()."""
        if self._server_sock is None:
            raise RuntimeError("Acceptor is not bound")
        return self._server_sock.getsockname()[:2]

    def bind(self) -> None:
        """
        Create, bind and listen on the server socket.

        Raises:
            ServerBindError: If the address cannot be bound (e.g. port in use)
        """
        if self._server_sock is not None:
            raise RuntimeError("Acceptor already bound")

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            sock.listen(LISTEN_BACKLOG)
        except OSError as e:
            sock.close()
            raise ServerBindError(e.errno, f"Can't listen on {self.host}:{self.port}: {e.strerror or e}")

        self._server_sock = sock
        host, port = self.address
        logger.info(f"=== Listening on {host}:{port}")

    def start(self) -> None:
        """Bind if needed and run the accept loop in a background thread."""
        if self._accept_thread is not None:
            raise RuntimeError("Acceptor already started")
        if self._server_sock is None:
            self.bind()
        self.running = True
        self._accept_thread = threading.Thread(
            target=self._accept_loop,
            daemon=True,
            name="ConnectionAcceptor",
        )
        self._accept_thread.start()

    def stop(self) -> None:
        """Close the listening socket and wait for the accept thread."""
        self.running = False
        if self._server_sock is not None:
            try:
                self._server_sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._server_sock.close()
        if self._accept_thread is not None:
            self._accept_thread.join(timeout=2.0)
            self._accept_thread = None

    def _accept_loop(self) -> None:
        while self.running:
            try:
                client_sock, addr = self._server_sock.accept()
            except OSError as e:
                if not self.running:
                    # Socket closed during shutdown
                    break
                logger.warning(f"Error accepting connection: {e}")
                time.sleep(ACCEPT_ERROR_BACKOFF_SEC)
                continue

            try:
                self._admit(client_sock, addr)
            except Exception as e:
                logger.warning(f"Failed to set up client {addr}: {e}")
                try:
                    client_sock.close()
                except OSError:
                    pass

    def _admit(self, client_sock: socket.socket, addr) -> ClientHandle:
        client_id = self.registry.next_client_id()
        if self.queue_size is None:
            handle = ClientHandle(client_id, client_sock, address=addr)
        else:
            handle = ClientHandle(client_id, client_sock, address=addr, queue_size=self.queue_size)

        self.registry.register(handle)
        logger.info(f"=== Client {client_id} connected from {addr[0]}:{addr[1]}")

        try:
            handle.start_writer()
            threading.Thread(
                target=self.session_factory(handle),
                daemon=True,
                name=f"ClientSession-{client_id}",
            ).start()
        except Exception:
            self.registry.unregister(client_id)
            handle.close("session start failed")
            raise
        return handle
