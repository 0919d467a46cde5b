# fakeirc/server/registry.py

"""
Client handles and the shared registry of live clients.

The registry is the single source of truth for who receives broadcasts.
It is created by the service and passed to the acceptor, every session
and the dispatcher.
"""

import itertools
import logging
import queue
import socket
import threading
import time
from typing import Dict, Optional, Tuple

from fakeirc.irc.framing import encode_line

logger = logging.getLogger(__name__)

# Default bound on lines waiting to be written to one client
DEFAULT_OUTBOUND_QUEUE_SIZE = 256

# How long a flushing close waits for pending lines to be written
FLUSH_TIMEOUT_SEC = 2.0

# Writer stop marker
_STOP = object()


class ClientClosedError(ConnectionError):
    """Raised when delivering to a client that is already closed."""


class ClientHandle:
    """
    One accepted connection.

    Owns the socket, a bounded outbound queue and the writer thread that
    drains it. Every line sent to the client goes through deliver(), so
    broadcasts and session replies are never interleaved mid-line.
    """

    def __init__(
        self,
        client_id: int,
        sock: socket.socket,
        address=None,
        queue_size: int = DEFAULT_OUTBOUND_QUEUE_SIZE,
    ):
        """
        Args:
            client_id: Unique identifier issued by the registry
            sock: Connected client socket
            address: Peer address, for logging
            queue_size: Maximum number of undelivered lines before the client is dropped
        """
        self.client_id = client_id
        self.sock = sock
        self.address = address
        self._outbound: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._lock = threading.Lock()
        self._closed = False
        self._aborted = threading.Event()
        self._writer_thread: Optional[threading.Thread] = None

    def __repr__(self) -> str:
        return f"<ClientHandle {self.client_id} {self.address}>"

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def start_writer(self) -> None:
        """Start the thread that writes queued lines to the socket."""
        if self._writer_thread is not None:
            raise RuntimeError(f"Writer already started for client {self.client_id}")
        self._writer_thread = threading.Thread(
            target=self._write_loop,
            daemon=True,
            name=f"ClientWriter-{self.client_id}",
        )
        self._writer_thread.start()

    def deliver(self, line: str) -> None:
        """
        Queue one line for this client without blocking.

        Raises:
            ClientClosedError: If the client is closed, or its queue is full
                (in which case the client is closed first)
        """
        if self.closed:
            raise ClientClosedError(f"Client {self.client_id} is closed")

        try:
            self._outbound.put_nowait(encode_line(line))
        except queue.Full:
            self.close("outbound queue full")
            raise ClientClosedError(f"Client {self.client_id} outbound queue full")

    def close(self, reason: str = "closed", flush: bool = False, deadline: Optional[float] = None) -> bool:
        """
        Transition the handle to closed and release the socket.

        Args:
            reason: Reason for closing (for logging)
            flush: Write already queued lines before closing the socket
            deadline: time.monotonic() value bounding the flush
                (default: FLUSH_TIMEOUT_SEC from now)

        Returns:
            True if this call closed the handle, False if it was already closed
        """
        with self._lock:
            if self._closed:
                return False
            self._closed = True

        writer = self._writer_thread
        if flush and writer is not None and writer is not threading.current_thread():
            if deadline is None:
                deadline = time.monotonic() + FLUSH_TIMEOUT_SEC
            try:
                self._outbound.put(_STOP, timeout=max(0.0, deadline - time.monotonic()))
            except queue.Full:
                pass
            writer.join(timeout=max(0.0, deadline - time.monotonic()))

        self._aborted.set()
        try:
            self._outbound.put_nowait(_STOP)
        except queue.Full:
            # writer checks the aborted flag after each item
            pass

        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self.sock.close()
        except OSError:
            pass

        logger.debug(f"Closed client {self.client_id}: {reason}")
        return True

    def _write_loop(self) -> None:
        while True:
            item = self._outbound.get()
            if item is _STOP or self._aborted.is_set():
                break
            try:
                self.sock.sendall(item)
            except OSError as e:
                if not self._aborted.is_set():
                    logger.warning(f"Write to client {self.client_id} failed: {e}")
                self.close(f"write failed: {e}")
                break


class ClientRegistry:
    """
    Thread-safe mapping of client id to live ClientHandle.

    register(), unregister() and snapshot() may be called concurrently from
    the acceptor, any session and the dispatcher.
    """

    def __init__(self):
        self._clients: Dict[int, ClientHandle] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def next_client_id(self) -> int:
        """Issue a fresh, never reused client id."""
        with self._lock:
            return next(self._ids)

    def register(self, handle: ClientHandle) -> None:
        """
        Add a live handle.

        Raises:
            ClientClosedError: If the handle is already closed
            ValueError: If the id is already registered
        """
        with self._lock:
            if handle.closed:
                raise ClientClosedError(f"Refusing to register closed client {handle.client_id}")
            if handle.client_id in self._clients:
                raise ValueError(f"Client id already registered: {handle.client_id}")
            self._clients[handle.client_id] = handle
            count = len(self._clients)
        logger.debug(f"Registered client {handle.client_id} ({count} connected)")

    def unregister(self, client_id: int) -> Optional[ClientHandle]:
        """
        Remove a handle by id. Absent ids are ignored.

        Returns:
            The removed handle, or None if it was not registered
        """
        with self._lock:
            handle = self._clients.pop(client_id, None)
            count = len(self._clients)
        if handle is not None:
            logger.debug(f"Unregistered client {client_id} ({count} connected)")
        return handle

    def snapshot(self) -> Tuple[ClientHandle, ...]:
        """Point-in-time view of registered handles."""
        with self._lock:
            return tuple(self._clients.values())

    def count(self) -> int:
        with self._lock:
            return len(self._clients)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, client_id) -> bool:
        with self._lock:
            return client_id in self._clients

    def close_all(self, flush: bool = True) -> None:
        """
        Unregister and close every client, used during shutdown.

        All writers drain concurrently; a flushing shutdown waits at most
        FLUSH_TIMEOUT_SEC in total, however many clients are stuck.

        Args:
            flush: Let each client's writer send already queued lines first
        """
        with self._lock:
            handles = list(self._clients.values())
            self._clients.clear()
        deadline = time.monotonic() + FLUSH_TIMEOUT_SEC
        for handle in handles:
            handle.close("shutdown", flush=flush, deadline=deadline)
        logger.info(f"All client connections closed ({len(handles)})")
