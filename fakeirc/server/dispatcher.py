# fakeirc/server/dispatcher.py

"""
Broadcast dispatcher: forwards operator input lines to every live client.
"""

import logging
import threading
from typing import IO

from fakeirc.irc.framing import strip_terminator
from fakeirc.server.registry import ClientRegistry

logger = logging.getLogger(__name__)


def _has_undecodable_bytes(line: str) -> bool:
    # surrogateescape maps each undecodable byte to U+DC80..U+DCFF
    return any("\udc80" <= ch <= "\udcff" for ch in line)


class BroadcastDispatcher:
    """
    Reads the operator stream line by line and broadcasts each line.

    This is the only intentionally blocking single-threaded loop. Delivery
    only enqueues onto each client's outbound queue, so a slow or dead
    client never stalls the loop.
    """

    def __init__(self, registry: ClientRegistry, operator_input: IO[str]):
        """
        Args:
            registry: Shared client registry
            operator_input: Line-oriented text stream (normally sys.stdin)
        """
        self.registry = registry
        self.operator_input = operator_input
        # Undecodable bytes must cost only their own line, not the whole read chunk
        reconfigure = getattr(operator_input, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(errors="surrogateescape")
        self.lines_broadcast = 0
        self._stopped = threading.Event()

    def stop(self) -> None:
        """Stop after the current line; a blocked readline is not interrupted."""
        self._stopped.set()

    def run(self) -> None:
        """Broadcast until end of operator input or stop()."""
        logger.info("Broadcast dispatcher reading operator input")
        while not self._stopped.is_set():
            try:
                raw = self.operator_input.readline()
            except ValueError:
                # stream closed underneath us
                break
            if raw == "":
                logger.info("End of operator input")
                break
            line = strip_terminator(raw)
            if _has_undecodable_bytes(line):
                logger.warning(f"Skipping undecodable operator input line: {line!r}")
                continue
            self.broadcast(line)
        self._stopped.set()

    def broadcast(self, line: str) -> int:
        """
        Deliver one line to every client registered right now.

        Args:
            line: Unframed line

        Returns:
            Number of clients the line was queued for
        """
        delivered = 0
        failed = []

        for handle in self.registry.snapshot():
            try:
                handle.deliver(line)
                delivered += 1
            except Exception as e:
                failed.append((handle, e))

        for handle, error in failed:
            logger.warning(f"Dropping client {handle.client_id}: {error}")
            self.registry.unregister(handle.client_id)
            handle.close(f"delivery failed: {error}")

        self.lines_broadcast += 1
        logger.debug(f"=== Sending to {delivered} client(s): {line}")
        return delivered
