"""
Connection and broadcast engine.

The ClientRegistry is shared by the ConnectionAcceptor, every
ClientSession and the BroadcastDispatcher.
"""

from fakeirc.server.acceptor import DEFAULT_PORT, ConnectionAcceptor, ServerBindError
from fakeirc.server.dispatcher import BroadcastDispatcher
from fakeirc.server.registry import ClientClosedError, ClientHandle, ClientRegistry
from fakeirc.server.session import ClientSession

__all__ = [
    "DEFAULT_PORT",
    "ConnectionAcceptor",
    "ServerBindError",
    "BroadcastDispatcher",
    "ClientClosedError",
    "ClientHandle",
    "ClientRegistry",
    "ClientSession",
]
