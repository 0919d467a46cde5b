"""
Shared pytest fixtures for contract tests.
"""
import socket
import threading

import pytest

from fakeirc.config import FakeIrcConfig
from fakeirc.server.registry import ClientHandle, ClientRegistry
from fakeirc.service import FakeIrcService

from _irc_harness import OperatorInput, wait_until


@pytest.fixture
def registry():
    """Empty ClientRegistry."""
    return ClientRegistry()


@pytest.fixture
def socket_pair():
    """
    Connected (server_side, client_side) sockets.

    Both ends are closed on teardown; closing an already closed socket is harmless.
    """
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    server_side.close()
    client_side.close()


@pytest.fixture
def live_handle(socket_pair):
    """ClientHandle with a running writer over the server side of a socket pair.

    Returns:
        tuple: (handle, client_side_socket)
    """
    server_side, client_side = socket_pair
    handle = ClientHandle(1, server_side, address=("test", 0))
    handle.start_writer()
    yield handle, client_side
    handle.close("test teardown")


@pytest.fixture
def operator_input():
    """Scriptable operator stream; end of input is sent on teardown."""
    stream = OperatorInput()
    yield stream
    stream.close()


@pytest.fixture
def running_service(operator_input):
    """
    FakeIrcService on an ephemeral loopback port with its dispatcher running.

    Yields:
        tuple: (service, operator_input)
    """
    config = FakeIrcConfig(host="127.0.0.1", port=0, log_level="DEBUG")
    service = FakeIrcService(config, operator_input=operator_input)
    thread = threading.Thread(target=service.run, daemon=True, name="ServiceUnderTest")
    thread.start()
    assert wait_until(lambda: service.running), "Service did not start"
    try:
        yield service, operator_input
    finally:
        operator_input.close()
        thread.join(timeout=2.0)
        service.stop()


@pytest.fixture(autouse=False)  # Request explicitly to check shutdown completeness
def thread_leak_guard():
    """
    Detect threads left running by a test.

    Client writer and session threads must be gone once the service stops.
    """
    before = set(t.ident for t in threading.enumerate())
    yield
    for t in threading.enumerate():
        if t.ident not in before:
            t.join(timeout=2.0)
    leaked = [t for t in threading.enumerate() if t.ident not in before and t.is_alive()]
    if leaked:
        thread_info = '\n'.join(f"  - {t.name} (daemon={t.daemon})" for t in leaked)
        assert False, f"Thread leak detected, shutdown incomplete.\nLeaked threads:\n{thread_info}"
