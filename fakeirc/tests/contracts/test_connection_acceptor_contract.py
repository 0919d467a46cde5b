"""
Contract tests for ConnectionAcceptor.

Covers: fatal bind failure, registration of accepted connections with unique
ids, session spawn, unregister on disconnect, accept errors, accept loop
shutdown.
"""

import errno
import logging
import socket
import threading
import time

import pytest

from fakeirc.server.acceptor import ConnectionAcceptor, ServerBindError
from fakeirc.server.session import ClientSession

from _irc_harness import LineReader, connect, wait_until


def unused_session_factory(handle):
    """Session factory for acceptors that never see a connection."""
    raise AssertionError("no connection expected")


class FailingListener:
    """Listening socket whose first `failures` accept() calls raise EMFILE."""

    def __init__(self, sock, failures):
        self._sock = sock
        self.failures = failures
        self.accept_calls = 0

    def accept(self):
        self.accept_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise OSError(errno.EMFILE, "Too many open files")
        return self._sock.accept()

    def __getattr__(self, name):
        return getattr(self._sock, name)


@pytest.fixture
def failing_acceptor(registry):
    """
    Factory for started acceptors whose listener fails accept() a number of times.

    Yields:
        callable: failures -> (acceptor, listener)
    """
    started = []

    def session_factory(handle):
        return ClientSession(handle, registry).run

    def make(failures):
        acceptor = ConnectionAcceptor("127.0.0.1", 0, registry, session_factory)
        acceptor.bind()
        listener = FailingListener(acceptor._server_sock, failures)
        acceptor._server_sock = listener
        acceptor.start()
        started.append(acceptor)
        return acceptor, listener

    yield make
    for acceptor in started:
        acceptor.stop()
    registry.close_all(flush=False)


@pytest.fixture
def acceptor(registry):
    """Acceptor on an ephemeral loopback port running real sessions."""

    def session_factory(handle):
        return ClientSession(handle, registry).run

    acceptor = ConnectionAcceptor("127.0.0.1", 0, registry, session_factory)
    acceptor.start()
    yield acceptor
    acceptor.stop()
    registry.close_all(flush=False)


class TestBind:

    def test_port_in_use_is_fatal(self, registry):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as holder:
            holder.bind(("127.0.0.1", 0))
            holder.listen(1)
            port = holder.getsockname()[1]

            acceptor = ConnectionAcceptor("127.0.0.1", port, registry, unused_session_factory)
            with pytest.raises(ServerBindError) as excinfo:
                acceptor.start()
            assert isinstance(excinfo.value, OSError)
            assert str(port) in str(excinfo.value)

    def test_address_before_bind_raises(self, registry):
        acceptor = ConnectionAcceptor("127.0.0.1", 0, registry, unused_session_factory)
        with pytest.raises(RuntimeError):
            acceptor.address

    def test_ephemeral_port_reported(self, acceptor):
        host, port = acceptor.address
        assert host == "127.0.0.1"
        assert port > 0

    def test_double_start_rejected(self, acceptor):
        with pytest.raises(RuntimeError):
            acceptor.start()


class TestAccept:

    @pytest.mark.timeout(10)
    def test_connection_registered_with_unique_ids(self, acceptor, registry):
        clients = [connect(acceptor.address) for _ in range(3)]
        try:
            assert wait_until(lambda: registry.count() == 3)
            ids = [h.client_id for h in registry.snapshot()]
            assert len(set(ids)) == 3
        finally:
            for client in clients:
                client.close()

    @pytest.mark.timeout(10)
    def test_session_spawned_for_connection(self, acceptor):
        client = connect(acceptor.address)
        try:
            client.sendall(b"PING :alive\r\n")
            assert LineReader(client).read_line() == b":localhost PONG alive\r\n"
        finally:
            client.close()

    @pytest.mark.timeout(10)
    def test_disconnect_unregisters(self, acceptor, registry):
        client = connect(acceptor.address)
        assert wait_until(lambda: registry.count() == 1)
        client.close()
        assert wait_until(lambda: registry.count() == 0)

    @pytest.mark.timeout(15)
    def test_concurrent_connect_disconnect_count_matches_open(self, acceptor, registry):
        """Live count always settles on the number of open connections."""
        kept = []
        kept_lock = threading.Lock()

        def churn(worker):
            for i in range(10):
                client = connect(acceptor.address)
                if i % 2 == 0:
                    with kept_lock:
                        kept.append(client)
                else:
                    client.close()

        threads = [threading.Thread(target=churn, args=(w,)) for w in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        try:
            assert wait_until(lambda: registry.count() == len(kept), timeout=5.0), \
                f"registry has {registry.count()} clients, expected {len(kept)}"
            ids = [h.client_id for h in registry.snapshot()]
            assert len(ids) == len(set(ids))
        finally:
            for client in kept:
                client.close()
        assert wait_until(lambda: registry.count() == 0, timeout=5.0)

    @pytest.mark.timeout(10)
    def test_accept_error_logged_and_loop_continues(self, failing_acceptor, registry, caplog):
        caplog.set_level(logging.WARNING, logger="fakeirc.server.acceptor")
        acceptor, listener = failing_acceptor(failures=1)

        client = connect(acceptor.address)
        try:
            assert wait_until(lambda: registry.count() == 1)
            assert listener.failures == 0
            assert "Error accepting connection" in caplog.text
        finally:
            client.close()

    @pytest.mark.timeout(10)
    def test_persistent_accept_error_backs_off(self, failing_acceptor):
        acceptor, listener = failing_acceptor(failures=10_000)
        time.sleep(0.5)
        calls = listener.accept_calls
        acceptor.stop()
        assert 1 <= calls <= 15

    @pytest.mark.timeout(10)
    def test_stop_ends_accept_loop(self, registry):
        acceptor = ConnectionAcceptor("127.0.0.1", 0, registry, unused_session_factory)
        acceptor.start()
        address = acceptor.address
        thread = acceptor._accept_thread
        acceptor.stop()
        assert not thread.is_alive()
        with pytest.raises(OSError):
            connect(address, timeout=1.0)
