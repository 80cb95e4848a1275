"""Tests for labterm.server connection handling."""

import socket

import pytest

from labterm import server as server_module
from labterm.config import SSHConfig


class FakeClient:
    """Stand-in for the accepted TCP socket."""

    def settimeout(self, timeout):
        pass


class FakeChannel:
    """A channel that is cut off once the client stops sending."""

    def __init__(self, incoming, on_empty):
        self.incoming = list(incoming)
        self.on_empty = on_empty
        self.sent = []
        self.broken = False
        self.closed = False

    def settimeout(self, timeout):
        pass

    def recv(self, size):
        if self.incoming:
            return self.incoming.pop(0)
        self.broken = True
        raise self.on_empty

    def send(self, data):
        if self.broken:
            raise OSError("Socket is closed")
        self.sent.append(data)
        return len(data)

    def close(self):
        self.closed = True


class FakeTransport:
    """Minimal transport that hands out one prepared channel."""

    channel = None

    def __init__(self, client):
        self.local_version = None
        self.closed = False

    def set_keepalive(self, interval):
        pass

    def add_server_key(self, key):
        pass

    def start_server(self, server):
        server.check_channel_shell_request(None)

    def accept(self, timeout):
        return self.channel

    def close(self):
        self.closed = True


@pytest.fixture
def connect(monkeypatch, engine):
    """Run handle_client against a fake channel fed with the given bytes."""

    def run(incoming, on_empty):
        chan = FakeChannel(incoming, on_empty)
        monkeypatch.setattr(FakeTransport, "channel", chan)
        monkeypatch.setattr(server_module.paramiko, "Transport", FakeTransport)
        server_module.handle_client(
            FakeClient(), ("127.0.0.1", 50000), None, engine, SSHConfig(password="")
        )
        return chan

    return run


class TestHandleClient:
    """Tests for one SSH connection."""

    @pytest.mark.parametrize("cutoff", [EOFError(), socket.timeout()])
    def test_goodbye_on_dead_channel(self, connect, cutoff):
        """A failed goodbye send does not escape the connection thread."""
        chan = connect([b"whoami\r"], cutoff)
        assert chan.closed is True
        assert b"student\r\n" in chan.sent

    def test_session_released(self, connect, engine):
        """The engine session is ended when the client leaves."""
        connect([b"pwd\r"], EOFError())
        assert len(engine.store) == 0

    def test_exit_logs_out(self, connect):
        """exit sends the logout line."""
        chan = connect([b"exit\r"], EOFError())
        assert chan.sent[-1] == b"logout\r\n"


class TestHelpers:
    """Tests for the output helpers."""

    def test_crlf(self):
        """Output lines are terminated with CRLF."""
        assert server_module._to_crlf("a\nb") == "a\r\nb\r\n"

    def test_send_quietly_ignores_closed_channel(self):
        """Sending on a closed channel is logged, not raised."""
        chan = FakeChannel([], EOFError())
        chan.broken = True
        server_module._send_quietly(chan, b"bye")
        assert chan.sent == []
