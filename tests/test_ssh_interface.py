"""Tests for labterm.ssh_interface module."""

import paramiko

from labterm.ssh_interface import SSHServer, get_or_create_host_key


class TestAuthentication:
    """Tests for password authentication."""

    def test_open_lab_accepts_any_password(self):
        """Without a configured password every login succeeds."""
        server = SSHServer()
        assert server.check_auth_password("alice", "whatever") == paramiko.AUTH_SUCCESSFUL
        assert server.username == "alice"

    def test_configured_password(self):
        """With a password set only the right one is accepted."""
        server = SSHServer(password="kali")
        assert server.check_auth_password("alice", "nope") == paramiko.AUTH_FAILED
        assert server.username is None
        assert server.check_auth_password("alice", "kali") == paramiko.AUTH_SUCCESSFUL

    def test_public_keys_refused(self):
        """Public key authentication is never offered."""
        server = SSHServer()
        assert server.get_allowed_auths("alice") == "password"
        assert server.check_auth_publickey("alice", None) == paramiko.AUTH_FAILED


class TestChannels:
    """Tests for channel requests."""

    def test_session_channel_only(self):
        """Only session channels are opened."""
        server = SSHServer()
        assert server.check_channel_request("session", 0) == paramiko.OPEN_SUCCEEDED
        assert server.check_channel_request("direct-tcpip", 1) == paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def test_shell_request_sets_event(self):
        """A shell request wakes the connection handler."""
        server = SSHServer()
        assert server.check_channel_shell_request(None) is True
        assert server.event.is_set()
        assert server.exec_command is None

    def test_exec_request_stores_command(self):
        """An exec request records the line to run."""
        server = SSHServer()
        assert server.check_channel_exec_request(None, b"nmap -sS 192.168.1.100") is True
        assert server.exec_command == "nmap -sS 192.168.1.100"
        assert server.event.is_set()

    def test_pty_request_records_size(self):
        """PTY requests record terminal type and size."""
        server = SSHServer()
        assert server.check_channel_pty_request(None, b"xterm", 120, 40, 0, 0, b"") is True
        assert server.pty_info == {"term": "xterm", "width": 120, "height": 40}


class TestHostKey:
    """Tests for host key persistence."""

    def test_key_generated_then_reused(self, tmp_path):
        """A missing key is generated and loaded on the next call."""
        path = tmp_path / "keys" / "host.key"
        first = get_or_create_host_key(path)
        assert path.exists()
        second = get_or_create_host_key(path)
        assert first.get_fingerprint() == second.get_fingerprint()
