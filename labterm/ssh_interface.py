"""Paramiko-based SSH server interface for LabTerm.

This module defines the SSHServer class that authenticates students and
provides an interactive shell channel over which the simulated terminal
runs. The accepted username becomes the CTF user id for the connection.
"""

from __future__ import annotations

import hmac
import logging
import socket
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import paramiko

from .config import get_ssh_config

LOGGER = logging.getLogger(__name__)


def get_or_create_host_key(path: Optional[Path] = None) -> paramiko.PKey:
    """Load the SSH host key from disk, generating it if missing.

    A persistent key keeps clients from warning about a changed host
    identity between runs.
    """
    key_path = path or get_ssh_config().host_key_path
    if key_path.exists():
        try:
            return paramiko.RSAKey(filename=str(key_path))
        except (paramiko.SSHException, OSError) as exc:
            LOGGER.error("Failed to load host key, regenerating: %s", exc)

    key = paramiko.RSAKey.generate(2048)
    key_path.parent.mkdir(parents=True, exist_ok=True)
    key.write_private_key_file(str(key_path))
    LOGGER.info("Generated new 2048-bit RSA host key at %s", key_path)
    return key


class SSHServer(paramiko.ServerInterface):
    """Paramiko ServerInterface for training terminals.

    With no configured password every password is accepted; otherwise the
    password must match. Public keys are not accepted.
    """

    def __init__(self, password: str = "") -> None:
        super().__init__()
        self.password = password
        self.username: Optional[str] = None
        self.pty_info: Dict[str, Any] = {}
        self.exec_command: Optional[str] = None
        # Set once the client asks for a shell or an exec channel
        self.event = threading.Event()

    def check_channel_request(self, kind: str, chanid: int) -> int:
        if kind == "session":
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def check_auth_password(self, username: str, password: str) -> int:
        if self.password and not hmac.compare_digest(password, self.password):
            LOGGER.info("Auth attempt: user=%s (rejected)", username)
            return paramiko.AUTH_FAILED
        self.username = username
        LOGGER.info("Auth attempt: user=%s (accepted)", username)
        return paramiko.AUTH_SUCCESSFUL

    def check_auth_publickey(self, username: str, key: paramiko.PKey) -> int:
        LOGGER.debug("Public key auth refused for user=%s", username)
        return paramiko.AUTH_FAILED

    def get_allowed_auths(self, username: str) -> str:
        return "password"

    def check_channel_pty_request(
        self,
        channel: paramiko.Channel,
        term: bytes,
        width: int,
        height: int,
        pixelwidth: int,
        pixelheight: int,
        modes: bytes,
    ) -> bool:
        term_str = term.decode("utf-8", errors="replace") if isinstance(term, bytes) else str(term)
        self.pty_info = {"term": term_str, "width": width, "height": height}
        LOGGER.debug("PTY request: term=%s size=%dx%d", term_str, width, height)
        return True

    def check_channel_shell_request(self, channel: paramiko.Channel) -> bool:
        self.event.set()
        return True

    def check_channel_exec_request(
        self, channel: paramiko.Channel, command: bytes
    ) -> bool:
        """Accept exec requests; the line runs once and the channel closes."""
        self.exec_command = command.decode("utf-8", errors="replace")
        LOGGER.debug("Exec request: %s", self.exec_command)
        self.event.set()
        return True


def create_listening_socket(host: str, port: int) -> socket.socket:
    """Create, bind, and listen on a TCP socket for SSH.

    Caller is responsible for closing the socket.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    # Interactive keystrokes should not be batched
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    sock.bind((host, port))
    sock.listen(100)
    return sock


__all__ = [
    "SSHServer",
    "get_or_create_host_key",
    "create_listening_socket",
]
