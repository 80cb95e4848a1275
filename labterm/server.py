"""Multi-user SSH front end for LabTerm.

This module wires together:
- SSH transport (Paramiko)
- The byte-level line editor
- The simulation engine, with one engine session per connection
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import List, Optional

import paramiko
from colorama import Fore, Style, init as colorama_init

from .config import SSHConfig, get_ssh_config
from .engine import SimulationEngine
from .metrics import get_metrics_collector
from .ssh_interface import SSHServer, create_listening_socket, get_or_create_host_key
from .tty_handler import ANSI_CLEAR_SCREEN, TTYHandler

# Initialize color output for local console
colorama_init(autoreset=True)

LOGGER = logging.getLogger(__name__)

WELCOME = (
    "Linux kali 6.1.0-kali9-amd64 #1 SMP PREEMPT_DYNAMIC Debian 6.1.27-1kali1 x86_64\r\n"
    "\r\n"
    "Welcome to the LabTerm penetration-testing lab.\r\n"
    "Everything here is simulated. Type 'help' to see available commands.\r\n"
    "\r\n"
)


def _to_crlf(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\n", "\r\n")
    if text and not text.endswith("\r\n"):
        text += "\r\n"
    return text


def _send_quietly(chan: paramiko.Channel, data: bytes) -> None:
    """Best-effort send for goodbye messages on a channel that may be half closed."""
    try:
        chan.send(data)
    except (paramiko.SSHException, OSError) as exc:
        LOGGER.debug("Could not send to closing channel: %s", exc)


def _run_exec(chan: paramiko.Channel, engine: SimulationEngine, session_id: str, user_id: str, line: str) -> None:
    result = engine.execute(line, session_id, user_id)
    chan.send(_to_crlf(result.output).encode("utf-8"))
    chan.send_exit_status(0 if result.success else 1)


def _interactive(
    chan: paramiko.Channel,
    engine: SimulationEngine,
    session_id: str,
    user_id: str,
) -> int:
    """Run the shell loop until the client leaves; returns commands executed."""
    tty = TTYHandler(engine, session_id)
    state = engine.session(session_id, user_id)
    chan.send(WELCOME.encode("utf-8"))
    chan.send(tty.get_prompt().encode("utf-8"))
    executed = 0

    while True:
        data = chan.recv(1024)
        if not data:
            return executed

        for byte in data:
            command, output, needs_prompt = tty.process_byte(byte)

            if output:
                chan.send(output.encode("utf-8"))

            if needs_prompt:
                chan.send(tty.get_prompt().encode("utf-8"))
                if tty.buffer:
                    chan.send(tty.buffer.encode("utf-8"))

            if command is None:
                continue

            if not command.strip():
                chan.send(tty.get_prompt().encode("utf-8"))
                continue

            result = engine.execute(command, session_id, user_id)
            executed += 1

            if command.strip() in ("clear", "cls"):
                chan.send(ANSI_CLEAR_SCREEN.encode("utf-8"))
            elif result.output:
                chan.send(_to_crlf(result.output).encode("utf-8"))

            if state.logout_requested:
                raise EOFError

            chan.send(tty.get_prompt().encode("utf-8"))


def handle_client(
    client: socket.socket,
    addr,
    host_key: paramiko.PKey,
    engine: SimulationEngine,
    ssh_config: Optional[SSHConfig] = None,
) -> None:
    """Serve one SSH connection on the calling thread."""
    ssh_config = ssh_config or get_ssh_config()
    client_ip, client_port = addr[0], addr[1]
    collector = get_metrics_collector()
    LOGGER.info("New connection from %s:%s", client_ip, client_port)

    client.settimeout(60)
    transport = paramiko.Transport(client)
    transport.local_version = ssh_config.banner
    transport.set_keepalive(30)
    transport.add_server_key(host_key)
    server = SSHServer(password=ssh_config.password)

    try:
        transport.start_server(server=server)
    except (paramiko.SSHException, EOFError, OSError) as exc:
        LOGGER.error("SSH negotiation failed with %s:%s - %s", client_ip, client_port, exc)
        collector.record_ssh_connection("failed")
        transport.close()
        return

    chan = transport.accept(20)
    if chan is None:
        LOGGER.warning("No channel from %s:%s within 20 seconds", client_ip, client_port)
        collector.record_ssh_connection("failed")
        transport.close()
        return

    collector.record_ssh_connection("success")
    collector.record_ssh_session_start()
    session_id = f"ssh_{int(time.time() * 1000)}_{threading.get_ident()}"
    user_id = server.username or "student"
    start_time = time.time()
    executed = 0
    LOGGER.info("Session %s started for %s from %s", session_id, user_id, client_ip)

    try:
        server.event.wait(10)
        chan.settimeout(ssh_config.idle_timeout or None)
        if server.exec_command is not None:
            _run_exec(chan, engine, session_id, user_id, server.exec_command)
            executed = 1
        else:
            executed = _interactive(chan, engine, session_id, user_id)
    except EOFError:
        LOGGER.info("Session %s closed by %s", session_id, user_id)
        _send_quietly(chan, b"logout\r\n")
    except socket.timeout:
        LOGGER.info("Session %s idle for %ds, closing", session_id, ssh_config.idle_timeout)
        _send_quietly(chan, b"\r\nTimed out waiting for input: auto-logout\r\n")
    except (paramiko.SSHException, OSError) as exc:
        LOGGER.error("Error in session %s with %s: %s", session_id, client_ip, exc)
    finally:
        engine.end_session(session_id)
        collector.record_ssh_session_end()
        chan.close()
        transport.close()
        LOGGER.info(
            "Session %s ended (duration: %.1fs, commands: %d)",
            session_id,
            time.time() - start_time,
            executed,
        )


class LabTermServer:
    """Threaded SSH server: one thread and one engine session per client."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 2222,
        engine: Optional[SimulationEngine] = None,
        ssh_config: Optional[SSHConfig] = None,
    ):
        """Initialize the server.

        Args:
            host: Address to bind to (default: 0.0.0.0)
            port: Port to listen on (default: 2222)
            engine: Shared engine; a fresh one is built when omitted
            ssh_config: SSH settings (default: from the environment)
        """
        self.host = host
        self.port = port
        self.engine = engine or SimulationEngine()
        self.ssh_config = ssh_config or get_ssh_config()
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._host_key = get_or_create_host_key(self.ssh_config.host_key_path)
        self._threads: List[threading.Thread] = []

    def run(self) -> None:
        """Start the server and block until stopped."""
        try:
            self._socket = create_listening_socket(self.host, self.port)
        except OSError as exc:
            LOGGER.error("Failed to bind to %s:%d - %s", self.host, self.port, exc)
            raise

        self._running = True
        print(Fore.GREEN + f"[+] LabTerm listening on {self.host}:{self.port}" + Style.RESET_ALL)
        LOGGER.info("LabTerm listening on %s:%d", self.host, self.port)

        try:
            while self._running:
                try:
                    # Allow periodic check of _running
                    self._socket.settimeout(1.0)
                    client, addr = self._socket.accept()
                except socket.timeout:
                    self._threads = [t for t in self._threads if t.is_alive()]
                    continue
                thread = threading.Thread(
                    target=handle_client,
                    args=(client, addr, self._host_key, self.engine, self.ssh_config),
                    daemon=True,
                )
                thread.start()
                self._threads.append(thread)
        except KeyboardInterrupt:
            print("\n" + Fore.YELLOW + "[!] Shutting down LabTerm..." + Style.RESET_ALL)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop accepting connections."""
        self._running = False
        if self._socket:
            self._socket.close()
            self._socket = None
        LOGGER.info("LabTerm server stopped")
