"""Command dispatch for LabTerm.

Resolves one tokenized command to a handler and returns its
``CommandResult``. Families are tried in a fixed order and each one either
returns a result or ``None`` to pass the command on:

    __complete__ -> help/clear -> Linux -> OSINT -> nmap -> vuln tools
    -> web tools -> msfconsole -> Meterpreter -> CTF -> command not found

``sudo`` and ``fg`` are resolved here because they re-dispatch another
command. Handler exceptions never reach the caller: they are logged and
turned into an internal-error result.
"""

from __future__ import annotations

import functools
import json
import logging
import time
from typing import Callable, List, Optional, Tuple

from . import linux, metasploit, portscan, recon, vulnscan, webexploit
from .ctf import COMMANDS as CTF_COMMANDS
from .ctf import CtfCollaborator
from .metrics import get_metrics_collector
from .results import (
    CommandResult,
    ErrorKind,
    failure,
    lookup_miss,
    not_found,
    ok,
    state_error,
    usage,
)
from .segmenter import Command, tokenize
from .session import SessionState

LOGGER = logging.getLogger(__name__)

COMPLETE_PREFIX = "__complete__:"
SUDO_BANNER = "[sudo] password for {user}: "
SUDO_BONUS = 2
SUDO_USAGE = "usage: sudo -h | -K | -k | -V\n       sudo [-v] command"
SUDO_RIGHTS = """Matching Defaults entries for {user} on {host}:
    env_reset, mail_badpass,
    secure_path=/usr/local/sbin\\:/usr/local/bin\\:/usr/sbin\\:/usr/bin\\:/sbin\\:/bin

User {user} may run the following commands on {host}:
    (ALL : ALL) ALL
    (root) NOPASSWD: /usr/bin/find"""

HELP_TEXT = """Available Commands:
==================

Linux Basics:
  ls, cd, pwd, cat, echo, touch, mkdir, rm, cp, mv, chmod, find, grep ...
  ifconfig, ip a, ping, netstat, ss, curl, wget, nc, ps, top, sudo
  Pipes (|), redirection (> >>) and chaining (&& ||) are supported

OSINT Tools:
  whois <domain>              - WHOIS lookup for domain information
  nslookup <domain>           - DNS lookup
  dig <domain> [type]         - DNS query (A, MX, NS, TXT)
  host <domain>               - Simple DNS lookup
  geoip <ip>                  - IP geolocation lookup
  traceroute <host>           - Trace route to host

Network Scanning:
  nmap -sn <network>          - Ping scan (host discovery)
  nmap -sS <target>           - TCP SYN scan
  nmap -sV <target>           - Service version detection
  nmap -O <target>            - OS detection
  nmap -A <target>            - Aggressive scan (OS, version, scripts)
  nmap -sU <target>           - UDP scan

Vulnerability Assessment:
  searchsploit <query>        - Search exploit database
  hashid <hash>               - Identify hash type
  john <hash>                 - Crack password hash
  hashcat <hash>              - GPU password cracker
  nikto -h <target>           - Web server vulnerability scanner
  vulnscan <target>           - Vulnerability scan report

Web Exploitation:
  sqlmap --url <url>          - SQL injection testing
  test-xss <payload> <url>    - XSS vulnerability testing
  test-csrf <url>             - CSRF protection check
  test-lfi <url> <file>       - Local file inclusion testing
  dirb <target>               - Directory brute force
  wfuzz <url>                 - Web fuzzer

Exploitation:
  msfconsole                  - Start the Metasploit console

CTF:
  ctf                         - CTF commands help

General:
  help                        - Show this help message
  clear                       - Clear the terminal

Examples:
  whois example-company.com
  nslookup example-company.com
  nmap -sS 192.168.1.100"""

Handler = Callable[[Command, SessionState], Optional[CommandResult]]


def _known_names() -> frozenset:
    return frozenset(
        set(linux.HANDLERS)
        | set(recon.USAGE)
        | {"nmap", "sudo", "fg", "help", "clear", "cls"}
        | {"searchsploit", "hashid", "john", "hashcat", "nikto", "vulnscan"}
        | set(webexploit.COMMANDS)
        | set(metasploit.CONSOLE_HANDLERS)
        | set(metasploit.METERPRETER_COMMANDS)
        | set(CTF_COMMANDS)
    )


KNOWN_COMMANDS = _known_names()


class CommandDispatcher:
    """Resolve single commands against every simulator family."""

    def __init__(self, ctf: CtfCollaborator, require_meterpreter_session: bool = False):
        self.ctf = ctf
        self.require_meterpreter_session = require_meterpreter_session
        self.families: List[Tuple[str, Handler]] = [
            ("meta", self._meta),
            ("linux", linux.handle),
            ("osint", recon.handle),
            ("nmap", portscan.handle),
            ("vuln", vulnscan.handle),
            ("web", webexploit.handle),
            ("msf", metasploit.handle_console),
            (
                "meterpreter",
                functools.partial(
                    metasploit.handle_meterpreter,
                    require_session=require_meterpreter_session,
                ),
            ),
            ("ctf", self._ctf),
        ]

    def dispatch(self, cmd: Command, state: SessionState) -> CommandResult:
        """Run one command and record it in the metrics."""
        started = time.perf_counter()
        sessions_before = state.msf.session_counter
        family, result = self._resolve(cmd, state)
        elapsed = time.perf_counter() - started
        collector = get_metrics_collector()
        collector.record_command(
            family,
            result.success,
            result.points_awarded,
            elapsed,
            result.error_kind.value if result.error_kind else None,
        )
        for _ in range(state.msf.session_counter - sessions_before):
            collector.record_msf_session_opened()
        return result.timed(elapsed)

    def _resolve(self, cmd: Command, state: SessionState) -> Tuple[str, CommandResult]:
        if cmd.name.startswith(COMPLETE_PREFIX):
            return "meta", self.complete(cmd.raw[len(COMPLETE_PREFIX):], state)
        if cmd.name == "sudo":
            return "sudo", self._guard(self._sudo, cmd, state)
        if cmd.name == "fg":
            return "linux", self._guard(self._fg, cmd, state)

        cmd = self._expand_alias(cmd, state)
        for family, handler in self.families:
            result = self._guard(handler, cmd, state)
            if result is not None:
                LOGGER.debug("Session %s: %r handled by %s", state.session_id, cmd.name, family)
                return family, result
        return "unknown", not_found(cmd.name)

    def _guard(self, handler: Handler, cmd: Command, state: SessionState) -> Optional[CommandResult]:
        try:
            return handler(cmd, state)
        except Exception:
            LOGGER.exception("Handler crashed on %r", cmd.raw)
            return failure(
                f"{cmd.name}: internal simulator error", ErrorKind.INTERNAL, is_valid=False
            )

    @staticmethod
    def _expand_alias(cmd: Command, state: SessionState) -> Command:
        expansion = state.aliases.get(cmd.name)
        if expansion is None or cmd.name in KNOWN_COMMANDS:
            return cmd
        return tokenize(f"{expansion} {cmd.argline}".strip())

    # ---------- meta ----------

    def complete(self, partial: str, state: SessionState) -> CommandResult:
        return ok(json.dumps(state.fs.completions(state.cwd, partial)))

    def _meta(self, cmd: Command, state: SessionState) -> Optional[CommandResult]:
        if cmd.name in ("clear", "cls"):
            return ok("")
        if cmd.name in ("help", "--help"):
            # msfconsole and Meterpreter have their own help
            if state.msf.console_active or state.msf.interacting:
                return None
            return ok(HELP_TEXT)
        return None

    # ---------- commands that re-dispatch ----------

    def _sudo(self, cmd: Command, state: SessionState) -> CommandResult:
        if not cmd.args:
            return usage(SUDO_USAGE)
        if cmd.args[0] == "-l":
            banner = SUDO_BANNER.format(user=state.username)
            rights = SUDO_RIGHTS.format(user=state.username, host=state.hostname)
            return ok(f"{banner}\n{rights}")
        if cmd.args[0] in ("-h", "-V", "-k", "-K", "-v"):
            return ok("Sudo version 1.9.13p3" if cmd.args[0] == "-V" else "")

        inner = tokenize(cmd.argline)
        was_privileged = state.privileged
        state.privileged = True
        try:
            _, wrapped = self._resolve(inner, state)
        finally:
            state.privileged = was_privileged
        output = SUDO_BANNER.format(user=state.username) + "\n" + wrapped.output
        wrapped = wrapped.with_output(output)
        if wrapped.success:
            wrapped = wrapped.with_points(wrapped.points_awarded + SUDO_BONUS)
        return wrapped

    def _fg(self, cmd: Command, state: SessionState) -> CommandResult:
        if not state.jobs:
            return state_error("bash: fg: current: no such job")
        ref = cmd.arg(0)
        if ref:
            job_id = linux.job_ref(ref, state)
            if job_id is None:
                return lookup_miss(f"bash: fg: {ref}: no such job")
        else:
            job_id = max(state.jobs)
        job = state.jobs.pop(job_id)
        _, result = self._resolve(tokenize(job.command), state)
        return result.with_output(f"{job.command}\n{result.output}" if result.output else job.command)

    # ---------- ctf ----------

    def _ctf(self, cmd: Command, state: SessionState) -> Optional[CommandResult]:
        if cmd.name not in CTF_COMMANDS:
            return None
        if cmd.name == "submit-flag":
            if len(cmd.args) < 2:
                return usage("Usage: submit-flag <challenge-id> <flag>")
            if self.ctf.challenge(cmd.args[0]) is None:
                return lookup_miss(f"Challenge not found: {cmd.args[0]}")
            verdict = self.ctf.submit_flag(state.user_id, cmd.args[0], " ".join(cmd.args[1:]))
            get_metrics_collector().record_ctf_submission(verdict.correct)
            if verdict.correct:
                return ok(verdict.message, keywords=["flag"])
            return failure(verdict.message, ErrorKind.LOOKUP_MISS)
        if cmd.name == "ctf-info":
            if not cmd.args:
                return usage("Usage: ctf-info <challenge-id>")
            if self.ctf.challenge(cmd.args[0]) is None:
                return lookup_miss(f"Challenge not found: {cmd.args[0]}")
        if cmd.name == "ctf-hint":
            if len(cmd.args) < 2 or not cmd.args[1].isdigit():
                return usage("Usage: ctf-hint <challenge-id> <hint-number>")
            challenge = self.ctf.challenge(cmd.args[0])
            if challenge is None:
                return lookup_miss(f"Challenge not found: {cmd.args[0]}")
            if challenge.hint(int(cmd.args[1])) is None:
                return lookup_miss(f"Hint not found: {cmd.args[1]}")
        return ok(self.ctf.execute_command(cmd.raw, state.user_id))
