"""Per-session state and the session arena.

A ``SessionState`` owns everything one terminal user can change: the
filesystem, cwd, environment, history, background jobs, the privilege flag
and the Metasploit context. The ``SessionStore`` hands out states keyed by
session id so that concurrent SSH users never share mutable state.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .filesystem import VirtualFilesystem

LOGGER = logging.getLogger(__name__)

DEFAULT_SESSION = "local"

DEFAULT_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"


@dataclass
class MeterpreterSession:
    """A Meterpreter session opened by a successful exploit."""

    id: int
    type: str
    info: str
    tunnel: str
    module: str
    target: str


@dataclass
class MetasploitContext:
    """msfconsole state: selected module, its options and open sessions."""

    console_active: bool = False
    current_module: Optional[str] = None
    options: Dict[str, str] = field(default_factory=dict)
    # setg values, kept across "back"
    global_options: Dict[str, str] = field(default_factory=dict)
    sessions: Dict[int, MeterpreterSession] = field(default_factory=dict)
    session_counter: int = 0
    active_session: Optional[int] = None
    # True while "sessions -i" routes ls/ps/pwd to Meterpreter
    interacting: bool = False
    workspaces: List[str] = field(default_factory=lambda: ["default", "lab1", "pentest"])
    workspace: str = "default"

    def open_session(self, module: str, target: str, lhost: str, lport: str) -> MeterpreterSession:
        self.session_counter += 1
        sess = MeterpreterSession(
            id=self.session_counter,
            type="meterpreter x86/windows",
            info="NT AUTHORITY\\SYSTEM @ TARGET",
            tunnel=f"{lhost}:{lport} -> {target}:49152",
            module=module,
            target=target,
        )
        self.sessions[sess.id] = sess
        self.active_session = sess.id
        return sess

    def current_session(self) -> Optional[MeterpreterSession]:
        if self.active_session is None:
            return None
        return self.sessions.get(self.active_session)


@dataclass
class Job:
    id: int
    pid: int
    command: str
    status: str = "Running"


@dataclass
class SessionState:
    """Mutable state of one terminal session."""

    session_id: str = DEFAULT_SESSION
    user_id: str = "student"
    username: str = "student"
    hostname: str = "kali"
    home: str = "/home/student"
    fs: VirtualFilesystem = None  # type: ignore[assignment]
    cwd: str = ""
    env: Dict[str, str] = field(default_factory=dict)
    aliases: Dict[str, str] = field(default_factory=dict)
    history: List[str] = field(default_factory=list)
    jobs: Dict[int, Job] = field(default_factory=dict)
    next_pid: int = 4242
    privileged: bool = False
    msf: MetasploitContext = field(default_factory=MetasploitContext)
    logout_requested: bool = False

    def __post_init__(self) -> None:
        if self.fs is None:
            self.fs = VirtualFilesystem(username=self.username, home=self.home)
        if not self.cwd:
            self.cwd = self.home
        if not self.env:
            self.env = {
                "USER": self.username,
                "HOME": self.home,
                "PWD": self.cwd,
                "SHELL": "/bin/bash",
                "PATH": DEFAULT_PATH,
                "TERM": "xterm-256color",
                "LANG": "en_US.UTF-8",
                "HOSTNAME": self.hostname,
                "LOGNAME": self.username,
                "OLDPWD": self.home,
            }
        if not self.aliases:
            self.aliases = {"ll": "ls -alF", "la": "ls -A"}

    @property
    def effective_user(self) -> str:
        return "root" if self.privileged else self.username

    def change_dir(self, path: str) -> None:
        self.env["OLDPWD"] = self.cwd
        self.cwd = path
        self.env["PWD"] = path

    def add_job(self, command: str) -> Job:
        job_id = max(self.jobs, default=0) + 1
        job = Job(id=job_id, pid=self.next_pid, command=command)
        self.next_pid += 1
        self.jobs[job_id] = job
        return job

    def display_cwd(self) -> str:
        if self.cwd == self.home:
            return "~"
        if self.cwd.startswith(self.home + "/"):
            return "~" + self.cwd[len(self.home):]
        return self.cwd


class SessionStore:
    """Thread-safe arena of session states keyed by session id.

    The least recently used session is evicted once ``max_sessions`` is
    reached.
    """

    def __init__(
        self,
        max_sessions: int = 500,
        username: str = "student",
        hostname: str = "kali",
        home: str = "/home/student",
    ):
        self.max_sessions = max_sessions
        self.username = username
        self.hostname = hostname
        self.home = home
        self._sessions: "OrderedDict[str, SessionState]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str, user_id: Optional[str] = None) -> SessionState:
        """Return the state for ``session_id``, creating it on first use."""
        with self._lock:
            state = self._sessions.get(session_id)
            if state is not None:
                self._sessions.move_to_end(session_id)
                return state
            state = SessionState(
                session_id=session_id,
                user_id=user_id or self.username,
                username=self.username,
                hostname=self.hostname,
                home=self.home,
            )
            self._sessions[session_id] = state
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                LOGGER.info("Evicted idle session %s", evicted)
            LOGGER.info("Created session %s (user=%s)", session_id, state.user_id)
            return state

    def drop(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
