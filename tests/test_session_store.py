"""Tests for session state, the session arena and command results."""

import threading

from labterm.results import ErrorKind, failure, not_found, ok
from labterm.session import MetasploitContext, SessionState, SessionStore


class TestSessionState:
    """Tests for session state initialization."""

    def test_starts_in_home(self, state):
        """A new session starts in the home directory."""
        assert state.cwd == "/home/student"
        assert state.display_cwd() == "~"

    def test_environment_seeded(self, state):
        """The environment carries the usual variables."""
        assert state.env["USER"] == "student"
        assert state.env["HOME"] == "/home/student"
        assert "PATH" in state.env

    def test_default_aliases(self, state):
        """ll and la are predefined aliases."""
        assert state.aliases["ll"] == "ls -alF"

    def test_change_dir_tracks_oldpwd(self, state):
        """change_dir updates PWD and OLDPWD."""
        state.change_dir("/tmp")
        assert state.env["PWD"] == "/tmp"
        assert state.env["OLDPWD"] == "/home/student"

    def test_display_cwd_below_home(self, state):
        """Paths below home are shown with ~."""
        state.change_dir("/home/student/Desktop")
        assert state.display_cwd() == "~/Desktop"

    def test_jobs_get_increasing_ids(self, state):
        """Jobs are numbered from 1 with increasing pids."""
        first = state.add_job("sleep 10")
        second = state.add_job("sleep 20")
        assert (first.id, second.id) == (1, 2)
        assert second.pid == first.pid + 1

    def test_effective_user(self, state):
        """The privileged flag makes the effective user root."""
        assert state.effective_user == "student"
        state.privileged = True
        assert state.effective_user == "root"


class TestMetasploitContext:
    """Tests for the Metasploit context."""

    def test_open_session_increments(self):
        """Each opened session gets the next id and becomes active."""
        msf = MetasploitContext()
        first = msf.open_session("exploit/x", "10.0.0.1", "192.168.1.50", "4444")
        second = msf.open_session("exploit/x", "10.0.0.2", "192.168.1.50", "4444")
        assert (first.id, second.id) == (1, 2)
        assert msf.current_session() is second

    def test_no_current_session(self):
        """Without sessions there is no current session."""
        assert MetasploitContext().current_session() is None


class TestSessionStore:
    """Tests for the session arena."""

    def test_sessions_are_isolated(self):
        """Two session ids never share state."""
        store = SessionStore()
        a = store.get("a")
        b = store.get("b")
        a.change_dir("/tmp")
        a.fs.touch("/tmp/only-a")
        assert b.cwd == "/home/student"
        assert not b.fs.exists("/tmp/only-a")

    def test_get_returns_same_state(self):
        """Repeated lookups return the same object."""
        store = SessionStore()
        assert store.get("a") is store.get("a")

    def test_user_id_defaults_to_username(self):
        """Without a user id the username is used."""
        store = SessionStore()
        assert store.get("a").user_id == "student"
        assert store.get("b", "alice").user_id == "alice"

    def test_lru_eviction(self):
        """The least recently used session is evicted at capacity."""
        store = SessionStore(max_sessions=2)
        store.get("a")
        store.get("b")
        store.get("a")
        store.get("c")
        assert "a" in store and "c" in store
        assert "b" not in store
        assert len(store) == 2

    def test_drop(self):
        """drop removes a session and reports whether it existed."""
        store = SessionStore()
        store.get("a")
        assert store.drop("a") is True
        assert store.drop("a") is False

    def test_concurrent_creation(self):
        """Concurrent gets for one id create a single state."""
        store = SessionStore()
        seen = []

        def worker():
            seen.append(store.get("shared"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len({id(s) for s in seen}) == 1


class TestCommandResult:
    """Tests for result constructors."""

    def test_failure_awards_nothing(self):
        """Failures never carry points."""
        result = failure("boom", ErrorKind.STATE)
        assert result.success is False
        assert result.points_awarded == 0
        assert result.error_kind is ErrorKind.STATE

    def test_not_found_message(self):
        """not_found names the command and is invalid."""
        result = not_found("frobnicate")
        assert "frobnicate" in result.output
        assert result.is_valid is False
        assert result.error_kind is ErrorKind.COMMAND_NOT_FOUND

    def test_to_dict_uses_wire_names(self):
        """to_dict uses camelCase keys and milliseconds."""
        data = ok("hi", 3, ["k"]).timed(0.002).to_dict()
        assert data["pointsAwarded"] == 3
        assert data["isValid"] is True
        assert data["keywords"] == ["k"]
        assert data["executionTime"] == 2.0
        assert data["errorKind"] is None
