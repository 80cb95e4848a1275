"""Tests for labterm.command_handler module."""

import json

import pytest

from labterm.command_handler import KNOWN_COMMANDS, SUDO_BANNER, CommandDispatcher
from labterm.ctf import CtfBoard
from labterm.results import ErrorKind
from labterm.segmenter import tokenize


@pytest.fixture
def dispatcher():
    """A dispatcher with an ungated Meterpreter and a fresh board."""
    return CommandDispatcher(CtfBoard())


def run(dispatcher, state, line):
    return dispatcher.dispatch(tokenize(line), state)


class TestKnownCommands:
    """Tests for the set of recognised names."""

    @pytest.mark.parametrize(
        "name",
        ["ls", "whois", "nmap", "searchsploit", "sqlmap", "test-xss", "msfconsole", "hashdump", "ctf", "sudo"],
    )
    def test_families_registered(self, name):
        """Every family contributes its command names."""
        assert name in KNOWN_COMMANDS

    def test_unknown_name(self):
        """Made-up names are not known."""
        assert "frobnicate" not in KNOWN_COMMANDS


class TestResolution:
    """Tests for family order and fall-through."""

    def test_linux_first(self, dispatcher, state):
        """Plain shell commands resolve to the Linux family."""
        assert run(dispatcher, state, "pwd").output == "/home/student"

    def test_not_found(self, dispatcher, state):
        """A name no family takes is CommandNotFound."""
        result = run(dispatcher, state, "frobnicate")
        assert result.error_kind is ErrorKind.COMMAND_NOT_FOUND
        assert result.output.startswith("Command not found: frobnicate")

    def test_help_outside_console(self, dispatcher, state):
        """help outside msfconsole prints the lab help."""
        assert "OSINT Tools" in run(dispatcher, state, "help").output

    def test_help_inside_meterpreter(self, dispatcher, state):
        """help while interacting prints the Meterpreter help."""
        state.msf.interacting = True
        assert "Priv: Password database Commands" in run(dispatcher, state, "help").output

    def test_ls_shadowed_while_interacting(self, dispatcher, state):
        """ls goes to Meterpreter while interacting."""
        state.msf.interacting = True
        assert "C:\\Windows\\system32" in run(dispatcher, state, "ls").output

    def test_clear(self, dispatcher, state):
        """clear returns empty output."""
        assert run(dispatcher, state, "clear").output == ""

    def test_elapsed_time_recorded(self, dispatcher, state):
        """dispatch fills in the execution time."""
        assert run(dispatcher, state, "whoami").execution_time > 0.0


class TestAliases:
    """Tests for alias expansion."""

    def test_user_alias(self, dispatcher, state):
        """A user alias expands with its arguments."""
        state.aliases["scan"] = "nmap -sS"
        result = run(dispatcher, state, "scan 192.168.1.100")
        assert "Nmap scan report" in result.output

    def test_alias_cannot_shadow_builtin(self, dispatcher, state):
        """Known command names are never alias-expanded."""
        state.aliases["whoami"] = "hostname"
        assert run(dispatcher, state, "whoami").output == "student"


class TestSudo:
    """Tests for sudo."""

    def test_banner_and_privilege(self, dispatcher, state):
        """sudo runs the command as root with the password banner."""
        result = run(dispatcher, state, "sudo whoami")
        assert result.output == SUDO_BANNER.format(user="student") + "\nroot"
        assert result.points_awarded == 2
        assert state.privileged is False

    def test_list_rights(self, dispatcher, state):
        """sudo -l shows the sudoers entries."""
        assert "(ALL : ALL) ALL" in run(dispatcher, state, "sudo -l").output

    def test_version(self, dispatcher, state):
        """sudo -V prints a version."""
        assert run(dispatcher, state, "sudo -V").output.startswith("Sudo version")

    def test_unknown_wrapped_command(self, dispatcher, state):
        """sudo of an unknown command fails without a bonus."""
        result = run(dispatcher, state, "sudo frobnicate")
        assert result.error_kind is ErrorKind.COMMAND_NOT_FOUND
        assert result.points_awarded == 0


class TestForeground:
    """Tests for fg."""

    def test_fg_latest_job(self, dispatcher, state):
        """fg without an argument runs the newest job."""
        state.add_job("hostname")
        state.add_job("whoami")
        assert run(dispatcher, state, "fg").output == "whoami\nstudent"
        assert list(state.jobs) == [1]

    def test_fg_unknown_job(self, dispatcher, state):
        """fg of a missing job is a lookup miss."""
        state.add_job("whoami")
        assert run(dispatcher, state, "fg %4").success is False


class TestCompletion:
    """Tests for the completion pseudo-command."""

    def test_complete_returns_json(self, dispatcher, state):
        """__complete__ returns a JSON list of candidates."""
        result = run(dispatcher, state, "__complete__:/etc/pa")
        assert json.loads(result.output) == ["/etc/passwd"]

    def test_complete_no_match(self, dispatcher, state):
        """No candidates is an empty list."""
        assert json.loads(dispatcher.complete("zzz", state).output) == []


class TestCrashContainment:
    """Tests for handler failures."""

    def test_crash_becomes_internal_error(self, dispatcher, state):
        """Exceptions inside a handler become an internal error."""

        def boom(cmd, state):
            raise ValueError("bad")

        dispatcher.families.insert(0, ("boom", boom))
        result = run(dispatcher, state, "whoami")
        assert result.success is False
        assert result.is_valid is False
        assert result.error_kind is ErrorKind.INTERNAL
