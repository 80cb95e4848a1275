"""Tests for the msfconsole state machine and Meterpreter commands."""

import pytest

from labterm.metasploit import CATALOG, METERPRETER_POINTS
from labterm.results import ErrorKind
from labterm.session import DEFAULT_SESSION

VSFTPD = "exploit/unix/ftp/vsftpd_234_backdoor"


def _exploit(engine, module=VSFTPD, rhosts="192.168.1.100", session_id=DEFAULT_SESSION):
    engine.execute(f"use {module}", session_id=session_id)
    engine.execute(f"set RHOSTS {rhosts}", session_id=session_id)
    return engine.execute("exploit", session_id=session_id)


class TestConsole:
    """Tests for entering and leaving msfconsole."""

    def test_msfconsole_banner(self, engine):
        """msfconsole prints the banner and activates the console."""
        result = engine.execute("msfconsole")
        assert "metasploit v6" in result.output
        assert engine.session().msf.console_active is True

    def test_console_help(self, engine):
        """help inside the console lists core commands."""
        engine.execute("msfconsole")
        assert "Core Commands" in engine.execute("help").output

    def test_quit_leaves_console(self, engine):
        """quit leaves the console and clears the module."""
        engine.execute("msfconsole")
        engine.execute(f"use {VSFTPD}")
        assert engine.execute("quit").output == "Exiting msf console..."
        assert engine.prompt() == "student@kali:~$ "

    def test_exit_leaves_console_not_shell(self, engine):
        """exit inside the console does not log out."""
        engine.execute("msfconsole")
        engine.execute("exit")
        state = engine.session()
        assert state.msf.console_active is False
        assert state.logout_requested is False


class TestModuleSelection:
    """Tests for use, search, info and options."""

    def test_use(self, engine):
        """use selects a module and awards 2 points."""
        result = engine.execute(f"use {VSFTPD}")
        assert result.output == f"[*] Using configured module {VSFTPD}"
        assert result.points_awarded == 2
        assert engine.session().msf.current_module == VSFTPD

    def test_use_unknown(self, engine):
        """An unknown module is a lookup miss."""
        result = engine.execute("use exploit/none/nothing")
        assert result.output == "[-] Failed to load module: exploit/none/nothing"
        assert result.is_valid is False

    def test_use_by_index(self, engine):
        """A numeric argument selects from the catalog order."""
        engine.execute("use 0")
        assert engine.session().msf.current_module == "exploit/multi/handler"

    def test_search(self, engine):
        """search lists matching modules."""
        result = engine.execute("search eternalblue")
        assert "exploit/windows/smb/ms17_010_eternalblue" in result.output
        assert result.points_awarded == 2

    def test_search_miss(self, engine):
        """search with no match fails."""
        assert engine.execute("search zzzz").success is False

    def test_options_without_module(self, engine):
        """options needs a selected module."""
        assert engine.execute("options").error_kind is ErrorKind.STATE

    def test_options_show_defaults(self, engine):
        """options shows module defaults."""
        engine.execute(f"use {VSFTPD}")
        output = engine.execute("options").output
        assert "RPORT" in output
        assert "21" in output

    def test_info_named_module(self, engine):
        """info with a name works without a selection."""
        assert "CVE-2011-2523" in engine.execute(f"info {VSFTPD}").output

    def test_back_clears_module(self, engine):
        """back returns to the console root."""
        engine.execute("msfconsole")
        engine.execute(f"use {VSFTPD}")
        engine.execute("back")
        assert engine.prompt() == "msf6 > "

    def test_catalog_names_have_kind_prefix(self):
        """Every catalog entry starts with its module kind."""
        assert all(name.split("/")[0] in ("exploit", "auxiliary", "post", "payload") for name in CATALOG)


class TestOptions:
    """Tests for set, setg and unset."""

    def test_set_echoes(self, engine):
        """set prints KEY => value."""
        engine.execute(f"use {VSFTPD}")
        assert engine.execute("set rhosts 192.168.1.100").output == "RHOSTS => 192.168.1.100"

    def test_set_without_module(self, engine):
        """set needs a selected module."""
        assert engine.execute("set RHOSTS 1.2.3.4").error_kind is ErrorKind.STATE

    def test_setg_without_module(self, engine):
        """setg stores a global value that later modules see."""
        assert engine.execute("setg RHOSTS 192.168.1.100").success is True
        engine.execute(f"use {VSFTPD}")
        assert "192.168.1.100" in engine.execute("options").output

    def test_unset(self, engine):
        """unset removes a value."""
        engine.execute(f"use {VSFTPD}")
        engine.execute("set RHOSTS 192.168.1.100")
        engine.execute("unset RHOSTS")
        assert "RHOSTS" not in engine.session().msf.options


class TestRun:
    """Tests for run and exploit."""

    def test_missing_required_options(self, engine):
        """Missing required options are listed."""
        engine.execute(f"use {VSFTPD}")
        result = engine.execute("run")
        assert result.success is False
        assert "RHOSTS" in result.output

    def test_run_without_module(self, engine):
        """run needs a selected module."""
        assert engine.execute("run").error_kind is ErrorKind.STATE

    @pytest.mark.parametrize(
        "module",
        [
            VSFTPD,
            "exploit/windows/smb/ms17_010_eternalblue",
            "exploit/windows/smb/ms08_067_netapi",
        ],
    )
    def test_vulnerable_exploit_opens_session(self, engine, module):
        """Exploiting a vulnerable target opens a numbered session."""
        result = _exploit(engine, module)
        state = engine.session()
        assert result.success is True
        assert result.points_awarded == 25
        assert "Meterpreter session 1 opened" in result.output
        assert state.msf.session_counter == 1
        assert state.msf.interacting is True

    def test_non_vulnerable_exploit(self, engine):
        """A non-vulnerable exploit creates no session."""
        result = _exploit(engine, "exploit/multi/http/apache_mod_cgi_bash_env_exec")
        assert result.success is False
        assert "not-vulnerable" in result.output
        assert engine.session().msf.sessions == {}

    def test_session_ids_increase(self, engine):
        """Each exploitation takes the next session id."""
        _exploit(engine)
        engine.execute("background")
        result = engine.execute("exploit")
        assert "Meterpreter session 2 opened" in result.output

    def test_auxiliary_module(self, engine):
        """Auxiliary modules award 10 points without a session."""
        result = _exploit(engine, "auxiliary/scanner/smb/smb_ms17_010")
        assert "VULNERABLE to MS17-010" in result.output
        assert result.points_awarded == 10
        assert engine.session().msf.sessions == {}

    def test_handler_waits(self, engine):
        """multi/handler waits without points."""
        engine.execute("use exploit/multi/handler")
        engine.execute("set PAYLOAD windows/meterpreter/reverse_tcp")
        engine.execute("set LHOST 192.168.1.50")
        result = engine.execute("run")
        assert result.success is True
        assert result.points_awarded == 0

    def test_post_module_needs_session(self, engine):
        """Post modules fail on an unknown SESSION."""
        engine.execute("use post/windows/gather/hashdump")
        engine.execute("set SESSION 9")
        assert engine.execute("run").error_kind is ErrorKind.STATE

    def test_post_module_on_session(self, engine):
        """Post modules run against an open session."""
        _exploit(engine)
        engine.execute("background")
        engine.execute("use post/windows/gather/hashdump")
        engine.execute("set SESSION 1")
        result = engine.execute("run")
        assert "Administrator:500" in result.output
        assert result.points_awarded == 10


class TestSessions:
    """Tests for the sessions command."""

    def test_no_sessions(self, engine):
        """sessions with nothing open says so."""
        assert engine.execute("sessions -l").output == "[-] No active sessions."

    def test_list_and_interact(self, engine):
        """sessions -i resumes interaction."""
        _exploit(engine)
        engine.execute("background")
        assert "meterpreter" in engine.execute("sessions -l").output
        engine.execute("sessions -i 1")
        assert engine.prompt() == "meterpreter > "

    def test_kill(self, engine):
        """sessions -k closes the session."""
        _exploit(engine)
        engine.execute("background")
        assert "closed" in engine.execute("sessions -k 1").output
        assert engine.session().msf.sessions == {}

    def test_invalid_id(self, engine):
        """An unknown session id is a lookup miss."""
        assert engine.execute("sessions -i 7").success is False


class TestMeterpreter:
    """Tests for commands inside a Meterpreter session."""

    @pytest.mark.parametrize("command", ["hashdump", "getsystem", "sysinfo", "getuid", "shell"])
    def test_points(self, engine, command):
        """Each Meterpreter command awards its fixed points."""
        _exploit(engine)
        assert engine.execute(command).points_awarded == METERPRETER_POINTS[command]

    def test_hashdump_output(self, engine):
        """hashdump prints SAM entries."""
        _exploit(engine)
        assert "Administrator:500:" in engine.execute("hashdump").output

    def test_ls_is_remote_while_interacting(self, engine):
        """ls lists the remote system while interacting."""
        _exploit(engine)
        assert "cmd.exe" in engine.execute("ls").output

    def test_background_returns_to_console(self, engine):
        """background stops interaction but keeps the session."""
        _exploit(engine)
        engine.execute("background")
        state = engine.session()
        assert state.msf.interacting is False
        assert 1 in state.msf.sessions
        assert engine.execute("pwd").output == "/home/student"

    def test_exit_closes_session(self, engine):
        """exit in Meterpreter closes the session."""
        _exploit(engine)
        result = engine.execute("exit")
        assert "closed" in result.output
        state = engine.session()
        assert state.msf.sessions == {}
        assert state.logout_requested is False

    def test_migrate_needs_pid(self, engine):
        """migrate without a pid is a usage error."""
        _exploit(engine)
        assert engine.execute("migrate").error_kind is ErrorKind.USAGE

    def test_ungated_without_session(self, engine):
        """By default Meterpreter commands answer without a session."""
        assert engine.execute("sysinfo").success is True

    def test_gated_without_session(self, gated_engine):
        """With the gate on, commands need an opened session."""
        result = gated_engine.execute("sysinfo")
        assert result.error_kind is ErrorKind.STATE
        assert result.output == "[-] No active Meterpreter session. Exploit a target first."

    def test_gated_with_session(self, gated_engine):
        """With the gate on, an exploited session unlocks the commands."""
        _exploit(gated_engine)
        assert gated_engine.execute("getuid").points_awarded == 5
