"""Tests for labterm.engine: composition, scoring and secondary entry points."""

import json

import pytest

from labterm.results import ErrorKind


class TestDeterminism:
    """Read-only commands are stable."""

    @pytest.mark.parametrize("line", ["pwd", "whoami", "ls", "hostname", "ls -la /etc"])
    def test_repeat_identical(self, engine, line):
        """Running a read-only command twice yields the same output."""
        assert engine.execute(line).output == engine.execute(line).output


class TestPipes:
    """Tests for piped lines."""

    @pytest.mark.parametrize("text", ["X", "hello world", "192.168.1.100"])
    def test_echo_head(self, engine, text):
        """echo X | head -n 1 returns exactly X."""
        assert engine.execute(f"echo {text} | head -n 1").output == text

    def test_cat_grep_points(self, engine):
        """A piped grep adds its points."""
        result = engine.execute("cat targets.txt | grep Server")
        assert result.success is True
        assert "Web Server" in result.output
        assert result.points_awarded == 2

    def test_three_stages(self, engine):
        """Stages run left to right."""
        assert engine.execute("cat wordlist.txt | grep admin | wc -l").output == "2"

    def test_failing_stage_halts(self, engine):
        """A failing middle stage stops the pipeline and its output is returned."""
        result = engine.execute("cat targets.txt | tr x y | wc -l")
        assert result.success is False
        assert result.output.startswith("tr: unsupported translation")

    def test_failing_first_stage(self, engine):
        """A failing first stage is returned unchanged."""
        result = engine.execute("cat missing.txt | grep x")
        assert result.success is False
        assert "No such file or directory" in result.output

    def test_points_summed_across_stages(self, engine):
        """Every stage contributes its points."""
        result = engine.execute("ifconfig | grep inet | awk '{print $2}'")
        assert result.points_awarded == 2 + 2 + 1


class TestChains:
    """Tests for && and || chains."""

    def test_and_runs_second_on_success(self, engine):
        """A && B runs B when A succeeds."""
        result = engine.execute("cd /tmp && pwd")
        assert result.success is True
        assert result.output == "/tmp"

    def test_and_skips_second_on_failure(self, engine):
        """A && B skips B when A fails."""
        result = engine.execute("cd /missing && touch ran.txt")
        assert result.success is False
        assert "ran.txt" not in engine.execute("ls").output

    def test_or_runs_second_on_failure(self, engine):
        """A || B runs B when A fails."""
        result = engine.execute("cat nope || echo fallback")
        assert result.success is True
        assert result.output.endswith("fallback")

    def test_or_skips_second_on_success(self, engine):
        """A || B skips B when A succeeds."""
        result = engine.execute("whoami || echo fallback")
        assert result.output == "student"

    def test_success_is_last_executed(self, engine):
        """The chain's success equals the last executed segment's."""
        assert engine.execute("whoami && cat nope").success is False
        assert engine.execute("cat nope || cat nope2").success is False

    def test_first_segment_only(self, engine):
        """When the first segment stops the chain its result stands alone."""
        result = engine.execute("whois example-company.com || whoami")
        assert result.success is True
        assert result.points_awarded == 10
        assert "student" not in result.output.splitlines()

    def test_validity_and_points_fold(self, engine):
        """Points sum and validity is the AND of all executed segments."""
        result = engine.execute("ifconfig && notacommand")
        assert result.points_awarded == 2
        assert result.is_valid is False


class TestRedirect:
    """Tests for output redirection."""

    def test_write_reports_success(self, engine):
        """> reports the target as written."""
        result = engine.execute("echo secret > out.txt")
        assert result.success is True
        assert result.output == "Output written to out.txt"

    def test_append_message(self, engine):
        """>> reports the target as appended."""
        assert engine.execute("echo x >> log.txt").output == "Output appended to log.txt"

    def test_redirect_not_persisted(self, engine):
        """Redirected text is not stored."""
        engine.execute("echo secret > out.txt")
        assert engine.execute("cat out.txt").success is False

    def test_failing_command_still_succeeds(self, engine):
        """A failing command's text is shown above the message."""
        result = engine.execute("cat nope > out.txt")
        assert result.success is True
        assert result.output.startswith("cat: nope: No such file or directory")
        assert result.output.endswith("Output written to out.txt")

    def test_redirect_keeps_points(self, engine):
        """The wrapped command's points are kept."""
        assert engine.execute("nmap -sS 192.168.1.100 > scan.txt").points_awarded == 10


class TestNestedComposition:
    """Tests for rejected nesting."""

    def test_pipe_in_chain(self, engine):
        """A pipe inside a chain is a NestedCompositionError."""
        result = engine.execute("ls | grep txt && pwd")
        assert result.success is False
        assert result.error_kind is ErrorKind.NESTED_COMPOSITION
        assert "nested composition" in result.output

    def test_state_untouched(self, engine):
        """Nothing in a rejected line runs."""
        engine.execute("cd /tmp && ls | wc -l")
        assert engine.execute("pwd").output == "/home/student"


class TestDispatch:
    """Tests for resolution and scoring through the engine."""

    def test_empty_line(self, engine):
        """An empty line succeeds silently."""
        result = engine.execute("   ")
        assert result.success is True
        assert result.output == ""

    def test_unknown_command(self, engine):
        """Unknown commands are CommandNotFound with zero points."""
        result = engine.execute("frobnicate --now")
        assert result.success is False
        assert result.is_valid is False
        assert result.points_awarded == 0
        assert result.error_kind is ErrorKind.COMMAND_NOT_FOUND
        assert "frobnicate" in result.output

    def test_failure_is_idempotent(self, engine):
        """The same bad command fails the same way twice."""
        assert engine.execute("cat nope").output == engine.execute("cat nope").output

    def test_help(self, engine):
        """help lists the command families."""
        assert "Network Scanning" in engine.execute("help").output

    def test_sudo_bonus(self, engine):
        """sudo adds 2 points and the password banner."""
        plain = engine.execute("cat /etc/passwd")
        wrapped = engine.execute("sudo cat /etc/shadow")
        assert wrapped.points_awarded == plain.points_awarded + 2
        assert wrapped.output.startswith("[sudo] password for student: ")

    def test_sudo_bonus_on_scored_command(self, engine):
        """sudo adds its bonus on top of the wrapped command's points."""
        assert engine.execute("sudo nmap -sS 192.168.1.100").points_awarded == 12

    def test_sudo_failure_awards_nothing(self, engine):
        """A failing wrapped command gets no bonus."""
        assert engine.execute("sudo cat nope").points_awarded == 0

    def test_sudo_without_command(self, engine):
        """sudo alone is a usage error."""
        assert engine.execute("sudo").error_kind is ErrorKind.USAGE

    def test_sudo_privilege_is_temporary(self, engine):
        """Privilege only lasts for the wrapped command."""
        engine.execute("sudo whoami")
        assert engine.execute("whoami").output == "student"

    def test_execution_time_measured(self, engine):
        """executionTime is filled in."""
        assert engine.execute("ls").execution_time >= 0.0

    def test_handler_crash_is_contained(self, engine, monkeypatch):
        """A crashing handler turns into an internal error result."""
        from labterm import linux

        def boom(cmd, state):
            raise RuntimeError("boom")

        monkeypatch.setitem(linux.HANDLERS, "whoami", boom)
        result = engine.execute("whoami")
        assert result.success is False
        assert result.error_kind is ErrorKind.INTERNAL


class TestSessions:
    """Tests for per-session isolation through the engine."""

    def test_sessions_do_not_share_cwd(self, engine):
        """cd in one session does not move another."""
        engine.execute("cd /tmp", session_id="a")
        assert engine.execute("pwd", session_id="b").output == "/home/student"

    def test_sessions_do_not_share_msf(self, engine):
        """A module selected in one session is absent in another."""
        engine.execute("use exploit/windows/smb/ms17_010_eternalblue", session_id="a")
        assert engine.execute("options", session_id="b").error_kind is ErrorKind.STATE

    def test_end_session(self, engine):
        """end_session drops the state."""
        engine.execute("cd /tmp", session_id="a")
        engine.end_session("a")
        assert engine.execute("pwd", session_id="a").output == "/home/student"


class TestSecondaryEntryPoints:
    """Tests for completion, history, CTF delegation and prompts."""

    def test_get_completions(self, engine):
        """Completions come from the session filesystem."""
        assert engine.get_completions("not") == ["notes.txt"]

    def test_complete_pseudo_command(self, engine):
        """__complete__ returns JSON with zero points."""
        result = engine.execute("__complete__:Do")
        assert json.loads(result.output) == ["Documents/"]
        assert result.points_awarded == 0

    def test_complete_not_in_history(self, engine):
        """Completion requests are not recorded."""
        engine.execute("__complete__:no")
        assert engine.session().history == []

    def test_history_text(self, engine):
        """history() numbers the recorded lines."""
        engine.add_to_history("whoami")
        engine.add_to_history("history")
        assert engine.history() == "    1  whoami"

    def test_execute_ctf(self, engine):
        """CTF text commands are delegated."""
        assert "CTF Challenge System" in engine.execute_ctf("ctf", "alice")

    def test_submit_flag(self, engine):
        """submit_flag returns the verdict."""
        verdict = engine.submit_flag("alice", "web-001", "flag{h1dd3n_1n_pl41n_s1ght}")
        assert verdict.correct is True
        assert verdict.points_awarded == 50

    def test_prompt_states(self, engine):
        """The prompt follows the shell, console and Meterpreter states."""
        assert engine.prompt() == "student@kali:~$ "
        engine.execute("msfconsole")
        assert engine.prompt() == "msf6 > "
        engine.execute("use exploit/unix/ftp/vsftpd_234_backdoor")
        assert engine.prompt() == "msf6 exploit(\x1b[31mvsftpd_234_backdoor\x1b[0m) > "
        engine.execute("set RHOSTS 192.168.1.100")
        engine.execute("exploit")
        assert engine.prompt() == "meterpreter > "
