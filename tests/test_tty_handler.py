"""Tests for labterm.tty_handler module."""

import pytest

from labterm.session import DEFAULT_SESSION
from labterm.tty_handler import ANSI_CLEAR_SCREEN, TTYHandler


@pytest.fixture
def tty(engine):
    """A line editor bound to the default session."""
    return TTYHandler(engine, DEFAULT_SESSION)


def feed(tty, text):
    """Feed every byte of text and return the results."""
    return [tty.process_byte(b) for b in text.encode("utf-8")]


class TestLineEditing:
    """Tests for echo and line assembly."""

    def test_printable_echo(self, tty):
        """Printable bytes are echoed and buffered."""
        assert feed(tty, "ls") == [(None, "l", False), (None, "s", False)]
        assert tty.buffer == "ls"

    def test_enter_returns_line(self, tty):
        """CR returns the buffered command."""
        feed(tty, "pwd")
        assert tty.process_byte(0x0D) == ("pwd", "\r\n", False)
        assert tty.buffer == ""

    def test_crlf_is_one_enter(self, tty):
        """LF right after CR is swallowed."""
        feed(tty, "id")
        tty.process_byte(0x0D)
        assert tty.process_byte(0x0A) == (None, "", False)

    def test_backspace(self, tty):
        """DEL erases the last character."""
        feed(tty, "lss")
        assert tty.process_byte(0x7F) == (None, "\b \b", False)
        assert tty.buffer == "ls"

    def test_backspace_on_empty(self, tty):
        """Backspace on an empty line does nothing."""
        assert tty.process_byte(0x7F) == (None, "", False)

    def test_utf8_multibyte(self, tty):
        """Multi-byte characters are echoed once complete."""
        results = feed(tty, "é")
        assert results[-1] == (None, "é", False)
        assert tty.buffer == "é"


class TestControlKeys:
    """Tests for control characters."""

    def test_ctrl_c_discards_line(self, tty):
        """Ctrl+C clears the buffer and asks for a prompt."""
        feed(tty, "nmap")
        assert tty.process_byte(0x03) == (None, "^C\r\n", True)
        assert tty.buffer == ""

    def test_ctrl_d_on_empty_line(self, tty):
        """Ctrl+D on an empty line ends the session."""
        with pytest.raises(EOFError):
            tty.process_byte(0x04)

    def test_ctrl_d_with_text(self, tty):
        """Ctrl+D with text in the buffer is ignored."""
        feed(tty, "x")
        assert tty.process_byte(0x04) == (None, "", False)

    def test_ctrl_l_clears_screen(self, tty):
        """Ctrl+L clears the screen and redraws the prompt."""
        assert tty.process_byte(0x0C) == (None, ANSI_CLEAR_SCREEN, True)


class TestTabCompletion:
    """Tests for argument completion."""

    def test_command_name_not_completed(self, tty):
        """Tab on the first word does nothing."""
        feed(tty, "wh")
        assert tty.process_byte(0x09) == (None, "", False)

    def test_single_match(self, tty):
        """A unique match is completed in place."""
        feed(tty, "cat not")
        assert tty.process_byte(0x09) == (None, "es.txt", False)
        assert tty.buffer == "cat notes.txt"

    def test_no_match_rings_bell(self, tty):
        """No match rings the terminal bell."""
        feed(tty, "cat zzz")
        assert tty.process_byte(0x09) == (None, "\x07", False)

    def test_multiple_matches_listed(self, tty):
        """Several matches with no longer prefix are listed."""
        feed(tty, "cd D")
        text, output, redraw = tty.process_byte(0x09)
        assert text is None
        assert "Desktop/" in output and "Documents/" in output
        assert redraw is True


class TestHistoryRecall:
    """Tests for arrow-key history."""

    def test_up_arrow_recalls_last(self, tty, engine):
        """ESC [ A recalls the previous line."""
        engine.execute("whoami")
        results = feed(tty, "\x1b[A")
        assert results[-1] == (None, "whoami", False)
        assert tty.buffer == "whoami"

    def test_up_then_down_clears(self, tty, engine):
        """Moving past the newest entry clears the line."""
        engine.execute("whoami")
        feed(tty, "\x1b[A")
        feed(tty, "\x1b[B")
        assert tty.buffer == ""

    def test_up_without_history(self, tty):
        """Up with no history does nothing."""
        assert feed(tty, "\x1b[A")[-1] == (None, "", False)

    def test_prompt_follows_engine(self, tty):
        """get_prompt asks the engine."""
        assert tty.get_prompt() == "student@kali:~$ "
