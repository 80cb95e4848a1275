"""Byte-level line editing for raw SSH terminals.

An SSH client in PTY mode sends keystrokes one at a time and expects the
server to echo them. ``TTYHandler`` turns that byte stream into complete
command lines and produces the echo/redraw text to send back. It supports
printable input, backspace, Ctrl+C, Ctrl+D, Ctrl+L, Tab completion through
the engine and Up/Down history recall.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from .engine import SimulationEngine

LOGGER = logging.getLogger(__name__)

ANSI_CLEAR_SCREEN = "\x1b[2J\x1b[H"

CTRL_C = 0x03
CTRL_D = 0x04
BACKSPACE = 0x08
TAB = 0x09
LF = 0x0A
CTRL_L = 0x0C
CR = 0x0D
ESC = 0x1B
DELETE = 0x7F

# (command ready or None, text to send, prompt must be redrawn)
ByteResult = Tuple[Optional[str], str, bool]


class TTYHandler:
    """Line editor bound to one engine session."""

    def __init__(self, engine: "SimulationEngine", session_id: str):
        self.engine = engine
        self.session_id = session_id
        self.buffer = ""
        self._escape: List[int] = []
        self._pending_utf8 = bytearray()
        self._history_index: Optional[int] = None
        self._last_was_cr = False

    def get_prompt(self) -> str:
        return self.engine.prompt(self.session_id)

    def process_byte(self, byte: int) -> ByteResult:
        """Feed one byte from the client.

        Raises EOFError on Ctrl+D with an empty line.
        """
        if self._escape:
            return self._process_escape(byte)

        if byte == LF and self._last_was_cr:
            self._last_was_cr = False
            return None, "", False
        self._last_was_cr = byte == CR

        if byte in (CR, LF):
            command = self.buffer
            self.buffer = ""
            self._history_index = None
            return command, "\r\n", False
        if byte in (DELETE, BACKSPACE):
            if not self.buffer:
                return None, "", False
            self.buffer = self.buffer[:-1]
            return None, "\b \b", False
        if byte == CTRL_C:
            self.buffer = ""
            self._history_index = None
            return None, "^C\r\n", True
        if byte == CTRL_D:
            if not self.buffer:
                raise EOFError
            return None, "", False
        if byte == CTRL_L:
            return None, ANSI_CLEAR_SCREEN, True
        if byte == TAB:
            return self._complete()
        if byte == ESC:
            self._escape = [byte]
            return None, "", False
        if byte >= 0x80:
            return self._process_utf8(byte)
        if byte < 0x20:
            return None, "", False
        char = chr(byte)
        self.buffer += char
        return None, char, False

    def _process_utf8(self, byte: int) -> ByteResult:
        self._pending_utf8.append(byte)
        try:
            text = self._pending_utf8.decode("utf-8")
        except UnicodeDecodeError:
            if len(self._pending_utf8) >= 4:
                self._pending_utf8.clear()
            return None, "", False
        self._pending_utf8.clear()
        self.buffer += text
        return None, text, False

    def _process_escape(self, byte: int) -> ByteResult:
        self._escape.append(byte)
        if len(self._escape) == 2:
            if byte != ord("["):
                self._escape = []
            return None, "", False
        self._escape = []
        if byte == ord("A"):
            return self._recall(-1)
        if byte == ord("B"):
            return self._recall(1)
        return None, "", False

    def _replace_line(self, text: str) -> str:
        erase = "\b \b" * len(self.buffer)
        self.buffer = text
        return erase + text

    def _recall(self, step: int) -> ByteResult:
        history = self.engine.session(self.session_id).history
        if not history:
            return None, "", False
        if self._history_index is None:
            if step > 0:
                return None, "", False
            index = len(history) - 1
        else:
            index = self._history_index + step
        if index < 0:
            index = 0
        if index >= len(history):
            self._history_index = None
            return None, self._replace_line(""), False
        self._history_index = index
        return None, self._replace_line(history[index]), False

    def _complete(self) -> ByteResult:
        if " " not in self.buffer:
            # Only arguments are completed, not command names
            return None, "", False
        partial = self.buffer.rpartition(" ")[2]
        matches = self.engine.get_completions(partial, self.session_id)
        if not matches:
            return None, "\x07", False
        prefix = os.path.commonprefix(matches)
        if len(prefix) > len(partial):
            addition = prefix[len(partial):]
            self.buffer += addition
            return None, addition, False
        if len(matches) == 1:
            return None, "", False
        listing = "  ".join(matches)
        LOGGER.debug("Tab completion for %r: %d matches", partial, len(matches))
        return None, f"\r\n{listing}\r\n", True
