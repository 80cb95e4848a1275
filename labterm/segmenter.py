"""Line segmentation for the simulated shell.

A raw input line is turned into a small syntax tree exactly once:

    Chain    -> "a && b", "a || b"   (split on the first operator type seen)
    Pipe     -> "a | b | c"
    Redirect -> "a > file", "a >> file"
    Plain    -> a single command

Precedence is Chain > Pipe > Redirect > Plain. Segments are never
re-segmented: a chain segment that itself contains a pipe or redirect, or a
pipe stage that contains a redirect, produces a ``Nested`` node which the
engine reports as a NestedCompositionError. Operators are only recognised
outside of single or double quotes.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

AND = " && "
OR = " || "
PIPE = " | "
APPEND = " >> "
WRITE = " > "


class ChainOp(str, Enum):
    AND = "&&"
    OR = "||"


class RedirectMode(str, Enum):
    WRITE = ">"
    APPEND = ">>"


@dataclass(frozen=True)
class Command:
    """One tokenized command: leading word plus its arguments."""

    name: str
    args: Tuple[str, ...] = ()
    # Text after the command name, untokenized (echo, sqlmap and test-xss need it)
    argline: str = ""
    raw: str = ""
    background: bool = False

    def arg(self, index: int, default: str = "") -> str:
        return self.args[index] if index < len(self.args) else default

    def flags(self) -> List[str]:
        return [a for a in self.args if a.startswith("-")]

    def positionals(self) -> List[str]:
        return [a for a in self.args if not a.startswith("-")]


@dataclass(frozen=True)
class Plain:
    command: Command


@dataclass(frozen=True)
class Chain:
    op: ChainOp
    segments: Tuple[Plain, ...]


@dataclass(frozen=True)
class Pipe:
    stages: Tuple[Plain, ...]


@dataclass(frozen=True)
class Redirect:
    command: Plain
    mode: RedirectMode
    target: str


@dataclass(frozen=True)
class Nested:
    """A composite where only a plain command is allowed."""

    outer: str
    inner: str
    fragment: str


@dataclass(frozen=True)
class Empty:
    pass


Node = Union[Plain, Chain, Pipe, Redirect, Nested, Empty]


def split_args(text: str) -> List[str]:
    """Tokenize shell-style, falling back to whitespace on unbalanced quotes."""
    try:
        return shlex.split(text)
    except ValueError:
        return text.split()


def tokenize(text: str) -> Command:
    """Tokenize a plain command line into a ``Command``."""
    raw = text.strip()
    background = False
    if raw.endswith(" &") and not raw.endswith(" &&"):
        background = True
        raw = raw[:-2].rstrip()
    if not raw:
        return Command(name="", raw=raw)
    parts = raw.split(None, 1)
    name = parts[0]
    argline = parts[1].strip() if len(parts) > 1 else ""
    return Command(
        name=name,
        args=tuple(split_args(argline)),
        argline=argline,
        raw=raw,
        background=background,
    )


def _find_top_level(line: str, op: str, start: int = 0) -> int:
    """Index of ``op`` outside quotes at or after ``start``, or -1."""
    quote: Optional[str] = None
    i = start
    while i < len(line):
        ch = line[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif line.startswith(op, i):
            return i
        i += 1
    return -1


def _split_top_level(line: str, op: str) -> List[str]:
    parts = []
    start = 0
    while True:
        idx = _find_top_level(line, op, start)
        if idx < 0:
            parts.append(line[start:])
            return parts
        parts.append(line[start:idx])
        start = idx + len(op)


def _first_redirect(line: str) -> Tuple[int, Optional[RedirectMode]]:
    append_at = _find_top_level(line, APPEND)
    write_at = _find_top_level(line, WRITE)
    if append_at < 0 and write_at < 0:
        return -1, None
    if write_at < 0 or (0 <= append_at < write_at):
        return append_at, RedirectMode.APPEND
    return write_at, RedirectMode.WRITE


def _has_pipe(text: str) -> bool:
    return _find_top_level(text, PIPE) >= 0


def _has_redirect(text: str) -> bool:
    return _first_redirect(text)[0] >= 0


def parse(line: str) -> Node:
    """Segment a raw input line into a syntax tree."""
    line = line.strip()
    if not line:
        return Empty()

    and_at = _find_top_level(line, AND)
    or_at = _find_top_level(line, OR)
    if and_at >= 0 or or_at >= 0:
        if or_at < 0 or (0 <= and_at < or_at):
            op, token = ChainOp.AND, AND
        else:
            op, token = ChainOp.OR, OR
        segments = []
        for part in _split_top_level(line, token):
            if _has_pipe(part):
                return Nested(outer="chain", inner="pipe", fragment=part.strip())
            if _has_redirect(part):
                return Nested(outer="chain", inner="redirect", fragment=part.strip())
            segments.append(Plain(tokenize(part)))
        return Chain(op=op, segments=tuple(segments))

    if _has_pipe(line):
        stages = []
        for part in _split_top_level(line, PIPE):
            if _has_redirect(part):
                return Nested(outer="pipe", inner="redirect", fragment=part.strip())
            stages.append(Plain(tokenize(part)))
        return Pipe(stages=tuple(stages))

    idx, mode = _first_redirect(line)
    if mode is not None:
        width = len(APPEND) if mode is RedirectMode.APPEND else len(WRITE)
        left = line[:idx]
        target = line[idx + width:].strip()
        if _has_redirect(" " + target + " "):
            return Nested(outer="redirect", inner="redirect", fragment=target)
        return Redirect(command=Plain(tokenize(left)), mode=mode, target=target)

    return Plain(tokenize(line))


__all__ = [
    "ChainOp",
    "RedirectMode",
    "Command",
    "Plain",
    "Chain",
    "Pipe",
    "Redirect",
    "Nested",
    "Empty",
    "Node",
    "parse",
    "tokenize",
    "split_args",
]
