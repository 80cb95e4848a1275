"""Text filters and the piped-input re-interpreter.

Only a fixed set of utilities know how to consume the previous stage's
output. They are implemented here as pure functions of (args, text) and are
shared with the file-reading variants in ``linux.py`` (``grep x file``).
Any other command on the receiving side of a pipe gets a labelled simulated
echo of its input.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .results import CommandResult, ErrorKind, failure, ok, usage
from .segmenter import Command

LOGGER = logging.getLogger(__name__)

GREP_HIGHLIGHT = "\x1b[1;31m"
RESET = "\x1b[0m"

Filter = Callable[[Sequence[str], str], CommandResult]

# Points awarded when a filter runs on the receiving side of a pipe
PIPE_POINTS: Dict[str, int] = {
    "grep": 2,
    "awk": 1,
    "sed": 1,
    "cut": 1,
    "tr": 1,
}


def _lines(text: str) -> List[str]:
    return text.splitlines()


def _join(lines: Sequence[str]) -> str:
    return "\n".join(lines)


def parse_count(args: Sequence[str], default: int = 10) -> Tuple[Optional[int], List[str]]:
    """Parse "-n N", "-nN" or "-N"; returns (count or None on error, rest)."""
    count = default
    rest: List[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        value = None
        if arg == "-n" and i + 1 < len(args):
            value = args[i + 1]
            i += 1
        elif arg.startswith("-n") and len(arg) > 2:
            value = arg[2:]
        elif arg.startswith("-") and arg[1:].isdigit():
            value = arg[1:]
        else:
            rest.append(arg)
        if value is not None:
            if not value.lstrip("+").isdigit():
                return None, rest
            count = int(value.lstrip("+"))
        i += 1
    return count, rest


# ---------- filters ----------


def grep_text(args: Sequence[str], text: str, highlight: bool = False) -> CommandResult:
    flags = "".join(a[1:] for a in args if a.startswith("-") and len(a) > 1)
    patterns = [a for a in args if not a.startswith("-")]
    if not patterns:
        return usage("Usage: grep [OPTION]... PATTERNS [FILE]...")
    pattern = patterns[0]
    needle = pattern.lower()
    invert = "v" in flags
    selected = []
    for number, line in enumerate(_lines(text), start=1):
        hit = needle in line.lower()
        if hit == invert:
            continue
        if highlight and not invert:
            line = re.sub(
                re.escape(pattern),
                lambda m: f"{GREP_HIGHLIGHT}{m.group(0)}{RESET}",
                line,
                flags=re.IGNORECASE,
            )
        selected.append(f"{number}:{line}" if "n" in flags else line)
    if "c" in flags:
        return ok(str(len(selected)))
    return ok(_join(selected))


def head_text(args: Sequence[str], text: str) -> CommandResult:
    count, _ = parse_count(args)
    if count is None:
        return usage("head: invalid number of lines")
    return ok(_join(_lines(text)[:count]))


def tail_text(args: Sequence[str], text: str) -> CommandResult:
    count, _ = parse_count(args)
    if count is None:
        return usage("tail: invalid number of lines")
    lines = _lines(text)
    return ok(_join(lines[-count:] if count else []))


def wc_counts(text: str) -> Tuple[int, int, int]:
    chars = len(text) + (1 if text and not text.endswith("\n") else 0)
    return len(_lines(text)), len(text.split()), chars


def wc_text(args: Sequence[str], text: str) -> CommandResult:
    lines, words, chars = wc_counts(text)
    flags = "".join(a[1:] for a in args if a.startswith("-"))
    picked = []
    if "l" in flags:
        picked.append(lines)
    if "w" in flags:
        picked.append(words)
    if "c" in flags or "m" in flags:
        picked.append(chars)
    if not picked:
        return ok(f"{lines:>7} {words:>7} {chars:>7}")
    if len(picked) == 1:
        return ok(str(picked[0]))
    return ok(" ".join(f"{n:>7}" for n in picked))


def _numeric_key(line: str) -> float:
    match = re.match(r"\s*(-?\d+(?:\.\d+)?)", line)
    return float(match.group(1)) if match else 0.0


def sort_text(args: Sequence[str], text: str) -> CommandResult:
    flags = "".join(a[1:] for a in args if a.startswith("-"))
    lines = _lines(text)
    if "n" in flags:
        lines = sorted(lines, key=_numeric_key, reverse="r" in flags)
    else:
        lines = sorted(lines, reverse="r" in flags)
    if "u" in flags:
        seen = set()
        unique = []
        for line in lines:
            if line not in seen:
                seen.add(line)
                unique.append(line)
        lines = unique
    return ok(_join(lines))


def uniq_text(args: Sequence[str], text: str) -> CommandResult:
    flags = "".join(a[1:] for a in args if a.startswith("-"))
    counts: Dict[str, int] = {}
    for line in _lines(text):
        counts[line] = counts.get(line, 0) + 1
    out = []
    for line, n in counts.items():
        if "d" in flags and n < 2:
            continue
        if "u" in flags and n > 1:
            continue
        out.append(f"{n:>7} {line}" if "c" in flags else line)
    return ok(_join(out))


def _expand_set(spec: str) -> str:
    chars = ""
    i = 0
    while i < len(spec):
        if i + 2 < len(spec) and spec[i + 1] == "-":
            chars += "".join(chr(c) for c in range(ord(spec[i]), ord(spec[i + 2]) + 1))
            i += 3
        else:
            chars += spec[i]
            i += 1
    return chars


def tr_text(args: Sequence[str], text: str) -> CommandResult:
    if len(args) == 2 and args[0] == "-d":
        doomed = set(_expand_set(args[1]))
        return ok("".join(c for c in text if c not in doomed))
    if len(args) == 2 and (args[0], args[1]) == ("a-z", "A-Z"):
        return ok(text.upper())
    if len(args) == 2 and (args[0], args[1]) == ("A-Z", "a-z"):
        return ok(text.lower())
    return failure(
        "tr: unsupported translation (supported: 'a-z' 'A-Z', 'A-Z' 'a-z', -d SET)",
        ErrorKind.USAGE,
        is_valid=False,
    )


def _parse_ranges(spec: str) -> Optional[List[Tuple[int, Optional[int]]]]:
    ranges: List[Tuple[int, Optional[int]]] = []
    for part in spec.split(","):
        if not part:
            return None
        if "-" in part:
            lo, _, hi = part.partition("-")
            if (lo and not lo.isdigit()) or (hi and not hi.isdigit()):
                return None
            ranges.append((int(lo) if lo else 1, int(hi) if hi else None))
        elif part.isdigit():
            ranges.append((int(part), int(part)))
        else:
            return None
    return ranges


def _select(items: Sequence[str], ranges: List[Tuple[int, Optional[int]]]) -> List[str]:
    picked = []
    for index, item in enumerate(items, start=1):
        if any(lo <= index and (hi is None or index <= hi) for lo, hi in ranges):
            picked.append(item)
    return picked


def cut_text(args: Sequence[str], text: str) -> CommandResult:
    delimiter = "\t"
    fields = None
    chars = None
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("-d", "-f", "-c") and i + 1 < len(args):
            value = args[i + 1]
            i += 1
        elif arg[:2] in ("-d", "-f", "-c") and len(arg) > 2:
            value = arg[2:]
        else:
            i += 1
            continue
        if arg.startswith("-d"):
            delimiter = value
        elif arg.startswith("-f"):
            fields = value
        else:
            chars = value
        i += 1
    spec = fields if fields is not None else chars
    if spec is None:
        return usage("cut: you must specify a list of bytes, characters, or fields")
    ranges = _parse_ranges(spec)
    if ranges is None:
        return usage(f"cut: invalid field value '{spec}'")
    out = []
    for line in _lines(text):
        if fields is not None:
            if delimiter not in line:
                out.append(line)
                continue
            out.append(delimiter.join(_select(line.split(delimiter), ranges)))
        else:
            out.append("".join(_select(list(line), ranges)))
    return ok(_join(out))


_AWK_PROGRAM = re.compile(r"^(?:/(?P<pattern>[^/]*)/\s*)?\{\s*print\s*(?P<items>.*?)\s*;?\s*\}$")


def awk_text(args: Sequence[str], text: str) -> CommandResult:
    separator = None
    program = None
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "-F" and i + 1 < len(args):
            separator = args[i + 1]
            i += 1
        elif arg.startswith("-F"):
            separator = arg[2:]
        elif program is None:
            program = arg
        i += 1
    if program is None:
        return usage("Usage: awk [-F fs] 'program' [file]")
    match = _AWK_PROGRAM.match(program.strip())
    if not match:
        return failure(
            f"awk: unsupported program '{program}' (supported: '{{print $N}}')",
            ErrorKind.USAGE,
            is_valid=False,
        )
    pattern = match.group("pattern")
    items = [item.strip() for item in match.group("items").split(",")] if match.group("items") else ["$0"]
    out = []
    for number, line in enumerate(_lines(text), start=1):
        if pattern and not re.search(pattern, line):
            continue
        parts = line.split(separator) if separator else line.split()
        values = []
        for item in items:
            if item == "$0":
                values.append(line)
            elif item == "$NF":
                values.append(parts[-1] if parts else "")
            elif item == "NF":
                values.append(str(len(parts)))
            elif item == "NR":
                values.append(str(number))
            elif re.fullmatch(r"\$\d+", item):
                idx = int(item[1:])
                values.append(parts[idx - 1] if 0 < idx <= len(parts) else "")
            elif len(item) >= 2 and item[0] == item[-1] == '"':
                values.append(item[1:-1])
            else:
                return failure(
                    f"awk: unsupported expression '{item}'",
                    ErrorKind.USAGE,
                    is_valid=False,
                )
        out.append(" ".join(values))
    return ok(_join(out))


def sed_text(args: Sequence[str], text: str) -> CommandResult:
    scripts = [a for a in args if a not in ("-e", "-i", "-n")]
    if not scripts:
        return usage("Usage: sed [OPTION]... {script} [input-file]")
    script = scripts[0]
    lines = _lines(text)

    delete = re.fullmatch(r"(\d+|\$)(?:,(\d+|\$))?d", script)
    if delete:
        last = len(lines)
        start = last if delete.group(1) == "$" else int(delete.group(1))
        end_raw = delete.group(2)
        end = start if end_raw is None else (last if end_raw == "$" else int(end_raw))
        return ok(_join(l for n, l in enumerate(lines, start=1) if not start <= n <= end))

    if len(script) >= 2 and script[0] == "s":
        sep = script[1]
        parts = script[2:].split(sep)
        if len(parts) == 3:
            pattern, replacement, flags = parts
            count = 0 if "g" in flags else 1
            re_flags = re.IGNORECASE if ("i" in flags or "I" in flags) else 0
            try:
                regex = re.compile(pattern, re_flags)
            except re.error as exc:
                return failure(f"sed: -e expression #1: {exc}", ErrorKind.USAGE, is_valid=False)
            return ok(_join(regex.sub(lambda m: replacement, line, count=count) for line in lines))
        return failure(
            f"sed: -e expression #1, char {len(script)}: unterminated `s' command",
            ErrorKind.USAGE,
            is_valid=False,
        )

    return failure(
        f"sed: -e expression #1, char 1: unknown command: `{script[0]}'",
        ErrorKind.USAGE,
        is_valid=False,
    )


def _passthrough(args: Sequence[str], text: str) -> CommandResult:
    return ok(text)


def xargs_text(args: Sequence[str], text: str) -> CommandResult:
    target = " ".join(args) or "echo"
    count = len(text.split())
    return ok(f"[simulated] xargs: would run '{target}' with {count} argument(s)")


RECEIVERS: Dict[str, Filter] = {
    "grep": grep_text,
    "head": head_text,
    "tail": tail_text,
    "wc": wc_text,
    "sort": sort_text,
    "uniq": uniq_text,
    "tr": tr_text,
    "cut": cut_text,
    "awk": awk_text,
    "sed": sed_text,
    "tee": _passthrough,
    "cat": _passthrough,
    "xargs": xargs_text,
}


def apply_stage(command: Command, text: str) -> CommandResult:
    """Run one receiving pipeline stage against the previous stage's output."""
    receiver = RECEIVERS.get(command.name)
    if receiver is None:
        LOGGER.debug("No pipe receiver for %s, echoing input", command.name)
        header = f"[simulated] '{command.raw}' received piped input:"
        return ok(f"{header}\n{text}" if text else header)
    result = receiver(command.args, text)
    if result.success:
        return result.with_points(PIPE_POINTS.get(command.name, 0))
    return result
