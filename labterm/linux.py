"""Simulated Linux utilities.

Every handler takes the tokenized ``Command`` and the caller's
``SessionState`` and returns a ``CommandResult``. Handlers that change the
session (cd, touch, mkdir, rm, cp, mv, export, chmod ...) validate first and
only mutate once the operation is known to succeed.

Output is canned but state-aware: ls/cat/find/stat read the session's
virtual filesystem, whoami/id honour the sudo privilege flag, and all
timestamps are fixed so the same command on the same state always prints
the same text.
"""

from __future__ import annotations

import difflib
import logging
import posixpath
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from . import pipes
from .filesystem import FILE, MTIME_FULL, MTIME_SHORT, format_mode
from .metasploit import leave_console
from .results import (
    CommandResult,
    ErrorKind,
    failure,
    ok,
    permission_denied,
    usage,
)
from .segmenter import Command, split_args
from .session import SessionState

LOGGER = logging.getLogger(__name__)

Handler = Callable[[Command, SessionState], CommandResult]

DIR_COLOR = "\x1b[1;34m"
RESET = "\x1b[0m"
REVERSE = "\x1b[7m"

SIM_DATE = "Mon Jan 15 10:30:00 WIB 2024"
KERNEL = "6.1.0-kali9-amd64"
UNAME_ALL = (
    "Linux kali 6.1.0-kali9-amd64 #1 SMP PREEMPT_DYNAMIC "
    "Debian 6.1.27-1kali1 (2023-05-12) x86_64 GNU/Linux"
)
LOCAL_IP = "192.168.1.50"
PROTECTED_PATHS = ("/", "/etc", "/usr", "/bin")

POINTS: Dict[str, int] = {
    "ifconfig": 2,
    "ip": 2,
    "ping": 2,
    "arp": 2,
    "netstat": 3,
    "ss": 3,
    "curl": 3,
    "wget": 3,
    "nc": 3,
    "netcat": 3,
    "tcpdump": 3,
    "lsof": 3,
    "find": 1,
    "ps": 1,
    "grep": 1,
}

KNOWN_HOSTS = {
    "localhost": "127.0.0.1",
    "kali": "127.0.1.1",
    "target.local": "192.168.1.100",
    "db.target.local": "192.168.1.101",
    "gateway.local": "10.0.0.1",
    "example-company.com": "192.168.1.100",
    "demo-company.com": "10.0.0.50",
}

WHICH_TABLE = {
    name: f"/usr/bin/{name}"
    for name in (
        "ls cat grep head tail wc find sort uniq cut awk sed tr diff less more "
        "nano vim vi tar gzip gunzip zip unzip curl wget ssh nc netcat ping "
        "nmap nikto sqlmap dirb john hashcat hashid searchsploit msfconsole "
        "whois dig nslookup host traceroute python3 perl gcc make git sudo"
    ).split()
}
WHICH_TABLE.update(
    {
        "ifconfig": "/usr/sbin/ifconfig",
        "ip": "/usr/sbin/ip",
        "arp": "/usr/sbin/arp",
        "tcpdump": "/usr/sbin/tcpdump",
        "bash": "/bin/bash",
        "sh": "/bin/sh",
    }
)

PROCESSES = [
    # (user, pid, cpu, mem, vsz, rss, tty, stat, start, time, command)
    ("root", 1, "0.0", "0.2", 167744, 11520, "?", "Ss", "08:00", "0:02", "/sbin/init splash"),
    ("root", 2, "0.0", "0.0", 0, 0, "?", "S", "08:00", "0:00", "[kthreadd]"),
    ("root", 412, "0.0", "0.1", 48152, 7712, "?", "Ss", "08:00", "0:00", "/lib/systemd/systemd-journald"),
    ("root", 689, "0.0", "0.1", 15432, 9012, "?", "Ss", "08:00", "0:00", "sshd: /usr/sbin/sshd -D"),
    ("mysql", 812, "0.3", "4.8", 1794176, 392004, "?", "Ssl", "08:00", "0:12", "/usr/sbin/mysqld"),
    ("root", 901, "0.0", "0.4", 250348, 33104, "?", "Ss", "08:00", "0:01", "/usr/sbin/apache2 -k start"),
    ("www-data", 902, "0.0", "0.1", 250788, 10236, "?", "S", "08:00", "0:00", "/usr/sbin/apache2 -k start"),
    ("student", 1337, "0.0", "0.1", 10048, 5060, "pts/0", "Ss", "10:00", "0:00", "-bash"),
    ("student", 2048, "0.0", "0.0", 11160, 3360, "pts/0", "R+", "10:30", "0:00", "ps aux"),
]

MAN_PAGES = {
    "nmap": """NMAP(1)                      Nmap Reference Guide                      NMAP(1)

NAME
       nmap - Network exploration tool and security / port scanner

SYNOPSIS
       nmap [Scan Type...] [Options] {target specification}

DESCRIPTION
       Nmap ("Network Mapper") is an open source tool for network exploration
       and security auditing.

OPTIONS
       -sn: Ping Scan - disable port scan
       -sS: TCP SYN scan
       -sV: Probe open ports to determine service/version info
       -O: Enable OS detection
       -A: Enable OS detection, version detection, script scanning, and traceroute
       -sU: UDP Scan""",
    "ls": """LS(1)                            User Commands                           LS(1)

NAME
       ls - list directory contents

SYNOPSIS
       ls [OPTION]... [FILE]...

DESCRIPTION
       -a, --all
              do not ignore entries starting with .
       -l     use a long listing format
       -h, --human-readable
              with -l, print sizes like 1K 234M 2G etc.""",
    "grep": """GREP(1)                          User Commands                         GREP(1)

NAME
       grep - print lines that match patterns

SYNOPSIS
       grep [OPTION...] PATTERNS [FILE...]

DESCRIPTION
       -i, --ignore-case
              Ignore case distinctions in patterns and input data.
       -v, --invert-match
              Invert the sense of matching, to select non-matching lines.
       -c, --count
              Print a count of matching lines for each input file.
       -n, --line-number
              Prefix each line of output with its line number.""",
}


# ---------- helpers ----------


def _flags(cmd: Command) -> str:
    """All single-dash short flags merged into one string ("-la -h" -> "lah")."""
    return "".join(a[1:] for a in cmd.args if a.startswith("-") and not a.startswith("--"))


def _operands(args: Sequence[str], value_flags: Sequence[str] = ()) -> List[str]:
    """Positional arguments, skipping the values of ``value_flags``."""
    out = []
    skip = False
    for arg in args:
        if skip:
            skip = False
            continue
        if arg in value_flags:
            skip = True
            continue
        if arg.startswith("-") and arg != "-":
            continue
        out.append(arg)
    return out


def _human(size: int) -> str:
    value = float(size)
    for unit in ("", "K", "M", "G", "T"):
        if value < 1024:
            return f"{int(value)}{unit}" if unit == "" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}P"


def _miss(text: str) -> CommandResult:
    return failure(text, ErrorKind.LOOKUP_MISS)


def _read_file(
    state: SessionState, tool: str, target: str
) -> Tuple[Optional[str], Optional[CommandResult]]:
    """Content of ``target`` or an error result in ``tool``'s wording."""
    path = state.fs.resolve(state.cwd, target)
    node = state.fs.get(path)
    if node is None:
        return None, _miss(f"{tool}: {target}: No such file or directory")
    if node.is_dir:
        return None, failure(f"{tool}: {target}: Is a directory", ErrorKind.USAGE)
    if not state.fs.can_read(path, state.privileged):
        return None, permission_denied(f"{tool}: {target}: Permission denied")
    return node.content, None


def _parent_writable(state: SessionState, path: str) -> bool:
    return state.fs.can_write(posixpath.dirname(path), state.privileged)


def _ls_entry(name: str, is_dir: bool) -> str:
    return f"{DIR_COLOR}{name}{RESET}" if is_dir else name


def _long_line(name: str, node, human: bool = False) -> str:
    size = _human(node.size) if human else str(node.size)
    shown = _ls_entry(name, node.is_dir)
    return f"{node.permissions} 1 {node.owner:<7} {node.owner:<7} {size:>8} {MTIME_SHORT} {shown}"


def _expand_vars(text: str, env: Dict[str, str]) -> str:
    def repl(match: "re.Match[str]") -> str:
        name = match.group(1) or match.group(2)
        return env.get(name, "")

    return re.sub(r"\$\{(\w+)\}|\$(\w+)", repl, text)


# ---------- identity and system info ----------


def _cmd_whoami(cmd: Command, state: SessionState) -> CommandResult:
    return ok(state.effective_user)


def _cmd_id(cmd: Command, state: SessionState) -> CommandResult:
    if state.privileged:
        return ok("uid=0(root) gid=0(root) groups=0(root)")
    return ok(
        f"uid=1000({state.username}) gid=1000({state.username}) "
        f"groups=1000({state.username}),27(sudo),44(video),46(plugdev),109(netdev)"
    )


def _cmd_groups(cmd: Command, state: SessionState) -> CommandResult:
    if state.privileged:
        return ok("root")
    return ok(f"{state.username} sudo video plugdev netdev")


def _cmd_hostname(cmd: Command, state: SessionState) -> CommandResult:
    if "I" in _flags(cmd):
        return ok(LOCAL_IP)
    return ok(state.hostname)


def _cmd_uname(cmd: Command, state: SessionState) -> CommandResult:
    flags = _flags(cmd)
    if "a" in flags:
        return ok(UNAME_ALL)
    parts = []
    table = [("s", "Linux"), ("n", state.hostname), ("r", KERNEL), ("m", "x86_64"), ("o", "GNU/Linux")]
    for flag, value in table:
        if flag in flags:
            parts.append(value)
    return ok(" ".join(parts) or "Linux")


def _cmd_date(cmd: Command, state: SessionState) -> CommandResult:
    return ok(SIM_DATE)


def _cmd_uptime(cmd: Command, state: SessionState) -> CommandResult:
    if "p" in _flags(cmd):
        return ok("up 2 hours, 30 minutes")
    return ok(" 10:30:00 up  2:30,  1 user,  load average: 0.52, 0.58, 0.59")


def _cmd_dmesg(cmd: Command, state: SessionState) -> CommandResult:
    return ok(
        "[    0.000000] Linux version 6.1.0-kali9-amd64 (devel@kali.org) (gcc-12 (Debian 12.2.0-14) 12.2.0)\n"
        "[    0.000000] Command line: BOOT_IMAGE=/boot/vmlinuz-6.1.0-kali9-amd64 root=UUID=3f1c quiet splash\n"
        "[    0.412345] e1000: Intel(R) PRO/1000 Network Driver\n"
        "[    1.234567] e1000 0000:02:01.0 eth0: (PCI:66MHz:32-bit) 00:0c:29:ab:cd:ef\n"
        "[    3.456789] EXT4-fs (sda1): mounted filesystem with ordered data mode\n"
        "[    5.678901] e1000: eth0 NIC Link is Up 1000 Mbps Full Duplex, Flow Control: None"
    )


def _cmd_mount(cmd: Command, state: SessionState) -> CommandResult:
    return ok(
        "/dev/sda1 on / type ext4 (rw,relatime,errors=remount-ro)\n"
        "proc on /proc type proc (rw,nosuid,nodev,noexec,relatime)\n"
        "sysfs on /sys type sysfs (rw,nosuid,nodev,noexec,relatime)\n"
        "tmpfs on /run type tmpfs (rw,nosuid,nodev,size=402812k,mode=755)\n"
        "tmpfs on /tmp type tmpfs (rw,nosuid,nodev)"
    )


# ---------- navigation and listing ----------


def _cmd_pwd(cmd: Command, state: SessionState) -> CommandResult:
    return ok(state.cwd)


def _cmd_cd(cmd: Command, state: SessionState) -> CommandResult:
    target = cmd.arg(0)
    back = target == "-"
    if back:
        target = state.env.get("OLDPWD", state.home)
    path = state.fs.resolve(state.cwd, target)
    node = state.fs.get(path)
    if node is None:
        return _miss(f"bash: cd: {target}: No such file or directory")
    if not node.is_dir:
        return failure(f"bash: cd: {target}: Not a directory", ErrorKind.USAGE)
    if not state.fs.can_enter(path, state.privileged):
        return permission_denied(f"bash: cd: {target}: Permission denied")
    state.change_dir(path)
    return ok(path if back else "")


def _list(state: SessionState, targets: List[str], flags: str) -> CommandResult:
    show_all = "a" in flags or "A" in flags
    long = "l" in flags
    human = "h" in flags
    blocks = []
    errors = []
    for target in targets or ["."]:
        path = state.fs.resolve(state.cwd, target)
        node = state.fs.get(path)
        if node is None:
            errors.append(f"ls: cannot access '{target}': No such file or directory")
            continue
        if not node.is_dir:
            blocks.append(_long_line(target, node, human) if long else target)
            continue
        if not state.fs.can_read(path, state.privileged):
            errors.append(f"ls: cannot open directory '{target}': Permission denied")
            continue
        entries = [
            (name, child)
            for name, child in state.fs.children(path)
            if show_all or not name.startswith(".")
        ]
        if "a" in flags:
            parent = state.fs.get(posixpath.dirname(path)) or node
            entries = [(".", node), ("..", parent)] + entries
        if long:
            lines = [f"total {len(entries) * 4}"]
            lines += [_long_line(name, child, human) for name, child in entries]
            body = "\n".join(lines)
        else:
            body = "  ".join(_ls_entry(name, child.is_dir) for name, child in entries)
        if len(targets) > 1:
            body = f"{target}:\n{body}"
        blocks.append(body)
    output = "\n".join(errors + blocks)
    if errors:
        kind = ErrorKind.PERMISSION_DENIED if "Permission denied" in errors[0] else ErrorKind.LOOKUP_MISS
        return failure(output, kind)
    return ok(output)


def _cmd_ls(cmd: Command, state: SessionState) -> CommandResult:
    return _list(state, _operands(cmd.args), _flags(cmd))


def _cmd_ll(cmd: Command, state: SessionState) -> CommandResult:
    return _list(state, _operands(cmd.args), "la" + _flags(cmd))


def _cmd_cat(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if not targets:
        return usage("cat: missing operand")
    chunks = []
    error = None
    for target in targets:
        content, err = _read_file(state, "cat", target)
        if err is not None:
            chunks.append(err.output)
            error = error or err
        else:
            chunks.append(content or "")
    output = "\n".join(chunks)
    if error is not None:
        return error.with_output(output)
    return ok(output)


def _pager(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if not targets:
        return usage(f"Missing filename (\"{cmd.name} --help\" for help)")
    content, err = _read_file(state, cmd.name, targets[0])
    if err is not None:
        return err
    lines = (content or "").splitlines()
    shown = "\n".join(lines[:20])
    if len(lines) > 20:
        percent = int(20 * 100 / len(lines))
        footer = f"{REVERSE}--More--({percent}%){RESET}"
    else:
        footer = f"{REVERSE}{targets[0]} (END){RESET}"
    return ok(f"{shown}\n{footer}")


def _cmd_file(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if not targets:
        return usage("Usage: file [-bcEhikLlNnprsSvzZ0] [--apple] [--extension] [--mime-encoding] file...")
    lines = []
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        node = state.fs.get(path)
        if node is None:
            lines.append(f"{target}: cannot open `{target}' (No such file or directory)")
        elif node.is_dir:
            lines.append(f"{target}: directory")
        elif node.permissions.startswith("l"):
            lines.append(f"{target}: symbolic link")
        elif target.endswith((".tar",)):
            lines.append(f"{target}: POSIX tar archive (GNU)")
        elif target.endswith((".gz", ".tgz")):
            lines.append(f"{target}: gzip compressed data, from Unix")
        elif target.endswith(".zip"):
            lines.append(f"{target}: Zip archive data, at least v2.0 to extract")
        elif target.endswith(".sh"):
            lines.append(f"{target}: Bourne-Again shell script, ASCII text executable")
        elif target.endswith(".py"):
            lines.append(f"{target}: Python script, ASCII text executable")
        elif not node.content:
            lines.append(f"{target}: empty")
        else:
            lines.append(f"{target}: ASCII text")
    return ok("\n".join(lines))


def _cmd_which(cmd: Command, state: SessionState) -> CommandResult:
    names = _operands(cmd.args)
    if not names:
        return usage("Usage: which [-a] args")
    found = []
    missing = []
    for name in names:
        if name in WHICH_TABLE:
            found.append(WHICH_TABLE[name])
        else:
            missing.append(f"which: no {name} in ({state.env.get('PATH', '')})")
    if missing:
        return _miss("\n".join(found + missing))
    return ok("\n".join(found))


def _cmd_find(cmd: Command, state: SessionState) -> CommandResult:
    args = list(cmd.args)
    root_arg = "."
    if args and not args[0].startswith("-"):
        root_arg = args.pop(0)
    name_glob = None
    kind = None
    i = 0
    while i < len(args):
        if args[i] in ("-name", "-iname") and i + 1 < len(args):
            name_glob = args[i + 1]
            i += 1
        elif args[i] == "-type" and i + 1 < len(args):
            kind = args[i + 1]
            i += 1
        i += 1
    root = state.fs.resolve(state.cwd, root_arg)
    if not state.fs.exists(root):
        return _miss(f"find: '{root_arg}': No such file or directory")
    denied = [
        p
        for p, node in state.fs.walk(root)
        if p != root and node.is_dir and not state.fs.can_read(p, state.privileged)
    ]
    lines = []
    for path in state.fs.find(root, name_glob, kind):
        if any(path.startswith(d + "/") for d in denied):
            continue
        if path == root:
            display = root_arg
        elif root == "/":
            display = path
        else:
            display = root_arg.rstrip("/") + path[len(root):]
        lines.append(display)
    lines += [f"find: '{d}': Permission denied" for d in denied]
    return ok("\n".join(lines))


def _cmd_stat(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if not targets:
        return usage("stat: missing operand")
    target = targets[0]
    path = state.fs.resolve(state.cwd, target)
    node = state.fs.get(path)
    if node is None:
        return _miss(f"stat: cannot statx '{target}': No such file or directory")
    kind = "directory" if node.is_dir else ("regular empty file" if not node.content else "regular file")
    if node.permissions.startswith("l"):
        kind = "symbolic link"
    uid = {"root": 0, "www-data": 33, state.username: 1000}.get(node.owner, 1000)
    mode = _perm_octal(node.permissions)
    return ok(
        f"  File: {target}\n"
        f"  Size: {node.size:<15} Blocks: {max(8, (node.size // 4096 + 1) * 8):<10} IO Block: 4096   {kind}\n"
        f"Device: 8,1     Inode: {state.fs.inode(path):<11} Links: {2 if node.is_dir else 1}\n"
        f"Access: (0{mode}/{node.permissions})  Uid: ({uid:>5}/{node.owner:>8})   Gid: ({uid:>5}/{node.owner:>8})\n"
        f"Access: {MTIME_FULL}\n"
        f"Modify: {MTIME_FULL}\n"
        f"Change: {MTIME_FULL}\n"
        f" Birth: -"
    )


def _perm_octal(permissions: str) -> str:
    digits = ""
    for triad in (permissions[1:4], permissions[4:7], permissions[7:10]):
        value = (4 if triad[0] == "r" else 0) + (2 if triad[1] == "w" else 0)
        value += 1 if triad[2] in ("x", "s", "t") else 0
        digits += str(value)
    return digits


def _cmd_du(cmd: Command, state: SessionState) -> CommandResult:
    flags = _flags(cmd)
    targets = _operands(cmd.args) or ["."]
    lines = []
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        if not state.fs.exists(path):
            return _miss(f"du: cannot access '{target}': No such file or directory")
        entries = list(state.fs.walk(path))
        dirs = [p for p, node in entries if node.is_dir]
        if "s" in flags or not dirs:
            dirs = [path]
        for d in sorted(dirs, reverse=True):
            total = sum(n.size for p, n in entries if p == d or p.startswith(d.rstrip("/") + "/"))
            size = _human(total) if "h" in flags else str(max(4, total // 1024))
            display = target + d[len(path):] if d != path else target
            lines.append(f"{size}\t{display}")
    return ok("\n".join(lines))


def _cmd_diff(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if len(targets) < 2:
        return usage(f"diff: missing operand after '{targets[0] if targets else 'diff'}'")
    left, err = _read_file(state, "diff", targets[0])
    if err is not None:
        return err
    right, err = _read_file(state, "diff", targets[1])
    if err is not None:
        return err
    a = (left or "").splitlines()
    b = (right or "").splitlines()
    out = []

    def span(lo: int, hi: int) -> str:
        return str(lo + 1) if hi - lo <= 1 else f"{lo + 1},{hi}"

    for tag, i1, i2, j1, j2 in difflib.SequenceMatcher(None, a, b).get_opcodes():
        if tag == "equal":
            continue
        if tag == "replace":
            out.append(f"{span(i1, i2)}c{span(j1, j2)}")
        elif tag == "delete":
            out.append(f"{span(i1, i2)}d{j1}")
        else:
            out.append(f"{i1}a{span(j1, j2)}")
        out += [f"< {line}" for line in a[i1:i2]]
        if tag == "replace":
            out.append("---")
        out += [f"> {line}" for line in b[j1:j2]]
    return ok("\n".join(out))


# ---------- environment and shell ----------


def _cmd_echo(cmd: Command, state: SessionState) -> CommandResult:
    text = cmd.argline
    newline = True
    if text.startswith("-n "):
        newline = False
        text = text[3:]
    elif text.startswith("-e "):
        text = text[3:]
    words = split_args(_expand_vars(text, state.env))
    output = " ".join(words)
    return ok(output if newline else output.rstrip("\n"))


def _cmd_env(cmd: Command, state: SessionState) -> CommandResult:
    return ok("\n".join(f"{k}={v}" for k, v in state.env.items()))


def _cmd_printenv(cmd: Command, state: SessionState) -> CommandResult:
    names = _operands(cmd.args)
    if not names:
        return _cmd_env(cmd, state)
    values = [state.env[n] for n in names if n in state.env]
    if len(values) != len(names):
        return failure("\n".join(values), ErrorKind.LOOKUP_MISS)
    return ok("\n".join(values))


def _cmd_export(cmd: Command, state: SessionState) -> CommandResult:
    if not cmd.args:
        return ok("\n".join(f'declare -x {k}="{v}"' for k, v in state.env.items()))
    updates = {}
    for assignment in cmd.args:
        name, sep, value = assignment.partition("=")
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
            return failure(
                f"bash: export: `{assignment}': not a valid identifier", ErrorKind.USAGE
            )
        if sep:
            updates[name] = _expand_vars(value, state.env)
    state.env.update(updates)
    return ok("")


def _cmd_alias(cmd: Command, state: SessionState) -> CommandResult:
    if not cmd.args:
        return ok("\n".join(f"alias {k}='{v}'" for k, v in sorted(state.aliases.items())))
    out = []
    for item in cmd.args:
        name, sep, value = item.partition("=")
        if sep:
            state.aliases[name] = value
        elif name in state.aliases:
            out.append(f"alias {name}='{state.aliases[name]}'")
        else:
            return _miss(f"bash: alias: {name}: not found")
    return ok("\n".join(out))


def _cmd_source(cmd: Command, state: SessionState) -> CommandResult:
    target = cmd.arg(0)
    if not target:
        return usage("bash: source: filename argument required")
    path = state.fs.resolve(state.cwd, target)
    if not state.fs.is_file(path):
        return _miss(f"bash: {target}: No such file or directory")
    return ok("")


def _cmd_history(cmd: Command, state: SessionState) -> CommandResult:
    if "c" in _flags(cmd):
        return ok("history: lab sessions keep their full history; nothing was cleared")
    return ok("\n".join(f"  {i:>3}  {line}" for i, line in enumerate(state.history, start=1)))


def _cmd_man(cmd: Command, state: SessionState) -> CommandResult:
    topic = cmd.arg(0)
    if not topic:
        return usage("What manual page do you want?\nFor example, try 'man man'.")
    page = MAN_PAGES.get(topic)
    if page is None:
        return _miss(f"No manual entry for {topic}")
    return ok(page)


def _cmd_exit(cmd: Command, state: SessionState) -> CommandResult:
    if state.msf.console_active:
        leave_console(state.msf)
        return ok("Exiting msf console...")
    state.logout_requested = True
    return ok("logout")


def _cmd_su(cmd: Command, state: SessionState) -> CommandResult:
    if state.privileged:
        return ok("[simulated] root shell not available here; prefix commands with sudo")
    return failure("Password: \nsu: Authentication failure", ErrorKind.PERMISSION_DENIED)


def _cmd_passwd(cmd: Command, state: SessionState) -> CommandResult:
    return failure(
        f"Changing password for {state.username}.\nCurrent password: \n"
        "passwd: Authentication token manipulation error\npasswd: password unchanged",
        ErrorKind.PERMISSION_DENIED,
    )


# ---------- file manipulation ----------


def _cmd_touch(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if not targets:
        return usage("touch: missing file operand")
    paths = []
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        if state.fs.exists(path):
            continue
        if not state.fs.is_dir(posixpath.dirname(path)):
            return _miss(f"touch: cannot touch '{target}': No such file or directory")
        if not _parent_writable(state, path):
            return permission_denied(f"touch: cannot touch '{target}': Permission denied")
        paths.append(path)
    for path in paths:
        state.fs.touch(path, owner=state.effective_user)
    return ok("")


def _cmd_mkdir(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    parents = "p" in _flags(cmd)
    if not targets:
        return usage("mkdir: missing operand")
    paths = []
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        if state.fs.exists(path):
            if parents and state.fs.is_dir(path):
                continue
            return failure(f"mkdir: cannot create directory '{target}': File exists", ErrorKind.STATE)
        anchor = posixpath.dirname(path)
        if parents:
            while not state.fs.exists(anchor):
                anchor = posixpath.dirname(anchor)
        if not state.fs.is_dir(anchor):
            return _miss(f"mkdir: cannot create directory '{target}': No such file or directory")
        if not state.fs.can_write(anchor, state.privileged):
            return permission_denied(f"mkdir: cannot create directory '{target}': Permission denied")
        paths.append(path)
    for path in paths:
        state.fs.mkdir(path, parents=parents, owner=state.effective_user)
    return ok("")


def _cmd_rm(cmd: Command, state: SessionState) -> CommandResult:
    flags = _flags(cmd)
    recursive = "r" in flags or "R" in flags
    force = "f" in flags
    targets = _operands(cmd.args)
    if not targets:
        return usage("rm: missing operand")
    doomed = []
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        if path == "/":
            return permission_denied(
                "rm: it is dangerous to operate recursively on '/'\n"
                "rm: use --no-preserve-root to override this failsafe"
            )
        node = state.fs.get(path)
        if node is None:
            if force:
                continue
            return _miss(f"rm: cannot remove '{target}': No such file or directory")
        if node.is_dir and not recursive:
            return failure(f"rm: cannot remove '{target}': Is a directory", ErrorKind.USAGE)
        if (path in PROTECTED_PATHS or not _parent_writable(state, path)) and not state.privileged:
            return permission_denied(f"rm: cannot remove '{target}': Permission denied")
        doomed.append(path)
    for path in doomed:
        if state.fs.exists(path):
            state.fs.remove(path)
    if state.cwd not in ("/",) and not state.fs.exists(state.cwd):
        state.change_dir(state.home if state.fs.exists(state.home) else "/")
    return ok("")


def _copy_or_move(cmd: Command, state: SessionState, move: bool) -> CommandResult:
    tool = cmd.name
    targets = _operands(cmd.args)
    recursive = move or "r" in _flags(cmd) or "R" in _flags(cmd) or "a" in _flags(cmd)
    if len(targets) < 2:
        if not targets:
            return usage(f"{tool}: missing file operand")
        return usage(f"{tool}: missing destination file operand after '{targets[0]}'")
    src_arg, dst_arg = targets[0], targets[-1]
    src = state.fs.resolve(state.cwd, src_arg)
    dst = state.fs.resolve(state.cwd, dst_arg)
    node = state.fs.get(src)
    if node is None:
        return _miss(f"{tool}: cannot stat '{src_arg}': No such file or directory")
    if node.is_dir and not recursive:
        return failure(f"cp: -r not specified; omitting directory '{src_arg}'", ErrorKind.USAGE)
    if not state.fs.can_read(src, state.privileged):
        return permission_denied(f"{tool}: cannot open '{src_arg}' for reading: Permission denied")
    if state.fs.is_dir(dst):
        dst = posixpath.join(dst, posixpath.basename(src))
    if dst == src or dst.startswith(src + "/"):
        return failure(f"{tool}: cannot {'move' if move else 'copy'} '{src_arg}' to a subdirectory of itself", ErrorKind.USAGE)
    if not state.fs.is_dir(posixpath.dirname(dst)):
        return _miss(f"{tool}: cannot create regular file '{dst_arg}': No such file or directory")
    if not _parent_writable(state, dst) or (move and not _parent_writable(state, src)):
        return permission_denied(f"{tool}: cannot create regular file '{dst_arg}': Permission denied")
    if state.fs.exists(dst):
        state.fs.remove(dst)
    if move:
        state.fs.move(src, dst)
        if state.cwd == src or state.cwd.startswith(src + "/"):
            state.change_dir(dst + state.cwd[len(src):])
    else:
        state.fs.copy(src, dst)
    return ok("")


def _cmd_cp(cmd: Command, state: SessionState) -> CommandResult:
    return _copy_or_move(cmd, state, move=False)


def _cmd_mv(cmd: Command, state: SessionState) -> CommandResult:
    return _copy_or_move(cmd, state, move=True)


def _cmd_chmod(cmd: Command, state: SessionState) -> CommandResult:
    args = [a for a in cmd.args if a not in ("-R", "-v")]
    if len(args) < 2:
        return usage(f"chmod: missing operand after '{args[0]}'" if args else "chmod: missing operand")
    mode, targets = args[0], args[1:]
    updates = []
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        node = state.fs.get(path)
        if node is None:
            return _miss(f"chmod: cannot access '{target}': No such file or directory")
        if node.owner != state.username and not state.privileged:
            return permission_denied(f"chmod: changing permissions of '{target}': Operation not permitted")
        perms = _apply_mode(node.permissions, mode)
        if perms is None:
            return usage(f"chmod: invalid mode: '{mode}'")
        updates.append((path, perms))
    for path, perms in updates:
        state.fs.set_permissions(path, perms)
    return ok("")


def _apply_mode(current: str, mode: str) -> Optional[str]:
    octal = format_mode(mode)
    if octal is not None:
        return current[0] + octal
    match = re.fullmatch(r"([ugoa]*)([+-])([rwx]+)", mode)
    if not match:
        return None
    who = match.group(1) or "a"
    if "a" in who:
        who = "ugo"
    bits = list(current)
    offsets = {"u": 1, "g": 4, "o": 7}
    for w in who:
        for perm in match.group(3):
            idx = offsets[w] + "rwx".index(perm)
            bits[idx] = perm if match.group(2) == "+" else "-"
    return "".join(bits)


def _cmd_chown(cmd: Command, state: SessionState) -> CommandResult:
    args = _operands(cmd.args)
    if len(args) < 2:
        return usage("chown: missing operand")
    owner = args[0].split(":")[0]
    targets = args[1:]
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        if not state.fs.exists(path):
            return _miss(f"chown: cannot access '{target}': No such file or directory")
        if not state.privileged:
            return permission_denied(f"chown: changing ownership of '{target}': Operation not permitted")
    for target in targets:
        state.fs.set_owner(state.fs.resolve(state.cwd, target), owner)
    return ok("")


def _cmd_ln(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if len(targets) < 2:
        return usage("ln: missing file operand")
    src_arg, link_arg = targets[0], targets[1]
    src = state.fs.resolve(state.cwd, src_arg)
    link = state.fs.resolve(state.cwd, link_arg)
    node = state.fs.get(src)
    if node is None and "s" not in _flags(cmd):
        return _miss(f"ln: failed to access '{src_arg}': No such file or directory")
    if state.fs.exists(link):
        return failure(f"ln: failed to create symbolic link '{link_arg}': File exists", ErrorKind.STATE)
    if not state.fs.is_dir(posixpath.dirname(link)):
        return _miss(f"ln: failed to create symbolic link '{link_arg}': No such file or directory")
    if not _parent_writable(state, link):
        return permission_denied(f"ln: failed to create symbolic link '{link_arg}': Permission denied")
    content = node.content if node is not None and not node.is_dir else ""
    state.fs.write_file(link, content, owner=state.effective_user)
    if "s" in _flags(cmd):
        state.fs.set_permissions(link, "lrwxrwxrwx")
    return ok("")


# ---------- text processing on files ----------


def _text_tool(cmd: Command, state: SessionState) -> CommandResult:
    """grep/head/tail/wc/sort/uniq/cut/awk/sed reading a file operand."""
    name = cmd.name
    args = list(cmd.args)
    if name in ("head", "tail"):
        _, rest = pipes.parse_count(args)
        files = rest
    else:
        value_flags = {"cut": ("-d", "-f", "-c"), "awk": ("-F",), "sed": ("-e",)}.get(name, ())
        files = _operands(args, value_flags)
        if name in ("grep", "awk", "sed"):
            files = files[1:]
    if name == "sed" and "-i" in args and files:
        return _sed_in_place(cmd, state, files[-1])
    if not files:
        if name == "tr":
            return usage("tr: requires piped input (e.g. echo hello | tr 'a-z' 'A-Z')")
        return usage(f"{name}: missing file operand (give a FILE or pipe input)")
    target = files[-1]
    content, err = _read_file(state, name, target)
    if err is not None:
        return err
    remaining = list(args)
    remaining.reverse()
    remaining.remove(target)
    remaining.reverse()
    if name == "grep":
        result = pipes.grep_text(remaining, content or "", highlight=True)
    else:
        result = pipes.RECEIVERS[name](remaining, content or "")
    if result.success and name == "wc":
        result = result.with_output(f"{result.output} {target}")
    if result.success:
        return result.with_points(POINTS.get(name, 0))
    return result


def _sed_in_place(cmd: Command, state: SessionState, target: str) -> CommandResult:
    content, err = _read_file(state, "sed", target)
    if err is not None:
        return err
    path = state.fs.resolve(state.cwd, target)
    if not state.fs.can_write(path, state.privileged):
        return permission_denied(f"sed: couldn't open temporary file {target}: Permission denied")
    script_args = [a for a in cmd.args if a not in ("-i", target)]
    result = pipes.sed_text(script_args, content or "")
    if not result.success:
        return result
    state.fs.write_file(path, result.output)
    return ok("")


def _cmd_tr(cmd: Command, state: SessionState) -> CommandResult:
    return usage("tr: requires piped input (e.g. echo hello | tr 'a-z' 'A-Z')")


# ---------- editors ----------


def _cmd_nano(cmd: Command, state: SessionState) -> CommandResult:
    target = cmd.arg(0)
    content = ""
    if target:
        path = state.fs.resolve(state.cwd, target)
        node = state.fs.get(path)
        if node is not None and not node.is_dir and state.fs.can_read(path, state.privileged):
            content = node.content
    title = target or "New Buffer"
    return ok(
        f"  GNU nano 7.2                  {title}\n\n{content}\n\n"
        "[ Simulated editor: interactive editing is not available in this lab ]\n"
        "^G Help    ^O Write Out    ^W Where Is    ^K Cut    ^X Exit"
    )


def _cmd_vim(cmd: Command, state: SessionState) -> CommandResult:
    target = cmd.arg(0)
    if not target:
        return ok(
            "~\n~              VIM - Vi IMproved\n~\n~              version 9.0.1378\n~\n"
            "[ Simulated editor: interactive editing is not available in this lab ]"
        )
    path = state.fs.resolve(state.cwd, target)
    node = state.fs.get(path)
    if node is None or node.is_dir:
        status = f'"{target}" [New]'
        body = ""
    else:
        if not state.fs.can_read(path, state.privileged):
            return permission_denied(f'"{target}" [Permission Denied]')
        body = node.content
        status = f'"{target}" {len(body.splitlines())}L, {node.size}B'
    tildes = "\n".join("~" for _ in range(5))
    return ok(
        f"{body}\n{tildes}\n{status}\n"
        "[ Simulated editor: interactive editing is not available in this lab ]"
    )


# ---------- archives ----------


def _archive_members(state: SessionState, targets: List[str]) -> Tuple[List[str], int, Optional[CommandResult]]:
    members = []
    total = 0
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        if not state.fs.exists(path):
            return [], 0, _miss(f"{target}: Cannot stat: No such file or directory")
        for p, node in state.fs.walk(path):
            rel = target + p[len(path):]
            members.append(rel + ("/" if node.is_dir else ""))
            total += 0 if node.is_dir else node.size
    return members, total, None


def _cmd_tar(cmd: Command, state: SessionState) -> CommandResult:
    if not cmd.args:
        return usage("tar: You must specify one of the '-Acdtrux', '--delete' or '--test-label' options")
    mode = cmd.args[0].lstrip("-")
    rest = list(cmd.args[1:])
    if "f" not in mode or not rest:
        return usage("tar: Refusing to read archive contents from terminal (missing -f option?)")
    archive = rest.pop(0)
    verbose = "v" in mode
    path = state.fs.resolve(state.cwd, archive)
    if "c" in mode:
        if not rest:
            return usage("tar: Cowardly refusing to create an empty archive")
        members, total, err = _archive_members(state, rest)
        if err is not None:
            return err
        if not state.fs.is_dir(posixpath.dirname(path)) or not _parent_writable(state, path):
            return permission_denied(f"tar: {archive}: Cannot open: Permission denied")
        state.fs.write_file(path, "\n".join(members), owner=state.effective_user)
        return ok("\n".join(members) if verbose else "")
    content, err = _read_file(state, "tar", archive)
    if err is not None:
        return err
    if "t" in mode or ("x" in mode and verbose):
        return ok(content or "")
    if "x" in mode:
        return ok("")
    return usage("tar: You must specify one of the '-Acdtrux', '--delete' or '--test-label' options")


def _cmd_gzip(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    decompress = cmd.name == "gunzip" or "d" in _flags(cmd)
    if not targets:
        return usage(f"{cmd.name}: compressed data not written to a terminal.")
    moves = []
    for target in targets:
        path = state.fs.resolve(state.cwd, target)
        if not state.fs.is_file(path):
            return _miss(f"{cmd.name}: {target}: No such file or directory")
        if decompress:
            if not path.endswith(".gz"):
                return failure(f"{cmd.name}: {target}: unknown suffix -- ignored", ErrorKind.USAGE)
            moves.append((path, path[:-3]))
        else:
            if path.endswith(".gz"):
                return failure(f"gzip: {target} already has .gz suffix -- unchanged", ErrorKind.USAGE)
            moves.append((path, path + ".gz"))
        if not _parent_writable(state, path):
            return permission_denied(f"{cmd.name}: {target}: Permission denied")
    for src, dst in moves:
        state.fs.move(src, dst)
    return ok("")


def _cmd_zip(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if len(targets) < 2:
        return usage("zip error: Nothing to do! (try: zip -r archive.zip files)")
    archive, sources = targets[0], targets[1:]
    if not archive.endswith(".zip"):
        archive += ".zip"
    members, _, err = _archive_members(state, sources)
    if err is not None:
        return failure(f"\tzip warning: name not matched: {sources[0]}\n\nzip error: Nothing to do!", ErrorKind.LOOKUP_MISS)
    path = state.fs.resolve(state.cwd, archive)
    if not _parent_writable(state, path):
        return permission_denied(f"zip I/O error: Permission denied\nzip error: Could not create output file ({archive})")
    state.fs.write_file(path, "\n".join(members), owner=state.effective_user)
    return ok("\n".join(f"  adding: {m} (deflated 45%)" for m in members))


def _cmd_unzip(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args)
    if not targets:
        return usage("UnZip 6.00 of 20 April 2009\nUsage: unzip [-Z] [-opts[modifiers]] file[.zip] [list] [-x xlist] [-d exdir]")
    content, err = _read_file(state, "unzip", targets[0])
    if err is not None:
        return _miss(f"unzip:  cannot find or open {targets[0]}, {targets[0]}.zip or {targets[0]}.ZIP.")
    lines = [f"Archive:  {targets[0]}"]
    lines += [f"  inflating: {m}" for m in (content or "").splitlines()]
    return ok("\n".join(lines))


# ---------- processes and jobs ----------


def _cmd_ps(cmd: Command, state: SessionState) -> CommandResult:
    joined = "".join(cmd.args)
    if "aux" in joined or "ef" in joined or "a" in _flags(cmd):
        lines = ["USER         PID %CPU %MEM    VSZ   RSS TTY      STAT START   TIME COMMAND"]
        for user, pid, cpu, mem, vsz, rss, tty, stat, start, time, command in PROCESSES:
            lines.append(
                f"{user:<10} {pid:>5} {cpu:>4} {mem:>4} {vsz:>6} {rss:>5} {tty:<8} {stat:<4} {start:>5} {time:>6} {command}"
            )
        for job in state.jobs.values():
            lines.append(
                f"{state.username:<10} {job.pid:>5}  0.0  0.1  12345  4321 pts/0    S    10:30   0:00 {job.command}"
            )
        return ok("\n".join(lines)).with_points(POINTS["ps"])
    lines = ["    PID TTY          TIME CMD", "   1337 pts/0    00:00:00 bash"]
    for job in state.jobs.values():
        lines.append(f"{job.pid:>7} pts/0    00:00:00 {job.command.split()[0]}")
    lines.append("   2048 pts/0    00:00:00 ps")
    return ok("\n".join(lines)).with_points(POINTS["ps"])


def _cmd_top(cmd: Command, state: SessionState) -> CommandResult:
    lines = [
        "top - 10:30:00 up  2:30,  1 user,  load average: 0.52, 0.58, 0.59",
        "Tasks: 187 total,   1 running, 186 sleeping,   0 stopped,   0 zombie",
        "%Cpu(s):  2.3 us,  0.7 sy,  0.0 ni, 96.8 id,  0.2 wa,  0.0 hi,  0.0 si,  0.0 st",
        "MiB Mem :   3931.5 total,   1523.4 free,   1204.7 used,   1203.4 buff/cache",
        "MiB Swap:   1024.0 total,   1024.0 free,      0.0 used.   2456.8 avail Mem",
        "",
        "    PID USER      PR  NI    VIRT    RES    SHR S  %CPU  %MEM     TIME+ COMMAND",
    ]
    for user, pid, cpu, mem, vsz, rss, _tty, _stat, _start, time, command in PROCESSES:
        name = command.split()[0].rsplit("/", 1)[-1]
        lines.append(f"{pid:>7} {user:<9} 20   0 {vsz:>7} {rss:>6}   8192 S {cpu:>5} {mem:>5}   {time}.00 {name}")
    lines.append("[ Simulated snapshot - press q to quit in a real terminal ]")
    return ok("\n".join(lines))


def _cmd_free(cmd: Command, state: SessionState) -> CommandResult:
    if "h" in _flags(cmd):
        return ok(
            "               total        used        free      shared  buff/cache   available\n"
            "Mem:           3.8Gi       1.2Gi       1.5Gi        12Mi       1.2Gi       2.4Gi\n"
            "Swap:          1.0Gi          0B       1.0Gi"
        )
    return ok(
        "               total        used        free      shared  buff/cache   available\n"
        "Mem:         4025856     1233612     1559962       12480     1232282     2515763\n"
        "Swap:        1048572           0     1048572"
    )


def _cmd_df(cmd: Command, state: SessionState) -> CommandResult:
    if "h" in _flags(cmd):
        return ok(
            "Filesystem      Size  Used Avail Use% Mounted on\n"
            "udev            1.9G     0  1.9G   0% /dev\n"
            "tmpfs           394M  1.2M  393M   1% /run\n"
            "/dev/sda1        79G   18G   57G  24% /\n"
            "tmpfs           2.0G     0  2.0G   0% /dev/shm"
        )
    return ok(
        "Filesystem     1K-blocks     Used Available Use% Mounted on\n"
        "udev             1969780        0   1969780   0% /dev\n"
        "tmpfs             402812     1224    401588   1% /run\n"
        "/dev/sda1       81987992 18874368  59752888  24% /\n"
        "tmpfs            2014060        0   2014060   0% /dev/shm"
    )


SIGNALS = (
    " 1) SIGHUP\t 2) SIGINT\t 3) SIGQUIT\t 4) SIGILL\t 5) SIGTRAP\n"
    " 6) SIGABRT\t 7) SIGBUS\t 8) SIGFPE\t 9) SIGKILL\t10) SIGUSR1\n"
    "11) SIGSEGV\t12) SIGUSR2\t13) SIGPIPE\t14) SIGALRM\t15) SIGTERM"
)


def job_ref(arg: str, state: SessionState) -> Optional[int]:
    if arg in ("", "%", "%+", "%%"):
        return max(state.jobs) if state.jobs else None
    ref = arg.lstrip("%")
    if ref.isdigit() and int(ref) in state.jobs:
        return int(ref)
    return None


def _cmd_kill(cmd: Command, state: SessionState) -> CommandResult:
    if "l" in _flags(cmd):
        return ok(SIGNALS)
    targets = [a for a in cmd.args if not re.fullmatch(r"-\w+", a)]
    if not targets:
        return usage("kill: usage: kill [-s sigspec | -n signum | -sigspec] pid | jobspec ... or kill -l [sigspec]")
    target = targets[0]
    if target.startswith("%"):
        job_id = job_ref(target, state)
        if job_id is None:
            return _miss(f"bash: kill: {target}: no such job")
        job = state.jobs.pop(job_id)
        return ok(f"[{job.id}]+  Terminated              {job.command}")
    if not target.isdigit():
        return usage(f"bash: kill: {target}: arguments must be process or job IDs")
    pid = int(target)
    if pid == 1 or (not state.privileged and any(p[1] == pid and p[0] != state.username for p in PROCESSES)):
        return permission_denied(f"bash: kill: ({pid}) - Operation not permitted")
    for job_id, job in list(state.jobs.items()):
        if job.pid == pid:
            del state.jobs[job_id]
            return ok(f"[{job.id}]+  Terminated              {job.command}")
    if any(p[1] == pid for p in PROCESSES):
        return ok("")
    return _miss(f"bash: kill: ({pid}) - No such process")


def _cmd_jobs(cmd: Command, state: SessionState) -> CommandResult:
    lines = []
    ids = sorted(state.jobs)
    for job_id in ids:
        job = state.jobs[job_id]
        marker = "+" if job_id == ids[-1] else ("-" if len(ids) > 1 and job_id == ids[-2] else " ")
        suffix = " &" if job.status == "Running" else ""
        lines.append(f"[{job.id}]{marker}  {job.status:<24}{job.command}{suffix}")
    return ok("\n".join(lines))


def _cmd_bg(cmd: Command, state: SessionState) -> CommandResult:
    job_id = job_ref(cmd.arg(0), state)
    if job_id is None:
        return _miss(f"bash: bg: {cmd.arg(0) or 'current'}: no such job")
    job = state.jobs[job_id]
    job.status = "Running"
    return ok(f"[{job.id}]+ {job.command} &")


# ---------- networking ----------


def _resolve_host(target: str) -> str:
    if re.fullmatch(r"\d{1,3}(\.\d{1,3}){3}", target):
        return target
    return KNOWN_HOSTS.get(target.lower(), "93.184.216.34")


def _cmd_ifconfig(cmd: Command, state: SessionState) -> CommandResult:
    return ok(
        "eth0: flags=4163<UP,BROADCAST,RUNNING,MULTICAST>  mtu 1500\n"
        f"        inet {LOCAL_IP}  netmask 255.255.255.0  broadcast 192.168.1.255\n"
        "        inet6 fe80::20c:29ff:feab:cdef  prefixlen 64  scopeid 0x20<link>\n"
        "        ether 00:0c:29:ab:cd:ef  txqueuelen 1000  (Ethernet)\n"
        "        RX packets 125847  bytes 98234521 (93.6 MiB)\n"
        "        TX packets 67234  bytes 12345678 (11.7 MiB)\n"
        "\n"
        "lo: flags=73<UP,LOOPBACK,RUNNING>  mtu 65536\n"
        "        inet 127.0.0.1  netmask 255.0.0.0\n"
        "        inet6 ::1  prefixlen 128  scopeid 0x10<host>\n"
        "        loop  txqueuelen 1000  (Local Loopback)\n"
        "        RX packets 1234  bytes 123456 (120.5 KiB)\n"
        "        TX packets 1234  bytes 123456 (120.5 KiB)"
    ).with_points(POINTS["ifconfig"])


def _cmd_ip(cmd: Command, state: SessionState) -> CommandResult:
    sub = cmd.arg(0)
    if sub in ("a", "addr", "address"):
        return ok(
            "1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN group default qlen 1000\n"
            "    link/loopback 00:00:00:00:00:00 brd 00:00:00:00:00:00\n"
            "    inet 127.0.0.1/8 scope host lo\n"
            "2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc fq_codel state UP group default qlen 1000\n"
            "    link/ether 00:0c:29:ab:cd:ef brd ff:ff:ff:ff:ff:ff\n"
            f"    inet {LOCAL_IP}/24 brd 192.168.1.255 scope global dynamic eth0"
        ).with_points(POINTS["ip"])
    if sub in ("r", "route"):
        return ok(
            "default via 192.168.1.1 dev eth0 proto dhcp metric 100\n"
            f"192.168.1.0/24 dev eth0 proto kernel scope link src {LOCAL_IP} metric 100"
        ).with_points(POINTS["ip"])
    return usage(
        "Usage: ip [ OPTIONS ] OBJECT { COMMAND | help }\n"
        "where  OBJECT := { address | route | link | neigh }"
    )


def _cmd_ping(cmd: Command, state: SessionState) -> CommandResult:
    count = 4
    args = list(cmd.args)
    if "-c" in args:
        idx = args.index("-c")
        if idx + 1 < len(args) and args[idx + 1].isdigit():
            count = int(args[idx + 1])
            del args[idx:idx + 2]
        else:
            return usage("ping: option requires an argument -- 'c'")
    targets = _operands(args)
    if not targets:
        return usage("ping: usage error: Destination address required")
    target = targets[0]
    ip = _resolve_host(target)
    lines = [f"PING {target} ({ip}) 56(84) bytes of data."]
    for seq in range(1, count + 1):
        lines.append(f"64 bytes from {ip}: icmp_seq={seq} ttl=64 time={0.4 + seq * 0.1:.1f} ms")
    lines += [
        "",
        f"--- {target} ping statistics ---",
        f"{count} packets transmitted, {count} received, 0% packet loss, time {count * 1000 - 997}ms",
        "rtt min/avg/max/mdev = 0.500/0.750/1.000/0.180 ms",
    ]
    return ok("\n".join(lines)).with_points(POINTS["ping"])


LISTENING = [
    ("tcp", "0.0.0.0:22", "0.0.0.0:*", "LISTEN", "689/sshd"),
    ("tcp", "127.0.0.1:3306", "0.0.0.0:*", "LISTEN", "812/mysqld"),
    ("tcp6", ":::80", ":::*", "LISTEN", "901/apache2"),
    ("udp", "0.0.0.0:68", "0.0.0.0:*", "", "512/dhclient"),
]


def _cmd_netstat(cmd: Command, state: SessionState) -> CommandResult:
    flags = _flags(cmd)
    if "l" in flags:
        lines = [
            "Active Internet connections (only servers)",
            "Proto Recv-Q Send-Q Local Address           Foreign Address         State       PID/Program name",
        ]
        for proto, local, foreign, st, prog in LISTENING:
            lines.append(f"{proto:<5}      0      0 {local:<23} {foreign:<23} {st:<11} {prog if 'p' in flags else '-'}")
        return ok("\n".join(lines)).with_points(POINTS["netstat"])
    return ok(
        "Active Internet connections (w/o servers)\n"
        "Proto Recv-Q Send-Q Local Address           Foreign Address         State\n"
        f"tcp        0      0 {LOCAL_IP}:22         192.168.1.10:51234      ESTABLISHED\n"
        f"tcp        0      0 {LOCAL_IP}:45678      192.168.1.100:80        TIME_WAIT"
    ).with_points(POINTS["netstat"])


def _cmd_ss(cmd: Command, state: SessionState) -> CommandResult:
    lines = ["Netid State  Recv-Q Send-Q Local Address:Port  Peer Address:Port Process"]
    for proto, local, foreign, st, prog in LISTENING:
        netid = "udp" if proto.startswith("udp") else "tcp"
        shown_state = "UNCONN" if netid == "udp" else "LISTEN"
        lines.append(f"{netid:<5} {shown_state:<6} 0      128    {local:<19} {foreign:<17}")
    return ok("\n".join(lines)).with_points(POINTS["ss"])


def _cmd_arp(cmd: Command, state: SessionState) -> CommandResult:
    if "n" in _flags(cmd) or not cmd.args:
        return ok(
            "Address                  HWtype  HWaddress           Flags Mask            Iface\n"
            "192.168.1.1              ether   00:50:56:c0:00:08   C                     eth0\n"
            "192.168.1.100            ether   00:0c:29:11:22:33   C                     eth0\n"
            "192.168.1.101            ether   00:0c:29:44:55:66   C                     eth0"
        ).with_points(POINTS["arp"])
    return ok(
        "gateway (192.168.1.1) at 00:50:56:c0:00:08 [ether] on eth0\n"
        "target.local (192.168.1.100) at 00:0c:29:11:22:33 [ether] on eth0\n"
        "db.target.local (192.168.1.101) at 00:0c:29:44:55:66 [ether] on eth0"
    ).with_points(POINTS["arp"])


def _cmd_tcpdump(cmd: Command, state: SessionState) -> CommandResult:
    if not state.privileged:
        return permission_denied(
            "tcpdump: eth0: You don't have permission to perform this capture on that device\n"
            "(socket: Operation not permitted)"
        )
    return ok(
        "tcpdump: verbose output suppressed, use -v[v]... for full protocol decode\n"
        "listening on eth0, link-type EN10MB (Ethernet), snapshot length 262144 bytes\n"
        f"10:30:00.000001 IP {LOCAL_IP}.45678 > 192.168.1.100.http: Flags [S], seq 1000, win 64240, length 0\n"
        f"10:30:00.000412 IP 192.168.1.100.http > {LOCAL_IP}.45678: Flags [S.], seq 2000, ack 1001, win 65160, length 0\n"
        f"10:30:00.000523 IP {LOCAL_IP}.45678 > 192.168.1.100.http: Flags [.], ack 1, win 502, length 0\n"
        "3 packets captured\n3 packets received by filter\n0 packets dropped by kernel"
    ).with_points(POINTS["tcpdump"])


def _cmd_lsof(cmd: Command, state: SessionState) -> CommandResult:
    if "-i" in cmd.args:
        return ok(
            "COMMAND   PID    USER   FD   TYPE DEVICE SIZE/OFF NODE NAME\n"
            "sshd      689    root    3u  IPv4  18423      0t0  TCP *:ssh (LISTEN)\n"
            "mysqld    812   mysql   21u  IPv4  19876      0t0  TCP localhost:mysql (LISTEN)\n"
            "apache2   901    root    4u  IPv6  20112      0t0  TCP *:http (LISTEN)"
        ).with_points(POINTS["lsof"])
    return ok(
        "COMMAND  PID    USER   FD   TYPE DEVICE SIZE/OFF    NODE NAME\n"
        f"bash    1337 {state.username}  cwd    DIR    8,1     4096  131074 {state.cwd}\n"
        f"bash    1337 {state.username}  txt    REG    8,1  1234376  262147 /usr/bin/bash\n"
        f"bash    1337 {state.username}    0u   CHR  136,0      0t0       3 /dev/pts/0"
    ).with_points(POINTS["lsof"])


def _cmd_curl(cmd: Command, state: SessionState) -> CommandResult:
    urls = [a for a in _operands(cmd.args, ("-o", "-X", "-H", "-d", "-A")) if "." in a or a.startswith("http")]
    if not urls:
        return usage("curl: try 'curl --help' or 'curl --manual' for more information")
    url = urls[0]
    host = re.sub(r"^https?://", "", url).split("/")[0]
    headers = (
        "HTTP/1.1 200 OK\n"
        f"Date: Mon, 15 Jan 2024 03:30:00 GMT\n"
        "Server: Apache/2.4.6 (CentOS) OpenSSL/1.0.2k-fips PHP/7.4.3\n"
        "X-Powered-By: PHP/7.4.3\n"
        "Content-Type: text/html; charset=UTF-8"
    )
    if "-I" in cmd.args or "--head" in cmd.args:
        return ok(headers).with_points(POINTS["curl"])
    body = (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        f"    <title>Welcome to {host}</title>\n"
        "</head>\n<body>\n"
        f"    <h1>{host}</h1>\n"
        "    <p>Simulated response from the training network.</p>\n"
        "    <!-- TODO: remove /admin link before go-live -->\n"
        '    <a href="/login">Login</a>\n'
        "</body>\n</html>"
    )
    if "-i" in cmd.args:
        body = headers + "\n\n" + body
    return ok(body).with_points(POINTS["curl"])


def _cmd_wget(cmd: Command, state: SessionState) -> CommandResult:
    urls = _operands(cmd.args, ("-O", "-o"))
    if not urls:
        return usage("wget: missing URL\nUsage: wget [OPTION]... [URL]...")
    url = urls[0]
    host = re.sub(r"^https?://", "", url).split("/")[0]
    filename = url.rstrip("/").rsplit("/", 1)[-1] if "/" in re.sub(r"^https?://", "", url) else "index.html"
    return ok(
        f"--2024-01-15 10:30:00--  {url}\n"
        f"Resolving {host} ({host})... {_resolve_host(host)}\n"
        f"Connecting to {host} ({host})|{_resolve_host(host)}|:80... connected.\n"
        "HTTP request sent, awaiting response... 200 OK\n"
        "Length: 1256 (1.2K) [text/html]\n"
        f"Saving to: '{filename}'\n\n"
        f"{filename}          100%[===================>]   1.23K  --.-KB/s    in 0s\n\n"
        f"2024-01-15 10:30:00 (45.6 MB/s) - '{filename}' saved [1256/1256]\n"
        "[Simulated - file not actually downloaded]"
    ).with_points(POINTS["wget"])


def _cmd_ssh(cmd: Command, state: SessionState) -> CommandResult:
    targets = _operands(cmd.args, ("-p", "-i", "-l"))
    if not targets:
        return usage(
            "usage: ssh [-46AaCfGgKkMNnqsTtVvXxYy] [-B bind_interface] [-b bind_address]\n"
            "           [-c cipher_spec] [-D [bind_address:]port] [-E log_file] destination [command]"
        )
    host = targets[0].split("@")[-1]
    port = cmd.args[cmd.args.index("-p") + 1] if "-p" in cmd.args and cmd.args.index("-p") + 1 < len(cmd.args) else "22"
    return failure(f"ssh: connect to host {host} port {port}: Connection refused", ErrorKind.LOOKUP_MISS)


def _cmd_nc(cmd: Command, state: SessionState) -> CommandResult:
    flags = _flags(cmd)
    operands = _operands(cmd.args, ("-p", "-e", "-w"))
    if "l" in flags:
        port = cmd.args[cmd.args.index("-p") + 1] if "-p" in cmd.args and cmd.args.index("-p") + 1 < len(cmd.args) else (operands[0] if operands else "4444")
        return ok(f"listening on [any] {port} ...\n[Simulated - no incoming connection in this lab]").with_points(POINTS["nc"])
    if len(operands) < 2:
        return usage("usage: nc [-46CDdFhklNnrStUuvZz] [-I length] [-i interval] [-M ttl]\n\t  [destination] [port]")
    host, port = operands[0], operands[1]
    ip = _resolve_host(host)
    if "z" in flags:
        return ok(f"{host} [{ip}] {port} (?) open").with_points(POINTS["nc"])
    return ok(f"(UNKNOWN) [{ip}] {port} (?) open\n[Simulated - connection closed]").with_points(POINTS["nc"])


SUDO_APT_NOTICE = (
    "Reading package lists... Done\n"
    "Building dependency tree... Done\n"
    "This is a simulated environment. Package management is not available."
)
SUDO_SYSTEMCTL_NOTICE = "System control is simulated in this environment."


def _cmd_apt(cmd: Command, state: SessionState) -> CommandResult:
    sub = cmd.arg(0)
    if state.privileged:
        return ok(SUDO_APT_NOTICE)
    if sub in ("install", "update", "upgrade", "remove"):
        return permission_denied(
            "E: Could not open lock file /var/lib/dpkg/lock-frontend - open (13: Permission denied)\n"
            "E: Unable to acquire the dpkg frontend lock (/var/lib/dpkg/lock-frontend), are you root?"
        )
    return ok("apt 2.6.1 (amd64)\nUsage: apt [options] command\n[Simulated package manager]")


def _cmd_systemctl(cmd: Command, state: SessionState) -> CommandResult:
    action, unit = cmd.arg(0), cmd.arg(1)
    if state.privileged:
        return ok(SUDO_SYSTEMCTL_NOTICE)
    if action in ("start", "stop", "restart", "enable", "disable"):
        return permission_denied(
            f"Failed to {action} {unit}.service: Access denied\n"
            "See system logs and 'systemctl status' for details."
        )
    if action == "status":
        name = unit or "ssh"
        return ok(
            f"● {name}.service - {name} daemon\n"
            f"     Loaded: loaded (/lib/systemd/system/{name}.service; enabled; preset: enabled)\n"
            "     Active: active (running) since Mon 2024-01-15 08:00:00 WIB; 2h 30min ago"
        )
    return usage("systemctl [OPTIONS...] COMMAND ...")


HANDLERS: Dict[str, Handler] = {
    "whoami": _cmd_whoami,
    "id": _cmd_id,
    "groups": _cmd_groups,
    "hostname": _cmd_hostname,
    "uname": _cmd_uname,
    "date": _cmd_date,
    "uptime": _cmd_uptime,
    "dmesg": _cmd_dmesg,
    "mount": _cmd_mount,
    "pwd": _cmd_pwd,
    "cd": _cmd_cd,
    "ls": _cmd_ls,
    "ll": _cmd_ll,
    "cat": _cmd_cat,
    "less": _pager,
    "more": _pager,
    "file": _cmd_file,
    "which": _cmd_which,
    "find": lambda cmd, state: _cmd_find(cmd, state).with_points(POINTS["find"]),
    "stat": _cmd_stat,
    "du": _cmd_du,
    "diff": _cmd_diff,
    "echo": _cmd_echo,
    "env": _cmd_env,
    "printenv": _cmd_printenv,
    "export": _cmd_export,
    "alias": _cmd_alias,
    "source": _cmd_source,
    ".": _cmd_source,
    "history": _cmd_history,
    "man": _cmd_man,
    "exit": _cmd_exit,
    "logout": _cmd_exit,
    "su": _cmd_su,
    "passwd": _cmd_passwd,
    "touch": _cmd_touch,
    "mkdir": _cmd_mkdir,
    "rm": _cmd_rm,
    "cp": _cmd_cp,
    "mv": _cmd_mv,
    "chmod": _cmd_chmod,
    "chown": _cmd_chown,
    "ln": _cmd_ln,
    "grep": _text_tool,
    "head": _text_tool,
    "tail": _text_tool,
    "wc": _text_tool,
    "sort": _text_tool,
    "uniq": _text_tool,
    "cut": _text_tool,
    "awk": _text_tool,
    "sed": _text_tool,
    "tr": _cmd_tr,
    "nano": _cmd_nano,
    "vim": _cmd_vim,
    "vi": _cmd_vim,
    "tar": _cmd_tar,
    "gzip": _cmd_gzip,
    "gunzip": _cmd_gzip,
    "zip": _cmd_zip,
    "unzip": _cmd_unzip,
    "ps": _cmd_ps,
    "top": _cmd_top,
    "free": _cmd_free,
    "df": _cmd_df,
    "kill": _cmd_kill,
    "jobs": _cmd_jobs,
    "bg": _cmd_bg,
    "ifconfig": _cmd_ifconfig,
    "ip": _cmd_ip,
    "ping": _cmd_ping,
    "netstat": _cmd_netstat,
    "ss": _cmd_ss,
    "arp": _cmd_arp,
    "tcpdump": _cmd_tcpdump,
    "lsof": _cmd_lsof,
    "curl": _cmd_curl,
    "wget": _cmd_wget,
    "ssh": _cmd_ssh,
    "nc": _cmd_nc,
    "netcat": _cmd_nc,
    "apt": _cmd_apt,
    "apt-get": _cmd_apt,
    "systemctl": _cmd_systemctl,
}

# Names Meterpreter takes over while the user is interacting with a session
METERPRETER_SHADOWED = frozenset({"ls", "pwd", "ps", "exit"})


def handle(cmd: Command, state: SessionState) -> Optional[CommandResult]:
    """Run a Linux utility, or None if this family does not take the command."""
    handler = HANDLERS.get(cmd.name)
    if handler is None:
        return None
    if state.msf.interacting and cmd.name in METERPRETER_SHADOWED:
        return None
    return handler(cmd, state)
