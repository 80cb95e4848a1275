"""Virtual filesystem for a simulated workstation.

Each session owns one ``VirtualFilesystem``: a flat mapping of absolute
path -> ``FsNode``. Every path other than ``/`` has an existing directory as
its parent; all mutating operations keep that true.

Permissions are ls-style strings ("drwxr-xr-x"). Reads and writes are
checked against the owner and the "other" triad only; the privileged flag
(sudo) bypasses every check.
"""

from __future__ import annotations

import fnmatch
import posixpath
import zlib
from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Tuple

DIR = "dir"
FILE = "file"

# Fixed modification time shown by ls -l and stat
MTIME_SHORT = "Dec 19 10:00"
MTIME_FULL = "2023-12-19 10:00:00.000000000 +0700"

TARGETS_TXT = """# Target List for Penetration Testing
# =====================================

192.168.1.100    - Web Server (Apache)
192.168.1.101    - Database Server (MySQL)
192.168.1.102    - Mail Server
10.0.0.50        - Internal Gateway
example-company.com - Primary Target Domain"""

NOTES_TXT = """Lab Notes:
- Scan with nmap -sV first
- Check WHOIS for domain info
- Use nikto to scan web vulnerabilities"""

WORDLIST_TXT = "\n".join(
    [
        "admin",
        "password",
        "123456",
        "password123",
        "admin123",
        "root",
        "toor",
        "qwerty",
        "letmein",
        "welcome",
        "monkey",
        "dragon",
        "master",
        "1234567890",
        "abc123",
    ]
)

PASSWD = """root:x:0:0:root:/root:/bin/bash
daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin
bin:x:2:2:bin:/bin:/usr/sbin/nologin
sys:x:3:3:sys:/dev:/usr/sbin/nologin
sync:x:4:65534:sync:/bin:/bin/sync
games:x:5:60:games:/usr/games:/usr/sbin/nologin
man:x:6:12:man:/var/cache/man:/usr/sbin/nologin
lp:x:7:7:lp:/var/spool/lpd:/usr/sbin/nologin
mail:x:8:8:mail:/var/mail:/usr/sbin/nologin
news:x:9:9:news:/var/spool/news:/usr/sbin/nologin
student:x:1000:1000:Student User:/home/student:/bin/bash
www-data:x:33:33:www-data:/var/www:/usr/sbin/nologin
mysql:x:27:27:MySQL Server:/var/lib/mysql:/bin/false"""

SHADOW = """root:$6$xyz123:19356:0:99999:7:::
daemon:*:19356:0:99999:7:::
bin:*:19356:0:99999:7:::
sys:*:19356:0:99999:7:::
student:$6$abc456$hashed.password.here:19356:0:99999:7:::
www-data:*:19356:0:99999:7:::
mysql:!:19356:0:99999:7:::"""

HOSTS = """127.0.0.1       localhost
127.0.1.1       kali
192.168.1.100   target.local
192.168.1.101   db.target.local
10.0.0.1        gateway.local

# IPv6
::1             localhost ip6-localhost ip6-loopback
ff02::1         ip6-allnodes
ff02::2         ip6-allrouters"""

BASHRC = """# ~/.bashrc: executed by bash(1) for non-login shells.
export PS1='\\u@\\h:\\w\\$ '
alias ll='ls -alF'
alias la='ls -A'"""


@dataclass(frozen=True)
class FsNode:
    """A file or directory in the virtual filesystem."""

    kind: str
    permissions: str
    owner: str
    size: int = 0
    content: str = ""

    @property
    def is_dir(self) -> bool:
        return self.kind == DIR


def _dir(owner: str = "root", permissions: str = "drwxr-xr-x") -> FsNode:
    return FsNode(kind=DIR, permissions=permissions, owner=owner, size=4096)


def _file(
    content: str,
    owner: str = "root",
    permissions: str = "-rw-r--r--",
    size: Optional[int] = None,
) -> FsNode:
    return FsNode(
        kind=FILE,
        permissions=permissions,
        owner=owner,
        size=len(content.encode("utf-8")) if size is None else size,
        content=content,
    )


def seed_nodes(username: str = "student", home: str = "/home/student") -> Dict[str, FsNode]:
    """Initial tree every new session starts from."""
    nodes = {
        "/": _dir(),
        "/home": _dir(),
        home: _dir(owner=username),
        f"{home}/Desktop": _dir(owner=username),
        f"{home}/Documents": _dir(owner=username),
        f"{home}/targets.txt": _file(TARGETS_TXT, owner=username, size=156),
        f"{home}/notes.txt": _file(NOTES_TXT, owner=username, size=89),
        f"{home}/wordlist.txt": _file(WORDLIST_TXT, owner=username, size=2048),
        f"{home}/.bashrc": _file(BASHRC, owner=username),
        "/etc": _dir(),
        "/etc/passwd": _file(PASSWD, size=1847),
        "/etc/shadow": _file(SHADOW, permissions="-rw-r-----", size=1024),
        "/etc/hosts": _file(HOSTS),
        "/etc/hostname": _file("kali"),
        "/var": _dir(),
        "/var/log": _dir(),
        "/var/www": _dir(owner="www-data"),
        "/tmp": _dir(permissions="drwxrwxrwt"),
        "/usr": _dir(),
        "/usr/bin": _dir(),
        "/usr/share": _dir(),
        "/usr/share/wordlists": _dir(),
        "/usr/share/wordlists/rockyou.txt": _file(
            "[File too large to display - 14.3 million passwords]", size=139921497
        ),
        "/root": _dir(permissions="drwx------"),
        "/opt": _dir(),
        "/bin": _dir(),
    }
    return nodes


def normalize_path(cwd: str, target: str, home: str = "/home/student") -> str:
    """Resolve ``target`` against ``cwd`` into a clean absolute path."""
    if not target or target == "~":
        return home
    if target.startswith("~/"):
        target = home + target[1:]
    if not target.startswith("/"):
        target = posixpath.join(cwd, target)
    path = posixpath.normpath(target)
    # normpath keeps a leading "//"
    if path.startswith("//"):
        path = "/" + path.lstrip("/")
    return path


class VirtualFilesystem:
    """Path -> node mapping with parent-exists invariant."""

    def __init__(
        self,
        nodes: Optional[Dict[str, FsNode]] = None,
        username: str = "student",
        home: str = "/home/student",
    ):
        self.username = username
        self.home = home
        self._nodes: Dict[str, FsNode] = (
            dict(nodes) if nodes is not None else seed_nodes(username, home)
        )

    # ---------- lookups ----------

    def resolve(self, cwd: str, target: str) -> str:
        return normalize_path(cwd, target, self.home)

    def get(self, path: str) -> Optional[FsNode]:
        return self._nodes.get(path)

    def exists(self, path: str) -> bool:
        return path in self._nodes

    def is_dir(self, path: str) -> bool:
        node = self._nodes.get(path)
        return node is not None and node.is_dir

    def is_file(self, path: str) -> bool:
        node = self._nodes.get(path)
        return node is not None and not node.is_dir

    def children(self, path: str) -> List[Tuple[str, FsNode]]:
        """Direct children of a directory as (name, node), sorted by name."""
        prefix = path.rstrip("/") + "/"
        found = []
        for p, node in self._nodes.items():
            if p != "/" and p.startswith(prefix) and "/" not in p[len(prefix):]:
                found.append((p[len(prefix):], node))
        return sorted(found, key=lambda item: item[0])

    def walk(self, path: str) -> Iterator[Tuple[str, FsNode]]:
        """Yield ``path`` and every descendant, sorted."""
        prefix = path.rstrip("/") + "/"
        for p in sorted(self._nodes):
            if p == path or (p.startswith(prefix) and p != "/"):
                yield p, self._nodes[p]

    def paths(self) -> List[str]:
        return sorted(self._nodes)

    def inode(self, path: str) -> int:
        return zlib.crc32(path.encode("utf-8")) % 1000000 + 100000

    # ---------- permissions ----------

    def can_read(self, path: str, privileged: bool = False) -> bool:
        node = self._nodes.get(path)
        if node is None:
            return False
        if privileged:
            return True
        if node.owner == self.username:
            return node.permissions[1] == "r"
        return node.permissions[7] == "r"

    def can_write(self, path: str, privileged: bool = False) -> bool:
        node = self._nodes.get(path)
        if node is None:
            return False
        if privileged:
            return True
        if node.owner == self.username:
            return node.permissions[2] == "w"
        return node.permissions[8] == "w"

    def can_enter(self, path: str, privileged: bool = False) -> bool:
        node = self._nodes.get(path)
        if node is None or not node.is_dir:
            return False
        if privileged:
            return True
        if node.owner == self.username:
            return node.permissions[3] in ("x", "s", "t")
        return node.permissions[9] in ("x", "t")

    # ---------- mutations ----------
    # Callers validate first; these raise on invariant violations.

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if not self.is_dir(parent):
            raise FileNotFoundError(parent)

    def write_file(
        self, path: str, content: str, owner: Optional[str] = None, append: bool = False
    ) -> FsNode:
        self._require_parent(path)
        existing = self._nodes.get(path)
        if existing is not None and existing.is_dir:
            raise IsADirectoryError(path)
        if existing is not None:
            text = existing.content + content if append else content
            node = replace(existing, content=text, size=len(text.encode("utf-8")))
        else:
            node = _file(content, owner=owner or self.username)
        self._nodes[path] = node
        return node

    def touch(self, path: str, owner: Optional[str] = None) -> None:
        if path in self._nodes:
            return
        self.write_file(path, "", owner=owner)

    def mkdir(self, path: str, parents: bool = False, owner: Optional[str] = None) -> None:
        if parents:
            missing = []
            cur = path
            while cur not in self._nodes:
                missing.append(cur)
                cur = posixpath.dirname(cur)
            if not self._nodes[cur].is_dir:
                raise NotADirectoryError(cur)
            for p in reversed(missing):
                self._nodes[p] = _dir(owner=owner or self.username)
            return
        if path in self._nodes:
            raise FileExistsError(path)
        self._require_parent(path)
        self._nodes[path] = _dir(owner=owner or self.username)

    def remove(self, path: str) -> int:
        """Remove a node and its subtree; returns number of nodes removed."""
        if path == "/":
            raise PermissionError(path)
        doomed = [p for p, _ in self.walk(path)]
        for p in doomed:
            del self._nodes[p]
        return len(doomed)

    def copy(self, src: str, dst: str) -> None:
        self._require_parent(dst)
        for p, node in list(self.walk(src)):
            self._nodes[dst + p[len(src):]] = replace(node, owner=self.username)

    def move(self, src: str, dst: str) -> None:
        self._require_parent(dst)
        moved = list(self.walk(src))
        for p, _ in moved:
            del self._nodes[p]
        for p, node in moved:
            self._nodes[dst + p[len(src):]] = node

    def set_permissions(self, path: str, permissions: str) -> None:
        self._nodes[path] = replace(self._nodes[path], permissions=permissions)

    def set_owner(self, path: str, owner: str) -> None:
        self._nodes[path] = replace(self._nodes[path], owner=owner)

    # ---------- search / completion ----------

    def find(self, root: str, name_glob: Optional[str] = None, kind: Optional[str] = None) -> List[str]:
        results = []
        for p, node in self.walk(root):
            base = posixpath.basename(p) or p
            if name_glob and not fnmatch.fnmatch(base, name_glob):
                continue
            if kind == "f" and node.is_dir:
                continue
            if kind == "d" and not node.is_dir:
                continue
            results.append(p)
        return results

    def completions(self, cwd: str, partial: str) -> List[str]:
        """Complete a path fragment against the entries of its base directory.

        Matching is a case-insensitive prefix match. Directory entries end in
        "/". The returned strings keep the fragment's own directory part so
        they can replace the fragment verbatim.
        """
        if "/" in partial:
            base_part, _, name_part = partial.rpartition("/")
            base_display = base_part + "/"
            base_dir = self.resolve(cwd, base_part or "/")
        else:
            base_display = ""
            name_part = partial
            base_dir = cwd
        if not self.is_dir(base_dir):
            return []
        lowered = name_part.lower()
        matches = []
        for name, node in self.children(base_dir):
            if name.startswith(".") and not name_part.startswith("."):
                continue
            if name.lower().startswith(lowered):
                matches.append(base_display + name + ("/" if node.is_dir else ""))
        return sorted(matches)


def format_mode(octal: str) -> Optional[str]:
    """Convert "755" into "rwxr-xr-x"; None if not a valid mode."""
    if len(octal) == 4 and octal[0] == "0":
        octal = octal[1:]
    if len(octal) != 3 or any(c not in "01234567" for c in octal):
        return None
    out = ""
    for digit in octal:
        value = int(digit)
        out += ("r" if value & 4 else "-") + ("w" if value & 2 else "-") + ("x" if value & 1 else "-")
    return out
