"""CTF challenge board.

The engine only talks to a ``CtfCollaborator``: something that can answer a
terminal CTF command with text and judge a flag submission. ``CtfBoard`` is
the default in-memory implementation used by the SSH server and the CLI.
Progress lives in the board instance, keyed by user id.
"""

from __future__ import annotations

import logging
import threading
import textwrap
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

LOGGER = logging.getLogger(__name__)

RESET = "\x1b[0m"
DIFFICULTY_COLORS = {
    "Easy": "\x1b[32m",
    "Medium": "\x1b[33m",
    "Hard": "\x1b[31m",
    "Expert": "\x1b[35m",
}

RULE = "=" * 60
BOX_WIDTH = 63


@dataclass(frozen=True)
class FlagResult:
    correct: bool
    points_awarded: int
    message: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "correct": self.correct,
            "pointsAwarded": self.points_awarded,
            "message": self.message,
        }


class CtfCollaborator(Protocol):
    """What the engine needs from a CTF backend."""

    def execute_command(self, command: str, user_id: str) -> str:
        ...

    def submit_flag(self, user_id: str, challenge_id: str, flag: str) -> FlagResult:
        ...

    def challenge(self, challenge_id: str) -> Optional[Challenge]:
        ...


@dataclass(frozen=True)
class Hint:
    id: int
    text: str
    cost: int


@dataclass(frozen=True)
class Challenge:
    id: str
    name: str
    description: str
    category: str
    difficulty: str
    points: int
    flag: str
    hints: Tuple[Hint, ...]
    files: Tuple[str, ...] = ()
    max_attempts: Optional[int] = None

    def hint(self, hint_id: int) -> Optional[Hint]:
        for hint in self.hints:
            if hint.id == hint_id:
                return hint
        return None


@dataclass
class UserProgress:
    user_id: str
    total_points: int = 0
    solved: List[str] = field(default_factory=list)
    hints_unlocked: Dict[str, List[int]] = field(default_factory=dict)
    attempts: Dict[str, int] = field(default_factory=dict)


def _challenge(
    id, name, category, difficulty, points, flag, description, hints, files=(), max_attempts=None
) -> Challenge:
    return Challenge(
        id=id,
        name=name,
        description=description,
        category=category,
        difficulty=difficulty,
        points=points,
        flag=flag,
        hints=tuple(Hint(i + 1, text, cost) for i, (text, cost) in enumerate(hints)),
        files=tuple(files),
        max_attempts=max_attempts,
    )


DEFAULT_CHALLENGES = (
    _challenge(
        "web-001", "Hidden in Plain Sight", "Web", "Easy", 50, "flag{h1dd3n_1n_pl41n_s1ght}",
        "The flag is hidden somewhere on this page. Can you find it? Check the source carefully.",
        [("Have you checked the HTML comments?", 10), ("Look at the page source with Ctrl+U", 15)],
    ),
    _challenge(
        "web-002", "Cookie Monster", "Web", "Easy", 75, "flag{c00k13_m0nst3r_l0v3s_s3cr3ts}",
        "Cookies are delicious, but some contain secrets. Can you find the hidden cookie?",
        [("Use browser developer tools to inspect cookies", 15), ("The flag is base64 encoded in a cookie", 20)],
    ),
    _challenge(
        "web-003", "SQL Injection 101", "Web", "Medium", 100, "flag{sql1_1s_st1ll_d4ng3r0us}",
        "This login form seems vulnerable. Can you bypass the authentication?",
        [("Try entering a single quote (') in the username field", 20), ("Classic payload: ' OR '1'='1", 30)],
    ),
    _challenge(
        "web-004", "XSS Adventure", "Web", "Medium", 100, "flag{xss_1s_3v3rywh3r3}",
        "This search feature reflects user input. Can you make it execute JavaScript?",
        [("Try injecting script tags", 20), ("<script>alert(document.cookie)</script>", 35)],
    ),
    _challenge(
        "web-005", "API Explorer", "Web", "Hard", 150, "flag{4p1_s3cur1ty_m4tt3rs}",
        "This API has some hidden endpoints. Can you find and exploit them?",
        [("Try accessing /api/admin endpoints", 30), ("Check for IDOR vulnerabilities in user endpoints", 40)],
    ),
    _challenge(
        "crypto-001", "Base64 Basics", "Crypto", "Easy", 50, "flag{b4s364_1s_n0t_3ncrypt10n}",
        "This message is encoded. Decode it to find the flag: ZmxhZ3tiNHMzNjRfMXNfbjB0XzNuY3J5cHQxMG59",
        [("This is not encryption, just encoding", 10), ("Use an online Base64 decoder", 15)],
    ),
    _challenge(
        "crypto-002", "ROT13 Rotation", "Crypto", "Easy", 50, "flag{r0t13_1s_not_secure}",
        "Julius Caesar would be proud. Decode: synt{e0g13_1f_abg_frpher}",
        [("This is a substitution cipher with rotation", 10), ("Each letter is shifted by 13 positions", 15)],
    ),
    _challenge(
        "crypto-003", "Hash Cracker", "Crypto", "Medium", 100, "flag{password}",
        "Crack this MD5 hash to find the flag: 5f4dcc3b5aa765d61d8327deb882cf99",
        [("This is an MD5 hash of a common password", 20), ("Try using an online hash lookup service", 30)],
    ),
    _challenge(
        "crypto-004", "RSA Challenge", "Crypto", "Hard", 150, "flag{sm4ll_pr1m3s_4r3_b4d}",
        "We intercepted this RSA-encrypted message. The public key seems weak... n=323, e=5, c=256",
        [("n is small enough to factor manually", 30), ("n = 17 x 19, now calculate phi(n) and d", 50)],
    ),
    _challenge(
        "forensics-001", "Strings Attached", "Forensics", "Easy", 50, "flag{str1ngs_r3v34l_s3cr3ts}",
        "This binary file contains a hidden flag. Can you find it?",
        [("Use the strings command on Linux", 10), ("strings file.bin | grep flag", 15)],
        files=["challenge.bin"],
    ),
    _challenge(
        "forensics-002", "PCAP Analysis", "Forensics", "Medium", 100, "flag{p4ck3t_c4ptur3_pr0}",
        "We captured some network traffic. Find the exfiltrated data.",
        [("Use Wireshark to analyze the PCAP file", 20), ("Look for HTTP POST requests with form data", 30)],
        files=["capture.pcap"],
    ),
    _challenge(
        "osint-001", "Photo Location", "OSINT", "Easy", 75, "flag{jakarta}",
        "Where was this photo taken? The flag format is flag{city_name}",
        [("Check the image metadata (EXIF data)", 15), ("Use exiftool or an online EXIF viewer", 20)],
        files=["location.jpg"],
    ),
    _challenge(
        "osint-002", "Social Engineering", "OSINT", "Medium", 100, "flag{ceo@example-corporation.com}",
        'Find the email address of the CEO of "Example Corporation".',
        [("Check LinkedIn and company website", 25), ("Use email enumeration tools like hunter.io", 35)],
    ),
    _challenge(
        "privesc-001", "SUID Exploitation", "Misc", "Medium", 100, "flag{pr1v_3sc_m4st3r}",
        "You have a low-privilege shell. Find and exploit a misconfigured SUID binary.",
        [('Use "find / -perm -4000 2>/dev/null" to find SUID binaries', 20), ("Check GTFOBins for exploitation techniques", 30)],
    ),
    _challenge(
        "privesc-002", "Sudo Misconfiguration", "Misc", "Medium", 100, "flag{sud0_1s_p0w3rful}",
        "Check your sudo privileges. There might be something exploitable.",
        [('Run "sudo -l" to see your sudo privileges', 20), ("Can you run any commands as root?", 25)],
    ),
    _challenge(
        "final-001", "The Final Boss", "Misc", "Expert", 200, "flag{y0u_4r3_4_h4ck3r_n0w}",
        "Combine all your skills to solve this ultimate challenge. Good luck!",
        [
            ("This challenge combines web, crypto, and forensics", 40),
            ("Start with reconnaissance, then exploit", 50),
            ("The flag is in multiple parts across different services", 60),
        ],
        max_attempts=10,
    ),
)

HELP_TEXT = """
+---------------------------------------------------------------+
|              CTF Challenge System - Help                      |
+---------------------------------------------------------------+
|  Commands:                                                    |
|  ---------                                                    |
|  ctf              - Show this help message                    |
|  ctf-list [cat]   - List all challenges (optionally by cat)   |
|  ctf-info <id>    - Show challenge details                    |
|  ctf-hint <id> <n> - Unlock hint n (costs points on solve)    |
|  ctf-progress     - Show your progress                        |
|  ctf-leaderboard  - Show top players                          |
|  submit-flag <id> <flag> - Submit a flag                      |
|                                                               |
|  Categories: Web, Crypto, Forensics, OSINT, Misc              |
+---------------------------------------------------------------+"""

COMMANDS = ("ctf", "ctf-list", "ctf-info", "ctf-hint", "ctf-progress", "ctf-leaderboard", "submit-flag")


def _box_line(text: str) -> str:
    return f"|  {text:<{BOX_WIDTH - 4}}|"


class CtfBoard:
    """In-memory CTF board implementing ``CtfCollaborator``."""

    def __init__(self, challenges=DEFAULT_CHALLENGES):
        self.challenges: Dict[str, Challenge] = {c.id: c for c in challenges}
        self._progress: Dict[str, UserProgress] = {}
        self._solves: Dict[str, int] = {}
        self._lock = threading.Lock()

    # ---------- bookkeeping ----------

    def challenge(self, challenge_id: str) -> Optional[Challenge]:
        return self.challenges.get(challenge_id)

    def progress(self, user_id: str) -> Optional[UserProgress]:
        return self._progress.get(user_id)

    def _progress_for(self, user_id: str) -> UserProgress:
        progress = self._progress.get(user_id)
        if progress is None:
            progress = UserProgress(user_id=user_id)
            self._progress[user_id] = progress
        return progress

    def submit_flag(self, user_id: str, challenge_id: str, flag: str) -> FlagResult:
        challenge = self.challenges.get(challenge_id)
        if challenge is None:
            return FlagResult(False, 0, "Challenge not found")
        with self._lock:
            progress = self._progress_for(user_id)
            if challenge_id in progress.solved:
                return FlagResult(False, 0, "You have already solved this challenge")
            attempts = progress.attempts.get(challenge_id, 0)
            if challenge.max_attempts and attempts >= challenge.max_attempts:
                return FlagResult(
                    False, 0, f"Maximum attempts ({challenge.max_attempts}) exceeded for this challenge"
                )
            attempts += 1
            progress.attempts[challenge_id] = attempts

            if flag.strip().lower() != challenge.flag.strip().lower():
                limit = f"/{challenge.max_attempts}" if challenge.max_attempts else ""
                LOGGER.debug("Wrong flag from %s for %s", user_id, challenge_id)
                return FlagResult(False, 0, f"Incorrect flag. Attempts: {attempts}{limit}")

            hint_cost = sum(
                challenge.hint(h).cost
                for h in progress.hints_unlocked.get(challenge_id, [])
                if challenge.hint(h) is not None
            )
            points = max(0, challenge.points - hint_cost)
            progress.solved.append(challenge_id)
            progress.total_points += points
            self._solves[challenge_id] = self._solves.get(challenge_id, 0) + 1
        LOGGER.info("User %s solved %s for %d points", user_id, challenge_id, points)
        return FlagResult(True, points, f"Correct! You earned {points} points!")

    def unlock_hint(self, user_id: str, challenge_id: str, hint_id: int) -> Tuple[bool, str]:
        challenge = self.challenges.get(challenge_id)
        if challenge is None:
            return False, "Challenge not found"
        hint = challenge.hint(hint_id)
        if hint is None:
            return False, "Hint not found"
        with self._lock:
            unlocked = self._progress_for(user_id).hints_unlocked.setdefault(challenge_id, [])
            if hint_id in unlocked:
                return True, f"Hint already unlocked\nHint {hint_id}: {hint.text}"
            unlocked.append(hint_id)
        return True, f"Hint unlocked! (-{hint.cost} points when you solve this challenge)\nHint {hint_id}: {hint.text}"

    def _snapshot(self, progress: UserProgress) -> UserProgress:
        return UserProgress(
            user_id=progress.user_id,
            total_points=progress.total_points,
            solved=list(progress.solved),
            hints_unlocked={cid: list(ids) for cid, ids in progress.hints_unlocked.items()},
            attempts=dict(progress.attempts),
        )

    def leaderboard(self, limit: int = 10) -> List[UserProgress]:
        """Top players by points, then solves. Entries are copies."""
        with self._lock:
            entries = [self._snapshot(p) for p in self._progress.values()]
        ranked = sorted(entries, key=lambda p: (-p.total_points, -len(p.solved)))
        return ranked[:limit]

    # ---------- terminal commands ----------

    def execute_command(self, command: str, user_id: str) -> str:
        args = command.strip().split()
        name = args[0].lower() if args else ""
        if name == "ctf":
            return HELP_TEXT
        if name == "ctf-list":
            return self._list(args[1] if len(args) > 1 else None)
        if name == "ctf-info":
            return self._info(args[1] if len(args) > 1 else "")
        if name == "ctf-hint":
            if len(args) < 3 or not args[2].isdigit():
                return "Usage: ctf-hint <challenge-id> <hint-number>"
            return self.unlock_hint(user_id, args[1], int(args[2]))[1]
        if name == "ctf-progress":
            return self._show_progress(user_id)
        if name == "ctf-leaderboard":
            return self._show_leaderboard()
        if name == "submit-flag":
            if len(args) < 3:
                return "Usage: submit-flag <challenge-id> <flag>"
            return self.submit_flag(user_id, args[1], " ".join(args[2:])).message
        return f"Unknown CTF command: {name}. Type 'ctf' for help."

    def _list(self, category: Optional[str]) -> str:
        challenges = list(self.challenges.values())
        if category:
            challenges = [c for c in challenges if c.category.lower() == category.lower()]
        if not challenges:
            suffix = f" in category: {category}" if category else ""
            return f"No challenges found{suffix}."
        title = f"CTF Challenges - {category}" if category else "CTF Challenges"
        lines = ["", title, RULE, "", "ID              | Difficulty | Points | Name", "-" * 60]
        for c in challenges:
            color = DIFFICULTY_COLORS.get(c.difficulty, "")
            lines.append(f"{c.id:<16}| {color}{c.difficulty:<11}{RESET}| {c.points:<7}| {c.name}")
        lines += ["", RULE, f"Total: {len(challenges)} challenges"]
        return "\n".join(lines)

    def _info(self, challenge_id: str) -> str:
        if not challenge_id:
            return "Usage: ctf-info <challenge-id>"
        challenge = self.challenges.get(challenge_id)
        if challenge is None:
            return f"Challenge not found: {challenge_id}"
        border = "+" + "-" * (BOX_WIDTH - 2) + "+"
        color = DIFFICULTY_COLORS.get(challenge.difficulty, "")
        padding = " " * (BOX_WIDTH - 18 - len(challenge.difficulty))
        lines = [
            border,
            _box_line(challenge.name),
            border,
            _box_line(f"Category:    {challenge.category}"),
            f"|  Difficulty:  {color}{challenge.difficulty}{RESET}{padding}|",
            _box_line(f"Points:      {challenge.points}"),
            _box_line(f"Solves:      {self._solves.get(challenge.id, 0)}"),
            border,
            _box_line("Description:"),
        ]
        lines += [_box_line(row) for row in textwrap.wrap(challenge.description, 57)]
        if challenge.files:
            lines.append(_box_line(f"Files: {', '.join(challenge.files)}"))
        if challenge.max_attempts:
            lines.append(_box_line(f"Max attempts: {challenge.max_attempts}"))
        lines += [
            border,
            _box_line(f"Hints: {len(challenge.hints)} available (use points to unlock)"),
            border,
        ]
        return "\n".join(lines)

    def _show_progress(self, user_id: str) -> str:
        with self._lock:
            progress = self._progress.get(user_id)
            if progress is not None:
                progress = self._snapshot(progress)
        rule = "=" * 39
        if progress is None:
            return "\n".join(
                ["", "Your CTF Progress", rule, "No progress yet. Start solving challenges!", "",
                 "Use 'ctf-list' to see available challenges."]
            )
        total = len(self.challenges)
        percentage = round(len(progress.solved) / total * 100)
        solved = [f"  [x] {cid}" for cid in progress.solved] or ["  (none yet)"]
        return "\n".join(
            [
                "",
                "Your CTF Progress",
                rule,
                f"Total Points:    {progress.total_points}",
                f"Challenges:      {len(progress.solved)}/{total} ({percentage}%)",
                "",
                "Solved Challenges:",
            ]
            + solved
            + [rule]
        )

    def _show_leaderboard(self) -> str:
        ranked = self.leaderboard()
        if not ranked:
            return "No participants yet. Be the first to solve a challenge!"
        lines = [
            "",
            "CTF Leaderboard",
            "=" * 39,
            "Rank  | Points | Solved | Player",
            "------|--------|--------|------------------",
        ]
        for rank, entry in enumerate(ranked, start=1):
            lines.append(f"{rank:<6}| {entry.total_points:<7}| {len(entry.solved):<7}| {entry.user_id}")
        lines.append("=" * 39)
        return "\n".join(lines)
