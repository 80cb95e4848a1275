"""Vulnerability assessment simulators.

searchsploit, hashid, john, hashcat, nikto and vulnscan. Tools that take a
hash also accept a path in the session filesystem and read the hash from
its first line.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .results import CommandResult, lookup_miss, ok, usage
from .segmenter import Command
from .session import SessionState

LOGGER = logging.getLogger(__name__)

EXPLOITS: Dict[str, List[Dict[str, str]]] = {
    "apache 2.4": [
        {
            "title": "Apache HTTP Server 2.4.49 - Path Traversal & Remote Code Execution (RCE)",
            "cve": "CVE-2021-41773",
            "path": "linux/webapps/50383.sh",
        },
        {
            "title": "Apache HTTP Server 2.4.50 - Path Traversal & Remote Code Execution (RCE)",
            "cve": "CVE-2021-42013",
            "path": "linux/webapps/50406.sh",
        },
    ],
    "openssh 7.4": [
        {
            "title": "OpenSSH 7.4 - User Enumeration",
            "cve": "CVE-2018-15473",
            "path": "linux/remote/45233.py",
        },
    ],
    "mysql 5.7": [
        {
            "title": "MySQL 5.7.33 - Denial of Service",
            "cve": "CVE-2021-2194",
            "path": "linux/dos/49839.txt",
        },
    ],
}

HASH_TYPES = {
    32: ["MD5", "MD4", "MD2", "Double MD5", "LM", "RIPEMD-128", "Haval-128"],
    40: ["SHA-1", "Double SHA-1", "RIPEMD-160", "Haval-160", "Tiger-160"],
    64: ["SHA-256", "RIPEMD-256", "SHA3-256", "Haval-256", "GOST R 34.11-94"],
    128: ["SHA-512", "Whirlpool", "Salsa10", "Salsa20", "SHA3-512"],
}

# Raw MD5 digests the lab wordlist can crack
CRACKABLE = {
    "5f4dcc3b5aa765d61d8327deb882cf99": "password",
    "098f6bcd4621d373cade4e832627b4f6": "test",
    "e10adc3949ba59abbe56e057f20f883e": "123456",
    "25d55ad283aa400af464c76d713c07ad": "12345678",
}

RULE = "========================================================="

POINTS = {
    "searchsploit": 10,
    "hashid": 5,
    "john": 15,
    "hashcat": 15,
    "nikto": 10,
    "vulnscan": 10,
}


def searchsploit(query: str) -> CommandResult:
    term = query.lower()
    found = []
    for key, entries in EXPLOITS.items():
        if key.split(" ")[0] in term:
            found.extend(entries)
    if not found:
        return lookup_miss("Exploit Database Search: No Results Found")
    lines = ["Exploit Database", RULE, " Exploit Title                                    |  Path", RULE]
    for entry in found:
        lines.append(f"{entry['title']:<50} | {entry['path']}")
        lines.append(f"CVE: {entry['cve']}")
        lines.append("")
    lines += [RULE, "Shellcodes: No Results", "Papers: No Results"]
    return ok("\n".join(lines), POINTS["searchsploit"], ["CVE", "exploit"])


def hashid(digest: str) -> CommandResult:
    digest = digest.strip()
    types = HASH_TYPES.get(len(digest), ["Unknown"])
    lines = [f"Analyzing '{digest}'"] + [f"[+] {t} " for t in types]
    return ok("\n".join(lines), POINTS["hashid"], ["MD5", "SHA"])


def john(digest: str) -> CommandResult:
    lines = [
        "Loaded 1 password hash (Raw-MD5 [MD5 256/256 AVX2 8x3])",
        "Warning: no OpenMP support for this hash type, consider --fork=8",
        "Press 'q' or Ctrl-C to abort, almost any other key for status",
    ]
    cracked = CRACKABLE.get(digest.strip())
    if cracked:
        lines += [
            f"{cracked}             (hash)",
            "1g 0:00:00:01 DONE (2024-01-15 10:30) 0.9259g/s 9259p/s 9259c/s 9259C/s test..backup",
            'Use the "--show --format=Raw-MD5" options to display all of the cracked passwords reliably',
            "Session completed",
        ]
    else:
        lines += [
            "0g 0:00:00:45 DONE (2024-01-15 10:30) 0g/s 8234p/s 8234c/s 8234C/s",
            "Session completed",
        ]
    return ok("\n".join(lines), POINTS["john"], ["password", "cracked"])


def hashcat(digest: str) -> CommandResult:
    lines = [
        "hashcat (v6.2.5) starting...",
        "",
        "OpenCL API (OpenCL 3.0) - Platform #1 [Intel(R) Corporation]",
        "================================================================",
        "* Device #1: Intel(R) UHD Graphics, 6528/13184 MB (2048 MB allocatable), 24MCU",
        "",
        "Minimum password length supported by kernel: 0",
        "Maximum password length supported by kernel: 256",
        "",
        "Hashes: 1 digests; 1 unique digests, 1 unique salts",
        "Bitmaps: 16 bits, 65536 entries, 0x0000ffff mask, 262144 bytes, 5/13 rotates",
        "",
        "Approaching final keyspace - workload adjusted.",
        "",
    ]
    cracked = CRACKABLE.get(digest.strip())
    if cracked:
        lines += [f"{digest.strip()}:{cracked}", ""]
    lines += [
        "Session..........: hashcat",
        f"Status...........: {'Cracked' if cracked else 'Exhausted'}",
        "Hash.Mode........: 0 (MD5)",
        "Time.Started.....: Mon Jan 15 10:30:00 2024",
        "Time.Estimated...: Mon Jan 15 10:30:02 2024",
    ]
    return ok("\n".join(lines), POINTS["hashcat"], ["password", "cracked"])


def nikto(target: str) -> CommandResult:
    rule = "-" * 75
    lines = [
        "- Nikto v2.5.0",
        rule,
        f"+ Target IP:          {target}",
        f"+ Target Hostname:    {target}",
        "+ Target Port:        80",
        "+ Start Time:         2024-01-15 10:30:00 (GMT7)",
        rule,
        "+ Server: Apache/2.4.6 (CentOS) OpenSSL/1.0.2k-fips",
        "+ Retrieved x-powered-by header: PHP/7.4.3",
        "+ The anti-clickjacking X-Frame-Options header is not present.",
        "+ The X-Content-Type-Options header is not set.",
        "+ Apache/2.4.6 appears to be outdated (current is at least Apache/2.4.54).",
        "+ OpenSSL/1.0.2k-fips appears to be outdated (current is at least 3.0.7).",
        "+ PHP/7.4.3 appears to be outdated (current is at least 8.1.13).",
        "+ Web Server returns a valid response with junk HTTP methods, this may cause false positives.",
        "+ /config.php: PHP Config file may contain database IDs and passwords.",
        "+ /admin/: This might be interesting.",
        "+ /backup/: This might be interesting - potential security issue.",
        "+ 8102 requests: 0 error(s) and 9 item(s) reported on remote host",
        "+ End Time:           2024-01-15 10:30:25 (GMT7) (25 seconds)",
        rule,
    ]
    return ok("\n".join(lines), POINTS["nikto"], ["vulnerability", "Apache"])


def vulnscan(target: str) -> CommandResult:
    output = f"""Vulnerability Scan Report for {target}
================================================

High Severity Vulnerabilities:
-------------------------------
[1] CVE-2021-41773: Apache HTTP Server 2.4.49 Path Traversal
    Risk: High (CVSS 7.5)
    Description: Path traversal vulnerability allowing RCE
    Solution: Upgrade to Apache 2.4.51 or later

[2] CVE-2021-2194: MySQL Denial of Service
    Risk: High (CVSS 7.1)
    Description: DoS vulnerability in MySQL Server
    Solution: Upgrade to MySQL 5.7.34 or later

Medium Severity Vulnerabilities:
---------------------------------
[3] CVE-2018-15473: OpenSSH User Enumeration
    Risk: Medium (CVSS 5.3)
    Description: User enumeration via malformed packets
    Solution: Upgrade to OpenSSH 7.8 or later

[4] Outdated PHP Version Detected
    Risk: Medium (CVSS 5.0)
    Description: PHP 7.4.3 has known vulnerabilities
    Solution: Upgrade to PHP 8.1 or later

Low Severity Issues:
--------------------
[5] Missing Security Headers
    Risk: Low (CVSS 3.7)
    Description: X-Frame-Options, X-Content-Type-Options missing
    Solution: Configure web server security headers

Summary:
--------
Total Vulnerabilities: 5
High: 2 | Medium: 2 | Low: 1

Scan completed at: 2024-01-15 10:30:00"""
    return ok(output, POINTS["vulnscan"], ["CVE", "vulnerability"])


def _hash_operand(cmd: Command, state: SessionState) -> str:
    """First positional argument; a readable file contributes its first line."""
    skip = {"-m", "-a", "--format", "-o"}
    operand = ""
    args = list(cmd.args)
    i = 0
    while i < len(args):
        if args[i] in skip:
            i += 2
            continue
        if not args[i].startswith("-"):
            operand = args[i]
            break
        i += 1
    path = state.fs.resolve(state.cwd, operand) if operand else ""
    if operand and state.fs.is_file(path) and state.fs.can_read(path, state.privileged):
        content = state.fs.get(path).content
        first = content.splitlines()[0] if content else ""
        # "user:hash" lines as produced by hashdump
        return first.split(":")[-1] if ":" in first else first
    return operand


def _nikto_target(cmd: Command) -> str:
    args = list(cmd.args)
    for flag in ("-h", "-host"):
        if flag in args and args.index(flag) + 1 < len(args):
            return args[args.index(flag) + 1]
    positional = cmd.positionals()
    return positional[0] if positional else ""


def handle(cmd: Command, state: SessionState) -> Optional[CommandResult]:
    name = cmd.name
    if name == "searchsploit":
        if not cmd.argline:
            return usage("Usage: searchsploit [options] term1 [term2] ... [termN]")
        return searchsploit(cmd.argline)
    if name in ("hashid", "john", "hashcat"):
        digest = _hash_operand(cmd, state)
        if not digest:
            return usage(f"Usage: {name} <hash>")
        LOGGER.debug("%s on %r", name, digest)
        return {"hashid": hashid, "john": john, "hashcat": hashcat}[name](digest)
    if name == "nikto":
        target = _nikto_target(cmd)
        if not target:
            return usage("- Nikto v2.5.0\n+ ERROR: No host (-host) specified")
        return nikto(target)
    if name == "vulnscan":
        target = cmd.arg(0)
        if not target:
            return usage("Usage: vulnscan <target>")
        return vulnscan(target)
    return None
