"""Web exploitation simulators: sqlmap, test-xss, test-csrf, test-lfi,
dirb/dirbuster and wfuzz."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote

from .results import CommandResult, ok, usage
from .segmenter import Command
from .session import SessionState

LOGGER = logging.getLogger(__name__)

SQLMAP_OUTPUT = """        ___
       __H__
 ___ ___[']_____ ___ ___  {1.6.11#stable}
|_ -| . ["]     | .'| . |
|___|_  [']_|_|_|__,|  _|
      |_|V...       |_|   https://sqlmap.org

[*] starting @ 10:30:00 /2024-01-15/

[10:30:01] [INFO] testing connection to the target URL
[10:30:02] [INFO] checking if the target is protected by some kind of WAF/IPS
[10:30:03] [INFO] testing if the target URL content is stable
[10:30:03] [INFO] target URL content is stable
[10:30:04] [INFO] testing if GET parameter 'id' is dynamic
[10:30:04] [INFO] GET parameter 'id' appears to be dynamic
[10:30:05] [INFO] heuristic (basic) test shows that GET parameter 'id' might be injectable
[10:30:05] [INFO] testing for SQL injection on GET parameter 'id'
[10:30:06] [INFO] testing 'AND boolean-based blind - WHERE or HAVING clause'
[10:30:07] [INFO] GET parameter 'id' appears to be 'AND boolean-based blind - WHERE or HAVING clause' injectable
[10:30:08] [INFO] testing 'MySQL >= 5.0 AND error-based - WHERE, HAVING, ORDER BY or GROUP BY clause (FLOOR)'
[10:30:09] [INFO] GET parameter 'id' is 'MySQL >= 5.0 AND error-based' injectable
[10:30:10] [INFO] testing 'MySQL >= 5.0.12 AND time-based blind (query SLEEP)'
[10:30:20] [INFO] GET parameter 'id' appears to be 'MySQL >= 5.0.12 AND time-based blind (query SLEEP)' injectable
[10:30:21] [INFO] testing 'Generic UNION query (NULL) - 1 to 20 columns'
[10:30:22] [INFO] automatically extending ranges for UNION query injection technique tests
[10:30:23] [INFO] ORDER BY technique appears to be usable
[10:30:24] [INFO] target URL appears to have 4 columns in query
[10:30:25] [INFO] GET parameter 'id' is 'Generic UNION query (NULL) - 1 to 20 columns' injectable

GET parameter 'id' is vulnerable. Do you want to keep testing the others (if any)? [y/N] N

sqlmap identified the following injection point(s) with a total of 50 HTTP(s) requests:
---
Parameter: id (GET)
    Type: boolean-based blind
    Title: AND boolean-based blind - WHERE or HAVING clause
    Payload: id=1 AND 5678=5678

    Type: error-based
    Title: MySQL >= 5.0 AND error-based - WHERE, HAVING, ORDER BY or GROUP BY clause (FLOOR)
    Payload: id=1 AND (SELECT 1234 FROM(SELECT COUNT(*),CONCAT(0x7171,(SELECT database()),0x7171,FLOOR(RAND(0)*2))x FROM INFORMATION_SCHEMA.PLUGINS GROUP BY x)a)

    Type: time-based blind
    Title: MySQL >= 5.0.12 AND time-based blind (query SLEEP)
    Payload: id=1 AND (SELECT 1234 FROM (SELECT(SLEEP(5)))a)

    Type: UNION query
    Title: Generic UNION query (NULL) - 4 columns
    Payload: id=-1 UNION ALL SELECT NULL,CONCAT(0x7171,database(),0x7171),NULL,NULL-- -
---

[10:30:26] [INFO] the back-end DBMS is MySQL
web application technology: PHP 7.4.3, Apache 2.4.6
back-end DBMS: MySQL >= 5.0
[10:30:27] [INFO] fetched data logged to text files under '/home/student/.local/share/sqlmap/output/{host}'

[*] ending @ 10:30:27 /2024-01-15/"""

SQLMAP_USAGE = (
    "Usage: python3 sqlmap [options]\n\n"
    "sqlmap: error: missing a mandatory option (-d, -u, -l, -m, -r, -g, -c, --wizard, "
    "--shell, --update, --purge, --list-tampers or --dependencies). "
    "Use -h for basic help and -hh for advanced help"
)

XSS_PAYLOADS = (
    "<script>alert(1)</script>",
    "<img src=x onerror=alert(1)>",
    "<svg onload=alert(1)>",
    '"><script>alert(String.fromCharCode(88,83,83))</script>',
)

LFI_FILES = {
    "/etc/passwd": (
        "root:x:0:0:root:/root:/bin/bash\n"
        "daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin\n"
        "www-data:x:33:33:www-data:/var/www:/usr/sbin/nologin\n"
        "mysql:x:107:111:MySQL Server,,,:/nonexistent:/bin/false"
    ),
    "/etc/shadow": "root:$6$xyz...:18000:0:99999:7:::\nwww-data:*:18000:0:99999:7:::",
    "C:\\Windows\\System32\\drivers\\etc\\hosts": "127.0.0.1  localhost\n::1        localhost",
}

DIRECTORIES = (
    ("/admin", 200, 4567),
    ("/backup", 200, 0),
    ("/config", 403, 278),
    ("/login", 200, 3245),
    ("/uploads", 301, 185),
    ("/api", 200, 892),
    ("/.git", 200, 156),
    ("/phpmyadmin", 302, 0),
)

WFUZZ_ROWS = (
    ("000000001", 200, "20 L", "45 W", "356 Ch", "admin"),
    ("000000023", 200, "15 L", "32 W", "289 Ch", "login"),
    ("000000045", 200, "18 L", "38 W", "412 Ch", "dashboard"),
    ("000000067", 403, "10 L", "15 W", "198 Ch", "config"),
    ("000000089", 301, "0 L", "0 W", "185 Ch", "uploads"),
    ("000000102", 200, "25 L", "56 W", "478 Ch", "api"),
    ("000000156", 200, "5 L", "10 W", "89 Ch", ".git"),
    ("000000198", 302, "0 L", "0 W", "0 Ch", "logout"),
)


def _encode_component(text: str) -> str:
    """Percent-encode like a browser's encodeURIComponent."""
    return quote(text, safe="-_.!~*'()")


def sqlmap(argline: str) -> CommandResult:
    match = re.search(r"(?:--url[=\s]+|-u\s+)['\"]?(https?://[^\s'\"]+)", argline)
    if match is None:
        return usage(SQLMAP_USAGE)
    host = re.sub(r"^https?://", "", match.group(1)).split("/")[0]
    return ok(SQLMAP_OUTPUT.replace("{host}", host), 20, ["vulnerable", "injection"])


def test_xss(payload: str, target: str) -> CommandResult:
    header = f"[+] Testing for XSS vulnerability at: {target}\n[+] Payload: {payload}\n\n"
    if not any(p[:10] in payload for p in XSS_PAYLOADS):
        return ok(header + "[-] No XSS vulnerability detected with this payload.", 5, ["XSS", "vulnerability"])
    body = f"""[!] XSS VULNERABILITY DETECTED!

Details:
--------
Vulnerability Type: Cross-Site Scripting (XSS)
Severity: High
Location: {target}
Parameter: search
Payload: {payload}

The application reflects user input without proper sanitization.
This could allow an attacker to execute arbitrary JavaScript code
in the context of other users' browsers.

Proof of Concept:
{target}?search={_encode_component(payload)}

Recommendation:
- Implement proper input validation
- Use output encoding/escaping
- Implement Content Security Policy (CSP)
- Use HTTPOnly and Secure flags on cookies"""
    return ok(header + body, 15, ["XSS", "vulnerability"])


def test_csrf(url: str) -> CommandResult:
    output = f"""[+] Testing for CSRF vulnerability at: {url}

[!] CSRF VULNERABILITY DETECTED!

Details:
--------
Vulnerability Type: Cross-Site Request Forgery (CSRF)
Severity: Medium
Location: {url}
Missing Protection: No CSRF token found

The application does not implement CSRF protection.
This allows an attacker to perform unauthorized actions
on behalf of authenticated users.

Proof of Concept HTML:
<form action="{url}" method="POST">
  <input type="hidden" name="action" value="delete_account">
  <input type="hidden" name="confirm" value="yes">
</form>
<script>document.forms[0].submit();</script>

Recommendation:
- Implement CSRF tokens for all state-changing operations
- Use SameSite cookie attribute
- Verify Referer/Origin headers
- Re-authenticate for sensitive actions"""
    return ok(output, 10, ["CSRF", "vulnerability"])


def test_lfi(url: str, filename: str) -> CommandResult:
    header = f"[+] Testing Local File Inclusion (LFI) at: {url}\n[+] Attempting to read: {filename}\n\n"
    content = LFI_FILES.get(filename)
    if content is None:
        return ok(header + "[-] File not accessible or LFI protection in place.", 5, ["LFI", "vulnerability"])
    body = f"""[!] LFI VULNERABILITY DETECTED!

File Contents:
--------------
{content}

The application is vulnerable to Local File Inclusion.
Attacker can read sensitive files from the server filesystem.

Vulnerable URL:
{url}?page={_encode_component(filename)}

Recommendation:
- Implement strict input validation
- Use whitelist of allowed files
- Disable PHP allow_url_include
- Use realpath() to resolve file paths"""
    return ok(header + body, 15, ["LFI", "vulnerability"])


def dirb(target: str) -> CommandResult:
    lines = [
        "-----------------",
        "DIRB v2.22",
        "By The Dark Raver",
        "-----------------",
        "",
        "START_TIME: Mon Jan 15 10:30:00 2024",
        f"URL_BASE: {target}",
        "WORDLIST_FILES: /usr/share/dirb/wordlists/common.txt",
        "",
        "-----------------",
        "",
        "GENERATED WORDS: 4612",
        "",
        f"---- Scanning URL: {target} ----",
    ]
    base = target.rstrip("/")
    lines += [f"+ {base}{path} (CODE:{code}|SIZE:{size})" for path, code, size in DIRECTORIES]
    lines += [
        "",
        "-----------------",
        "END_TIME: Mon Jan 15 10:30:42 2024",
        f"DOWNLOADED: 4612 - FOUND: {len(DIRECTORIES)}",
    ]
    return ok("\n".join(lines), 10, ["admin", "backup"])


def wfuzz(target: str) -> CommandResult:
    lines = [
        "********************************************************",
        "* Wfuzz 3.1.0 - The Web Fuzzer                         *",
        "********************************************************",
        "",
        f"Target: {target}",
        "Total requests: 220",
        "",
        "=====================================================================",
        "ID           Response   Lines    Word     Chars       Payload",
        "=====================================================================",
        "",
    ]
    for row_id, code, nlines, words, chars, payload in WFUZZ_ROWS:
        lines.append(f"{row_id}:   {code:<10} {nlines:<8} {words:<8} {chars:<11} \"{payload}\"")
    lines += [
        "",
        "Total time: 2.345678",
        "Processed Requests: 220",
        "Filtered Requests: 212",
        "Requests/sec.: 93.82541",
    ]
    return ok("\n".join(lines), 10, ["admin", "api"])


COMMANDS = ("sqlmap", "test-xss", "test-csrf", "test-lfi", "dirb", "dirbuster", "wfuzz")


def handle(cmd: Command, state: SessionState) -> Optional[CommandResult]:
    name = cmd.name
    if name == "sqlmap":
        return sqlmap(cmd.argline)
    if name == "test-xss":
        parts = cmd.argline.split(" ")
        if len(parts) < 2:
            return usage("Usage: test-xss <payload> <url>")
        return test_xss(" ".join(parts[:-1]), parts[-1])
    if name == "test-csrf":
        if not cmd.args:
            return usage("Usage: test-csrf <url>")
        return test_csrf(cmd.args[-1])
    if name == "test-lfi":
        if len(cmd.args) < 2:
            return usage("Usage: test-lfi <url> <file>")
        return test_lfi(cmd.args[0], cmd.args[1])
    if name in ("dirb", "dirbuster"):
        targets = cmd.positionals()
        if not targets:
            return usage(f"Usage: {name} <url_base> [<wordlist_file(s)>] [options]")
        return dirb(targets[0])
    if name == "wfuzz":
        args = list(cmd.args)
        targets = [
            a for i, a in enumerate(args)
            if not a.startswith("-") and (i == 0 or args[i - 1] not in ("-w", "-z", "--hc", "--sc", "-c"))
        ]
        if not targets:
            return usage("Usage: wfuzz [options] -z payload,params <url>")
        LOGGER.debug("wfuzz against %s", targets[-1])
        return wfuzz(targets[-1])
    return None
