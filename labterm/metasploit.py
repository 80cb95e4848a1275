"""Metasploit Framework simulator.

Holds the immutable module catalog, the msfconsole command set that drives
the per-session ``MetasploitContext`` state machine:

    Idle --use--> ModuleSelected --set/unset--> ModuleSelected
    ModuleSelected --run/exploit--> session opened (vulnerable targets only)
    ModuleSelected --back--> Idle

and the Meterpreter commands that act on an opened session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .results import CommandResult, ErrorKind, failure, lookup_miss, ok, state_error, usage
from .segmenter import Command
from .session import MetasploitContext, SessionState

LOGGER = logging.getLogger(__name__)

RED = "\x1b[31m"
GREEN = "\x1b[32m"
RESET = "\x1b[0m"

DEFAULT_LHOST = "192.168.1.50"
DEFAULT_LPORT = "4444"

# Exploits whose lab targets are vulnerable
VULNERABLE = ("vsftpd", "ms17_010", "ms08_067")

POINTS = {
    "use": 2,
    "search": 2,
    "exploit_session": 25,
    "module_run": 10,
}

METERPRETER_POINTS = {
    "hashdump": 20,
    "getsystem": 20,
    "sysinfo": 5,
    "getuid": 5,
    "shell": 5,
    "download": 5,
    "migrate": 5,
}


@dataclass(frozen=True)
class MsfOption:
    name: str
    required: bool
    description: str
    default: str = ""


@dataclass(frozen=True)
class MsfModule:
    name: str
    kind: str
    rank: str
    description: str
    platforms: Tuple[str, ...]
    options: Tuple[MsfOption, ...]
    targets: Tuple[str, ...] = field(default_factory=tuple)
    references: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def short_name(self) -> str:
        return self.name.rsplit("/", 1)[-1]


def _opt(name: str, required: bool, description: str, default: str = "") -> MsfOption:
    return MsfOption(name, required, description, default)


RHOSTS = _opt("RHOSTS", True, "The target host(s)")
SESSION = _opt("SESSION", True, "The session to run this module on")

_MODULES = (
    MsfModule(
        "exploit/multi/handler", "exploit", "manual", "Generic Payload Handler", ("multi",),
        (
            _opt("PAYLOAD", True, "The payload to use"),
            _opt("LHOST", True, "The listen address"),
            _opt("LPORT", True, "The listen port", "4444"),
        ),
    ),
    MsfModule(
        "exploit/unix/ftp/vsftpd_234_backdoor", "exploit", "excellent",
        "VSFTPD v2.3.4 Backdoor Command Execution", ("unix",),
        (RHOSTS, _opt("RPORT", True, "The target port", "21")),
        targets=("Automatic",),
        references=("CVE-2011-2523", "OSVDB-73573"),
    ),
    MsfModule(
        "exploit/windows/smb/ms17_010_eternalblue", "exploit", "excellent",
        "MS17-010 EternalBlue SMB Remote Windows Kernel Pool Corruption", ("windows",),
        (
            RHOSTS,
            _opt("RPORT", True, "The target port", "445"),
            _opt("SMBDomain", False, "The Windows domain to use", "."),
            _opt("SMBUser", False, "The username to authenticate as"),
            _opt("SMBPass", False, "The password for the specified username"),
        ),
        targets=("Windows 7", "Windows Server 2008 R2", "Windows 8.1", "Windows Server 2012"),
        references=("CVE-2017-0143", "CVE-2017-0144", "MS17-010"),
    ),
    MsfModule(
        "exploit/windows/smb/ms08_067_netapi", "exploit", "great",
        "MS08-067 Microsoft Server Service Relative Path Stack Corruption", ("windows",),
        (RHOSTS, _opt("RPORT", True, "The target port", "445")),
        targets=("Windows XP SP2/SP3", "Windows 2003 SP1/SP2"),
        references=("CVE-2008-4250", "MS08-067"),
    ),
    MsfModule(
        "exploit/multi/http/apache_mod_cgi_bash_env_exec", "exploit", "excellent",
        "Apache mod_cgi Bash Environment Variable Code Injection (Shellshock)", ("linux", "unix"),
        (
            RHOSTS,
            _opt("RPORT", True, "The target port", "80"),
            _opt("TARGETURI", True, "Path to CGI script", "/cgi-bin/vulnerable.cgi"),
        ),
        references=("CVE-2014-6271", "CVE-2014-6278"),
    ),
    MsfModule(
        "auxiliary/scanner/ssh/ssh_login", "auxiliary", "normal", "SSH Login Check Scanner", ("multi",),
        (
            RHOSTS,
            _opt("RPORT", True, "The target port", "22"),
            _opt("USERNAME", False, "A specific username to authenticate as"),
            _opt("PASSWORD", False, "A specific password to authenticate with"),
            _opt("USERPASS_FILE", False, "File containing users and passwords"),
            _opt("STOP_ON_SUCCESS", False, "Stop guessing when a credential works", "false"),
        ),
    ),
    MsfModule(
        "auxiliary/scanner/smb/smb_ms17_010", "auxiliary", "normal", "MS17-010 SMB RCE Detection", ("windows",),
        (
            RHOSTS,
            _opt("RPORT", True, "The target port", "445"),
            _opt("THREADS", False, "The number of concurrent threads", "1"),
        ),
    ),
    MsfModule(
        "auxiliary/scanner/portscan/tcp", "auxiliary", "normal", "TCP Port Scanner", ("multi",),
        (
            RHOSTS,
            _opt("PORTS", True, "Ports to scan", "1-10000"),
            _opt("THREADS", False, "The number of concurrent threads", "1"),
            _opt("TIMEOUT", False, "The socket connect timeout", "1000"),
        ),
    ),
    MsfModule(
        "post/multi/recon/local_exploit_suggester", "post", "normal",
        "Multi Recon Local Exploit Suggester", ("multi",),
        (SESSION, _opt("SHOWDESCRIPTION", False, "Display a detailed description", "false")),
    ),
    MsfModule(
        "post/windows/gather/hashdump", "post", "normal",
        "Windows Gather Local User Account Password Hashes (Registry)", ("windows",),
        (SESSION,),
    ),
    MsfModule(
        "payload/windows/meterpreter/reverse_tcp", "payload", "normal",
        "Windows Meterpreter (Reflective Injection), Reverse TCP Stager", ("windows",),
        (
            _opt("LHOST", True, "The listen address"),
            _opt("LPORT", True, "The listen port", "4444"),
            _opt("EXITFUNC", False, "Exit technique", "process"),
        ),
    ),
    MsfModule(
        "payload/linux/x86/meterpreter/reverse_tcp", "payload", "normal",
        "Linux Meterpreter, Reverse TCP Stager", ("linux",),
        (
            _opt("LHOST", True, "The listen address"),
            _opt("LPORT", True, "The listen port", "4444"),
        ),
    ),
)

CATALOG: Dict[str, MsfModule] = {m.name: m for m in _MODULES}

BANNER = (
    "\n"
    "     \x1b[31m,--.\x1b[0m\n"
    "   \x1b[31m,--.'|\x1b[0m\n"
    "   |  | :                        \x1b[34m__  ,--.\x1b[0m\n"
    "   :  : '                       \x1b[34m,' ,'/ /|\x1b[0m\n"
    "   |  ' |      \x1b[32m.---.    ,---.\x1b[0m  \x1b[34m'  | |' |\x1b[0m   \x1b[33m,---.     ,---.\x1b[0m\n"
    "   '  | |     \x1b[32m/.  ./|  /     \\\x1b[0m \x1b[34m|  |   ,'\x1b[0m  \x1b[33m/     \\   /     \\\x1b[0m\n"
    "   |  | :   \x1b[32m.-' . ' | /    / '\x1b[0m\x1b[34m'  :  /\x1b[0m   \x1b[33m/    /  | /    /  |\x1b[0m\n"
    "   '  : |__\x1b[32m/___/ \\: |.    ' / \x1b[0m\x1b[34m|  | '\x1b[0m   \x1b[33m.    ' / |.    ' / |\x1b[0m\n"
    "   |  | '.'\x1b[32m.   \\  ' .'   ; : |\x1b[0m\x1b[34m;  : |\x1b[0m   \x1b[33m'   ;   /|'   ;   /|\x1b[0m\n"
    "   ;  :    ;\x1b[32m\\   \\   ' '   | '/ \x1b[0m\x1b[34m|  , ;\x1b[0m   \x1b[33m'   |  / |'   |  / |\x1b[0m\n"
    "   |  ,   /  \x1b[32m\\   \\    |   :    :\x1b[0m \x1b[34m---'\x1b[0m    \x1b[33m|   :    ||   :    |\x1b[0m\n"
    "    ---'-'    \x1b[32m\\   \\ |  \\   \\  /\x1b[0m           \x1b[33m\\   \\  /  \\   \\  /\x1b[0m\n"
    "               \x1b[32m'---\"    '----'\x1b[0m            \x1b[33m'----'    '----'\x1b[0m\n"
    "\n"
    "\n"
    "       =[ \x1b[34mmetasploit v6.3.43-dev\x1b[0m                          ]\n"
    "+ -- --=[ \x1b[32m2376 exploits - 1232 auxiliary - 416 post\x1b[0m       ]\n"
    "+ -- --=[ \x1b[32m1388 payloads - 46 encoders - 11 nops\x1b[0m           ]\n"
    "+ -- --=[ \x1b[32m9 evasion\x1b[0m                                        ]\n"
    "\n"
    "Metasploit Documentation: https://docs.metasploit.com/\n"
    "\n"
    "\x1b[33m[*]\x1b[0m Starting persistent handler(s)..."
)

CONSOLE_HELP = """
Core Commands
=============

    Command       Description
    -------       -----------
    ?             Help menu
    back          Move back from the current context
    exit          Exit the console
    help          Help menu
    info          Displays information about one or more modules
    options       Displays options for the current module
    quit          Exit the console
    run           Launches the selected module
    search        Searches module names and descriptions
    sessions      Dump session listings and display information
    set           Sets a context-specific variable to a value
    setg          Sets a global variable to a value
    show          Displays modules of a given type, or all modules
    unset         Unsets one or more context-specific variables
    use           Interacts with a module by name or search term

Database Commands
=================

    Command        Description
    -------        -----------
    db_status      Show the current database status
    workspace      Switch between database workspaces

Module Commands
===============

    Command       Description
    -------       -----------
    exploit       Launch the selected exploit module
    info          Display information about one or more modules
    options       Display the current module's options
    run           Alias for 'exploit'"""

NO_MODULE = '[-] No module selected. Use the "use" command to select a module.'


def module_prompt(msf: MetasploitContext) -> Optional[str]:
    """The msfconsole prompt, or None outside the console."""
    module = CATALOG.get(msf.current_module or "")
    if module is not None:
        return f"msf6 {module.kind}({RED}{module.short_name}{RESET}) > "
    if msf.console_active:
        return "msf6 > "
    return None


def _option_value(msf: MetasploitContext, module: MsfModule, name: str) -> str:
    if name in msf.options:
        return msf.options[name]
    if name in msf.global_options:
        return msf.global_options[name]
    for opt in module.options:
        if opt.name == name:
            return opt.default
    return ""


def _select(msf: MetasploitContext, module: MsfModule) -> None:
    msf.current_module = module.name
    msf.options = {opt.name: opt.default for opt in module.options if opt.default}


def leave_console(msf: MetasploitContext) -> None:
    msf.console_active = False
    msf.current_module = None
    msf.options = {}


# ---------- console commands ----------


def _msfconsole(cmd: Command, state: SessionState) -> CommandResult:
    state.msf.console_active = True
    return ok(BANNER)


def _help(cmd: Command, state: SessionState) -> CommandResult:
    return ok(CONSOLE_HELP)


def _search(cmd: Command, state: SessionState) -> CommandResult:
    query = " ".join(cmd.args)
    if not query:
        return usage("[-] Please provide a search term")
    term = query.lower()
    matches = [m for m in _MODULES if term in m.name.lower() or term in m.description.lower()]
    if not matches:
        return lookup_miss(f"[-] No modules found matching '{query}'")
    lines = [
        "",
        "Matching Modules",
        "================",
        "",
        "   #  Name                                                 Disclosure Date  Rank       Description",
        "   -  ----                                                 ---------------  ----       -----------",
    ]
    for index, module in enumerate(matches):
        lines.append(f"   {index}  {module.name:<55} 2023-01-01       {module.rank:<10} {module.description}")
    lines.append("")
    lines.append(
        f"Interact with a module by name or index. For example {GREEN}info 0{RESET}, "
        f"{GREEN}use 0{RESET} or {GREEN}use {matches[0].name}{RESET}"
    )
    return ok("\n".join(lines), POINTS["search"])


def _use(cmd: Command, state: SessionState) -> CommandResult:
    name = cmd.arg(0)
    if not name:
        return usage("[-] No module name specified")
    module = CATALOG.get(name)
    if module is None and name.isdigit() and int(name) < len(_MODULES):
        module = _MODULES[int(name)]
    if module is None:
        return lookup_miss(f"[-] Failed to load module: {name}")
    _select(state.msf, module)
    LOGGER.debug("Session %s selected module %s", state.session_id, module.name)
    return ok(f"[*] Using configured module {module.name}", POINTS["use"])


def _info(cmd: Command, state: SessionState) -> CommandResult:
    name = cmd.arg(0)
    if name:
        module = CATALOG.get(name)
        if module is None and name.isdigit() and int(name) < len(_MODULES):
            module = _MODULES[int(name)]
        if module is None:
            return lookup_miss(f"[-] Invalid module: {name}")
    else:
        module = CATALOG.get(state.msf.current_module or "")
        if module is None:
            return state_error(NO_MODULE)
    lines = [
        "",
        f"       Name: {module.name}",
        f"     Module: {module.kind}",
        f"   Platform: {', '.join(module.platforms)}",
        f"       Rank: {module.rank}",
        "",
        "Provided by:",
        "  Metasploit Framework Team",
        "",
        "Description:",
        f"  {module.description}",
        "",
    ]
    if module.references:
        lines.append("References:")
        lines += [f"  {ref}" for ref in module.references]
        lines.append("")
    if module.targets:
        lines += ["Available targets:", "  Id  Name", "  --  ----"]
        lines += [f"  {i}   {t}" for i, t in enumerate(module.targets)]
    return ok("\n".join(lines))


def _options(cmd: Command, state: SessionState) -> CommandResult:
    module = CATALOG.get(state.msf.current_module or "")
    if module is None:
        return state_error(NO_MODULE)
    lines = [
        "",
        f"Module options ({module.name}):",
        "",
        "   Name           Current Setting  Required  Description",
        "   ----           ---------------  --------  -----------",
    ]
    for opt in module.options:
        current = _option_value(state.msf, module, opt.name)
        required = "yes" if opt.required else "no"
        lines.append(f"   {opt.name:<14} {current:<16} {required:<9} {opt.description}")
    return ok("\n".join(lines))


def _modules_by_kind(kind: str) -> CommandResult:
    modules = [m for m in _MODULES if m.kind == kind]
    title = f"{kind.capitalize()} Modules"
    lines = [
        "",
        title,
        "=" * len(title),
        "",
        "   #  Name                                                 Rank       Description",
        "   -  ----                                                 ----       -----------",
    ]
    for index, module in enumerate(modules):
        lines.append(f"   {index}  {module.name:<55} {module.rank:<10} {module.description}")
    return ok("\n".join(lines))


def _show(cmd: Command, state: SessionState) -> CommandResult:
    what = cmd.arg(0).lower()
    kinds = {"exploits": "exploit", "auxiliary": "auxiliary", "post": "post", "payloads": "payload"}
    if what in kinds:
        return _modules_by_kind(kinds[what])
    if what == "options":
        return _options(cmd, state)
    if what == "sessions":
        return _list_sessions(state.msf)
    if what == "targets":
        module = CATALOG.get(state.msf.current_module or "")
        if module is None:
            return state_error("[-] No module selected")
        if not module.targets:
            return lookup_miss("[-] No targets available for this module")
        lines = ["", "Exploit targets:", "", "   Id  Name", "   --  ----"]
        lines += [f"   {i}   {t}" for i, t in enumerate(module.targets)]
        return ok("\n".join(lines))
    return usage(f'[-] Invalid parameter "{cmd.arg(0)}", use "show -h" for more information')


def _set(cmd: Command, state: SessionState) -> CommandResult:
    global_scope = cmd.name == "setg"
    name = cmd.arg(0)
    if not name or len(cmd.args) < 2:
        return usage(f"[-] Usage: {cmd.name} <option> <value>")
    if state.msf.current_module is None and not global_scope:
        return state_error("[-] No module selected")
    key = name.upper()
    value = " ".join(cmd.args[1:])
    if global_scope:
        state.msf.global_options[key] = value
    else:
        state.msf.options[key] = value
    return ok(f"{key} => {value}")


def _unset(cmd: Command, state: SessionState) -> CommandResult:
    name = cmd.arg(0)
    if not name:
        return usage("[-] Usage: unset <option>")
    if state.msf.current_module is None:
        return state_error("[-] No module selected")
    state.msf.options.pop(name.upper(), None)
    return ok(f"[*] Unsetting {name.upper()}...")


def _run(cmd: Command, state: SessionState) -> CommandResult:
    msf = state.msf
    module = CATALOG.get(msf.current_module or "")
    if module is None:
        return state_error("[-] No module selected")
    missing = [
        opt.name for opt in module.options
        if opt.required and not _option_value(msf, module, opt.name)
    ]
    if missing:
        listed = "\n".join(f"   - {m}" for m in missing)
        return usage(
            f"[-] The following options are required but not set:\n{listed}\n\n"
            "Use 'set <option> <value>' to configure the missing options."
        )
    if module.kind == "payload":
        return state_error(
            "[-] Payload modules cannot be launched directly. "
            "Use an exploit module and set it as PAYLOAD."
        )
    if module.kind == "post":
        return _run_post(msf, module)

    rhosts = _option_value(msf, module, "RHOSTS") or "192.168.1.100"
    lhost = _option_value(msf, module, "LHOST") or DEFAULT_LHOST
    lport = _option_value(msf, module, "LPORT") or DEFAULT_LPORT
    lines = [f"[*] Started reverse TCP handler on {lhost}:{lport}"]

    if module.kind == "auxiliary":
        lines.append(f"[*] Running module against {rhosts}...")
        if "smb_ms17_010" in module.name:
            lines.append(
                f"[+] {rhosts}:445 - Host is likely VULNERABLE to MS17-010! - "
                "Windows 7 Professional 7601 Service Pack 1 x64 (64-bit)"
            )
        elif "ssh_login" in module.name:
            lines += [
                f"[-] {rhosts}:22 - Failed: 'root:password'",
                f"[-] {rhosts}:22 - Failed: 'admin:admin'",
                f"[+] {rhosts}:22 - Success: 'user:password123'",
            ]
        elif "portscan" in module.name:
            lines += [f"[+] {rhosts}:{port} - TCP OPEN" for port in (22, 80, 443, 445)]
        lines += ["[*] Scanned 1 of 1 hosts (100% complete)", "[*] Auxiliary module execution completed"]
        return ok("\n".join(lines), POINTS["module_run"])

    if module.name == "exploit/multi/handler":
        lines.append("[*] Waiting for an incoming connection (no payload has called back in this lab)")
        return ok("\n".join(lines))

    lines += [
        f"[*] {rhosts} - Connecting to target...",
        f"[*] {rhosts} - Sending exploit payload...",
    ]
    if not any(tag in module.name for tag in VULNERABLE):
        lines += [
            f"[-] {rhosts} - Exploit aborted due to failure: not-vulnerable",
            "[*] Exploit completed, but no session was created.",
        ]
        return failure("\n".join(lines), ErrorKind.LOOKUP_MISS)

    sess = msf.open_session(module.name, rhosts, lhost, lport)
    msf.interacting = True
    LOGGER.info(
        "Session %s opened meterpreter session %d via %s against %s",
        state.session_id, sess.id, module.name, rhosts,
    )
    lines += [
        f"[*] Sending stage (175686 bytes) to {rhosts}",
        f"[*] Meterpreter session {sess.id} opened ({sess.tunnel}) at 2024-01-15 10:30:00 +0700",
    ]
    return ok("\n".join(lines), POINTS["exploit_session"], ["session", "meterpreter"])


def _run_post(msf: MetasploitContext, module: MsfModule) -> CommandResult:
    raw = _option_value(msf, module, "SESSION")
    if not raw.isdigit() or int(raw) not in msf.sessions:
        return state_error(f"[-] Post failed: Msf::OptionValidateError Invalid SESSION option: {raw}")
    sess = msf.sessions[int(raw)]
    if module.name.endswith("hashdump"):
        lines = [f"[*] Obtaining the boot key...", f"[*] Dumping password hashes from {sess.target}..."]
        lines += HASHDUMP.splitlines()
    else:
        lines = [
            f"[*] {sess.target} - Collecting local exploits for x64/windows...",
            f"[*] {sess.target} - 38 exploit checks are being tried...",
            f"[+] {sess.target} - exploit/windows/local/ms16_032_secondary_logon_handle_privesc: The target appears to be vulnerable.",
            f"[+] {sess.target} - exploit/windows/local/bypassuac_eventvwr: The target appears to be vulnerable.",
        ]
    lines.append("[*] Post module execution completed")
    return ok("\n".join(lines), POINTS["module_run"])


def _back(cmd: Command, state: SessionState) -> CommandResult:
    state.msf.current_module = None
    state.msf.options = {}
    return ok("")


def _list_sessions(msf: MetasploitContext) -> CommandResult:
    if not msf.sessions:
        return ok("[-] No active sessions.")
    lines = [
        "",
        "Active sessions",
        "===============",
        "",
        "  Id  Name  Type                     Information                    Connection",
        "  --  ----  ----                     -----------                    ----------",
    ]
    for sess in msf.sessions.values():
        lines.append(f"  {sess.id:<3}       {sess.type:<24} {sess.info:<30} {sess.tunnel}")
    return ok("\n".join(lines))


def _sessions(cmd: Command, state: SessionState) -> CommandResult:
    msf = state.msf
    flag = cmd.arg(0)
    if flag in ("", "-l"):
        return _list_sessions(msf)
    if flag in ("-i", "-k"):
        raw = cmd.arg(1)
        if not raw:
            return usage(f"[-] Usage: sessions {flag} <session_id>")
        if not raw.isdigit() or int(raw) not in msf.sessions:
            return lookup_miss(f"[-] Invalid session identifier: {raw}")
        sess_id = int(raw)
        if flag == "-i":
            msf.active_session = sess_id
            msf.interacting = True
            return ok(f"[*] Starting interaction with {sess_id}...")
        sess = msf.sessions.pop(sess_id)
        if msf.active_session == sess_id:
            msf.active_session = None
            msf.interacting = False
        return ok(f"[*] Killing session {sess_id}\n[*] {sess.target} - Meterpreter session {sess_id} closed.")
    return usage("[-] Usage: sessions [-l] [-i <id>] [-k <id>]")


def _db_status(cmd: Command, state: SessionState) -> CommandResult:
    return ok("[*] Connected to msf. Connection type: postgresql.")


def _workspace(cmd: Command, state: SessionState) -> CommandResult:
    msf = state.msf
    if not cmd.args:
        return ok("\n".join(("* " if w == msf.workspace else "  ") + w for w in msf.workspaces))
    flag = cmd.arg(0)
    if flag == "-a":
        name = cmd.arg(1, "new_workspace")
        if name not in msf.workspaces:
            msf.workspaces.append(name)
        msf.workspace = name
        return ok(f"[*] Added workspace: {name}\n[*] Workspace: {name}")
    if flag == "-d":
        name = cmd.arg(1)
        if name not in msf.workspaces or name == "default":
            return lookup_miss(f"[-] Workspace not found: {name}")
        msf.workspaces.remove(name)
        if msf.workspace == name:
            msf.workspace = "default"
        return ok(f"[*] Deleted workspace: {name}")
    if flag not in msf.workspaces:
        return lookup_miss(f"[-] Workspace not found: {flag}")
    msf.workspace = flag
    return ok(f"[*] Workspace: {flag}")


def _quit(cmd: Command, state: SessionState) -> CommandResult:
    leave_console(state.msf)
    return ok("Exiting msf console...")


Handler = Callable[[Command, SessionState], CommandResult]

CONSOLE_HANDLERS: Dict[str, Handler] = {
    "msfconsole": _msfconsole,
    "search": _search,
    "use": _use,
    "info": _info,
    "show": _show,
    "set": _set,
    "setg": _set,
    "unset": _unset,
    "options": _options,
    "run": _run,
    "exploit": _run,
    "back": _back,
    "sessions": _sessions,
    "db_status": _db_status,
    "workspace": _workspace,
}

# Only meaningful inside msfconsole
CONSOLE_ONLY: Dict[str, Handler] = {
    "help": _help,
    "?": _help,
    "quit": _quit,
}


def handle_console(cmd: Command, state: SessionState) -> Optional[CommandResult]:
    handler = CONSOLE_HANDLERS.get(cmd.name)
    if handler is None and state.msf.console_active and not state.msf.interacting:
        handler = CONSOLE_ONLY.get(cmd.name)
    if handler is None:
        return None
    return handler(cmd, state)


# ---------- meterpreter ----------

HASHDUMP = (
    "Administrator:500:aad3b435b51404eeaad3b435b51404ee:31d6cfe0d16ae931b73c59d7e0c089c0:::\n"
    "Guest:501:aad3b435b51404eeaad3b435b51404ee:31d6cfe0d16ae931b73c59d7e0c089c0:::\n"
    "user:1001:aad3b435b51404eeaad3b435b51404ee:5f4dcc3b5aa765d61d8327deb882cf99:::\n"
    "admin:1002:aad3b435b51404eeaad3b435b51404ee:e10adc3949ba59abbe56e057f20f883e:::"
)

METERPRETER_HELP = """
Core Commands
=============

    Command                   Description
    -------                   -----------
    background                Backgrounds the current session
    exit                      Terminate the meterpreter session
    help                      Help menu
    migrate                   Migrate the server to another process

Stdapi: File system Commands
============================

    Command       Description
    -------       -----------
    download      Download a file or directory
    ls            List files
    pwd           Print working directory
    upload        Upload a file or directory

Stdapi: System Commands
=======================

    Command       Description
    -------       -----------
    getuid        Get the user that the server is running as
    getsystem     Attempt to elevate your privilege to that of local system
    ps            List running processes
    shell         Drop into a system command shell
    sysinfo       Gets information about the remote system

Priv: Password database Commands
================================

    Command       Description
    -------       -----------
    hashdump      Dumps the contents of the SAM database"""

SYSINFO = (
    "Computer        : TARGET\n"
    "OS              : Windows 7 (6.1 Build 7601, Service Pack 1).\n"
    "Architecture    : x64\n"
    "System Language : en_US\n"
    "Domain          : WORKGROUP\n"
    "Logged On Users : 2\n"
    "Meterpreter     : x64/windows"
)

PROCESS_LIST = """
Process List
============

 PID   PPID  Name                  Arch  Session  User                          Path
 ---   ----  ----                  ----  -------  ----                          ----
 0     0     [System Process]
 4     0     System                x64   0
 308   4     smss.exe              x64   0        NT AUTHORITY\\SYSTEM
 416   404   csrss.exe             x64   0        NT AUTHORITY\\SYSTEM
 468   460   csrss.exe             x64   1        NT AUTHORITY\\SYSTEM
 476   404   wininit.exe           x64   0        NT AUTHORITY\\SYSTEM
 516   460   winlogon.exe          x64   1        NT AUTHORITY\\SYSTEM
 568   476   services.exe          x64   0        NT AUTHORITY\\SYSTEM
 584   476   lsass.exe             x64   0        NT AUTHORITY\\SYSTEM
 592   476   lsm.exe               x64   0        NT AUTHORITY\\SYSTEM
 696   568   svchost.exe           x64   0        NT AUTHORITY\\SYSTEM
 772   568   svchost.exe           x64   0        NT AUTHORITY\\NETWORK SERVICE
 856   568   svchost.exe           x64   0        NT AUTHORITY\\LOCAL SERVICE
 1068  568   spoolsv.exe           x64   0        NT AUTHORITY\\SYSTEM
 1234  568   meterpreter.exe       x64   0        NT AUTHORITY\\SYSTEM          C:\\Windows\\Temp\\meterpreter.exe"""

REMOTE_LS = """
Listing: C:\\Windows\\system32
============================

Mode              Size      Type  Last modified              Name
----              ----      ----  -------------              ----
100777/rwxrwxrwx  339456    fil   2019-03-18 13:41:38 -0400  cmd.exe
100777/rwxrwxrwx  1024000   fil   2019-03-18 13:41:38 -0400  config
40777/rwxrwxrwx   0         dir   2019-03-18 13:41:38 -0400  drivers
100666/rw-rw-rw-  67584     fil   2019-03-18 13:41:38 -0400  calc.exe
100777/rwxrwxrwx  9728      fil   2019-03-18 13:41:38 -0400  net.exe
100777/rwxrwxrwx  83456     fil   2019-03-18 13:41:38 -0400  netstat.exe
100777/rwxrwxrwx  46080     fil   2019-03-18 13:41:38 -0400  tasklist.exe"""

WINDOWS_SHELL = (
    "Process 3568 created.\n"
    "Channel 1 created.\n"
    "Microsoft Windows [Version 6.1.7601]\n"
    "Copyright (c) 2009 Microsoft Corporation. All rights reserved.\n"
    "\n"
    "C:\\Windows\\system32>"
)


def _meterpreter_output(cmd: Command, msf: MetasploitContext) -> Optional[CommandResult]:
    name = cmd.name
    sess = msf.current_session()
    sess_id = sess.id if sess is not None else 1
    if name == "help":
        return ok(METERPRETER_HELP)
    if name == "sysinfo":
        return ok(SYSINFO)
    if name == "getuid":
        return ok("Server username: NT AUTHORITY\\SYSTEM")
    if name == "getsystem":
        return ok("...got system via technique 1 (Named Pipe Impersonation (In Memory/Admin)).", keywords=["SYSTEM"])
    if name == "hashdump":
        return ok(HASHDUMP, keywords=["Administrator", "hashdump"])
    if name == "ps":
        return ok(PROCESS_LIST)
    if name == "shell":
        return ok(WINDOWS_SHELL)
    if name == "pwd":
        return ok("C:\\Windows\\system32")
    if name == "ls":
        return ok(REMOTE_LS)
    if name == "download":
        target = cmd.arg(0)
        if not target:
            return usage("Usage: download [options] src1 src2 src3 ... destination")
        return ok(f"[*] Downloading: {target} -> {target}\n[*] Downloaded 1.00 KiB of 1.00 KiB (100.0%): {target}")
    if name == "upload":
        src = cmd.arg(0)
        if not src:
            return usage("Usage: upload [options] src1 src2 src3 ... destination")
        dst = cmd.arg(1, "C:\\Windows\\Temp\\" + src.rsplit("/", 1)[-1])
        return ok(f"[*] uploading  : {src} -> {dst}\n[*] uploaded   : {src} -> {dst}")
    if name == "migrate":
        pid = cmd.arg(0)
        if not pid.isdigit():
            return usage("Usage: migrate <<pid> | -P <pid> | -N <name>> [-t timeout]")
        return ok(f"[*] Migrating from 1234 to {pid}...\n[*] Migration completed successfully.")
    if name == "background":
        msf.interacting = False
        return ok(f"[*] Backgrounding session {sess_id}...")
    if name == "exit":
        msf.interacting = False
        if sess is None:
            return ok("[*] Shutting down Meterpreter...")
        msf.sessions.pop(sess.id, None)
        msf.active_session = None
        return ok(
            "[*] Shutting down Meterpreter...\n\n"
            f"[*] {sess.target} - Meterpreter session {sess.id} closed.  Reason: User exit"
        )
    return None


METERPRETER_COMMANDS = frozenset(
    {
        "help", "sysinfo", "getuid", "getsystem", "hashdump", "ps", "shell",
        "pwd", "ls", "download", "upload", "migrate", "background", "exit",
    }
)


def handle_meterpreter(
    cmd: Command, state: SessionState, require_session: bool = False
) -> Optional[CommandResult]:
    """Run a Meterpreter command against the active session.

    With ``require_session`` the command fails with a StateError when no
    session has been opened yet.
    """
    if cmd.name not in METERPRETER_COMMANDS:
        return None
    if require_session and state.msf.current_session() is None:
        return state_error("[-] No active Meterpreter session. Exploit a target first.")
    result = _meterpreter_output(cmd, state.msf)
    if result is not None and result.success:
        result = result.with_points(METERPRETER_POINTS.get(cmd.name, 0))
    return result
