"""Nmap simulator.

Scan modes are picked from the flags the way the real tool reads them:
-sn (host discovery), -sS (SYN), -sV (versions), -O (OS), -A (aggressive)
and -sU (UDP). A target without a scan flag gets the default SYN scan.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .results import CommandResult, ErrorKind, failure, ok, usage
from .segmenter import Command
from .session import SessionState

LOGGER = logging.getLogger(__name__)

NMAP_POINTS = 10
KEYWORDS = ("Nmap", "scan")
STARTED = "Starting Nmap 7.92 ( https://nmap.org ) at 2024-01-15 10:30 WIB"

USAGE_TEXT = 'Usage: nmap [options] <target>\nType "help" for available options'
PORT_BOUNDS_ERROR = "Ports specified must be between 0 and 65535 inclusive"
MAX_PORT = 65535

# Inclusive (low, high) port ranges from a -p argument.
PortRanges = List[Tuple[int, int]]


@dataclass(frozen=True)
class Port:
    port: int
    state: str
    service: str
    version: str = "unknown"


@dataclass(frozen=True)
class Host:
    ip: str
    hostname: str
    os: str
    ports: Tuple[Port, ...] = field(default_factory=tuple)


HOSTS: Dict[str, Host] = {
    "192.168.1.100": Host(
        ip="192.168.1.100",
        hostname="target.example-company.com",
        os="Linux 3.10.0-1160 (CentOS 7)",
        ports=(
            Port(22, "open", "ssh", "OpenSSH 7.4"),
            Port(80, "open", "http", "Apache 2.4.6"),
            Port(443, "open", "https", "Apache 2.4.6"),
            Port(3306, "open", "mysql", "MySQL 5.7.33"),
            Port(5432, "open", "postgresql", "PostgreSQL 12.8"),
        ),
    ),
    "192.168.1.101": Host(
        ip="192.168.1.101",
        hostname="web.example-company.com",
        os="Ubuntu Linux 20.04",
        ports=(
            Port(22, "open", "ssh", "OpenSSH 8.2p1"),
            Port(80, "open", "http", "nginx 1.18.0"),
            Port(443, "open", "https", "nginx 1.18.0"),
        ),
    ),
    "10.0.0.50": Host(
        ip="10.0.0.50",
        hostname="server.demo-company.com",
        os="Windows Server 2019",
        ports=(
            Port(80, "open", "http", "Microsoft IIS 10.0"),
            Port(443, "open", "https", "Microsoft IIS 10.0"),
            Port(3389, "open", "ms-wbt-server", "Microsoft Terminal Services"),
            Port(445, "open", "microsoft-ds", "Windows Server 2019"),
        ),
    ),
}

UDP_PORTS = ((53, "domain"), (67, "dhcps"), (123, "ntp"), (161, "snmp"))

SCAN_FLAGS = ("-sn", "-sS", "-sV", "-O", "-A", "-sU")


def lookup_host(target: str) -> Optional[Host]:
    """Find a seeded host by IP or by its hostname."""
    if target in HOSTS:
        return HOSTS[target]
    for host in HOSTS.values():
        if host.hostname == target.lower():
            return host
    return None


def _header(host: Host) -> List[str]:
    return [
        STARTED,
        f"Nmap scan report for {host.hostname} ({host.ip})",
        "Host is up (0.00050s latency).",
    ]


def _selected_ports(host: Host, ports: Optional[PortRanges]) -> List[Port]:
    if ports is None:
        return list(host.ports)
    return [p for p in host.ports if any(lo <= p.port <= hi for lo, hi in ports)]


def _port_table(ports: List[Port], versions: bool) -> List[str]:
    if versions:
        lines = ["PORT     STATE SERVICE    VERSION"]
        lines += [f"{p.port}/tcp  {p.state:<8} {p.service:<11} {p.version}" for p in ports]
    else:
        lines = ["PORT     STATE SERVICE"]
        lines += [f"{p.port}/tcp  {p.state:<8} {p.service}" for p in ports]
    return lines


def ping_scan(network: str) -> CommandResult:
    try:
        net = ipaddress.ip_network(network, strict=False)
    except ValueError:
        return failure(f'Failed to resolve "{network}".', ErrorKind.LOOKUP_MISS)
    up = [h for ip, h in HOSTS.items() if ipaddress.ip_address(ip) in net]
    lines = [STARTED, f"Nmap scan report for {network}", "Host discovery:", ""]
    for host in up:
        lines += [f"Nmap scan report for {host.hostname} ({host.ip})", "Host is up (0.00050s latency).", ""]
    lines.append("")
    lines.append(
        f"Nmap done: {net.num_addresses} IP addresses ({len(up)} hosts up) scanned in 2.45 seconds"
    )
    return ok("\n".join(lines), NMAP_POINTS, KEYWORDS)


def syn_scan(host: Host, ports: Optional[PortRanges] = None) -> CommandResult:
    shown = _selected_ports(host, ports)
    lines = _header(host)
    lines.append(f"Not shown: {1000 - len(shown)} closed ports")
    lines += _port_table(shown, versions=False)
    lines += ["", "Nmap done: 1 IP address (1 host up) scanned in 0.25 seconds"]
    return ok("\n".join(lines), NMAP_POINTS, KEYWORDS)


def version_scan(host: Host, ports: Optional[PortRanges] = None) -> CommandResult:
    lines = _header(host)
    lines += _port_table(_selected_ports(host, ports), versions=True)
    lines += [
        "",
        "Service detection performed. Please report any incorrect results at https://nmap.org/submit/",
        "Nmap done: 1 IP address (1 host up) scanned in 12.45 seconds",
    ]
    return ok("\n".join(lines), NMAP_POINTS, KEYWORDS)


def os_detection(host: Host, ports: Optional[PortRanges] = None) -> CommandResult:
    shown = _selected_ports(host, ports)
    lines = _header(host)
    lines.append(f"Not shown: {1000 - len(shown)} closed ports")
    lines += _port_table(shown, versions=False)
    lines += [
        "",
        "Device type: general purpose",
        f"Running: {host.os}",
        "OS CPE: cpe:/o:linux:linux_kernel:3.10",
        f"OS details: {host.os}",
        "Network Distance: 2 hops",
        "",
        "OS detection performed. Please report any incorrect results at https://nmap.org/submit/",
        "Nmap done: 1 IP address (1 host up) scanned in 8.67 seconds",
    ]
    return ok("\n".join(lines), NMAP_POINTS, KEYWORDS)


def aggressive_scan(host: Host, ports: Optional[PortRanges] = None) -> CommandResult:
    shown = _selected_ports(host, ports)
    lines = _header(host)
    lines.append(f"Not shown: {1000 - len(shown)} closed ports")
    lines += _port_table(shown, versions=True)
    lines += [
        "",
        "Device type: general purpose",
        f"Running: {host.os}",
        f"OS details: {host.os}",
        "Network Distance: 2 hops",
        "",
        "TRACEROUTE (using port 80/tcp)",
        "HOP RTT     ADDRESS",
        "1   0.50 ms 192.168.0.1",
        f"2   1.23 ms {host.ip}",
        "",
        "Nmap done: 1 IP address (1 host up) scanned in 18.92 seconds",
    ]
    return ok("\n".join(lines), NMAP_POINTS, KEYWORDS)


def udp_scan(host: Host) -> CommandResult:
    lines = [
        STARTED,
        f"Nmap scan report for {host.hostname} ({host.ip})",
        "Host is up (0.00050s latency).",
        f"Not shown: {1000 - len(UDP_PORTS)} closed ports",
        "PORT     STATE         SERVICE",
    ]
    lines += [f"{port}/udp  open|filtered {service}" for port, service in UDP_PORTS]
    lines += ["", "Nmap done: 1 IP address (1 host up) scanned in 75.34 seconds"]
    return ok("\n".join(lines), NMAP_POINTS, KEYWORDS)


def _parse_ports(spec: str) -> PortRanges:
    """Parse ``22,80,1-1024`` into inclusive ranges.

    Raises ``ValueError`` carrying nmap's message when the specification
    is malformed or leaves the 0-65535 port space.
    """
    ranges: PortRanges = []
    for part in spec.split(","):
        lo, sep, hi = part.partition("-")
        if not lo.isdigit() or (sep and not hi.isdigit()):
            raise ValueError(f'Error #485: Your port specifications are illegal: "{spec}"')
        low = int(lo)
        high = int(hi) if sep else low
        if high > MAX_PORT or low > MAX_PORT:
            raise ValueError(PORT_BOUNDS_ERROR)
        if low > high:
            raise ValueError(f"Your port range {low}-{high} is backwards. Did you mean {high}-{low}?")
        ranges.append((low, high))
    return ranges


def nmap(args: Tuple[str, ...]) -> CommandResult:
    """Run a simulated scan for the given nmap argument vector."""
    ports: Optional[PortRanges] = None
    targets = []
    i = 0
    while i < len(args):
        arg = args[i]
        spec = None
        if arg == "-p" and i + 1 < len(args):
            spec = args[i + 1]
            i += 1
        elif arg.startswith("-p") and len(arg) > 2 and arg[2].isdigit():
            spec = arg[2:]
        elif not arg.startswith("-"):
            targets.append(arg)
        if spec is not None:
            try:
                ports = _parse_ports(spec)
            except ValueError as exc:
                return usage(str(exc))
        i += 1
    if not targets:
        return usage(USAGE_TEXT)
    target = targets[-1]
    mode = next((f for f in SCAN_FLAGS if f in args), "-sS")
    LOGGER.debug("nmap %s against %s", mode, target)
    if mode == "-sn":
        return ping_scan(target)
    host = lookup_host(target)
    if host is None:
        return failure(f'Failed to resolve "{target}".', ErrorKind.LOOKUP_MISS)
    if mode == "-sV":
        return version_scan(host, ports)
    if mode == "-O":
        return os_detection(host, ports)
    if mode == "-A":
        return aggressive_scan(host, ports)
    if mode == "-sU":
        return udp_scan(host)
    return syn_scan(host, ports)


def handle(cmd: Command, state: SessionState) -> Optional[CommandResult]:
    if cmd.name != "nmap":
        return None
    return nmap(cmd.args)
