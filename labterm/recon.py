"""OSINT simulators: whois, nslookup, dig, host, geoip, traceroute.

Each tool is a lookup against a small fixed dataset. Unknown keys produce a
tool-appropriate "not found" message with success=False.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from .results import CommandResult, lookup_miss, ok, usage
from .segmenter import Command
from .session import SessionState

LOGGER = logging.getLogger(__name__)

WHOIS_DB = {
    "example-company.com": {
        "domain": "EXAMPLE-COMPANY.COM",
        "registrant": "ABC Corporation",
        "email": "admin@example-company.com",
        "name_servers": ["ns1.example-company.com", "ns2.example-company.com"],
        "created": "2020-01-15",
        "expires": "2025-01-15",
        "registrar": "Example Registrar Inc.",
    },
    "demo-company.com": {
        "domain": "DEMO-COMPANY.COM",
        "registrant": "Demo Company Inc.",
        "email": "contact@demo-company.com",
        "name_servers": ["ns1.demo-company.com", "ns2.demo-company.com"],
        "created": "2019-06-20",
        "expires": "2024-06-20",
        "registrar": "Domain Registrar LLC",
    },
}

A_RECORDS = {
    "example-company.com": "192.168.1.100",
    "demo-company.com": "10.0.0.50",
}

DNS_SERVER = "8.8.8.8"

DIG_RECORDS = {
    "example-company.com": {
        "A": ["192.168.1.100"],
        "MX": ["10 mail.example-company.com"],
        "NS": ["ns1.example-company.com", "ns2.example-company.com"],
        "TXT": ['"v=spf1 include:_spf.google.com ~all"'],
    },
}

GEOIP_DB = {
    "192.168.1.100": {
        "location": "Jakarta, Indonesia",
        "isp": "Indonesia Telecommunication",
        "asn": "AS12345",
        "lat": -6.2088,
        "lon": 106.8456,
    },
    "10.0.0.50": {
        "location": "Surabaya, Indonesia",
        "isp": "PT. Telekomunikasi Indonesia",
        "asn": "AS23456",
        "lat": -7.2575,
        "lon": 112.7521,
    },
}

WHOIS_UPDATED = "2024-01-15T03:30:00.000Z"
DIG_WHEN = "Mon Jan 15 10:30:00 WIB 2024"

POINTS = {
    "whois": 10,
    "nslookup": 10,
    "dig": 10,
    "geoip": 10,
    "host": 5,
    "traceroute": 5,
}


def whois(domain: str) -> CommandResult:
    info = WHOIS_DB.get(domain.lower())
    if info is None:
        return lookup_miss(f'Error: Domain "{domain}" not found in WHOIS database')
    output = (
        f"Domain Name: {info['domain']}\n"
        f"Registrant Organization: {info['registrant']}\n"
        f"Registrant Email: {info['email']}\n"
        f"Registrar: {info['registrar']}\n"
        f"Name Server: {info['name_servers'][0]}\n"
        f"Name Server: {info['name_servers'][1]}\n"
        f"Creation Date: {info['created']}\n"
        f"Expiration Date: {info['expires']}\n"
        "DNSSEC: unsigned\n"
        "\n"
        f">>> Last update of WHOIS database: {WHOIS_UPDATED}"
    )
    return ok(output, POINTS["whois"], ["Registrant", info["registrant"], "Name Server"])


def nslookup(domain: str) -> CommandResult:
    ip = A_RECORDS.get(domain.lower())
    if ip is None:
        return lookup_miss(f"** server can't find {domain}: NXDOMAIN")
    output = (
        f"Server:         {DNS_SERVER}\n"
        f"Address:        {DNS_SERVER}#53\n"
        "\n"
        "Non-authoritative answer:\n"
        f"Name:   {domain}\n"
        f"Address: {ip}"
    )
    return ok(output, POINTS["nslookup"], ["Address", ip])


def dig(domain: str, record_type: str = "A") -> CommandResult:
    records = DIG_RECORDS.get(domain.lower())
    if records is None:
        return lookup_miss(f"; <<>> DiG 9.16.1 <<>> {domain}\n;; Got answer: NXDOMAIN")
    record_type = record_type.upper()
    answers = records.get(record_type, [])
    answer_lines = "\n".join(f"{domain}.\t\t300\tIN\t{record_type}\t{r}" for r in answers)
    output = (
        f"; <<>> DiG 9.16.1 <<>> {domain} {record_type}\n"
        ";; Got answer:\n"
        ";; ->>HEADER<<- opcode: QUERY, status: NOERROR, id: 12345\n"
        "\n"
        ";; QUESTION SECTION:\n"
        f";{domain}.\t\tIN\t{record_type}\n"
        "\n"
        ";; ANSWER SECTION:\n"
        f"{answer_lines}\n"
        "\n"
        ";; Query time: 25 msec\n"
        f";; SERVER: {DNS_SERVER}#53({DNS_SERVER})\n"
        f";; WHEN: {DIG_WHEN}\n"
        ";; MSG SIZE rcvd: 128"
    )
    return ok(output, POINTS["dig"], [record_type] + answers)


def host(domain: str) -> CommandResult:
    ip = A_RECORDS.get(domain.lower())
    if ip is None:
        return lookup_miss(f"Host {domain} not found: 3(NXDOMAIN)")
    return ok(f"{domain} has address {ip}", POINTS["host"], ["address", ip])


def geoip(ip: str) -> CommandResult:
    geo = GEOIP_DB.get(ip)
    if geo is None:
        return lookup_miss(f'Error: Unable to locate IP address "{ip}"')
    output = (
        f"IP Address: {ip}\n"
        f"Location: {geo['location']}\n"
        f"ISP: {geo['isp']}\n"
        f"ASN: {geo['asn']}\n"
        f"Coordinates: {geo['lat']}, {geo['lon']}\n"
        f"Latitude: {geo['lat']}\n"
        f"Longitude: {geo['lon']}"
    )
    city = geo["location"].split(",")[0]
    return ok(output, POINTS["geoip"], ["Location", city, "Indonesia"])


def traceroute(target: str) -> CommandResult:
    # Every target routes through the same lab hops
    output = (
        f"traceroute to {target} (192.168.1.100), 30 hops max, 60 byte packets\n"
        " 1  gateway (192.168.0.1)  1.234 ms  1.123 ms  1.456 ms\n"
        " 2  10.0.0.1 (10.0.0.1)  5.678 ms  5.432 ms  5.890 ms\n"
        " 3  172.16.0.1 (172.16.0.1)  12.345 ms  12.123 ms  12.567 ms\n"
        f" 4  {target} (192.168.1.100)  18.901 ms  18.789 ms  18.654 ms"
    )
    return ok(output, POINTS["traceroute"], ["gateway", "192.168.1.100"])


USAGE = {
    "whois": "Usage: whois <domain>",
    "nslookup": "Usage: nslookup <domain>",
    "dig": "Usage: dig <domain> [type]",
    "host": "Usage: host <domain>",
    "geoip": "Usage: geoip <ip_address>",
    "traceroute": "Usage: traceroute <host>",
}


def handle(cmd: Command, state: SessionState) -> Optional[CommandResult]:
    """Run an OSINT tool, or None if the command is not one of them."""
    if cmd.name not in USAGE:
        return None
    target = cmd.arg(0)
    if not target:
        return usage(USAGE[cmd.name])
    LOGGER.debug("OSINT %s lookup for %r", cmd.name, target)
    if cmd.name == "dig":
        return dig(target, cmd.arg(1, "A"))
    tools: Dict[str, object] = {
        "whois": whois,
        "nslookup": nslookup,
        "host": host,
        "geoip": geoip,
        "traceroute": traceroute,
    }
    return tools[cmd.name](target)  # type: ignore[operator]
