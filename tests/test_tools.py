"""Tests for the OSINT, nmap, vulnerability and web simulators."""

import pytest

from labterm import portscan, recon, vulnscan, webexploit
from labterm.results import ErrorKind


class TestWhois:
    """Tests for whois."""

    def test_known_domain(self, engine):
        """A seeded domain shows the registrant block."""
        result = engine.execute("whois example-company.com")
        assert result.success is True
        assert "Registrant" in result.output
        assert "ABC Corporation" in result.output
        assert result.points_awarded == 10

    def test_unknown_domain(self, engine):
        """An unknown domain is a lookup miss."""
        result = engine.execute("whois unknown.tld")
        assert result.success is False
        assert result.points_awarded == 0

    def test_usage(self, engine):
        """whois with no domain prints usage."""
        result = engine.execute("whois")
        assert result.error_kind is ErrorKind.USAGE
        assert result.is_valid is False


class TestDns:
    """Tests for nslookup, dig and host."""

    def test_nslookup(self):
        """nslookup resolves seeded domains."""
        assert "192.168.1.100" in recon.nslookup("example-company.com").output

    def test_nslookup_miss(self):
        """nslookup of an unknown domain is NXDOMAIN."""
        assert "NXDOMAIN" in recon.nslookup("nowhere.example").output

    def test_dig_answer_section(self):
        """dig renders an ANSWER SECTION."""
        output = recon.dig("example-company.com", "MX").output
        assert "ANSWER SECTION" in output
        assert "mail.example-company.com" in output

    def test_host_points(self):
        """host awards 5 points."""
        assert recon.host("demo-company.com").points_awarded == 5

    def test_lookup_is_case_insensitive(self):
        """Domain lookups ignore case."""
        assert recon.whois("EXAMPLE-COMPANY.COM").success is True


class TestGeoipTraceroute:
    """Tests for geoip and traceroute."""

    def test_geoip(self):
        """geoip locates seeded addresses."""
        assert "Jakarta" in recon.geoip("192.168.1.100").output

    def test_geoip_miss(self):
        """geoip of an unknown address fails."""
        assert recon.geoip("8.8.4.4").success is False

    def test_traceroute(self):
        """traceroute lists hops."""
        result = recon.traceroute("192.168.1.100")
        assert result.success is True
        assert result.points_awarded == 5


class TestNmap:
    """Tests for the nmap simulator."""

    def test_syn_scan(self, engine):
        """-sS prints the port table with open ports."""
        result = engine.execute("nmap -sS 192.168.1.100")
        assert "PORT     STATE SERVICE" in result.output
        assert any("open" in line for line in result.output.splitlines())
        assert result.points_awarded == 10

    def test_unknown_host(self, engine):
        """An unseeded host fails to resolve."""
        result = engine.execute("nmap -sS 10.10.10.10")
        assert result.success is False
        assert result.output == 'Failed to resolve "10.10.10.10".'

    def test_no_arguments(self, engine):
        """nmap alone prints usage and is invalid."""
        result = engine.execute("nmap")
        assert result.success is False
        assert result.is_valid is False

    def test_default_scan_is_syn(self):
        """A target without a scan flag runs a SYN scan."""
        assert portscan.nmap(("192.168.1.100",)).output == portscan.nmap(("-sS", "192.168.1.100")).output

    def test_version_scan(self):
        """-sV adds the VERSION column."""
        assert "OpenSSH 7.4" in portscan.nmap(("-sV", "192.168.1.100")).output

    def test_os_detection(self):
        """-O reports the operating system."""
        assert "Windows Server 2019" in portscan.nmap(("-O", "10.0.0.50")).output

    def test_ping_scan(self):
        """-sn reports live hosts in the network."""
        output = portscan.nmap(("-sn", "192.168.1.0/24")).output
        assert "192.168.1.100" in output
        assert "192.168.1.101" in output
        assert "10.0.0.50" not in output

    def test_port_filter(self):
        """-p restricts the table to the listed ports."""
        output = portscan.nmap(("-p", "22,80", "192.168.1.100")).output
        assert "22/tcp" in output
        assert "3306/tcp" not in output

    def test_bad_port_spec(self):
        """An illegal port list is a usage error."""
        assert portscan.nmap(("-p", "abc", "192.168.1.100")).error_kind is ErrorKind.USAGE

    def test_port_range_filter(self):
        """A range selects the ports inside it."""
        output = portscan.nmap(("-p20-443", "192.168.1.100")).output
        assert "22/tcp" in output
        assert "443/tcp" in output
        assert "3306/tcp" not in output

    @pytest.mark.parametrize("spec", ["70000", "1-30000000", "80,1-2000000000"])
    def test_ports_out_of_range(self, spec):
        """Ports past 65535 are rejected without scanning."""
        result = portscan.nmap(("-p", spec, "192.168.1.100"))
        assert result.success is False
        assert result.error_kind is ErrorKind.USAGE
        assert result.points_awarded == 0
        assert result.output == "Ports specified must be between 0 and 65535 inclusive"

    def test_full_port_range(self):
        """-p 0-65535 is accepted and shows every open port."""
        output = portscan.nmap(("-p", "0-65535", "192.168.1.100")).output
        assert "5432/tcp" in output

    def test_backwards_range(self):
        """A reversed range is a usage error."""
        result = portscan.nmap(("-p", "443-22", "192.168.1.100"))
        assert result.error_kind is ErrorKind.USAGE
        assert "backwards" in result.output

    def test_hostname_target(self):
        """Seeded hostnames resolve too."""
        assert portscan.nmap(("-sS", "target.example-company.com")).success is True


class TestVulnTools:
    """Tests for the vulnerability assessment tools."""

    def test_searchsploit(self, engine):
        """searchsploit finds seeded exploits."""
        result = engine.execute("searchsploit apache 2.4")
        assert "CVE-2021-41773" in result.output
        assert result.points_awarded == 10

    def test_searchsploit_miss(self):
        """searchsploit with no match fails."""
        assert vulnscan.searchsploit("wordpress").success is False

    def test_hashid(self):
        """hashid identifies MD5-length digests."""
        result = vulnscan.hashid("5f4dcc3b5aa765d61d8327deb882cf99")
        assert "MD5" in result.output
        assert result.points_awarded == 5

    def test_john_cracks_known_hash(self, engine):
        """john cracks a digest from the lab wordlist."""
        result = engine.execute("john 5f4dcc3b5aa765d61d8327deb882cf99")
        assert "password             (hash)" in result.output
        assert result.points_awarded == 15

    def test_hash_from_file(self, engine):
        """A readable file operand contributes its first hash."""
        engine.session().fs.write_file("/home/student/h.txt", "user:5f4dcc3b5aa765d61d8327deb882cf99")
        output = engine.execute("hashcat -m 0 h.txt").output
        assert "5f4dcc3b5aa765d61d8327deb882cf99:password" in output

    def test_nikto(self, engine):
        """nikto -h scans the target."""
        result = engine.execute("nikto -h 192.168.1.100")
        assert result.success is True
        assert result.points_awarded == 10

    def test_nikto_without_host(self, engine):
        """nikto without a host is a usage error."""
        assert engine.execute("nikto").error_kind is ErrorKind.USAGE

    def test_vulnscan(self):
        """vulnscan reports CVEs."""
        assert "CVE" in vulnscan.vulnscan("192.168.1.100").output


class TestWebTools:
    """Tests for the web exploitation tools."""

    def test_sqlmap(self, engine):
        """sqlmap with a URL reports the injection."""
        result = engine.execute('sqlmap --url "http://target.local/item.php?id=1"')
        assert result.success is True
        assert result.points_awarded == 20

    def test_sqlmap_usage(self, engine):
        """sqlmap without a URL prints usage."""
        assert engine.execute("sqlmap").error_kind is ErrorKind.USAGE

    def test_xss_detected(self):
        """A known payload is detected."""
        result = webexploit.test_xss("<script>alert(1)</script>", "http://target.local/search")
        assert "XSS VULNERABILITY DETECTED" in result.output
        assert result.points_awarded == 15

    def test_xss_not_detected(self):
        """Harmless input still succeeds with fewer points."""
        result = webexploit.test_xss("hello", "http://target.local/search")
        assert result.success is True
        assert result.points_awarded == 5

    def test_lfi(self, engine):
        """test-lfi reads a known file."""
        result = engine.execute("test-lfi http://target.local/index.php /etc/passwd")
        assert "root:x:0:0" in result.output
        assert result.points_awarded == 15

    def test_csrf(self):
        """test-csrf awards 10 points."""
        assert webexploit.test_csrf("http://target.local/transfer").points_awarded == 10

    def test_dirbuster_alias(self, engine):
        """dirbuster behaves like dirb."""
        dirb = engine.execute("dirb http://target.local").output
        assert engine.execute("dirbuster http://target.local").output == dirb

    def test_wfuzz(self, engine):
        """wfuzz lists discovered paths."""
        result = engine.execute("wfuzz -w wordlist.txt http://target.local/FUZZ")
        assert "admin" in result.output
        assert result.points_awarded == 10
