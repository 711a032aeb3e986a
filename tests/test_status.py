"""Unit tests for the status reporter, network readers and tunnel launcher."""

from pathlib import Path
from types import SimpleNamespace

import pytest
import requests

from safevpn.vpn import status
from safevpn.vpn.exceptions import CommandFailedError, ConnectionLostError, InterfaceError
from safevpn.vpn.launcher import launch_tunnel
from safevpn.vpn.models import OpenVPNProfile, RouteEntry, TunnelSession
from safevpn.vpn.network import discover_tunnel, get_default_interface, parse_routes
from safevpn.vpn.status import StatusReporter, get_dns_servers, get_public_ip


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture
def tunnel():
    return TunnelSession(
        interface="tun0",
        vpn_server="10.10.10.10",
        address="10.8.0.2/24",
        gateway="10.8.0.1",
        routes=[RouteEntry("10.10.10.0/24", "10.8.0.1"), RouteEntry("172.16.5.0/24", "10.8.0.1")],
    )


class TestPublicIp:

    def test_first_non_empty_answer_wins(self, monkeypatch):
        calls = []
        answers = {
            status.PUBLIC_IP_ENDPOINTS[0]: requests.ConnectionError("down"),
            status.PUBLIC_IP_ENDPOINTS[1]: FakeResponse("  \n"),
            status.PUBLIC_IP_ENDPOINTS[2]: FakeResponse("203.0.113.7\n"),
        }

        def fake_get(url, timeout):
            calls.append((url, timeout))
            answer = answers[url]
            if isinstance(answer, Exception):
                raise answer
            return answer

        monkeypatch.setattr(status.requests, "get", fake_get)
        assert get_public_ip() == "203.0.113.7"
        assert [url for url, _ in calls] == list(status.PUBLIC_IP_ENDPOINTS)
        assert {timeout for _, timeout in calls} == {status.PUBLIC_IP_TIMEOUT}

    def test_stops_at_first_success(self, monkeypatch):
        calls = []
        monkeypatch.setattr(status.requests, "get", lambda url, timeout: calls.append(url) or FakeResponse("198.51.100.1"))
        assert get_public_ip() == "198.51.100.1"
        assert len(calls) == 1

    def test_http_errors_fall_through(self, monkeypatch):
        monkeypatch.setattr(status.requests, "get", lambda url, timeout: FakeResponse("oops", status_code=503))
        assert get_public_ip() == status.UNKNOWN_IP


class TestDnsServers:

    def test_resolvectl(self, host, monkeypatch):
        monkeypatch.setattr(status.shutil, "which", lambda tool: "/usr/bin/resolvectl")
        host.dns_status = (
            "Global\n"
            "       Protocols: +LLMNR\n"
            "Current DNS Server: 10.8.0.1\n"
            "       DNS Servers: 10.8.0.1 1.1.1.1\n"
        )
        assert get_dns_servers() == ["Current DNS Server: 10.8.0.1", "DNS Servers: 10.8.0.1 1.1.1.1"]

    def test_resolv_conf_fallback(self, monkeypatch):
        monkeypatch.setattr(status.shutil, "which", lambda tool: None)
        monkeypatch.setattr(status.dns.resolver, "Resolver", lambda: SimpleNamespace(nameservers=["9.9.9.9"]))
        assert get_dns_servers() == ["9.9.9.9"]

    def test_no_resolver_configuration(self, monkeypatch, log_records):
        def no_config():
            raise status.dns.resolver.NoResolverConfiguration("no nameservers")

        monkeypatch.setattr(status.shutil, "which", lambda tool: None)
        monkeypatch.setattr(status.dns.resolver, "Resolver", no_config)
        assert get_dns_servers() == []
        assert "Unable to retrieve DNS information" in log_records.text


class TestStatusReporter:

    def test_render(self, tunnel, monkeypatch):
        monkeypatch.setattr(status, "get_public_ip", lambda: "203.0.113.7")
        monkeypatch.setattr(status, "get_dns_servers", lambda: ["10.8.0.1"])
        profile = OpenVPNProfile(path=Path("c.ovpn"), remote_host="vpn.example", remote_port="1194", protocol="udp")
        text = StatusReporter(tunnel, profile).render()
        assert " * Public IP: 203.0.113.7" in text
        assert "   - 10.8.0.1" in text
        assert " * Remote Server: vpn.example port 1194 (Protocol: udp)" in text
        assert " * VPN IP address: 10.8.0.2/24" in text
        assert " * Gateway: 10.8.0.1" in text
        assert "   - 172.16.5.0/24" in text

    def test_render_without_profile(self, tunnel, monkeypatch):
        monkeypatch.setattr(status, "get_public_ip", lambda: status.UNKNOWN_IP)
        monkeypatch.setattr(status, "get_dns_servers", lambda: [])
        text = StatusReporter(tunnel).render()
        assert " * Remote Server: Not specified in config (Protocol: tcp)" in text
        assert "   - No DNS servers found" in text

    def test_monitor_raises_when_interface_lost(self, host, clock, tunnel):
        host.tunnel_up_at = 0
        host.tunnel_down_at = 25
        with pytest.raises(ConnectionLostError):
            StatusReporter(tunnel).monitor()
        assert clock.now == 25


class TestNetwork:

    def test_parse_routes(self):
        routes = parse_routes("0.0.0.0/1 via 10.8.0.1\n10.8.0.0/24 proto kernel scope link src 10.8.0.2\n\n")
        assert routes == [RouteEntry("0.0.0.0/1", "10.8.0.1"), RouteEntry("10.8.0.0/24", None)]

    def test_default_interface(self, host):
        assert get_default_interface() == "eth0"
        host.default_route = ""
        assert get_default_interface() is None

    def test_discover_tunnel(self, host):
        host.tunnel_up_at = 0
        tunnel = discover_tunnel("tun", "10.10.10.10")
        assert tunnel.interface == "tun0"
        assert tunnel.main_interface == "eth0"
        assert tunnel.address == "10.8.0.2/24"
        assert tunnel.gateway == "10.8.0.1"
        assert [route.destination for route in tunnel.routes] == ["10.10.10.0/24", "172.16.5.0/24"]

    def test_discover_without_interface(self, host):
        with pytest.raises(InterfaceError):
            discover_tunnel("tun", "10.10.10.10")


class TestLaunchTunnel:

    def test_reports_warnings(self, host, tmp_path):
        host.openvpn_stderr = "2024-01-01 WARNING: --cipher is deprecated\nOptions parsed\n"
        warnings_file = tmp_path / "openvpn_warnings.log"
        warnings = launch_tunnel(Path("config.ovpn"), warnings_file)
        assert warnings == ["2024-01-01 WARNING: --cipher is deprecated"]
        assert host.issued("openvpn") == [["openvpn", "--config", "config.ovpn", "--daemon"]]

    def test_launch_failure_is_fatal(self, host, tmp_path):
        host.failing.add("openvpn")
        with pytest.raises(CommandFailedError):
            launch_tunnel(Path("config.ovpn"), tmp_path / "w.log")
