"""Connection status display and the steady-state liveness loop."""

import shutil
import sys
import time
from typing import Optional

import dns.resolver
import requests

from .command_factory import SafeVPNCommandFactory
from .exceptions import ConnectionLostError
from .models import OpenVPNProfile, TunnelSession
from .network import interface_exists
from .utils import run_command
from ..logging_utility import logger

PUBLIC_IP_ENDPOINTS = (
    "https://ifconfig.me/ip",
    "https://api.ipify.org",
    "https://checkip.amazonaws.com",
)
PUBLIC_IP_TIMEOUT = 5
UNKNOWN_IP = "Unable to determine"
DNS_MARKERS = ("Current DNS Server", "DNS Servers", "Fallback DNS")
TICKER_EVERY = 10
SEPARATOR = "-" * 57


def get_public_ip(endpoints: tuple = PUBLIC_IP_ENDPOINTS, timeout: int = PUBLIC_IP_TIMEOUT) -> str:
    """Ask each lookup service in turn; the first non-empty answer wins."""
    for url in endpoints:
        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.debug(f"Public IP lookup via {url} failed: {e}")
            continue
        ip = response.text.strip()
        if ip:
            return ip
    logger.warning("Could not determine public IP address")
    return UNKNOWN_IP


def get_dns_servers() -> list[str]:
    """DNS servers from resolvectl when present, else from /etc/resolv.conf."""
    if shutil.which("resolvectl"):
        stdout, _ = run_command(SafeVPNCommandFactory.dns_status(), check=False)
        servers = [
            line.strip() for line in stdout.splitlines()
            if any(marker in line for marker in DNS_MARKERS)
        ]
    else:
        try:
            servers = [str(ns) for ns in dns.resolver.Resolver().nameservers]
        except dns.resolver.NoResolverConfiguration:
            servers = []

    if not servers:
        logger.warning("Unable to retrieve DNS information")
    return servers


class StatusReporter:
    """Renders the connection summary and watches the tunnel."""

    def __init__(self, tunnel: TunnelSession, profile: Optional[OpenVPNProfile] = None):
        self.tunnel = tunnel
        self.profile = profile

    def _remote_line(self) -> str:
        if self.profile is None or self.profile.remote_host is None:
            remote = "Not specified in config"
            protocol = "tcp"
        else:
            remote = self.profile.remote_host
            if self.profile.remote_port:
                remote = f"{remote} port {self.profile.remote_port}"
            protocol = self.profile.protocol
        return f"{remote} (Protocol: {protocol})"

    def render(self) -> str:
        """Build the human-readable status block."""
        lines = [
            "",
            SEPARATOR,
            "                VPN CONNECTED SUCCESSFULLY                ",
            SEPARATOR,
            "",
            f" * Public IP: {get_public_ip()}",
            " * DNS servers:",
        ]
        dns_servers = get_dns_servers()
        if dns_servers:
            lines.extend(f"   - {server}" for server in dns_servers)
        else:
            lines.append("   - No DNS servers found")

        lines.extend([
            f" * Interface: {self.tunnel.interface}",
            f" * Remote Server: {self._remote_line()}",
            f" * VPN IP address: {self.tunnel.address or 'Unknown'}",
            f" * Gateway: {self.tunnel.gateway or 'Unknown'}",
            f" * Server: {self.tunnel.vpn_server}",
            " * Available VPN networks",
        ])
        lines.extend(f"   - {route.destination}" for route in self.tunnel.routes)
        lines.extend(["", SEPARATOR])
        return "\n".join(lines)

    def show(self) -> None:
        logger.info("VPN connection established. Press Ctrl+C to disconnect.")
        print(self.render(), flush=True)

    def monitor(self, interval: float = 1.0) -> None:
        """
        Block while the tunnel interface exists.

        Raises:
            ConnectionLostError: as soon as the interface is gone
        """
        count = 0
        while True:
            if not interface_exists(self.tunnel.interface):
                logger.error("VPN connection lost!")
                raise ConnectionLostError(f"Interface {self.tunnel.interface} disappeared")

            count += 1
            if count > TICKER_EVERY:
                count = 0
                sys.stdout.write("\r VPN Connected [✓] - Press Ctrl+C to disconnect ")
                sys.stdout.flush()

            time.sleep(interval)
