"""Readers for live network state: addresses, routes and tunnel discovery."""

import ipaddress
import socket
from typing import Optional

import psutil

from .command_factory import SafeVPNCommandFactory
from .exceptions import InterfaceError
from .models import RouteEntry, TunnelSession
from .utils import run_command, list_interfaces, match_tunnel_interfaces
from ..logging_utility import logger


def find_tunnel_interface(prefix: str) -> Optional[str]:
    """First live interface matching the tunnel naming pattern."""
    matches = match_tunnel_interfaces(list_interfaces(), prefix)
    return matches[0] if matches else None


def get_interface_address(interface: str) -> Optional[str]:
    """IPv4 address of an interface in CIDR form, e.g. 10.8.0.2/24."""
    for addr in psutil.net_if_addrs().get(interface, []):
        if addr.family != socket.AF_INET:
            continue
        if addr.netmask:
            return str(ipaddress.ip_interface(f"{addr.address}/{addr.netmask}"))
        return addr.address
    return None


def parse_routes(output: str) -> list[RouteEntry]:
    """Parse `ip route show dev <if>` output."""
    routes = []
    for line in output.splitlines():
        fields = line.split()
        if not fields:
            continue
        gateway = None
        if "via" in fields:
            index = fields.index("via")
            if index + 1 < len(fields):
                gateway = fields[index + 1]
        routes.append(RouteEntry(destination=fields[0], gateway=gateway))
    return routes


def list_routes(interface: str) -> list[RouteEntry]:
    """Routes the kernel sends through the given interface."""
    stdout, _ = run_command(SafeVPNCommandFactory.show_routes(interface))
    return parse_routes(stdout)


def get_default_interface() -> Optional[str]:
    """Interface carrying the default route, if any."""
    stdout, _ = run_command(SafeVPNCommandFactory.show_default_route(), check=False)
    for line in stdout.splitlines():
        fields = line.split()
        if "dev" in fields:
            index = fields.index("dev")
            if index + 1 < len(fields):
                return fields[index + 1]
    return None


def discover_tunnel(prefix: str, vpn_server: str) -> TunnelSession:
    """
    Collect the facts about a freshly started tunnel.

    Args:
        prefix: Interface naming prefix
        vpn_server: VPN remote endpoint address

    Returns:
        TunnelSession for the first matching interface
    """
    interface = find_tunnel_interface(prefix)
    if interface is None:
        raise InterfaceError(f"Could not detect an active {prefix} interface")
    logger.debug(f"Detected VPN interface: {interface}")

    main_interface = get_default_interface()
    logger.debug(f"Main interface detected: {main_interface}")

    routes = list_routes(interface)
    gateway = next((route.gateway for route in routes if route.gateway), None)

    return TunnelSession(
        interface=interface,
        vpn_server=vpn_server,
        main_interface=main_interface,
        address=get_interface_address(interface),
        gateway=gateway,
        routes=routes,
    )


def interface_exists(interface: str) -> bool:
    return interface in list_interfaces()
