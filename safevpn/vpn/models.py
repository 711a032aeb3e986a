"""Data models for SafeVPN sessions."""

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union


IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class SessionStatus(Enum):
    """VPN session status"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class CleanupState(Enum):
    """Rollback guard state"""
    ARMED = "armed"
    DONE = "done"


@dataclass(frozen=True)
class SnapshotHandle:
    """A captured packet filter rule set on disk"""
    path: Path
    captured_at: datetime

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class RouteEntry:
    """One line of `ip route show dev <interface>`"""
    destination: str
    gateway: Optional[str] = None

    @property
    def network(self) -> Optional[IPNetwork]:
        try:
            return ipaddress.ip_network(self.destination, strict=False)
        except ValueError:
            return None

    def contains(self, address: str) -> bool:
        """True if the route's network holds the given address."""
        network = self.network
        if network is None:
            return False
        try:
            return ipaddress.ip_address(address) in network
        except ValueError:
            return False


@dataclass
class TunnelSession:
    """Facts discovered after the tunnel interface came up"""
    interface: str
    vpn_server: str
    main_interface: Optional[str] = None
    address: Optional[str] = None
    gateway: Optional[str] = None
    routes: list[RouteEntry] = field(default_factory=list)


@dataclass
class IsolationPolicy:
    """Summary of the rules installed for a tunnel"""
    interface: str
    allowed_endpoint: str
    blocked_subnets: list[str] = field(default_factory=list)
    exempt_subnets: list[str] = field(default_factory=list)


@dataclass
class OpenVPNProfile:
    """Display-relevant parts of an OpenVPN client profile"""
    path: Path
    remote_host: Optional[str] = None
    remote_port: Optional[str] = None
    protocol: str = "tcp"
    referenced_files: list[str] = field(default_factory=list)
