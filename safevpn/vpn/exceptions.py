"""Custom exceptions for SafeVPN session management."""

from typing import Iterable


class VPNError(Exception):
    """Base exception for VPN-related errors."""
    pass


class ConfigurationError(VPNError):
    """Raised when the session configuration is unusable"""
    pass


class PrivilegeError(VPNError):
    """Raised when the process lacks root privileges"""
    pass


class MissingToolsError(VPNError):
    """Raised when required external tools are not on PATH"""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(f"Required tools not found: {', '.join(self.missing)}")


class CommandFailedError(VPNError):
    """Raised when an external command exits non-zero or cannot be executed"""

    def __init__(self, cmd: list[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(cmd)}\n{stderr}".rstrip())


class SnapshotError(VPNError):
    """Raised when the packet filter rules cannot be captured"""
    pass


class InterfaceError(VPNError):
    """Raised when there's an issue with network interfaces"""
    pass


class ReadinessTimeoutError(InterfaceError):
    """Raised when the tunnel interface does not come up in time"""
    pass


class ConnectionLostError(InterfaceError):
    """Raised when the tunnel interface disappears during a session"""
    pass


class SessionLockError(VPNError):
    """Raised when another session already owns the host firewall"""
    pass
