"""Utility functions for SafeVPN session management."""

from pathlib import Path
import re
import subprocess
from typing import Optional, Tuple
import time

import psutil

from .exceptions import CommandFailedError
from ..logging_utility import logger


def run_command(
        cmd: list[str],
        check: bool = True,
        input_text: Optional[str] = None,
        stderr_path: Optional[Path] = None,
) -> Tuple[str, str]:
    """
    Run an external command and return its output.

    Args:
        cmd: Command as list of strings
        check: Whether to raise exception on error
        input_text: Text fed to the command's stdin
        stderr_path: Send stderr to this file instead of capturing it

    Returns:
        Tuple of (stdout, stderr)
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        if stderr_path is not None:
            with open(stderr_path, "w") as stderr_file:
                result = subprocess.run(cmd, input=input_text, stdout=subprocess.PIPE,
                                        stderr=stderr_file, text=True)
            stderr = ""
            if result.returncode != 0:
                stderr = Path(stderr_path).read_text(errors="replace")
        else:
            result = subprocess.run(cmd, input=input_text, capture_output=True, text=True)
            stderr = result.stderr
    except OSError as e:
        if check:
            raise CommandFailedError(cmd, 127, str(e))
        logger.debug(f"Could not execute {cmd[0]}: {e}")
        return "", str(e)

    if result.returncode != 0 and check:
        raise CommandFailedError(cmd, result.returncode, stderr)
    return result.stdout, stderr


def list_interfaces() -> list[str]:
    """Names of the network interfaces currently known to the kernel."""
    return sorted(psutil.net_if_stats().keys())


def match_tunnel_interfaces(interfaces: list[str], prefix: str) -> list[str]:
    """Interfaces named `<prefix><number>`, e.g. tun0 for prefix 'tun'."""
    pattern = re.compile(rf"^{re.escape(prefix)}\d+$")
    return [name for name in interfaces if pattern.match(name)]


def wait_for_interface(prefix: str, timeout: float, interval: float = 1.0) -> Optional[str]:
    """
    Wait for a tunnel interface to show up in the live interface list.

    Args:
        prefix: Interface naming prefix (e.g. 'tun')
        timeout: Seconds to wait before giving up
        interval: Seconds between checks

    Returns:
        str: Name of the first matching interface, or None on timeout
    """
    logger.info(f"Waiting for VPN interface {prefix} to come up...")
    start = time.monotonic()
    deadline = start + timeout
    while True:
        matches = match_tunnel_interfaces(list_interfaces(), prefix)
        if matches:
            logger.info(f"VPN interface {matches[0]} is up!")
            return matches[0]

        now = time.monotonic()
        if now >= deadline:
            logger.error(f"VPN interface {prefix} did not come up within {timeout:g} seconds")
            return None

        logger.debug(f"Waiting for VPN interface... {int(now - start) + 1}s of {timeout:g}s")
        time.sleep(min(interval, deadline - now))


def log_vpn_warnings(log_file: Path, marker: str = "WARNING") -> list[str]:
    """
    Log the warnings OpenVPN printed while starting.

    Args:
        log_file: File holding the client's startup stderr

    Returns:
        list: The warning lines found
    """
    log_path = Path(log_file)
    if not log_path.exists():
        return []

    with open(log_path, "r", errors="replace") as f:
        warnings = [line.rstrip("\n") for line in f if marker in line]

    if warnings:
        logger.warning("OpenVPN showed warnings (non-critical):")
        for line in warnings:
            logger.warning(f"OpenVPN: {line}")
    return warnings
