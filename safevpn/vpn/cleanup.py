"""Rollback of everything a session changed on the host, run exactly once."""

import time
from pathlib import Path
from typing import Callable, Optional

import psutil

from .command_factory import SafeVPNCommandFactory
from .exceptions import VPNError
from .lock import SessionLock
from .models import CleanupState, SnapshotHandle
from .network import find_tunnel_interface
from .snapshots import RuleSnapshotStore
from .utils import run_command
from ..logging_utility import logger

VPN_PROCESS_NAME = "openvpn"


def find_vpn_processes(config_file: Optional[Path] = None) -> list[psutil.Process]:
    """Running OpenVPN clients, limited to those started with `config_file` if given."""
    processes = []
    for proc in psutil.process_iter(["name", "cmdline"]):
        if proc.info.get("name") != VPN_PROCESS_NAME:
            continue
        cmdline = proc.info.get("cmdline") or []
        if config_file is not None and str(config_file) not in cmdline:
            continue
        processes.append(proc)
    return processes


def _is_alive(proc: psutil.Process) -> bool:
    try:
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


def stop_vpn_processes(processes: list[psutil.Process], grace: int = 5) -> bool:
    """
    Terminate the given processes, escalating to SIGKILL after `grace` seconds.

    Returns:
        bool: True if SIGKILL was needed
    """
    for proc in processes:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            pass

    remaining = processes
    for _ in range(grace):
        remaining = [proc for proc in remaining if _is_alive(proc)]
        if not remaining:
            logger.info("OpenVPN stopped successfully")
            return False
        time.sleep(1)

    remaining = [proc for proc in remaining if _is_alive(proc)]
    if not remaining:
        logger.info("OpenVPN stopped successfully")
        return False

    logger.warning("Failed to stop OpenVPN gracefully, sending SIGKILL")
    for proc in remaining:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    logger.info("OpenVPN stopped")
    return True


class CleanupController:
    """Restores the host to its pre-session state the first time it is run."""

    def __init__(
            self,
            store: RuleSnapshotStore,
            interface_prefix: str = "tun",
            config_file: Optional[Path] = None,
            shutdown_grace: int = 5,
            lock: Optional[SessionLock] = None,
    ):
        self.store = store
        self.interface_prefix = interface_prefix
        self.config_file = config_file
        self.shutdown_grace = shutdown_grace
        self.lock = lock
        self.snapshot: Optional[SnapshotHandle] = None
        self.tunnel_started = False
        self.state = CleanupState.ARMED

    @property
    def done(self) -> bool:
        return self.state is CleanupState.DONE

    def _best_effort(self, step: str, action: Callable[[], object]) -> None:
        try:
            action()
        except (VPNError, OSError, psutil.Error) as e:
            logger.error(f"Cleanup step '{step}' failed: {e}")

    def _restore_rules(self) -> None:
        self.store.restore(self.snapshot)

    def _stop_vpn(self) -> None:
        logger.info("Stopping OpenVPN...")
        processes = find_vpn_processes(self.config_file)
        if not processes:
            logger.info("OpenVPN is not running")
            return
        stop_vpn_processes(processes, self.shutdown_grace)

    def _remove_traffic_control(self) -> None:
        interface = find_tunnel_interface(self.interface_prefix)
        if interface:
            logger.debug(f"Cleaning up TC rules for {interface}")
            run_command(SafeVPNCommandFactory.delete_qdisc(interface), check=False)

    def run(self, reason: str = "exit") -> bool:
        """
        Roll back the session.

        Returns:
            bool: False if the rollback had already been performed
        """
        if self.done:
            return False
        self.state = CleanupState.DONE

        logger.info(f"Cleaning up before exit ({reason})")
        self._best_effort("restore rules", self._restore_rules)
        if self.tunnel_started:
            self._best_effort("stop openvpn", self._stop_vpn)
            self._best_effort("remove traffic control", self._remove_traffic_control)
        else:
            logger.debug("No tunnel was started, leaving OpenVPN and tc untouched")
        if self.lock is not None:
            self._best_effort("release lock", self.lock.release)
        return True
