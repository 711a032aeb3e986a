"""SafeVPN session orchestration."""

import atexit
import signal
import sys
from typing import Optional

from .cleanup import CleanupController
from .exceptions import ConfigurationError, ReadinessTimeoutError
from .isolation import IsolationRuleInstaller
from .launcher import launch_tunnel
from .lock import SessionLock
from .models import IsolationPolicy, OpenVPNProfile, SessionStatus, SnapshotHandle, TunnelSession
from .network import discover_tunnel
from .preflight import inspect_profile
from .profile import parse_profile
from .snapshots import RuleSnapshotStore
from .status import StatusReporter
from .utils import wait_for_interface
from ..logging_utility import logger
from ..settings import SessionConfig

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class SafeVPNSession:
    """
    One VPN session from rollback point to rollback.

    Use as a context manager: leaving the block, a handled signal or
    interpreter exit all run the same cleanup, which acts only once.
    """

    def __init__(self, config: SessionConfig):
        self.config = config
        self.store = RuleSnapshotStore(config.backup_dir, config.max_backups)
        self.lock = SessionLock(config.lock_file)
        self.cleanup = CleanupController(
            self.store,
            interface_prefix=config.interface_prefix,
            config_file=config.config_file,
            shutdown_grace=config.shutdown_grace,
            lock=self.lock,
        )
        self.status = SessionStatus.DISCONNECTED
        self.profile: Optional[OpenVPNProfile] = None
        self.snapshot: Optional[SnapshotHandle] = None
        self.tunnel: Optional[TunnelSession] = None
        self.policy: Optional[IsolationPolicy] = None
        self._previous_handlers = {}

    def __enter__(self) -> 'SafeVPNSession':
        for signum in HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
        atexit.register(self._run_cleanup_at_exit)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None and not issubclass(exc_type, SystemExit):
            self.status = SessionStatus.ERROR
        self.close("session end")
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()
        atexit.unregister(self._run_cleanup_at_exit)
        return False

    def _handle_signal(self, signum, frame) -> None:
        if self.cleanup.done:
            logger.debug(f"Ignoring {signal.Signals(signum).name}, cleanup already running")
            return
        print("\n")
        self.close(signal.Signals(signum).name)
        sys.exit(0)

    def _run_cleanup_at_exit(self) -> None:
        self.close("interpreter exit")

    def close(self, reason: str = "exit") -> bool:
        performed = self.cleanup.run(reason)
        if performed and self.status is not SessionStatus.ERROR:
            self.status = SessionStatus.DISCONNECTED
        return performed

    def _check_config(self) -> None:
        config_file = self.config.config_file
        if not config_file.is_file():
            raise ConfigurationError(f"Configuration file {config_file} does not exist")
        if not self.config.server_known:
            raise ConfigurationError("VPN server IP not provided")

    def start(self) -> IsolationPolicy:
        """
        Bring the tunnel up and isolate it.

        Raises:
            VPNError: on any failure; the caller's cleanup rolls back
        """
        self._check_config()
        logger.info(f"Starting VPN connection to {self.config.vpn_server} using {self.config.config_file}")
        self.profile = parse_profile(self.config.config_file)
        inspect_profile(self.profile)

        self.lock.acquire()

        self.snapshot = self.store.capture()
        self.cleanup.snapshot = self.snapshot
        self.store.prune()

        self.status = SessionStatus.CONNECTING
        self.cleanup.tunnel_started = True
        launch_tunnel(self.config.config_file, self.config.warnings_path)

        interface = wait_for_interface(self.config.interface_prefix, self.config.vpn_timeout)
        if interface is None:
            raise ReadinessTimeoutError(
                f"VPN interface {self.config.interface_prefix} did not come up "
                f"within {self.config.vpn_timeout} seconds"
            )

        self.tunnel = discover_tunnel(self.config.interface_prefix, self.config.vpn_server)
        self.policy = IsolationRuleInstaller(self.tunnel).install()
        self.status = SessionStatus.CONNECTED
        return self.policy

    def run(self) -> None:
        """Start the session, show its status and hold it open until it ends."""
        self.start()
        reporter = StatusReporter(self.tunnel, self.profile)
        reporter.show()
        reporter.monitor()
