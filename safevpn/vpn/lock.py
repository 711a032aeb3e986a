"""Single-session guard for the host firewall."""

import os
from pathlib import Path
from typing import Optional

import psutil

from .exceptions import SessionLockError
from ..logging_utility import logger


class SessionLock:
    """PID file claiming the host's packet filter for one session."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.held = False

    def _read_pid(self) -> Optional[int]:
        try:
            return int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None

    def _create(self) -> bool:
        """Create the file only if nobody else has; False if it already exists."""
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as f:
            f.write(f"{os.getpid()}\n")
        return True

    def acquire(self) -> None:
        """
        Take the lock, replacing a file left by a dead session once.

        Raises:
            SessionLockError: if a live session owns the lock or the file can't be created
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            for attempt in range(2):
                if self._create():
                    self.held = True
                    return
                pid = self._read_pid()
                if pid is not None and pid != os.getpid() and psutil.pid_exists(pid):
                    raise SessionLockError(f"Another SafeVPN session (pid {pid}) is running; lock file {self.path}")
                if attempt == 0:
                    logger.debug(f"Replacing stale lock file left by pid {pid}")
                    self.path.unlink(missing_ok=True)
        except OSError as e:
            raise SessionLockError(f"Cannot create lock file {self.path}: {e}") from e
        raise SessionLockError(f"Lock file {self.path} was taken by another session")

    def release(self) -> None:
        if not self.held:
            return
        if self._read_pid() == os.getpid():
            self.path.unlink(missing_ok=True)
        self.held = False
