"""Capture, retention and replay of packet filter rule snapshots."""

from datetime import datetime
from pathlib import Path
from typing import Optional

from .command_factory import SafeVPNCommandFactory
from .exceptions import SnapshotError, VPNError
from .models import SnapshotHandle
from .utils import run_command
from ..logging_utility import logger

SNAPSHOT_PREFIX = "iptables-"
SNAPSHOT_SUFFIX = ".bak"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


class RuleSnapshotStore:
    """iptables-save artifacts kept under a backup directory."""

    def __init__(self, backup_dir: Path, max_backups: int = 5):
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups

    def _path_for(self, captured_at: datetime) -> Path:
        stamp = captured_at.strftime(TIMESTAMP_FORMAT)
        return self.backup_dir / f"{SNAPSHOT_PREFIX}{stamp}{SNAPSHOT_SUFFIX}"

    def list_snapshots(self) -> list[Path]:
        """Snapshot artifacts, newest first (names sort by timestamp)."""
        if not self.backup_dir.is_dir():
            return []
        paths = [
            path for path in self.backup_dir.glob(f"{SNAPSHOT_PREFIX}*{SNAPSHOT_SUFFIX}")
            if path.is_file()
        ]
        return sorted(paths, key=lambda path: path.name, reverse=True)

    def capture(self) -> SnapshotHandle:
        """
        Save the current rule set to a new timestamped artifact.

        Returns:
            SnapshotHandle referencing the artifact

        Raises:
            SnapshotError: if iptables-save fails or the artifact can't be written
        """
        logger.info("Backing up current iptables rules")
        captured_at = datetime.now()
        path = self._path_for(captured_at)

        try:
            rules, _ = run_command(SafeVPNCommandFactory.save_rules())
        except VPNError as e:
            raise SnapshotError(f"Failed to save iptables rules: {e}") from e

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            if path.exists():
                logger.warning(f"Overwriting snapshot captured in the same second: {path}")
            path.write_text(rules)
        except OSError as e:
            raise SnapshotError(f"Failed to write snapshot {path}: {e}") from e

        logger.info(f"Rules backed up to {path}")
        return SnapshotHandle(path=path, captured_at=captured_at)

    def prune(self, retain: Optional[int] = None) -> list[Path]:
        """Delete all but the `retain` newest snapshots. Returns what was removed."""
        retain = self.max_backups if retain is None else retain
        logger.debug(f"Cleaning old backups (keeping last {retain})")

        removed = []
        for path in self.list_snapshots()[retain:]:
            try:
                path.unlink()
                removed.append(path)
            except OSError as e:
                logger.debug(f"Could not remove old backup {path}: {e}")
        return removed

    def restore(self, handle: Optional[SnapshotHandle]) -> bool:
        """
        Replace the live rule set with a snapshot.

        Returns:
            bool: True if the rules were restored, False if there was nothing to restore
        """
        logger.info("Attempting to restore previous iptables rules")
        if handle is None or not handle.path.is_file():
            logger.warning("No backup found to restore")
            return False

        rules = handle.path.read_text()
        run_command(SafeVPNCommandFactory.restore_rules(), input_text=rules)
        logger.info(f"Previous rules restored from {handle.name}")
        return True
