"""Checks run before a session touches the host."""

import os
import shutil
from typing import Iterable

from .commands import REQUIRED_TOOLS
from .exceptions import MissingToolsError, PrivilegeError
from .models import OpenVPNProfile
from .profile import missing_referenced_files
from ..logging_utility import logger


def check_requirements(tools: Iterable[str] = REQUIRED_TOOLS) -> None:
    """Fail with every missing tool listed, not just the first one."""
    logger.debug("Checking required tools")

    missing = []
    for tool in tools:
        if shutil.which(tool) is None:
            logger.error(f"Required tool not found: {tool}")
            missing.append(tool)

    if missing:
        logger.error("Please install missing tools and try again")
        raise MissingToolsError(missing)

    logger.debug("All required tools are available")


def require_root() -> None:
    if os.geteuid() != 0:
        raise PrivilegeError("This program must be run as root")


def inspect_profile(profile: OpenVPNProfile) -> list[str]:
    """Warn about credential files the profile points at but which are absent."""
    missing = missing_referenced_files(profile)
    for name in missing:
        logger.warning(f"Profile {profile.path.name} references missing file: {name}")
    return missing
