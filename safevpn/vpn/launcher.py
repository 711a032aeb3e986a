"""Start the OpenVPN client in the background."""

from pathlib import Path

from .command_factory import SafeVPNCommandFactory
from .utils import run_command, log_vpn_warnings
from ..logging_utility import logger


def launch_tunnel(config_file: Path, warnings_file: Path) -> list[str]:
    """
    Start OpenVPN as a daemon and report its startup warnings.

    Does not wait for the tunnel to come up.

    Args:
        config_file: OpenVPN client profile
        warnings_file: Where the client's startup stderr is kept

    Returns:
        list: Warning lines printed by the client

    Raises:
        CommandFailedError: if openvpn cannot be started
    """
    logger.info(f"Connecting to VPN using config file: {config_file}")
    run_command(
        SafeVPNCommandFactory.start_vpn(Path(config_file)),
        stderr_path=Path(warnings_file),
    )
    return log_vpn_warnings(Path(warnings_file))
