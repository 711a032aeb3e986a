"""Command-line entry point for SafeVPN."""

import argparse
import logging
import sys
from typing import Optional

from .logging_utility import Logger, logger
from .settings import build_session_config, load_settings
from .vpn.exceptions import VPNError
from .vpn.manager import SafeVPNSession
from .vpn.preflight import check_requirements, require_root


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="safevpn",
        description="Connect to an OpenVPN server and only let traffic to that server through the tunnel.",
        epilog="Example: safevpn file.ovpn 10.10.10.10",
    )
    parser.add_argument("config_file", help="OpenVPN client profile (.ovpn)")
    parser.add_argument("vpn_server", nargs="?", default=None,
                        help="IP address of the VPN server")
    parser.add_argument("--settings", help="INI file with a [safevpn] section")
    parser.add_argument("--timeout", dest="vpn_timeout", type=int,
                        help="seconds to wait for the tunnel interface")
    parser.add_argument("--max-backups", type=int,
                        help="number of iptables snapshots to keep")
    parser.add_argument("--interface-prefix", help="tunnel interface name prefix")
    parser.add_argument("--backup-dir", help="directory for iptables snapshots")
    parser.add_argument("--log-file", help="log file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="show debug output")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        Logger().set_console_level(logging.DEBUG)

    try:
        config = build_session_config(
            load_settings(args.settings),
            config_file=args.config_file,
            vpn_server=args.vpn_server,
            vpn_timeout=args.vpn_timeout,
            max_backups=args.max_backups,
            interface_prefix=args.interface_prefix,
            backup_dir=args.backup_dir,
            log_file=args.log_file,
        )
        try:
            Logger().add_file_handler(str(config.log_file))
        except OSError as e:
            logger.warning(f"Failed to write to log file {config.log_file}: {e}. Logging to console only.")
        require_root()
        check_requirements()
    except VPNError as e:
        logger.error(str(e))
        return 1

    try:
        with SafeVPNSession(config) as session:
            session.run()
    except VPNError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
