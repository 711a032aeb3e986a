"""Firewall and traffic control rules confining a tunnel to its VPN server."""

from .command_factory import SafeVPNCommandFactory
from .exceptions import ConfigurationError
from .models import IsolationPolicy, RouteEntry, TunnelSession
from .utils import run_command
from ..logging_utility import logger

SAFEVPN_CHAIN = "SAFEVPN"
UNKNOWN_SERVER = "Unknown"

# tc filter priorities, lower runs first
DST_ACCEPT_PRIO = 1
SRC_ACCEPT_PRIO = 2
SUBNET_DROP_PRIO = 3


def split_subnets(routes: list[RouteEntry], vpn_server: str) -> tuple[list[str], list[str]]:
    """
    Sort tunnel routes into subnets to block and subnets to leave alone.

    A route is left alone when its network contains the VPN server.
    Destinations that are not networks (e.g. 'default') are skipped.

    Returns:
        Tuple of (blocked, exempt) destinations
    """
    blocked, exempt = [], []
    for route in routes:
        if route.network is None:
            logger.debug(f"Skipping non-network route destination: {route.destination}")
            continue
        if route.contains(vpn_server):
            exempt.append(route.destination)
        elif route.destination not in blocked:
            blocked.append(route.destination)
    return blocked, exempt


class IsolationRuleInstaller:
    """Installs the rules that only let the VPN server through the tunnel."""

    def __init__(self, tunnel: TunnelSession, chain: str = SAFEVPN_CHAIN):
        self.tunnel = tunnel
        self.chain = chain

    def _check_preconditions(self) -> None:
        if not self.tunnel.interface:
            raise ConfigurationError("Tunnel interface is not known")
        if not self.tunnel.vpn_server or self.tunnel.vpn_server == UNKNOWN_SERVER:
            raise ConfigurationError("VPN server IP not provided")

    def _reset_filter(self) -> None:
        run_command(SafeVPNCommandFactory.flush_rules())
        # The chain survives from an earlier session on re-entry
        run_command(SafeVPNCommandFactory.create_chain(self.chain), check=False)
        run_command(SafeVPNCommandFactory.flush_rules(self.chain))

    def _install_traffic_control(self) -> tuple[list[str], list[str]]:
        interface = self.tunnel.interface
        server = self.tunnel.vpn_server

        run_command(SafeVPNCommandFactory.delete_qdisc(interface), check=False)

        logger.debug("Configuring Traffic Control (tc) rules")
        run_command(SafeVPNCommandFactory.add_prio_qdisc(interface))
        run_command(SafeVPNCommandFactory.add_accept_filter(interface, DST_ACCEPT_PRIO, "dst", server))
        run_command(SafeVPNCommandFactory.add_accept_filter(interface, SRC_ACCEPT_PRIO, "src", server))

        blocked, exempt = split_subnets(self.tunnel.routes, server)
        for subnet in exempt:
            logger.debug(f"Keeping VPN server subnet reachable: {subnet}")
        for subnet in blocked:
            logger.info(f"Blocking VPN subnet: {subnet}")
            run_command(SafeVPNCommandFactory.add_drop_filter(interface, SUBNET_DROP_PRIO, subnet))
        return blocked, exempt

    def _install_filter_rules(self) -> None:
        interface = self.tunnel.interface
        server = self.tunnel.vpn_server

        run_command(SafeVPNCommandFactory.set_policy("INPUT", "ACCEPT"))
        run_command(SafeVPNCommandFactory.set_policy("FORWARD", "DROP"))
        run_command(SafeVPNCommandFactory.set_policy("OUTPUT", "ACCEPT"))

        # First match wins: the server allowances must precede the drops
        run_command(SafeVPNCommandFactory.append_rule(
            "OUTPUT", "ACCEPT", out_interface=interface, destination=server))
        run_command(SafeVPNCommandFactory.append_rule(
            "INPUT", "ACCEPT", in_interface=interface, source=server))

        run_command(SafeVPNCommandFactory.append_rule("OUTPUT", "DROP", out_interface=interface))
        run_command(SafeVPNCommandFactory.append_rule("INPUT", "DROP", in_interface=interface))

    def install(self) -> IsolationPolicy:
        """
        Install the isolation policy for the tunnel.

        Raises:
            ConfigurationError: if the interface or VPN server is unknown
            CommandFailedError: if any rule fails to install
        """
        self._check_preconditions()
        logger.info("Setting up iptables and traffic control rules for SafeVPN")
        logger.info(f"Configuring rules for VPN server: {self.tunnel.vpn_server}")

        self._reset_filter()
        blocked, exempt = self._install_traffic_control()
        self._install_filter_rules()

        logger.info("SafeVPN traffic control rules configured successfully")
        return IsolationPolicy(
            interface=self.tunnel.interface,
            allowed_endpoint=self.tunnel.vpn_server,
            blocked_subnets=blocked,
            exempt_subnets=exempt,
        )
