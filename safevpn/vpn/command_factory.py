"""Factory for creating SafeVPN host commands."""

from pathlib import Path
from typing import Optional
from .commands import (
    OPENVPN,
    IP_ROUTE,
    IPTABLES,
    IPTABLES_SAVE,
    IPTABLES_RESTORE,
    TC_QDISC,
    TC_FILTER,
    RESOLVECTL,
)

# Handle and class used by the prio qdisc installed on the tunnel
QDISC_HANDLE = "1:"
ACCEPT_FLOW = "1:1"


class SafeVPNCommandFactory:
    """Factory for creating tunnel, firewall and traffic control commands."""

    @staticmethod
    def start_vpn(config_path: Path) -> list[str]:
        """Create OpenVPN start command (daemonized)."""
        return OPENVPN.with_options(config=str(config_path), daemon=None).build()

    @staticmethod
    def save_rules() -> list[str]:
        """Serialize the whole iptables rule set."""
        return IPTABLES_SAVE.build()

    @staticmethod
    def restore_rules() -> list[str]:
        """Replace the whole iptables rule set from stdin."""
        return IPTABLES_RESTORE.build()

    @staticmethod
    def flush_rules(chain: Optional[str] = None) -> list[str]:
        """Flush all chains, or a single one."""
        cmd = IPTABLES.with_option("flush")
        if chain:
            cmd = cmd.with_arg(chain)
        return cmd.build()

    @staticmethod
    def create_chain(chain: str) -> list[str]:
        """Create a user-defined chain."""
        return IPTABLES.with_option("new-chain", chain).build()

    @staticmethod
    def set_policy(chain: str, target: str) -> list[str]:
        """Set the default policy of a built-in chain."""
        return IPTABLES.with_option("policy", chain).with_arg(target).build()

    @staticmethod
    def append_rule(
            chain: str,
            target: str,
            in_interface: Optional[str] = None,
            out_interface: Optional[str] = None,
            source: Optional[str] = None,
            destination: Optional[str] = None,
    ) -> list[str]:
        """Append a rule to the end of a chain."""
        cmd = IPTABLES.with_option("append", chain)
        if in_interface:
            cmd = cmd.with_option("in-interface", in_interface)
        if out_interface:
            cmd = cmd.with_option("out-interface", out_interface)
        if source:
            cmd = cmd.with_option("source", source)
        if destination:
            cmd = cmd.with_option("destination", destination)
        return cmd.with_option("jump", target).build()

    @staticmethod
    def delete_qdisc(interface: str) -> list[str]:
        """Remove the root queueing discipline of an interface."""
        return TC_QDISC.with_args("del", "dev", interface, "root").build()

    @staticmethod
    def add_prio_qdisc(interface: str) -> list[str]:
        """Attach a prio queueing discipline as root of an interface."""
        return TC_QDISC.with_args("add", "dev", interface, "root", "handle", QDISC_HANDLE, "prio").build()

    @staticmethod
    def add_accept_filter(interface: str, priority: int, direction: str, address: str) -> list[str]:
        """Classify traffic to/from an address into the accept class."""
        return (
            TC_FILTER
            .with_args("add", "dev", interface, "protocol", "ip", "parent", QDISC_HANDLE,
                       "prio", str(priority), "u32", "match", "ip", direction, address)
            .with_args("flowid", ACCEPT_FLOW)
            .build()
        )

    @staticmethod
    def add_drop_filter(interface: str, priority: int, subnet: str) -> list[str]:
        """Drop traffic heading to a subnet."""
        return (
            TC_FILTER
            .with_args("add", "dev", interface, "protocol", "ip", "parent", QDISC_HANDLE,
                       "prio", str(priority), "u32", "match", "ip", "dst", subnet)
            .with_args("action", "drop")
            .build()
        )

    @staticmethod
    def show_routes(interface: Optional[str] = None) -> list[str]:
        """Create route show command, optionally limited to one device."""
        cmd = IP_ROUTE.with_arg("show")
        if interface:
            cmd = cmd.with_args("dev", interface)
        return cmd.build()

    @staticmethod
    def show_default_route() -> list[str]:
        """Create command showing the default route."""
        return IP_ROUTE.with_args("show", "default").build()

    @staticmethod
    def dns_status() -> list[str]:
        """Create command listing systemd-resolved DNS servers."""
        return RESOLVECTL.with_arg("status").build()
