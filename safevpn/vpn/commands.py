"""Command templates and builders for host firewall and tunnel management."""

from typing import List, Optional, Dict
from dataclasses import dataclass
from pathlib import Path


class CommandError(Exception):
    """Base exception for command-related errors."""
    pass


class ValidationError(CommandError):
    """Raised when command validation fails."""
    pass


@dataclass
class Command:
    """Command builder with validation."""
    base_cmd: List[str]
    _valid_options: Optional[Dict[str, type]] = None

    def _validate_option(self, opt: str, value: Optional[str]) -> None:
        """Validate option and its value if validation rules exist."""
        if self._valid_options is not None:
            # Remove leading dashes for validation
            opt_name = opt.lstrip('-').replace('-', '_')

            if opt_name not in self._valid_options:
                valid_opts = ", ".join(f"--{opt.replace('_', '-')}"
                                       for opt in self._valid_options.keys())
                raise ValidationError(
                    f"Invalid option '{opt}' for command {self.base_cmd[0]}. "
                    f"Valid options are: {valid_opts}"
                )

            expected_type = self._valid_options[opt_name]
            if expected_type is type(None):
                if value is not None:
                    raise ValidationError(f"Option '{opt}' does not take a value")
                return

            if value is None:
                raise ValidationError(f"Option '{opt}' requires a value")

            try:
                if expected_type == Path:
                    Path(value)
                else:
                    expected_type(value)
            except ValueError:
                raise ValidationError(
                    f"Invalid value '{value}' for option '{opt}'. Expected {expected_type.__name__}"
                )

    def _validate_executable(self) -> None:
        """Validate that base command exists."""
        if not self.base_cmd:
            raise ValidationError("Command cannot be empty")

    @property
    def executable(self) -> str:
        return self.base_cmd[0]

    @classmethod
    def from_str(cls, cmd: str, valid_options: Optional[Dict[str, type]] = None) -> 'Command':
        """Create command from string with optional validation rules."""
        command = cls(cmd.split(), valid_options)
        command._validate_executable()
        return command

    def with_arg(self, arg: str) -> 'Command':
        """Add single argument."""
        return Command(self.base_cmd + [str(arg)], self._valid_options)

    def with_args(self, *args: str) -> 'Command':
        """Add multiple arguments."""
        return Command(self.base_cmd + [str(arg) for arg in args], self._valid_options)

    def with_option(self, opt: str, value: Optional[str] = None) -> 'Command':
        """Add option with validation."""
        opt_clean = opt.lstrip('-')
        self._validate_option(opt_clean, value)
        cmd = self.base_cmd.copy()
        cmd.append(f"--{opt_clean.replace('_', '-')}")
        if value is not None:
            cmd.append(str(value))
        return Command(cmd, self._valid_options)

    def with_options(self, **kwargs: Optional[str]) -> 'Command':
        """Add multiple options with validation, in keyword order."""
        cmd = self.base_cmd.copy()
        for opt, value in kwargs.items():
            value = str(value) if value is not None else None
            self._validate_option(opt, value)
            cmd.append("--" + opt.replace("_", "-"))
            if value is not None:
                cmd.append(value)
        return Command(cmd, self._valid_options)

    def build(self) -> List[str]:
        """Get final command list."""
        self._validate_executable()
        return list(self.base_cmd)


IPTABLES_OPTIONS = {
    'flush': type(None),
    'new_chain': str,
    'policy': str,
    'append': str,
    'in_interface': str,
    'out_interface': str,
    'source': str,
    'destination': str,
    'jump': str,
}

OPENVPN_OPTIONS = {
    'config': Path,
    'daemon': type(None),
}


IP = Command.from_str("ip")
IP_ROUTE = IP.with_arg("route")

IPTABLES = Command.from_str("iptables", valid_options=IPTABLES_OPTIONS)
IPTABLES_SAVE = Command.from_str("iptables-save")
IPTABLES_RESTORE = Command.from_str("iptables-restore")

TC = Command.from_str("tc")
TC_QDISC = TC.with_arg("qdisc")
TC_FILTER = TC.with_arg("filter")

RESOLVECTL = Command.from_str("resolvectl")

OPENVPN = Command.from_str("openvpn", valid_options=OPENVPN_OPTIONS)

# Executables a session cannot run without
REQUIRED_TOOLS = (
    OPENVPN.executable,
    IPTABLES.executable,
    IPTABLES_SAVE.executable,
    IPTABLES_RESTORE.executable,
    TC.executable,
    IP.executable,
)
