"""Session settings: INI defaults merged with command-line values."""

import configparser
import ipaddress
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .vpn.exceptions import ConfigurationError

SETTINGS_SECTION = "safevpn"
UNKNOWN_SERVER = "Unknown"
WARNINGS_FILE_NAME = "openvpn_warnings.log"

DEFAULT_SETTINGS = {
    "interface_prefix": "tun",
    "vpn_timeout": "60",
    "max_backups": "5",
    "backup_dir": "./backups",
    "log_file": "./backups/safevpn.log",
    "shutdown_grace": "5",
}


class SessionConfig(BaseModel):
    """Everything a session needs to know, fixed at start-up."""
    model_config = ConfigDict(frozen=True)

    config_file: Path
    vpn_server: str = UNKNOWN_SERVER
    interface_prefix: str = Field(default="tun", min_length=1)
    vpn_timeout: int = Field(default=60, gt=0)
    max_backups: int = Field(default=5, ge=1)
    backup_dir: Path = Path("./backups")
    log_file: Path = Path("./backups/safevpn.log")
    warnings_file: Optional[Path] = None
    shutdown_grace: int = Field(default=5, ge=0)

    @field_validator("vpn_server")
    @classmethod
    def _check_server(cls, value: str) -> str:
        if value == UNKNOWN_SERVER:
            return value
        try:
            ipaddress.IPv4Address(value)
        except ValueError:
            raise ValueError(f"'{value}' is not an IPv4 address")
        return value

    @field_validator("interface_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not value.isalnum():
            raise ValueError("interface prefix must be alphanumeric")
        return value

    @property
    def server_known(self) -> bool:
        return self.vpn_server != UNKNOWN_SERVER

    @property
    def lock_file(self) -> Path:
        return self.backup_dir / "safevpn.lock"

    @property
    def warnings_path(self) -> Path:
        """OpenVPN startup stderr; kept in the backup directory unless set."""
        return self.warnings_file or self.backup_dir / WARNINGS_FILE_NAME


def load_settings(settings_file: Optional[str] = None) -> dict:
    """Read the [safevpn] section of an INI file over the built-in defaults."""
    # Values are paths and numbers; '%' is taken literally
    config = configparser.ConfigParser(interpolation=None)
    config.read_dict({SETTINGS_SECTION: DEFAULT_SETTINGS})
    if not settings_file:
        return dict(config[SETTINGS_SECTION])

    path = Path(settings_file)
    if not path.is_file():
        raise ConfigurationError(f"Settings file {path} does not exist")
    try:
        config.read(path)
        return dict(config[SETTINGS_SECTION])
    except (configparser.Error, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Invalid settings file {path}: {e}")


def build_session_config(settings: dict, **overrides: Any) -> SessionConfig:
    """Validate settings, with non-None overrides taking precedence."""
    values = {key: value for key, value in settings.items() if key in SessionConfig.model_fields}
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return SessionConfig(**values)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid session configuration: {errors}")
