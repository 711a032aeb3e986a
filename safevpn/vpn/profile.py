"""Parsing of OpenVPN client profiles for display and sanity checks."""

from pathlib import Path

from .exceptions import ConfigurationError
from .models import OpenVPNProfile

# Directives whose first argument is a file the client must read
FILE_DIRECTIVES = ("ca", "cert", "key", "tls-auth", "tls-crypt", "auth-user-pass")


def parse_profile(config_file: Path) -> OpenVPNProfile:
    """
    Read the remote, protocol and referenced files from an .ovpn profile.

    Only the first `remote` and `proto` directives are used, the way the
    client itself picks its first connection entry.
    """
    config_path = Path(config_file)
    profile = OpenVPNProfile(path=config_path)
    proto_seen = False
    in_inline_block = False

    try:
        with open(config_path, "r", errors="replace") as f:
            lines = f.readlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}")

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith(("#", ";")):
            continue
        # Inline certificates, e.g. <ca> ... </ca>
        if line.startswith("</"):
            in_inline_block = False
            continue
        if line.startswith("<"):
            in_inline_block = True
            continue
        if in_inline_block:
            continue

        fields = line.split()
        directive = fields[0]
        if directive == "remote" and profile.remote_host is None and len(fields) > 1:
            profile.remote_host = fields[1]
            if len(fields) > 2:
                profile.remote_port = fields[2]
            if len(fields) > 3 and not proto_seen:
                profile.protocol = fields[3]
        elif directive == "proto" and not proto_seen and len(fields) > 1:
            profile.protocol = fields[1]
            proto_seen = True
        elif directive in FILE_DIRECTIVES and len(fields) > 1:
            profile.referenced_files.append(fields[1])

    return profile


def missing_referenced_files(profile: OpenVPNProfile) -> list[str]:
    """Referenced files that do not exist, resolved against the profile's directory."""
    config_dir = profile.path.parent
    missing = []
    for name in profile.referenced_files:
        path = Path(name)
        if not path.is_absolute():
            path = config_dir / path
        if not path.exists():
            missing.append(name)
    return missing
