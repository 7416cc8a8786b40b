"""
Shared validation helpers

Docker resource name rules and comma-separated list parsing used by
configuration and the access-list compiler.
"""

import re

# Docker-compatible resource names (networks, volumes, containers)
VALID_NAME_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9_.-]{0,63}$"
RESERVED_NAMES = {"docker", "host", "none", "bridge", "null", "default"}

EMAIL_PATTERN = re.compile(r"^[^@]+@[^@]+\.[^@]+$")


def split_csv(raw: str | None) -> list[str]:
    """
    Split a comma-separated value into trimmed, non-empty tokens.

    Order is preserved; empty and whitespace-only tokens are dropped.

    Example:
        >>> split_csv("10.0.0.0/8, , 192.168.1.0/24,")
        ['10.0.0.0/8', '192.168.1.0/24']
    """
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def validate_resource_name(value: str) -> str:
    """Validate a Docker resource name, raising ValueError when unusable"""
    if not re.match(VALID_NAME_PATTERN, value):
        raise ValueError(f"'{value}' is not a valid Docker resource name")
    if value.lower() in RESERVED_NAMES:
        raise ValueError(f"'{value}' is a reserved Docker name")
    return value
