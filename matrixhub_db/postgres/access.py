"""
Host-based access rules (pg_hba.conf)

Compiles the comma-separated PG_ALLOW_CIDR list into ordered access rules
and renders them in pg_hba.conf syntax.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from matrixhub_db.core.config import PERMISSIVE_CIDR
from matrixhub_db.core.validation import split_csv

logger = logging.getLogger(__name__)

LOCAL = "local"
PEER = "peer"
SCRAM = "scram-sha-256"

HBA_HEADER = "# Managed by matrixhub-db"
HBA_MODE = 0o600


@dataclass(frozen=True)
class AccessRule:
    """One pg_hba.conf line: a client origin and its auth method"""

    cidr: str
    auth_method: str

    @property
    def is_local(self) -> bool:
        return self.cidr == LOCAL

    def to_hba_line(self) -> str:
        if self.is_local:
            return f"{'local':<8}{'all':<16}{'all':<40}{self.auth_method}"
        return f"{'host':<8}{'all':<16}{'all':<16}{self.cidr:<24}{self.auth_method}"


LOCAL_PEER_RULE = AccessRule(cidr=LOCAL, auth_method=PEER)


def compile_access_rules(raw: str | None, default: str = PERMISSIVE_CIDR) -> list[AccessRule]:
    """
    Compile a comma-separated CIDR list into access rules.

    Each non-empty trimmed token becomes one scram-sha-256 rule, in input
    order, after a fixed local peer rule. When raw holds no tokens the
    default list is used instead.

    Args:
        raw: Comma-separated CIDR blocks, e.g. "10.0.0.0/8, 192.168.1.0/24"
        default: Fallback CIDR list when raw is empty

    Returns:
        Ordered list of AccessRule, local peer rule first
    """
    cidrs = split_csv(raw)
    if not cidrs:
        cidrs = split_csv(default)
        logger.debug(f"[Access] No CIDR list configured, using default: {default}")

    if PERMISSIVE_CIDR in cidrs:
        logger.warning(
            f"[Access] Access list allows {PERMISSIVE_CIDR} (any address). "
            "Set PG_ALLOW_CIDR to restrict database access."
        )

    return [LOCAL_PEER_RULE] + [AccessRule(cidr=cidr, auth_method=SCRAM) for cidr in cidrs]


def render_hba(rules: list[AccessRule]) -> str:
    """Render rules as pg_hba.conf content, one rule per line"""
    lines = [HBA_HEADER] + [rule.to_hba_line() for rule in rules]
    return "\n".join(lines) + "\n"


def write_hba(path: Path, rules: list[AccessRule]) -> Path:
    """
    Write rules to an access-control file readable only by its owner.

    The file is created with mode 0600 before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, HBA_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(render_hba(rules))
    os.chmod(path, HBA_MODE)
    logger.info(f"[Access] Wrote {len(rules)} rules to {path}")
    return path
