"""
firewalld port management

Opening and closing are idempotent: the permanent configuration is queried
first and only changed (and reloaded) when needed.
"""

import logging

from matrixhub_db.core.exceptions import CommandError
from matrixhub_db.docker.models import Outcome
from matrixhub_db.host.commands import CommandRunner

logger = logging.getLogger(__name__)


def _port_spec(port: int, protocol: str = "tcp") -> str:
    return f"{port}/{protocol}"


def is_port_open(runner: CommandRunner, port: int) -> bool:
    """firewall-cmd --query-port exits 0 when the port is open"""
    result = runner.run(
        ["firewall-cmd", "--permanent", f"--query-port={_port_spec(port)}"],
        check=False,
    )
    if result.returncode not in (0, 1):
        raise CommandError(result.command, result.returncode, result.stderr)
    return result.ok


def open_port(runner: CommandRunner, port: int, best_effort: bool = False) -> Outcome | None:
    """
    Open a TCP port permanently and reload firewalld.

    Args:
        runner: Host command runner
        port: Port number
        best_effort: Log instead of raising when firewalld is unavailable
    """
    try:
        if is_port_open(runner, port):
            logger.info(f"[Firewall] Port {_port_spec(port)} already open")
            return Outcome.ALREADY_PRESENT
        logger.info(f"[Firewall] Opening port {_port_spec(port)}")
        runner.run(["firewall-cmd", "--permanent", f"--add-port={_port_spec(port)}"])
        runner.run(["firewall-cmd", "--reload"])
        return Outcome.CREATED
    except CommandError as e:
        if not best_effort:
            raise
        logger.warning(f"[Firewall] Could not open port {port}: {e}")
        return None


def close_port(runner: CommandRunner, port: int) -> Outcome:
    """Remove a TCP port from the permanent configuration and reload firewalld."""
    if not is_port_open(runner, port):
        logger.info(f"[Firewall] Port {_port_spec(port)} already closed")
        return Outcome.ALREADY_ABSENT
    logger.info(f"[Firewall] Closing port {_port_spec(port)}")
    runner.run(["firewall-cmd", "--permanent", f"--remove-port={_port_spec(port)}"])
    runner.run(["firewall-cmd", "--reload"])
    return Outcome.REMOVED
