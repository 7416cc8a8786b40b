"""
Host command runner

Runs host-level tools (dnf, firewall-cmd, systemctl, docker CLI) through
subprocess with consistent decoding, timeouts and error reporting.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import IO

from matrixhub_db.core.exceptions import CommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120


@dataclass
class CommandResult:
    """Completed host command"""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Executes host commands, optionally through sudo

    Args:
        sudo: Prefix every command with "sudo"
    """

    def __init__(self, sudo: bool = False):
        self.sudo = sudo

    def _full_command(self, command: list[str]) -> list[str]:
        return ["sudo"] + command if self.sudo else list(command)

    def run(
        self,
        command: list[str],
        check: bool = True,
        timeout: int | None = DEFAULT_TIMEOUT,
        stdin: IO[bytes] | None = None,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            command: Command and arguments
            check: Raise CommandError on a non-zero exit code
            timeout: Seconds before the command is killed (None: no limit)
            stdin: Open binary file fed to the command's standard input

        Returns:
            CommandResult

        Raises:
            CommandError: If check is set and the command fails, or the
                executable is missing or times out
        """
        full = self._full_command(command)
        logger.debug(f"[Host] Running: {' '.join(full)}")
        try:
            completed = subprocess.run(
                full,
                stdin=stdin,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise CommandError(full, 127, f"executable not found: {e.filename}") from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(full, -1, f"timed out after {timeout}s") from e

        result = CommandResult(full, completed.returncode, completed.stdout or "", completed.stderr or "")
        if check and not result.ok:
            raise CommandError(full, result.returncode, result.stderr)
        return result

    def run_interactive(self, command: list[str]) -> int:
        """
        Run a command attached to the current terminal (psql, logs -f).

        Returns:
            The command's exit code
        """
        full = self._full_command(command)
        logger.debug(f"[Host] Running interactively: {' '.join(full)}")
        try:
            return subprocess.run(full).returncode
        except FileNotFoundError as e:
            raise CommandError(full, 127, f"executable not found: {e.filename}") from e
