"""
systemd unit management

Renders and installs the units that start the database container on boot
and run nightly backups.
"""

import logging
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

from matrixhub_db.core.config import Settings
from matrixhub_db.core.exceptions import MatrixHubDBError
from matrixhub_db.docker.models import Outcome
from matrixhub_db.host.commands import CommandRunner

logger = logging.getLogger(__name__)

DB_SERVICE = "matrixhub-db.service"
BACKUP_SERVICE = "matrixhub-db-backup.service"
BACKUP_TIMER = "matrixhub-db-backup.timer"

BACKUP_SCHEDULE = "*-*-* 02:30:00"


@dataclass(frozen=True)
class Unit:
    """A unit file name and its rendered contents"""

    name: str
    content: str


def _docker_path() -> str:
    return shutil.which("docker") or "/usr/bin/docker"


def _toolkit_command() -> str:
    return shutil.which("matrixhub-db") or f"{sys.executable} -m matrixhub_db"


def render_db_service(settings: Settings) -> Unit:
    docker = _docker_path()
    content = f"""[Unit]
Description=MatrixHub PostgreSQL container ({settings.container_name})
Requires=docker.service
After=docker.service network-online.target
Wants=network-online.target

[Service]
Type=oneshot
RemainAfterExit=yes
ExecStart={docker} start {settings.container_name}
ExecStop={docker} stop {settings.container_name}
TimeoutStartSec=120

[Install]
WantedBy=multi-user.target
"""
    return Unit(DB_SERVICE, content)


def render_backup_units(settings: Settings, working_dir: Path) -> list[Unit]:
    """Backup service and its nightly timer"""
    service = f"""[Unit]
Description=MatrixHub PostgreSQL nightly backup
Requires=docker.service
After=docker.service {DB_SERVICE}

[Service]
Type=oneshot
WorkingDirectory={working_dir}
Environment=BACKUP_DIR={settings.backup_dir.resolve()}
ExecStart={_toolkit_command()} backup-now
"""
    timer = f"""[Unit]
Description=Run MatrixHub PostgreSQL backup nightly

[Timer]
OnCalendar={BACKUP_SCHEDULE}
Persistent=true
Unit={BACKUP_SERVICE}

[Install]
WantedBy=timers.target
"""
    return [Unit(BACKUP_SERVICE, service), Unit(BACKUP_TIMER, timer)]


class SystemdManager:
    """
    Installs, enables and removes unit files

    Args:
        runner: Host command runner for systemctl
        unit_dir: Directory holding unit files (/etc/systemd/system)
    """

    def __init__(self, runner: CommandRunner, unit_dir: Path):
        self.runner = runner
        self.unit_dir = unit_dir

    def _write_unit(self, unit: Unit) -> bool:
        """Write a unit file. Returns False if it already had this content."""
        path = self.unit_dir / unit.name
        if path.exists() and path.read_text(encoding="utf-8") == unit.content:
            return False
        try:
            path.write_text(unit.content, encoding="utf-8")
        except PermissionError as e:
            raise MatrixHubDBError(
                f"Cannot write {path}: permission denied",
                component="systemd",
                recovery_hint="Re-run with sudo",
            ) from e
        logger.info(f"[systemd] Wrote {path}")
        return True

    def install(self, units: list[Unit], enable: str) -> Outcome:
        """
        Install unit files, reload systemd and enable --now one of them.

        Args:
            units: Units to write
            enable: Name of the unit to enable and start
        """
        changed = [self._write_unit(unit) for unit in units]
        if any(changed):
            self.runner.run(["systemctl", "daemon-reload"])
        self.runner.run(["systemctl", "enable", "--now", enable])
        logger.info(f"[systemd] {enable} enabled")
        return Outcome.CREATED if any(changed) else Outcome.ALREADY_PRESENT

    def remove(self, names: list[str], disable: str) -> Outcome:
        """Disable a unit and delete unit files; missing units are not an error."""
        self.runner.run(["systemctl", "disable", "--now", disable], check=False)
        removed = False
        for name in names:
            path = self.unit_dir / name
            if path.exists():
                path.unlink()
                logger.info(f"[systemd] Removed {path}")
                removed = True
        if removed:
            self.runner.run(["systemctl", "daemon-reload"])
        return Outcome.REMOVED if removed else Outcome.ALREADY_ABSENT

    def install_db_service(self, settings: Settings) -> Outcome:
        return self.install([render_db_service(settings)], enable=DB_SERVICE)

    def remove_db_service(self) -> Outcome:
        return self.remove([DB_SERVICE], disable=DB_SERVICE)

    def install_backup_timer(self, settings: Settings, working_dir: Path) -> Outcome:
        return self.install(render_backup_units(settings, working_dir), enable=BACKUP_TIMER)

    def remove_backup_timer(self) -> Outcome:
        return self.remove([BACKUP_SERVICE, BACKUP_TIMER], disable=BACKUP_TIMER)
