"""
Backups

Timestamped custom-format dumps (pg_dump -Fc) written to BACKUP_DIR, and
restore of the most recent dump with pg_restore --clean --if-exists.
"""

import logging
from datetime import datetime
from pathlib import Path

from matrixhub_db.context import ToolkitContext
from matrixhub_db.core.exceptions import BackupError

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "matrixhub-"
BACKUP_SUFFIX = ".dump"


def backup_filename(now: datetime | None = None) -> str:
    """e.g. matrixhub-2026-10-17-021500.dump"""
    now = now or datetime.now()
    return f"{BACKUP_PREFIX}{now.strftime('%Y-%m-%d-%H%M%S')}{BACKUP_SUFFIX}"


def list_backups(backup_dir: Path) -> list[Path]:
    """Dump files in backup_dir, newest first"""
    if not backup_dir.is_dir():
        return []
    return sorted(backup_dir.glob(f"*{BACKUP_SUFFIX}"), key=lambda p: p.stat().st_mtime, reverse=True)


def latest_backup(backup_dir: Path) -> Path:
    """
    Most recent dump in backup_dir.

    Raises:
        BackupError: If there is none
    """
    backups = list_backups(backup_dir)
    if not backups:
        raise BackupError(f"No backups found in {backup_dir}", recovery_hint="Run 'matrixhub-db backup' first")
    return backups[0]


def backup_now(ctx: ToolkitContext) -> Path:
    """
    Dump the application database from the running container.

    Returns:
        Path of the written dump

    Raises:
        BackupError: If pg_dump fails (the partial file is removed)
    """
    settings = ctx.settings
    settings.backup_dir.mkdir(parents=True, exist_ok=True)
    dest = settings.backup_dir / backup_filename()

    logger.info(f"[Backup] Backing up '{settings.postgres_db}' to {dest}")
    exit_code, stderr = ctx.docker.exec_to_file(
        settings.container_name,
        ["pg_dump", "-U", settings.postgres_user, "-d", settings.postgres_db, "-Fc"],
        dest,
    )
    if exit_code != 0:
        dest.unlink(missing_ok=True)
        raise BackupError(f"pg_dump exited with {exit_code}: {stderr.strip()[:200]}")

    logger.info(f"[Backup] Backup complete: {dest} ({dest.stat().st_size} bytes)")
    return dest


def restore(ctx: ToolkitContext, dump: Path) -> None:
    """
    Restore a dump into the application database, overwriting existing objects.

    Callers must confirm with the operator first.
    """
    settings = ctx.settings
    if not dump.is_file():
        raise BackupError(f"Backup file not found: {dump}")

    logger.info(f"[Backup] Restoring {dump} into '{settings.postgres_db}'")
    command = [
        "docker", "exec", "-i", settings.container_name,
        "pg_restore", "-U", settings.postgres_user, "-d", settings.postgres_db,
        "--clean", "--if-exists",
    ]
    with open(dump, "rb") as f:
        result = ctx.runner.run(command, check=False, timeout=None, stdin=f)
    if not result.ok:
        raise BackupError(f"pg_restore exited with {result.returncode}: {result.stderr.strip()[:200]}")
    logger.info("[Backup] Restore complete")
