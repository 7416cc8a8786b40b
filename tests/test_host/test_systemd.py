"""
Tests for systemd unit rendering and installation
"""

from pathlib import Path

from matrixhub_db.docker.models import Outcome
from matrixhub_db.host.systemd import (
    BACKUP_SCHEDULE,
    BACKUP_SERVICE,
    BACKUP_TIMER,
    DB_SERVICE,
    SystemdManager,
    render_backup_units,
    render_db_service,
)


class TestRenderUnits:
    """Tests for unit file contents"""

    def test_db_service_starts_and_stops_container(self, settings):
        """Test the service drives the configured container"""
        unit = render_db_service(settings)

        assert unit.name == DB_SERVICE
        assert f"start {settings.container_name}" in unit.content
        assert f"stop {settings.container_name}" in unit.content
        assert "After=docker.service" in unit.content

    def test_backup_units(self, settings):
        """Test the timer runs the backup service nightly"""
        service, timer = render_backup_units(settings, Path("/opt/matrixhub"))

        assert service.name == BACKUP_SERVICE
        assert "backup-now" in service.content
        assert "WorkingDirectory=/opt/matrixhub" in service.content
        assert timer.name == BACKUP_TIMER
        assert f"OnCalendar={BACKUP_SCHEDULE}" in timer.content


class TestSystemdManager:
    """Tests for install/remove"""

    def test_install_writes_and_enables(self, settings, fake_runner):
        """Test the unit is written, systemd reloaded and the unit enabled"""
        manager = SystemdManager(fake_runner, settings.systemd_dir)

        outcome = manager.install_db_service(settings)

        assert outcome == Outcome.CREATED
        assert (settings.systemd_dir / DB_SERVICE).exists()
        assert ["systemctl", "daemon-reload"] in fake_runner.commands
        assert ["systemctl", "enable", "--now", DB_SERVICE] in fake_runner.commands

    def test_reinstall_unchanged_skips_reload(self, settings, fake_runner):
        """Test identical content is not rewritten"""
        manager = SystemdManager(fake_runner, settings.systemd_dir)
        manager.install_db_service(settings)
        fake_runner.commands.clear()

        outcome = manager.install_db_service(settings)

        assert outcome == Outcome.ALREADY_PRESENT
        assert ["systemctl", "daemon-reload"] not in fake_runner.commands

    def test_remove(self, settings, fake_runner):
        """Test remove disables and deletes the unit files"""
        manager = SystemdManager(fake_runner, settings.systemd_dir)
        manager.install_backup_timer(settings, Path("/opt/matrixhub"))

        assert manager.remove_backup_timer() == Outcome.REMOVED
        assert not (settings.systemd_dir / BACKUP_TIMER).exists()
        assert manager.remove_backup_timer() == Outcome.ALREADY_ABSENT
