"""
Tests for the host command runner and Docker installation
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from matrixhub_db.core.exceptions import CommandError
from matrixhub_db.docker.models import Outcome
from matrixhub_db.host.commands import CommandRunner
from matrixhub_db.host.docker_install import install_docker


class TestCommandRunner:
    """Tests for CommandRunner.run"""

    def test_success(self):
        """Test output is captured"""
        completed = subprocess.CompletedProcess(["echo"], 0, stdout="hi\n", stderr="")
        with patch("matrixhub_db.host.commands.subprocess.run", return_value=completed) as run:
            result = CommandRunner().run(["echo", "hi"])

        assert result.ok
        assert result.stdout == "hi\n"
        assert run.call_args.args[0] == ["echo", "hi"]

    def test_sudo_prefix(self):
        """Test sudo is prepended when configured"""
        completed = subprocess.CompletedProcess([], 0, stdout="", stderr="")
        with patch("matrixhub_db.host.commands.subprocess.run", return_value=completed) as run:
            CommandRunner(sudo=True).run(["systemctl", "daemon-reload"])

        assert run.call_args.args[0] == ["sudo", "systemctl", "daemon-reload"]

    def test_failure_raises_with_stderr(self):
        """Test check=True raises CommandError carrying return code and stderr"""
        completed = subprocess.CompletedProcess([], 3, stdout="", stderr="bad things")
        with patch("matrixhub_db.host.commands.subprocess.run", return_value=completed):
            with pytest.raises(CommandError) as exc_info:
                CommandRunner().run(["false"])

        assert exc_info.value.returncode == 3
        assert "bad things" in str(exc_info.value)

    def test_failure_without_check(self):
        """Test check=False returns the failed result"""
        completed = subprocess.CompletedProcess([], 1, stdout="", stderr="")
        with patch("matrixhub_db.host.commands.subprocess.run", return_value=completed):
            result = CommandRunner().run(["false"], check=False)

        assert not result.ok

    def test_missing_executable(self):
        """Test a missing binary is a CommandError with code 127"""
        with patch("matrixhub_db.host.commands.subprocess.run", side_effect=FileNotFoundError(2, "x", "dnf")):
            with pytest.raises(CommandError) as exc_info:
                CommandRunner().run(["dnf", "install"])

        assert exc_info.value.returncode == 127

    def test_timeout(self):
        """Test timeouts become CommandError"""
        with patch(
            "matrixhub_db.host.commands.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["sleep"], 1),
        ):
            with pytest.raises(CommandError, match="timed out"):
                CommandRunner().run(["sleep", "10"], timeout=1)


class TestInstallDocker:
    """Tests for install_docker"""

    def test_skips_when_present(self, fake_runner):
        """Test nothing runs when docker is already installed"""
        with patch("matrixhub_db.host.docker_install.shutil.which", return_value="/usr/bin/docker"):
            outcome = install_docker(fake_runner)

        assert outcome == Outcome.ALREADY_PRESENT
        assert fake_runner.commands == []

    def test_installs_and_adds_user_to_group(self, fake_runner, monkeypatch):
        """Test the repo, packages, service and group membership are set up"""
        monkeypatch.setenv("SUDO_USER", "opc")
        group = MagicMock(gr_mem=[])
        with patch("matrixhub_db.host.docker_install.shutil.which", return_value=None), patch(
            "matrixhub_db.host.docker_install.grp.getgrnam", return_value=group
        ):
            outcome = install_docker(fake_runner)

        assert outcome == Outcome.CREATED
        assert ["systemctl", "enable", "--now", "docker"] in fake_runner.commands
        assert fake_runner.commands[-1] == ["usermod", "-aG", "docker", "opc"]
