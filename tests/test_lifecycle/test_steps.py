"""
Tests for the init, up and down step sequences against in-memory fakes
"""

from unittest.mock import patch

import pytest

from matrixhub_db.core.exceptions import CreateError, HealthTimeoutError
from matrixhub_db.docker.models import Outcome
from matrixhub_db.lifecycle.orchestrator import run_steps
from matrixhub_db.lifecycle.steps import build_down_steps, build_init_steps, build_up_steps
from matrixhub_db.postgres.access import compile_access_rules, render_hba

HBA = "/var/lib/postgresql/data/pg_hba.conf"

INIT_ORDER = [
    "install_runtime",
    "open_network_access",
    "build_artifact",
    "ensure_network",
    "ensure_volume",
    "replace_container",
    "wait_for_healthy",
    "ensure_databases",
    "apply_access_rules",
    "register_autostart",
]


@pytest.fixture(autouse=True)
def docker_on_path():
    with patch("matrixhub_db.host.docker_install.shutil.which", return_value="/usr/bin/docker"):
        yield


class TestInitSteps:
    """Tests for the full bootstrap chain"""

    def test_step_order(self, toolkit):
        """Test the fixed linear chain"""
        assert [s.name for s in build_init_steps(toolkit)] == INIT_ORDER

    def test_first_init_applies_access_rules(self, toolkit, fake_docker, settings):
        """Test a fresh volume leads to pg_hba.conf being written"""
        results = run_steps(build_init_steps(toolkit))

        assert [r.name for r in results] == INIT_ORDER
        assert not any(r.skipped for r in results)
        content, mode = fake_docker.files[(settings.container_name, HBA)]
        assert b"10.0.0.0/8" in content
        assert mode == 0o600
        assert (settings.systemd_dir / "matrixhub-db.service").exists()

    def test_rerun_keeps_volume_and_skips_access_rules(self, toolkit, fake_docker):
        """Test a second init reuses everything and does not touch pg_hba.conf"""
        run_steps(build_init_steps(toolkit))
        fake_docker.execs.clear()

        results = {r.name: r for r in run_steps(build_init_steps(toolkit))}

        assert results["ensure_volume"].value == Outcome.ALREADY_PRESENT
        assert results["replace_container"].value == Outcome.REPLACED
        assert results["ensure_databases"].skipped
        assert results["apply_access_rules"].skipped
        assert [cmd[0] for _, cmd, _ in fake_docker.execs] == ["head"]
        assert fake_docker.calls.count(("create_volume", toolkit.settings.volume_name)) == 1

    def test_health_timeout_halts_before_autostart(self, toolkit, fake_docker, settings):
        """Test a never-healthy container stops the chain with the log tail"""
        fake_docker.health[settings.container_name] = ["starting"]

        with pytest.raises(HealthTimeoutError) as exc_info:
            run_steps(build_init_steps(toolkit))

        assert exc_info.value.attempts == settings.health_max_attempts
        assert settings.container_name in exc_info.value.log_tail
        assert not (settings.systemd_dir / "matrixhub-db.service").exists()


class TestUpSteps:
    """Tests for the up chain"""

    def test_existing_volume_skips_wait_and_rules(self, toolkit, fake_docker, settings):
        """Test up over initialized data only replaces the container"""
        fake_docker.volumes.add(settings.volume_name)
        managed = render_hba(compile_access_rules("10.0.0.0/8")).encode()
        fake_docker.files[(settings.container_name, HBA)] = (managed, 0o600)

        results = {r.name: r for r in run_steps(build_up_steps(toolkit))}

        assert results["wait_for_healthy"].skipped
        assert results["apply_access_rules"].skipped
        assert settings.container_name in fake_docker.containers

    def test_fresh_volume_waits_and_applies_rules(self, toolkit, fake_docker):
        """Test up on a fresh host behaves like first initialization"""
        results = {r.name: r for r in run_steps(build_up_steps(toolkit))}

        assert not results["wait_for_healthy"].skipped
        assert results["wait_for_healthy"].value.ok
        assert not results["apply_access_rules"].skipped

    def test_rerun_after_health_timeout_finishes_initialization(self, toolkit, fake_docker, settings):
        """Test a first up that never got healthy leaves the next up to apply the rules"""
        fake_docker.health[settings.container_name] = ["starting"]
        with pytest.raises(HealthTimeoutError):
            run_steps(build_up_steps(toolkit))
        fake_docker.health.clear()

        results = {r.name: r for r in run_steps(build_up_steps(toolkit))}

        assert results["ensure_volume"].value == Outcome.ALREADY_PRESENT
        assert not results["wait_for_healthy"].skipped
        assert not results["apply_access_rules"].skipped
        content, _ = fake_docker.files[(settings.container_name, HBA)]
        assert b"10.0.0.0/8" in content

    def test_rerun_after_failed_move_finishes_initialization(self, toolkit, fake_docker, settings):
        """Test a pg_hba.conf that never made it into place is retried on the next up"""
        fake_docker.exec_results["mv"] = (1, "mv: cannot move")
        with pytest.raises(CreateError):
            run_steps(build_up_steps(toolkit))
        del fake_docker.exec_results["mv"]

        results = {r.name: r for r in run_steps(build_up_steps(toolkit))}

        assert not results["apply_access_rules"].skipped
        assert (settings.container_name, HBA) in fake_docker.files

    def test_extra_databases_created_before_access_rules(self, toolkit, fake_docker, settings):
        """Test CREATE_EXTRA_DBS databases are created while the image's local trust rule holds"""
        toolkit.settings = settings.model_copy(update={"create_extra_dbs": "analytics,audit"})

        results = {r.name: r for r in run_steps(build_up_steps(toolkit))}

        assert results["ensure_databases"].value == {"analytics": Outcome.CREATED, "audit": Outcome.CREATED}
        commands = [cmd for _, cmd, _ in fake_docker.execs]
        creates = [i for i, cmd in enumerate(commands) if cmd[-1].startswith("CREATE DATABASE")]
        reload = commands.index(["pg_ctl", "reload", "-D", settings.pgdata])
        assert len(creates) == 2
        assert max(creates) < reload

    def test_extra_databases_skipped_once_initialized(self, toolkit, fake_docker, settings):
        """Test later runs leave databases alone"""
        toolkit.settings = settings.model_copy(update={"create_extra_dbs": "analytics"})
        run_steps(build_up_steps(toolkit))

        results = {r.name: r for r in run_steps(build_up_steps(toolkit))}

        assert results["ensure_databases"].skipped

    def test_db_container_spec(self, toolkit, fake_docker, settings):
        """Test tuning flags, volume and network alias of the started container"""
        run_steps(build_up_steps(toolkit))
        spec = fake_docker.containers[settings.container_name]["spec"]

        assert f"shared_buffers={settings.shared_buffers}" in spec.command
        assert settings.volume_name in spec.volumes
        assert spec.aliases == [settings.network_alias]
        assert spec.ports == {"5432/tcp": settings.pg_host_port}


class TestDownSteps:
    """Tests for teardown"""

    def test_down_removes_container_keeps_volume(self, toolkit, fake_docker, settings):
        """Test stop then remove, volume untouched"""
        run_steps(build_up_steps(toolkit))

        run_steps(build_down_steps(toolkit))

        assert settings.container_name not in fake_docker.containers
        assert settings.volume_name in fake_docker.volumes

    def test_down_when_absent_is_noop(self, toolkit):
        """Test teardown of a missing container succeeds"""
        results = run_steps(build_down_steps(toolkit))

        assert results[0].value is False
        assert results[1].value == Outcome.ALREADY_ABSENT

    def test_down_stops_once(self, toolkit, fake_docker, settings):
        """Test the container is stopped by the stop step only"""
        run_steps(build_up_steps(toolkit))
        fake_docker.calls.clear()

        run_steps(build_down_steps(toolkit))

        assert fake_docker.calls == [
            ("stop_container", settings.container_name),
            ("remove_container", settings.container_name),
        ]
