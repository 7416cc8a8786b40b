"""
Tests for bounded health polling
"""

from unittest.mock import MagicMock

from matrixhub_db.lifecycle.health import HealthStatus, wait_for_healthy


class TestWaitForHealthy:
    """Tests for wait_for_healthy"""

    def test_healthy_on_third_poll(self):
        """Test return after exactly 3 polls"""
        probe = MagicMock(side_effect=["starting", "starting", "healthy"])
        sleep = MagicMock()

        result = wait_for_healthy(probe, interval=1.0, max_attempts=120, sleep=sleep)

        assert result.ok
        assert result.attempts == 3
        assert probe.call_count == 3
        assert sleep.call_count == 2

    def test_never_healthy_times_out_after_120_polls(self):
        """Test exhaustion yields TIMEOUT after exactly max_attempts polls"""
        probe = MagicMock(return_value="starting")
        sleep = MagicMock()

        result = wait_for_healthy(probe, interval=1.0, max_attempts=120, sleep=sleep)

        assert result.status == HealthStatus.TIMEOUT
        assert result.attempts == 120
        assert probe.call_count == 120
        assert sleep.call_count == 119

    def test_sleeps_for_interval(self):
        """Test the configured interval is passed to sleep"""
        probe = MagicMock(side_effect=["starting", "healthy"])
        sleep = MagicMock()

        wait_for_healthy(probe, interval=2.5, max_attempts=5, sleep=sleep)

        sleep.assert_called_once_with(2.5)

    def test_immediately_healthy_does_not_sleep(self):
        """Test no sleep when the first poll succeeds"""
        sleep = MagicMock()

        result = wait_for_healthy(lambda: "healthy", sleep=sleep)

        assert result.attempts == 1
        sleep.assert_not_called()

    def test_unhealthy_keeps_polling(self):
        """Test unhealthy answers are not terminal"""
        probe = MagicMock(side_effect=["unhealthy", "unhealthy", "healthy"])

        result = wait_for_healthy(probe, max_attempts=5, sleep=MagicMock())

        assert result.ok
        assert result.attempts == 3

    def test_last_seen_status_reported(self):
        """Test the last probe answer is kept on timeout"""
        result = wait_for_healthy(lambda: "unhealthy", max_attempts=2, sleep=MagicMock())

        assert result.last_seen == HealthStatus.UNHEALTHY


class TestHealthStatusParse:
    """Tests for HealthStatus.parse"""

    def test_docker_strings(self):
        """Test Docker health strings map onto statuses"""
        assert HealthStatus.parse("healthy") == HealthStatus.HEALTHY
        assert HealthStatus.parse(" Unhealthy ") == HealthStatus.UNHEALTHY

    def test_unknown_is_starting(self):
        """Test unknown answers count as still starting"""
        assert HealthStatus.parse("none") == HealthStatus.STARTING

    def test_enum_passthrough(self):
        """Test enum values are returned as-is"""
        assert HealthStatus.parse(HealthStatus.HEALTHY) is HealthStatus.HEALTHY
