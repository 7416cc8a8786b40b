"""
Health polling

Bounded wait for a service to report healthy. The poll blocks the calling
process; there is no cancellation besides interrupting the process.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status of a polled service"""

    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    TIMEOUT = "timeout"

    @classmethod
    def parse(cls, value: "str | HealthStatus") -> "HealthStatus":
        """Map a probe answer onto a status; unknown answers count as starting"""
        if isinstance(value, HealthStatus):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.STARTING


@dataclass
class HealthResult:
    """
    Outcome of a health wait

    Attributes:
        status: HEALTHY on success, TIMEOUT when attempts ran out
        attempts: Number of probe calls made
        last_seen: Last status reported by the probe
    """

    status: HealthStatus
    attempts: int
    last_seen: HealthStatus = HealthStatus.STARTING

    @property
    def ok(self) -> bool:
        return self.status == HealthStatus.HEALTHY


def wait_for_healthy(
    probe: Callable[[], "str | HealthStatus"],
    interval: float = 1.0,
    max_attempts: int = 120,
    sleep: Callable[[float], None] = time.sleep,
) -> HealthResult:
    """
    Poll a health probe until it reports healthy or attempts run out.

    The probe is called at most max_attempts times, sleeping interval
    seconds between calls. Unhealthy answers keep the loop going since
    containers can recover while their healthcheck retries.

    Args:
        probe: Returns the current status (e.g. Docker's health string)
        interval: Seconds between polls
        max_attempts: Maximum number of probe calls
        sleep: Sleep function (injectable for tests)

    Returns:
        HealthResult with status HEALTHY or TIMEOUT
    """
    last_seen = HealthStatus.STARTING
    for attempt in range(1, max_attempts + 1):
        last_seen = HealthStatus.parse(probe())
        if last_seen == HealthStatus.HEALTHY:
            logger.info(f"[Health] Healthy after {attempt} attempt(s)")
            return HealthResult(HealthStatus.HEALTHY, attempt, last_seen)
        logger.debug(f"[Health] Attempt {attempt}/{max_attempts}: {last_seen.value}")
        if attempt < max_attempts:
            sleep(interval)

    logger.warning(f"[Health] Gave up after {max_attempts} attempts (last status: {last_seen.value})")
    return HealthResult(HealthStatus.TIMEOUT, max_attempts, last_seen)
