"""
Lifecycle module - Step orchestration and health polling

Step lists live in matrixhub_db.lifecycle.steps (imported directly, it
depends on the service modules).
"""

from matrixhub_db.lifecycle.health import HealthResult, HealthStatus, wait_for_healthy
from matrixhub_db.lifecycle.orchestrator import (
    ProvisioningStep,
    StepResult,
    linear_chain,
    run_steps,
)

__all__ = [
    "HealthResult",
    "HealthStatus",
    "ProvisioningStep",
    "StepResult",
    "linear_chain",
    "run_steps",
    "wait_for_healthy",
]
