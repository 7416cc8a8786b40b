"""
Step orchestration

Runs an ordered list of named provisioning steps with fail-fast semantics.
A failing step halts the sequence; resources created by earlier steps stay
in place, so re-running is safe because every step is idempotent.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningStep:
    """
    One named step of a provisioning sequence

    Attributes:
        name: Step identifier (e.g. "ensure_network")
        description: Status line shown before the step runs
        action: Callable doing the work; its return value is recorded
        idempotent: Whether re-running the step is safe
        depends_on: Names of steps that must have run before this one
        when: Optional predicate; the step is skipped when it returns False
    """

    name: str
    description: str
    action: Callable[[], Any]
    idempotent: bool = True
    depends_on: list[str] = field(default_factory=list)
    when: Callable[[], bool] | None = None


@dataclass
class StepResult:
    """Recorded result of a step"""

    name: str
    ok: bool
    skipped: bool = False
    value: Any = None
    error: Exception | None = None
    elapsed: float = 0.0


class StepReporter(Protocol):
    """Receives progress callbacks while steps run"""

    def step_started(self, index: int, total: int, step: ProvisioningStep) -> None: ...

    def step_succeeded(self, step: ProvisioningStep, result: StepResult) -> None: ...

    def step_skipped(self, step: ProvisioningStep) -> None: ...

    def step_failed(self, step: ProvisioningStep, error: Exception) -> None: ...


class LoggingReporter:
    """Default reporter: progress goes to the module logger"""

    def step_started(self, index: int, total: int, step: ProvisioningStep) -> None:
        logger.info(f"Step {index}/{total}: {step.description}")

    def step_succeeded(self, step: ProvisioningStep, result: StepResult) -> None:
        logger.info(f"[OK] {step.name} ({result.elapsed:.2f}s)")

    def step_skipped(self, step: ProvisioningStep) -> None:
        logger.info(f"[SKIP] {step.name}")

    def step_failed(self, step: ProvisioningStep, error: Exception) -> None:
        logger.error(f"[ERROR] {step.name}: {error}")


def linear_chain(steps: list[ProvisioningStep]) -> list[ProvisioningStep]:
    """Make each step depend on the one before it"""
    for previous, step in zip(steps, steps[1:]):
        if previous.name not in step.depends_on:
            step.depends_on.append(previous.name)
    return steps


def run_steps(steps: list[ProvisioningStep], reporter: StepReporter | None = None) -> list[StepResult]:
    """
    Run steps in order, stopping at the first failure.

    Args:
        steps: Ordered steps
        reporter: Progress callbacks (defaults to logging)

    Returns:
        StepResult for every step that ran or was skipped

    Raises:
        ValueError: If a step depends on a step not run earlier
        Exception: The first step failure, re-raised after reporting
    """
    reporter = reporter or LoggingReporter()
    results: list[StepResult] = []
    done: set[str] = set()
    total = len(steps)

    for index, step in enumerate(steps, start=1):
        missing = [name for name in step.depends_on if name not in done]
        if missing:
            raise ValueError(f"Step '{step.name}' depends on steps not run before it: {missing}")

        if step.when is not None and not step.when():
            reporter.step_skipped(step)
            results.append(StepResult(step.name, ok=True, skipped=True))
            done.add(step.name)
            continue

        reporter.step_started(index, total, step)
        started = time.monotonic()
        try:
            value = step.action()
        except Exception as e:
            reporter.step_failed(step, e)
            raise
        result = StepResult(step.name, ok=True, value=value, elapsed=time.monotonic() - started)
        reporter.step_succeeded(step, result)
        results.append(result)
        done.add(step.name)

    return results
