"""
Base exception hierarchy

Provides a consistent exception structure across the toolkit
with clear error messages and recovery hints.
"""


class MatrixHubDBError(Exception):
    """
    Base exception for all toolkit errors

    Attributes:
        message: Error message
        component: Component that raised the error
        recovery_hint: Optional hint for recovery
    """

    def __init__(self, message: str, component: str = "", recovery_hint: str = ""):
        self.component = component
        self.recovery_hint = recovery_hint
        super().__init__(message)

    def __str__(self) -> str:
        msg = super().__str__()
        if self.component:
            msg = f"[{self.component}] {msg}"
        if self.recovery_hint:
            msg += f"\n💡 Recovery: {self.recovery_hint}"
        return msg


class ProbeError(MatrixHubDBError):
    """The resource manager (Docker daemon, database server) is unreachable"""

    def __init__(self, message: str, component: str = "Docker", recovery_hint: str = ""):
        super().__init__(
            message,
            component=component,
            recovery_hint=recovery_hint or "Check that the Docker daemon is running (systemctl status docker)",
        )


class CreateError(MatrixHubDBError):
    """Creating a resource failed"""

    def __init__(self, kind: str, name: str, reason: str, recovery_hint: str = ""):
        self.kind = kind
        self.name = name
        super().__init__(
            f"Failed to create {kind} '{name}': {reason}",
            component="Provisioner",
            recovery_hint=recovery_hint,
        )


class HealthTimeoutError(MatrixHubDBError):
    """Service never reported healthy within the polling bound"""

    def __init__(self, name: str, attempts: int, log_tail: str = ""):
        self.name = name
        self.attempts = attempts
        self.log_tail = log_tail
        super().__init__(
            f"Timed out waiting for '{name}' to become healthy after {attempts} attempts",
            component="Health",
            recovery_hint=f"Inspect the container logs: docker logs {name}",
        )


class ConfirmationDeclinedError(MatrixHubDBError):
    """Operator did not confirm a destructive action"""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Aborted {action}: confirmation not given", component="Confirm")


class ConfigurationError(MatrixHubDBError):
    """Configuration-related errors"""

    def __init__(self, message: str, recovery_hint: str = ""):
        super().__init__(
            message,
            component="Configuration",
            recovery_hint=recovery_hint or "Check your .env.db file and settings",
        )


class CommandError(MatrixHubDBError):
    """A host command (dnf, firewall-cmd, systemctl, docker CLI) failed"""

    def __init__(self, command: list[str], returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()[:200]}" if stderr and stderr.strip() else ""
        super().__init__(
            f"Command '{' '.join(command)}' exited with {returncode}{detail}",
            component="Host",
        )


class BackupError(MatrixHubDBError):
    """Backup or restore failed"""

    def __init__(self, message: str, recovery_hint: str = ""):
        super().__init__(message, component="Backup", recovery_hint=recovery_hint)
