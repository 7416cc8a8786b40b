"""
Core module - Configuration and exception hierarchy

Provides foundational components used across the toolkit:
- Base exception hierarchy
- Configuration management
"""

from matrixhub_db.core.config import (
    Settings,
    get_settings,
    reset_settings,
)
from matrixhub_db.core.exceptions import (
    BackupError,
    CommandError,
    ConfigurationError,
    ConfirmationDeclinedError,
    CreateError,
    HealthTimeoutError,
    MatrixHubDBError,
    ProbeError,
)

__all__ = [
    "BackupError",
    "CommandError",
    "ConfigurationError",
    "ConfirmationDeclinedError",
    "CreateError",
    "HealthTimeoutError",
    "MatrixHubDBError",
    "ProbeError",
    "Settings",
    "get_settings",
    "reset_settings",
]
