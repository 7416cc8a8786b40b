"""
Docker module - Resource manager adapter over the Docker Engine API
"""

from matrixhub_db.docker.client import DockerResourceManager
from matrixhub_db.docker.models import (
    ContainerSpec,
    DockerStatus,
    HealthCheck,
    ManagedResource,
    Outcome,
    ResourceKind,
)

__all__ = [
    "ContainerSpec",
    "DockerResourceManager",
    "DockerStatus",
    "HealthCheck",
    "ManagedResource",
    "Outcome",
    "ResourceKind",
]
