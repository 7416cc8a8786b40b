"""
Docker resource data models.

Contains enums and dataclasses for managed resources, provisioning
outcomes, container specs and daemon status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

ContainerStatus = Literal["created", "running", "restarting", "exited", "paused", "dead", "not_created"]


class ResourceKind(str, Enum):
    """Kinds of resources the toolkit checks and provisions"""

    NETWORK = "network"
    VOLUME = "volume"
    CONTAINER = "container"
    IMAGE = "image"
    DATABASE = "database"
    ROLE = "role"

    @property
    def is_docker(self) -> bool:
        return self in DOCKER_KINDS


DOCKER_KINDS = frozenset(
    {ResourceKind.NETWORK, ResourceKind.VOLUME, ResourceKind.CONTAINER, ResourceKind.IMAGE}
)


class Outcome(str, Enum):
    """Result of an idempotent provisioning call"""

    CREATED = "created"
    ALREADY_PRESENT = "already_present"
    REPLACED = "replaced"
    REMOVED = "removed"
    ALREADY_ABSENT = "already_absent"


@dataclass(frozen=True)
class ManagedResource:
    """A named resource declared by configuration"""

    kind: ResourceKind
    name: str
    desired_state: Literal["present", "absent"] = "present"


@dataclass
class HealthCheck:
    """Container healthcheck, durations in seconds"""

    test: list[str]
    interval: int = 10
    timeout: int = 5
    retries: int = 5

    def to_docker(self) -> dict:
        """Convert to the Engine API healthcheck structure (nanoseconds)"""
        return {
            "test": self.test,
            "interval": self.interval * 1_000_000_000,
            "timeout": self.timeout * 1_000_000_000,
            "retries": self.retries,
        }


@dataclass
class ContainerSpec:
    """
    Desired configuration of a service container

    Attributes:
        name: Container name
        image: Image reference (name:tag)
        network: Network to attach to
        aliases: Network aliases on that network
        ports: Container port -> host port
        environment: Environment variables
        volumes: Named volume or host path -> bind spec
        command: Arguments passed to the image entrypoint
        restart_policy: Docker restart policy name
        healthcheck: Optional container healthcheck
    """

    name: str
    image: str
    network: str | None = None
    aliases: list[str] = field(default_factory=list)
    ports: dict[str, int] = field(default_factory=dict)
    environment: dict[str, str] = field(default_factory=dict)
    volumes: dict[str, dict[str, str]] = field(default_factory=dict)
    command: list[str] = field(default_factory=list)
    restart_policy: str = "unless-stopped"
    healthcheck: HealthCheck | None = None


@dataclass
class DockerStatus:
    """Docker daemon status."""

    installed: bool
    running: bool
    version: str | None = None
    docker_path: str | None = None
