"""
Idempotent provisioner

Applies create-if-missing to networks, volumes, images, roles and
databases, and an explicit replace policy to service containers.

Volumes hold durable state: they are created when missing and removed only
through remove_volume, which callers invoke after operator confirmation.

No locking is done. Two processes provisioning the same names at the same
time can race; a single operator on a single host is assumed.
"""

import logging
from pathlib import Path
from typing import Callable

from matrixhub_db.core.exceptions import CreateError, MatrixHubDBError
from matrixhub_db.docker.client import DockerResourceManager
from matrixhub_db.docker.models import ContainerSpec, Outcome, ResourceKind
from matrixhub_db.provisioning.checker import ExistenceChecker

logger = logging.getLogger(__name__)


class Provisioner:
    """Create-or-skip operations over Docker and Postgres resources"""

    def __init__(self, checker: ExistenceChecker):
        self.checker = checker

    @property
    def docker(self) -> DockerResourceManager:
        return self.checker.docker

    def ensure(self, kind: ResourceKind, name: str, create_fn: Callable[[], None]) -> Outcome:
        """
        Create a resource only if it does not exist.

        Args:
            kind: Resource kind
            name: Resource name
            create_fn: Called exactly once when the resource is absent

        Returns:
            Outcome.CREATED or Outcome.ALREADY_PRESENT

        Raises:
            ProbeError: If the resource manager is unreachable
            CreateError: If create_fn fails
        """
        if self.checker.exists(kind, name):
            logger.info(f"[Provisioner] {kind.value} '{name}' already present")
            return Outcome.ALREADY_PRESENT

        logger.info(f"[Provisioner] Creating {kind.value} '{name}'")
        try:
            create_fn()
        except MatrixHubDBError:
            raise
        except Exception as e:
            raise CreateError(kind.value, name, str(e)) from e
        return Outcome.CREATED

    # ==========================================================================
    # Docker resources
    # ==========================================================================

    def ensure_network(self, name: str) -> Outcome:
        return self.ensure(ResourceKind.NETWORK, name, lambda: self.docker.create_network(name))

    def ensure_volume(self, name: str) -> Outcome:
        return self.ensure(ResourceKind.VOLUME, name, lambda: self.docker.create_volume(name))

    def ensure_image(self, tag: str, context: Path, force: bool = False) -> Outcome:
        """
        Build an image unless it already exists.

        Args:
            tag: Image reference to build
            context: Build context directory
            force: Rebuild even if the image exists
        """
        if force:
            self.docker.build_image(context, tag)
            return Outcome.CREATED
        return self.ensure(ResourceKind.IMAGE, tag, lambda: self.docker.build_image(context, tag))

    def ensure_pulled(self, reference: str) -> Outcome:
        return self.ensure(ResourceKind.IMAGE, reference, lambda: self.docker.pull_image(reference))

    def replace_container(self, spec: ContainerSpec) -> Outcome:
        """
        Start a container from spec, replacing any container of the same name.

        A running container is stopped first, then removed. Volumes mounted
        by the old container are left untouched.

        Returns:
            Outcome.REPLACED if an old container was removed, else Outcome.CREATED
        """
        replaced = False
        if self.checker.exists(ResourceKind.CONTAINER, spec.name):
            if self.docker.container_running(spec.name):
                logger.info(f"[Provisioner] Stopping existing container {spec.name}")
                self.docker.stop_container(spec.name)
            logger.info(f"[Provisioner] Removing existing container {spec.name}")
            self.docker.remove_container(spec.name)
            replaced = True

        self.docker.run_container(spec)
        return Outcome.REPLACED if replaced else Outcome.CREATED

    def remove_container(self, name: str, stop: bool = True) -> Outcome:
        """Stop and remove a container; no-op when it does not exist. stop=False skips the stop."""
        if not self.checker.exists(ResourceKind.CONTAINER, name):
            logger.info(f"[Provisioner] container '{name}' already absent")
            return Outcome.ALREADY_ABSENT
        if stop:
            self.docker.stop_container(name)
        self.docker.remove_container(name)
        return Outcome.REMOVED

    def remove_volume(self, name: str) -> Outcome:
        """Delete a volume and its data. Callers must confirm with the operator first."""
        if not self.checker.exists(ResourceKind.VOLUME, name):
            logger.info(f"[Provisioner] volume '{name}' already absent")
            return Outcome.ALREADY_ABSENT
        self.docker.remove_volume(name)
        return Outcome.REMOVED

    # ==========================================================================
    # Postgres objects
    # ==========================================================================

    def ensure_role(self, name: str, password: str, grants: tuple[str, ...] = ()) -> Outcome:
        catalog = self.checker.require_catalog()
        return self.ensure(ResourceKind.ROLE, name, lambda: catalog.create_role(name, password, grants))

    def ensure_database(self, name: str, owner: str) -> Outcome:
        catalog = self.checker.require_catalog()
        return self.ensure(ResourceKind.DATABASE, name, lambda: catalog.create_database(name, owner))
