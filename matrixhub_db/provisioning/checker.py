"""
Resource existence checker

Answers "does this resource exist right now?" for every resource kind by
asking the owning resource manager. Never mutates state.
"""

import logging

from matrixhub_db.core.exceptions import ConfigurationError
from matrixhub_db.docker.client import DockerResourceManager
from matrixhub_db.docker.models import ResourceKind
from matrixhub_db.postgres.catalog import PostgresCatalog

logger = logging.getLogger(__name__)


class ExistenceChecker:
    """
    Dispatches existence checks to Docker or the Postgres catalog

    Args:
        docker: Docker resource manager (networks, volumes, containers, images)
        catalog: Postgres catalog (roles, databases); optional when only
            Docker resources are checked
    """

    def __init__(self, docker: DockerResourceManager, catalog: PostgresCatalog | None = None):
        self.docker = docker
        self.catalog = catalog

    def require_catalog(self) -> PostgresCatalog:
        if self.catalog is None:
            raise ConfigurationError("No Postgres catalog configured for role/database checks")
        return self.catalog

    def exists(self, kind: ResourceKind, name: str) -> bool:
        """
        Check whether a resource exists.

        Raises:
            ProbeError: If the resource manager is unreachable
        """
        if kind.is_docker:
            found = self.docker.exists(kind, name)
        elif kind == ResourceKind.ROLE:
            found = self.require_catalog().role_exists(name)
        elif kind == ResourceKind.DATABASE:
            found = self.require_catalog().database_exists(name)
        else:
            raise ValueError(f"Unsupported resource kind: {kind}")

        logger.debug(f"[Checker] {kind.value} '{name}' exists: {found}")
        return found
