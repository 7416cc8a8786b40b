"""
Toolkit context

Bundles the resolved settings with the clients every operation needs, so
that configuration is read once per invocation and passed explicitly.
"""

import logging
from dataclasses import dataclass, field

from matrixhub_db.core.config import Settings
from matrixhub_db.docker.client import DockerResourceManager
from matrixhub_db.host.commands import CommandRunner
from matrixhub_db.postgres.catalog import PostgresCatalog
from matrixhub_db.provisioning.checker import ExistenceChecker
from matrixhub_db.provisioning.provisioner import Provisioner

logger = logging.getLogger(__name__)


@dataclass
class ToolkitContext:
    """Per-invocation dependencies"""

    settings: Settings
    docker: DockerResourceManager
    runner: CommandRunner
    catalog: PostgresCatalog | None = None
    provisioner: Provisioner = field(init=False)

    def __post_init__(self):
        self.provisioner = Provisioner(ExistenceChecker(self.docker, self.catalog))

    @classmethod
    def from_settings(cls, settings: Settings) -> "ToolkitContext":
        return cls(
            settings=settings,
            docker=DockerResourceManager(),
            runner=CommandRunner(sudo=settings.use_sudo),
        )

    def with_catalog(self, dbname: str = "postgres") -> "ToolkitContext":
        """Copy of this context able to check and create roles/databases"""
        return ToolkitContext(
            settings=self.settings,
            docker=self.docker,
            runner=self.runner,
            catalog=PostgresCatalog.from_settings(self.settings, dbname=dbname),
        )
