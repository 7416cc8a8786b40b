"""
Docker CE installation for Oracle Linux 9
"""

import getpass
import grp
import logging
import os
import shutil

from matrixhub_db.docker.models import Outcome
from matrixhub_db.host.commands import CommandRunner

logger = logging.getLogger(__name__)

DOCKER_REPO_URL = "https://download.docker.com/linux/oracle/docker-ce.repo"
DOCKER_PACKAGES = [
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
]


def _invoking_user() -> str:
    """The human user behind sudo, or the current user"""
    return os.environ.get("SUDO_USER") or getpass.getuser()


def _in_docker_group(user: str) -> bool:
    try:
        return user in grp.getgrnam("docker").gr_mem
    except KeyError:
        return False


def install_docker(runner: CommandRunner, force: bool = False) -> Outcome:
    """
    Install Docker CE, enable the daemon and add the invoking user to the docker group.

    Skipped when a docker executable is already on PATH unless force is set.

    Args:
        runner: Host command runner
        force: Reinstall even if docker is present

    Returns:
        Outcome.CREATED or Outcome.ALREADY_PRESENT
    """
    if not force and shutil.which("docker"):
        logger.info("[Host] Docker already installed, skipping")
        return Outcome.ALREADY_PRESENT

    logger.info("[Host] Installing Docker CE repo (Oracle Linux 9)")
    runner.run(["dnf", "-y", "install", "dnf-plugins-core"], timeout=600)
    runner.run(["dnf", "config-manager", "--add-repo", DOCKER_REPO_URL])

    logger.info("[Host] Installing Docker packages")
    runner.run(["dnf", "-y", "install", *DOCKER_PACKAGES], timeout=900)

    logger.info("[Host] Enabling and starting docker")
    runner.run(["systemctl", "enable", "--now", "docker"])

    user = _invoking_user()
    if user != "root" and not _in_docker_group(user):
        logger.info(f"[Host] Adding {user} to docker group (log out/in or run 'newgrp docker' to apply)")
        runner.run(["usermod", "-aG", "docker", user])

    return Outcome.CREATED
