"""
Host module - Docker installation, firewalld and systemd integration
"""

from matrixhub_db.host.commands import CommandResult, CommandRunner
from matrixhub_db.host.docker_install import install_docker
from matrixhub_db.host.firewall import close_port, is_port_open, open_port
from matrixhub_db.host.systemd import SystemdManager

__all__ = [
    "CommandResult",
    "CommandRunner",
    "SystemdManager",
    "close_port",
    "install_docker",
    "is_port_open",
    "open_port",
]
