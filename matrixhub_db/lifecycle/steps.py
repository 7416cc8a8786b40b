"""
Provisioning sequences

Builds the fixed step lists driven by run_steps:

    init:  install_runtime -> open_network_access -> build_artifact ->
           ensure_network -> ensure_volume -> replace_container ->
           wait_for_healthy -> ensure_databases -> apply_access_rules ->
           register_autostart
    up:    ensure_network -> ensure_volume -> replace_container
           (+ wait_for_healthy -> ensure_databases -> apply_access_rules
           until initialization has completed)
    down:  stop_container -> remove_container

Initialization is complete once the data directory holds the managed
pg_hba.conf. A run that fails before that point leaves the next run to
finish the job.
"""

import logging

from matrixhub_db.context import ToolkitContext
from matrixhub_db.docker.models import Outcome
from matrixhub_db.host.docker_install import install_docker
from matrixhub_db.host.firewall import open_port
from matrixhub_db.host.systemd import SystemdManager
from matrixhub_db.lifecycle.orchestrator import ProvisioningStep, linear_chain
from matrixhub_db.services.database import (
    access_rules_applied,
    apply_access_rules,
    db_container_spec,
    ensure_extra_databases,
    wait_for_db,
)

logger = logging.getLogger(__name__)


class _RunState:
    """Outcomes recorded by earlier steps of the same run"""

    def __init__(self, ctx: ToolkitContext):
        self.ctx = ctx
        self.volume: Outcome | None = None
        self._initializing: bool | None = None

    @property
    def initializing(self) -> bool:
        """True for a fresh volume, or one whose pg_hba.conf was never replaced"""
        if self._initializing is None:
            if self.volume == Outcome.CREATED:
                self._initializing = True
            else:
                self._initializing = not access_rules_applied(self.ctx)
                if self._initializing:
                    logger.warning(
                        f"[Lifecycle] {self.ctx.settings.volume_name} holds data but pg_hba.conf is not "
                        "the managed one; finishing initialization"
                    )
        return self._initializing


def _service_steps(ctx: ToolkitContext, state: _RunState, wait_always: bool) -> list[ProvisioningStep]:
    settings = ctx.settings
    provisioner = ctx.provisioner

    def ensure_volume() -> Outcome:
        state.volume = provisioner.ensure_volume(settings.volume_name)
        return state.volume

    return [
        ProvisioningStep(
            name="ensure_network",
            description=f"Ensure network {settings.network_name}",
            action=lambda: provisioner.ensure_network(settings.network_name),
        ),
        ProvisioningStep(
            name="ensure_volume",
            description=f"Ensure volume {settings.volume_name}",
            action=ensure_volume,
        ),
        ProvisioningStep(
            name="replace_container",
            description=f"Start {settings.container_name} ({settings.full_image})",
            action=lambda: provisioner.replace_container(db_container_spec(settings)),
        ),
        ProvisioningStep(
            name="wait_for_healthy",
            description=f"Wait for {settings.container_name} to become healthy",
            action=lambda: wait_for_db(ctx),
            when=None if wait_always else (lambda: state.initializing),
        ),
        ProvisioningStep(
            name="ensure_databases",
            description="Create CREATE_EXTRA_DBS databases",
            action=lambda: ensure_extra_databases(ctx),
            when=lambda: state.initializing,
        ),
        ProvisioningStep(
            name="apply_access_rules",
            description="Apply pg_hba.conf access rules",
            action=lambda: apply_access_rules(ctx),
            when=lambda: state.initializing,
        ),
    ]


def build_init_steps(ctx: ToolkitContext, force_build: bool = False) -> list[ProvisioningStep]:
    """Full host bootstrap, ending with the database registered for auto-start"""
    settings = ctx.settings
    state = _RunState(ctx)
    systemd = SystemdManager(ctx.runner, settings.systemd_dir)

    steps = [
        ProvisioningStep(
            name="install_runtime",
            description="Install Docker",
            action=lambda: install_docker(ctx.runner),
        ),
        ProvisioningStep(
            name="open_network_access",
            description=f"Open firewall port {settings.pg_host_port}/tcp",
            action=lambda: open_port(ctx.runner, settings.pg_host_port),
        ),
        ProvisioningStep(
            name="build_artifact",
            description=f"Build image {settings.full_image}",
            action=lambda: ctx.provisioner.ensure_image(
                settings.full_image, settings.db_build_context, force=force_build
            ),
        ),
        *_service_steps(ctx, state, wait_always=True),
        ProvisioningStep(
            name="register_autostart",
            description="Install systemd unit",
            action=lambda: systemd.install_db_service(settings),
        ),
    ]
    return linear_chain(steps)


def build_up_steps(ctx: ToolkitContext) -> list[ProvisioningStep]:
    """Start the database; waits for health only while initialization is incomplete"""
    return linear_chain(_service_steps(ctx, _RunState(ctx), wait_always=False))


def build_down_steps(ctx: ToolkitContext) -> list[ProvisioningStep]:
    """Teardown: stop, then remove the container. Volumes are kept."""
    settings = ctx.settings
    name = settings.container_name

    steps = [
        ProvisioningStep(
            name="stop_container",
            description=f"Stop {name}",
            action=lambda: ctx.docker.stop_container(name),
        ),
        ProvisioningStep(
            name="remove_container",
            description=f"Remove {name}",
            action=lambda: ctx.provisioner.remove_container(name, stop=False),
        ),
    ]
    return linear_chain(steps)
