"""
Companion services

Optional containers next to the database: PgBouncer (connection pooling),
postgres_exporter (Prometheus metrics) and pgAdmin (admin UI). Each "up"
replaces any existing container of the same name; each "down" is a no-op
when the container is absent.
"""

import json
import logging
from pathlib import Path

import httpx

from matrixhub_db.context import ToolkitContext
from matrixhub_db.core.config import Settings
from matrixhub_db.core.exceptions import ConfigurationError
from matrixhub_db.docker.models import ContainerSpec, Outcome
from matrixhub_db.host.firewall import open_port
from matrixhub_db.lifecycle.health import HealthResult, HealthStatus, wait_for_healthy

logger = logging.getLogger(__name__)

PGBOUNCER_FILES = ("pgbouncer.ini", "userlist.txt")
PGADMIN_DATA = "/var/lib/pgadmin"
PGADMIN_SERVER_NAME = "MatrixHub DB"


# ==============================================================================
# PgBouncer
# ==============================================================================


def pgbouncer_spec(settings: Settings) -> ContainerSpec:
    config_dir = settings.pgbouncer_config_dir.resolve()
    missing = [name for name in PGBOUNCER_FILES if not (config_dir / name).is_file()]
    if missing:
        raise ConfigurationError(
            f"PgBouncer config missing in {config_dir}: {', '.join(missing)}",
            recovery_hint="Create pgbouncer.ini and userlist.txt or set PGBOUNCER_CONFIG_DIR",
        )
    return ContainerSpec(
        name=settings.pgbouncer_container_name,
        image=settings.pgbouncer_image,
        network=settings.network_name,
        ports={"6432/tcp": settings.pgbouncer_port},
        volumes={
            str(config_dir / name): {"bind": f"/etc/pgbouncer/{name}", "mode": "ro"} for name in PGBOUNCER_FILES
        },
    )


def pgbouncer_up(ctx: ToolkitContext) -> Outcome:
    spec = pgbouncer_spec(ctx.settings)
    ctx.provisioner.ensure_network(ctx.settings.network_name)
    logger.info(f"[PgBouncer] Starting on port {ctx.settings.pgbouncer_port}")
    return ctx.provisioner.replace_container(spec)


def pgbouncer_down(ctx: ToolkitContext) -> Outcome:
    return ctx.provisioner.remove_container(ctx.settings.pgbouncer_container_name)


# ==============================================================================
# postgres_exporter
# ==============================================================================


def exporter_spec(settings: Settings) -> ContainerSpec:
    dsn = (
        f"postgresql://{settings.metrics_user}:{settings.metrics_password}"
        f"@{settings.network_alias}:5432/postgres?sslmode=disable"
    )
    return ContainerSpec(
        name=settings.exporter_container_name,
        image=settings.exporter_image,
        network=settings.network_name,
        ports={"9187/tcp": settings.exporter_port},
        environment={"DATA_SOURCE_NAME": dsn},
    )


def exporter_up(ctx: ToolkitContext, ensure_metrics_role: bool = True) -> Outcome:
    """
    Start postgres_exporter.

    Args:
        ctx: Toolkit context; needs a catalog when ensure_metrics_role is set
        ensure_metrics_role: Create the metrics login with pg_monitor first
    """
    settings = ctx.settings
    if ensure_metrics_role:
        ctx.provisioner.ensure_role(settings.metrics_user, settings.metrics_password, grants=("pg_monitor",))
    ctx.provisioner.ensure_network(settings.network_name)
    logger.info(f"[Exporter] Starting on port {settings.exporter_port}")
    return ctx.provisioner.replace_container(exporter_spec(settings))


def exporter_down(ctx: ToolkitContext) -> Outcome:
    return ctx.provisioner.remove_container(ctx.settings.exporter_container_name)


# ==============================================================================
# pgAdmin
# ==============================================================================


def render_servers_json(settings: Settings) -> str:
    """servers.json preloading the MatrixHub server on first pgAdmin start"""
    servers = {
        "Servers": {
            "1": {
                "Name": PGADMIN_SERVER_NAME,
                "Group": "Servers",
                "Host": settings.container_name,
                "Port": 5432,
                "MaintenanceDB": settings.postgres_db,
                "Username": settings.postgres_user,
                "SSLMode": "prefer",
                "PassFile": f"{PGADMIN_DATA}/.pgpass",
                "ConnectNow": True,
            }
        }
    }
    return json.dumps(servers, indent=2) + "\n"


def render_pgpass(settings: Settings) -> str:
    return f"{settings.container_name}:5432:*:{settings.postgres_user}:{settings.require_password()}\n"


def pgadmin_spec(settings: Settings, servers_json: Path | None = None) -> ContainerSpec:
    volumes = {settings.pgadmin_volume_name: {"bind": PGADMIN_DATA, "mode": "rw"}}
    if servers_json is not None:
        volumes[str(servers_json.resolve())] = {"bind": "/pgadmin4/servers.json", "mode": "ro"}
    return ContainerSpec(
        name=settings.pgadmin_container_name,
        image=settings.pgadmin_full_image,
        network=settings.network_name,
        ports={"80/tcp": settings.pgadmin_port},
        environment={
            "TZ": settings.tz,
            "PGADMIN_DEFAULT_EMAIL": settings.pgadmin_email,
            "PGADMIN_DEFAULT_PASSWORD": settings.require_password(),
            "PGADMIN_CONFIG_MASTER_PASSWORD_REQUIRED": "False",
            "PGADMIN_CONFIG_ENHANCED_COOKIE_PROTECTION": "True",
            "PGADMIN_CONFIG_CONSOLE_LOG_LEVEL": "20",
        },
        volumes=volumes,
    )


def probe_http(url: str) -> HealthStatus:
    """pgAdmin is ready once its root answers 200 or redirects to the login page"""
    try:
        response = httpx.get(url, timeout=5.0, follow_redirects=False)
    except httpx.HTTPError:
        return HealthStatus.STARTING
    return HealthStatus.HEALTHY if response.status_code in (200, 302) else HealthStatus.STARTING


def pgadmin_up(ctx: ToolkitContext, config_dir: Path, reset: bool = False) -> HealthResult:
    """
    Start pgAdmin, optionally preconfigured with the MatrixHub server.

    Args:
        ctx: Toolkit context
        config_dir: Host directory for the generated servers.json
        reset: Remove the pgAdmin volume first (wipes pgAdmin state)

    Returns:
        Readiness result; a timeout is reported, not raised
    """
    settings = ctx.settings
    provisioner = ctx.provisioner

    provisioner.ensure_network(settings.network_name)
    if reset:
        logger.warning(f"[pgAdmin] Reset requested, removing volume {settings.pgadmin_volume_name}")
        provisioner.remove_container(settings.pgadmin_container_name)
        provisioner.remove_volume(settings.pgadmin_volume_name)
    provisioner.ensure_volume(settings.pgadmin_volume_name)

    servers_json = None
    if settings.pgadmin_autoconfig:
        config_dir.mkdir(parents=True, exist_ok=True)
        servers_json = config_dir / "servers.json"
        servers_json.write_text(render_servers_json(settings), encoding="utf-8")
        logger.info(f"[pgAdmin] Wrote {servers_json} (imported only when the pgAdmin volume is empty)")

    provisioner.replace_container(pgadmin_spec(settings, servers_json))

    if settings.pgadmin_autoconfig:
        pgpass_path = f"{PGADMIN_DATA}/.pgpass"
        ctx.docker.put_file(
            settings.pgadmin_container_name, pgpass_path, render_pgpass(settings).encode("utf-8"), mode=0o600
        )
        code, output = ctx.docker.exec_in_container(
            settings.pgadmin_container_name, ["chown", "pgadmin:pgadmin", pgpass_path], user="root"
        )
        if code != 0:
            logger.warning(f"[pgAdmin] Could not chown .pgpass inside container: {output.strip()}")

    open_port(ctx.runner, settings.pgadmin_port, best_effort=True)

    url = f"http://127.0.0.1:{settings.pgadmin_port}/"
    logger.info(f"[pgAdmin] Waiting for {url} ...")
    result = wait_for_healthy(
        lambda: probe_http(url),
        interval=settings.pgadmin_ready_interval_seconds,
        max_attempts=settings.pgadmin_ready_attempts,
    )
    if not result.ok:
        logger.warning(
            f"[pgAdmin] Not ready in time. Check logs: docker logs -f {settings.pgadmin_container_name}"
        )
    return result


def pgadmin_down(ctx: ToolkitContext) -> Outcome:
    return ctx.provisioner.remove_container(ctx.settings.pgadmin_container_name)
