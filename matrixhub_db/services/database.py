"""
Database service

Container spec for the MatrixHub Postgres container, access-rule
application, and role/database provisioning for the application.
"""

import logging

from matrixhub_db.context import ToolkitContext
from matrixhub_db.core.config import PERMISSIVE_CIDR, Settings
from matrixhub_db.core.exceptions import CreateError, HealthTimeoutError
from matrixhub_db.docker.models import ContainerSpec, HealthCheck, Outcome
from matrixhub_db.lifecycle.health import HealthResult, wait_for_healthy
from matrixhub_db.postgres.access import HBA_HEADER, AccessRule, compile_access_rules, render_hba

logger = logging.getLogger(__name__)

DATA_MOUNT = "/var/lib/postgresql/data"
POSTGRES_PORT = "5432/tcp"


def db_container_spec(settings: Settings) -> ContainerSpec:
    """Database container: tuning flags, data volume, pg_isready healthcheck"""
    return ContainerSpec(
        name=settings.container_name,
        image=settings.full_image,
        network=settings.network_name,
        aliases=[settings.network_alias],
        ports={POSTGRES_PORT: settings.pg_host_port},
        environment=settings.container_environment(),
        volumes={settings.volume_name: {"bind": DATA_MOUNT, "mode": "rw"}},
        command=[
            "-c", f"shared_buffers={settings.shared_buffers}",
            "-c", f"work_mem={settings.work_mem}",
            "-c", f"max_connections={settings.max_connections}",
        ],
        healthcheck=HealthCheck(
            test=["CMD-SHELL", 'pg_isready -U "$POSTGRES_USER" -d "$POSTGRES_DB" -h 127.0.0.1'],
            interval=10,
            timeout=5,
            retries=5,
        ),
    )


def wait_for_db(ctx: ToolkitContext) -> HealthResult:
    """
    Wait for the database container healthcheck to pass.

    Raises:
        HealthTimeoutError: With the container's recent log tail
    """
    settings = ctx.settings
    name = settings.container_name
    logger.info(f"[Database] Waiting for {name} to become healthy...")
    result = wait_for_healthy(
        lambda: ctx.docker.health_status(name),
        interval=settings.health_interval_seconds,
        max_attempts=settings.health_max_attempts,
    )
    if not result.ok:
        raise HealthTimeoutError(
            name,
            result.attempts,
            log_tail=ctx.docker.logs_tail(name, settings.health_log_tail_lines),
        )
    return result


def hba_path(settings: Settings) -> str:
    return f"{settings.pgdata.rstrip('/')}/pg_hba.conf"


def access_rules_applied(ctx: ToolkitContext) -> bool:
    """Whether the data directory already holds the pg_hba.conf written by apply_access_rules"""
    code, output = ctx.docker.exec_in_container(
        ctx.settings.container_name, ["head", "-n", "1", hba_path(ctx.settings)], user="postgres"
    )
    return code == 0 and output.strip() == HBA_HEADER


def apply_access_rules(ctx: ToolkitContext) -> list[AccessRule]:
    """
    Compile PG_ALLOW_CIDR and install it as pg_hba.conf in the running container.

    The file is staged next to pg_hba.conf, made 0600 and owned by postgres,
    then moved into place, so the managed header only appears on a file the
    server can read. The server is then told to reload its configuration.
    """
    settings = ctx.settings
    name = settings.container_name
    rules = compile_access_rules(settings.pg_allow_cidr, default=PERMISSIVE_CIDR)
    target = hba_path(settings)
    staged = f"{target}.new"

    ctx.docker.put_file(name, staged, render_hba(rules).encode("utf-8"), mode=0o600)
    code, output = ctx.docker.exec_in_container(name, ["chown", "postgres:postgres", staged], user="root")
    if code != 0:
        raise CreateError("file", target, f"chown failed: {output.strip()}")

    code, output = ctx.docker.exec_in_container(name, ["mv", "-f", staged, target], user="postgres")
    if code != 0:
        raise CreateError("file", target, f"move into place failed: {output.strip()}")

    code, output = ctx.docker.exec_in_container(name, ["pg_ctl", "reload", "-D", settings.pgdata], user="postgres")
    if code != 0:
        raise CreateError("file", target, f"reload failed: {output.strip()}")

    logger.info(f"[Database] Applied {len(rules)} access rules to {name}")
    return rules


def _quote_ident(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _psql(ctx: ToolkitContext, dbname: str, statement: str) -> str:
    """Run one statement through psql over the container's local socket"""
    settings = ctx.settings
    code, output = ctx.docker.exec_in_container(
        settings.container_name,
        ["psql", "-v", "ON_ERROR_STOP=1", "-U", settings.postgres_user, "-d", "postgres", "-tAc", statement],
        user="postgres",
    )
    if code != 0:
        raise CreateError("database", dbname, output.strip())
    return output


def ensure_extra_databases(ctx: ToolkitContext) -> dict[str, Outcome]:
    """
    Create each CREATE_EXTRA_DBS database, owned by POSTGRES_USER, unless present.

    Runs psql inside the container as the postgres OS user, so it only needs
    the image's initial local trust rule and not host access to the server.
    Must run before apply_access_rules replaces that rule.

    Returns:
        Mapping of database name to outcome
    """
    settings = ctx.settings
    owner = settings.postgres_user
    outcomes: dict[str, Outcome] = {}

    for dbname in settings.extra_databases:
        if dbname == settings.postgres_db or dbname in outcomes:
            continue
        found = _psql(ctx, dbname, f"SELECT 1 FROM pg_database WHERE datname = {_quote_literal(dbname)}")
        if found.strip() == "1":
            logger.info(f"[Database] database '{dbname}' already present")
            outcomes[dbname] = Outcome.ALREADY_PRESENT
            continue
        _psql(ctx, dbname, f"CREATE DATABASE {_quote_ident(dbname)} OWNER {_quote_ident(owner)}")
        logger.info(f"[Database] Created database {dbname}")
        outcomes[dbname] = Outcome.CREATED
    return outcomes


def ensure_app_database(ctx: ToolkitContext) -> dict[str, Outcome]:
    """
    Ensure the application role, database and any CREATE_EXTRA_DBS exist.

    Requires a context with a catalog (see ToolkitContext.with_catalog).

    Returns:
        Mapping of "role:<name>" / "database:<name>" to outcome
    """
    settings = ctx.settings
    provisioner = ctx.provisioner
    owner = settings.postgres_user

    outcomes = {f"role:{owner}": provisioner.ensure_role(owner, settings.require_password())}
    for dbname in [settings.postgres_db, *settings.extra_databases]:
        if f"database:{dbname}" in outcomes:
            continue
        outcomes[f"database:{dbname}"] = provisioner.ensure_database(dbname, owner=owner)
    return outcomes
