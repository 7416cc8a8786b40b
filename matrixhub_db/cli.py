"""
Command-line interface for the MatrixHub DB toolkit
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from matrixhub_db import __version__
from matrixhub_db.context import ToolkitContext
from matrixhub_db.core.exceptions import ConfirmationDeclinedError, HealthTimeoutError, MatrixHubDBError
from matrixhub_db.lifecycle.orchestrator import ProvisioningStep, StepResult

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ConsoleReporter:
    """Prints a status line before each step and a marker after it"""

    def step_started(self, index: int, total: int, step: ProvisioningStep) -> None:
        console.print(f"[bold cyan]▶ Step {index}/{total}:[/bold cyan] {step.description}")

    def step_succeeded(self, step: ProvisioningStep, result: StepResult) -> None:
        detail = f" ({result.value.value})" if hasattr(result.value, "value") else ""
        console.print(f"  ✅ {step.name}{detail} [dim]{result.elapsed:.1f}s[/dim]")

    def step_skipped(self, step: ProvisioningStep) -> None:
        console.print(f"[dim]  ⏭  {step.name} skipped[/dim]")

    def step_failed(self, step: ProvisioningStep, error: Exception) -> None:
        console.print(f"  [red]✖ {step.name} failed[/red]")


class ToolkitGroup(click.Group):
    """Click group turning toolkit errors into a message on stderr and exit code 1"""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except HealthTimeoutError as e:
            err_console.print(f"\n[bold red]✖ {e}[/bold red]")
            if e.log_tail:
                err_console.print(Panel(e.log_tail, title=f"Last log lines of {e.name}", border_style="red"))
            ctx.exit(1)
        except MatrixHubDBError as e:
            err_console.print(f"\n[bold red]✖ {e}[/bold red]")
            ctx.exit(1)


def _confirm(action: str, prompt: str, assume_yes: bool) -> None:
    """Require the operator to type 'yes' literally"""
    if assume_yes:
        return
    answer = click.prompt(f"{prompt} Type 'yes' to confirm", default="", show_default=False)
    if answer.strip() != "yes":
        raise ConfirmationDeclinedError(action)


def _run(steps: list[ProvisioningStep]) -> list[StepResult]:
    from matrixhub_db.lifecycle.orchestrator import run_steps

    return run_steps(steps, reporter=ConsoleReporter())


@click.group(cls=ToolkitGroup)
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """MatrixHub DB - PostgreSQL deployment and operations toolkit"""
    from matrixhub_db.core.config import get_settings

    if ctx.obj is None:
        ctx.obj = ToolkitContext.from_settings(get_settings())

    logging.basicConfig(
        level=logging.DEBUG if verbose else ctx.obj.settings.log_level,
        format=LOG_FORMAT,
    )


pass_toolkit = click.make_pass_decorator(ToolkitContext)


# ============================================================================
# Host bootstrap
# ============================================================================


@main.command()
@click.option("--force-build", is_flag=True, help="Rebuild the image even if it exists")
@pass_toolkit
def init(toolkit, force_build: bool) -> None:
    """Full bootstrap: Docker, firewall, image, database, systemd"""
    from matrixhub_db.lifecycle.steps import build_init_steps

    settings = toolkit.settings
    settings.require_password()
    console.print("\n[bold cyan]Bootstrapping MatrixHub PostgreSQL...[/bold cyan]\n")
    _run(build_init_steps(toolkit, force_build=force_build))
    console.print(
        Panel.fit(
            "[bold green]✅ MatrixHub DB is up and healthy[/bold green]\n"
            f"Connect: postgresql://{settings.postgres_user}@<host>:{settings.pg_host_port}/{settings.postgres_db}",
            border_style="green",
        )
    )


@main.command("install-docker")
@click.option("--force", is_flag=True, help="Install even if docker is already on PATH")
@pass_toolkit
def install_docker_cmd(toolkit, force: bool) -> None:
    """Install Docker CE (dnf-based hosts)"""
    from matrixhub_db.host.docker_install import install_docker

    outcome = install_docker(toolkit.runner, force=force)
    console.print(f"✅ Docker: {outcome.value}")


@main.command("firewall-open")
@pass_toolkit
def firewall_open(toolkit) -> None:
    """Open PG_HOST_PORT/tcp in firewalld"""
    from matrixhub_db.host.firewall import open_port

    port = toolkit.settings.pg_host_port
    outcome = open_port(toolkit.runner, port)
    console.print(f"✅ Port {port}/tcp: {outcome.value}")


@main.command("firewall-close")
@pass_toolkit
def firewall_close(toolkit) -> None:
    """Close PG_HOST_PORT/tcp in firewalld"""
    from matrixhub_db.host.firewall import close_port

    port = toolkit.settings.pg_host_port
    outcome = close_port(toolkit.runner, port)
    console.print(f"✅ Port {port}/tcp: {outcome.value}")


# ============================================================================
# Database container
# ============================================================================


@main.command()
@click.option("--force", is_flag=True, help="Rebuild even if the tag exists")
@pass_toolkit
def build(toolkit, force: bool) -> None:
    """Build the database image with the schema init scripts"""
    settings = toolkit.settings
    outcome = toolkit.provisioner.ensure_image(settings.full_image, settings.db_build_context, force=force)
    console.print(f"✅ Image {settings.full_image}: {outcome.value}")


@main.command()
@pass_toolkit
def up(toolkit) -> None:
    """Start the database (creates network and volume if missing)"""
    from matrixhub_db.lifecycle.steps import build_up_steps

    toolkit.settings.require_password()
    _run(build_up_steps(toolkit))
    console.print(f"\n✅ {toolkit.settings.container_name} started")


@main.command()
@pass_toolkit
def down(toolkit) -> None:
    """Stop and remove the database container (data volume is kept)"""
    from matrixhub_db.lifecycle.steps import build_down_steps

    _run(build_down_steps(toolkit))


@main.command()
@pass_toolkit
def start(toolkit) -> None:
    """Start the existing container"""
    name = toolkit.settings.container_name
    toolkit.docker.start_container(name)
    console.print(f"✅ {name} started")


@main.command()
@pass_toolkit
def stop(toolkit) -> None:
    """Stop the running container"""
    name = toolkit.settings.container_name
    if toolkit.docker.stop_container(name):
        console.print(f"✅ {name} stopped")
    else:
        console.print(f"[yellow]{name} does not exist[/yellow]")


@main.command()
@pass_toolkit
def restart(toolkit) -> None:
    """Stop, then start the container"""
    name = toolkit.settings.container_name
    toolkit.docker.stop_container(name)
    toolkit.docker.start_container(name)
    console.print(f"✅ {name} restarted")


@main.command()
@click.option("--follow", "-f", is_flag=True, help="Follow the log stream")
@click.option("--tail", default=200, show_default=True, help="Lines to show without --follow")
@pass_toolkit
def logs(toolkit, follow: bool, tail: int) -> None:
    """Show container logs"""
    name = toolkit.settings.container_name
    if follow:
        sys.exit(toolkit.runner.run_interactive(["docker", "logs", "-f", name]))
    click.echo(toolkit.docker.logs_tail(name, tail))


@main.command()
@pass_toolkit
def psql(toolkit) -> None:
    """Open an interactive psql shell in the container"""
    settings = toolkit.settings
    sys.exit(
        toolkit.runner.run_interactive(
            ["docker", "exec", "-it", settings.container_name,
             "psql", "-U", settings.postgres_user, "-d", settings.postgres_db]
        )
    )


@main.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@pass_toolkit
def clean(toolkit, yes: bool) -> None:
    """Remove the container AND its data volume (data loss!)"""
    from matrixhub_db.lifecycle.steps import build_down_steps

    volume = toolkit.settings.volume_name
    _confirm(
        "volume deletion",
        f"Delete volume '{volume}'? This will PERMANENTLY delete all database data.",
        yes,
    )
    _run(build_down_steps(toolkit))
    outcome = toolkit.provisioner.remove_volume(volume)
    console.print(f"✅ Volume '{volume}': {outcome.value}")


@main.command()
@pass_toolkit
def health(toolkit) -> None:
    """Wait until the container reports healthy"""
    from matrixhub_db.services.database import wait_for_db

    name = toolkit.settings.container_name
    console.print(f"Waiting for container '{name}' to be healthy...")
    result = wait_for_db(toolkit)
    console.print(f"✅ {name} is healthy (after {result.attempts} checks)")


@main.command()
@pass_toolkit
def status(toolkit) -> None:
    """Show Docker and MatrixHub resource status"""
    from matrixhub_db.docker.models import ResourceKind

    settings = toolkit.settings
    docker_status = toolkit.docker.get_docker_status()

    table = Table(title="MatrixHub DB Status", show_header=True, header_style="bold cyan")
    table.add_column("Resource", style="white")
    table.add_column("Name", style="dim")
    table.add_column("Status", style="white")

    table.add_row(
        "Docker",
        docker_status.docker_path or "-",
        f"✅ {docker_status.version}" if docker_status.running else "❌ not running",
    )
    if docker_status.running:
        for label, kind, name in [
            ("Image", ResourceKind.IMAGE, settings.full_image),
            ("Network", ResourceKind.NETWORK, settings.network_name),
            ("Volume", ResourceKind.VOLUME, settings.volume_name),
        ]:
            table.add_row(label, name, "✅" if toolkit.docker.exists(kind, name) else "⚠️  missing")

        name = settings.container_name
        state = toolkit.docker.container_status(name)
        if state == "running":
            state = f"running ({toolkit.docker.health_status(name)})"
        table.add_row("Container", name, state)

    console.print()
    console.print(table)
    console.print()


@main.command()
@pass_toolkit
def verify(toolkit) -> None:
    """Schema quick checks (tables, columns, indexes)"""
    from matrixhub_db.verify import inspect_schema

    settings = toolkit.settings
    report = inspect_schema(toolkit.with_catalog(settings.postgres_db).catalog)

    for table_name, columns in report.columns.items():
        table = Table(title=table_name, show_header=True, header_style="bold cyan")
        table.add_column("Column", style="cyan")
        table.add_column("Type", style="white")
        table.add_column("Nullable", style="dim")
        for column in columns:
            table.add_row(*column)
        console.print(table)

    index_table = Table(title="Indexes", show_header=True, header_style="bold cyan")
    index_table.add_column("Table", style="cyan")
    index_table.add_column("Index", style="white")
    for row in report.indexes:
        index_table.add_row(*row)
    console.print(index_table)

    if not report.ok:
        err_console.print("[bold red]❌ Schema incomplete[/bold red]")
        for name in report.missing_tables:
            err_console.print(f"  • missing table {name}")
        for name in report.missing_indexes:
            err_console.print(f"  • missing index {name}")
        sys.exit(1)
    console.print("[bold green]✅ Schema looks good[/bold green]")


@main.command("ensure-db")
@pass_toolkit
def ensure_db(toolkit) -> None:
    """Create the application role and databases if missing"""
    from matrixhub_db.services.database import ensure_app_database

    outcomes = ensure_app_database(toolkit.with_catalog("postgres"))
    for name, outcome in outcomes.items():
        console.print(f"✅ {name}: {outcome.value}")


# ============================================================================
# Access rules
# ============================================================================


@main.command("hba-render")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Write to a file (mode 0600) instead")
@pass_toolkit
def hba_render(toolkit, output: Path | None) -> None:
    """Print the pg_hba.conf compiled from PG_ALLOW_CIDR"""
    from matrixhub_db.postgres.access import compile_access_rules, render_hba, write_hba

    rules = compile_access_rules(toolkit.settings.pg_allow_cidr)
    if output:
        write_hba(output, rules)
        console.print(f"✅ Wrote {len(rules)} rules to [green]{output}[/green]")
        return
    click.echo(render_hba(rules), nl=False)


@main.command("hba-sync")
@pass_toolkit
def hba_sync(toolkit) -> None:
    """Re-apply PG_ALLOW_CIDR to the running database"""
    from matrixhub_db.services.database import apply_access_rules

    rules = apply_access_rules(toolkit)
    for rule in rules:
        console.print(f"  {rule.to_hba_line()}")
    console.print(f"✅ {len(rules)} access rules applied")


# ============================================================================
# Backups
# ============================================================================


@main.command()
@pass_toolkit
def backup(toolkit) -> None:
    """Create a custom-format backup in BACKUP_DIR"""
    from matrixhub_db.backup import backup_now

    console.print(f"▶ Backing up '{toolkit.settings.postgres_db}'...")
    path = backup_now(toolkit)
    console.print(f"✅ Backup complete: [green]{path}[/green]")


@main.command("backup-now")
@pass_toolkit
def backup_now_cmd(toolkit) -> None:
    """Non-interactive backup (used by the systemd timer)"""
    from matrixhub_db.backup import backup_now

    click.echo(str(backup_now(toolkit)))


@main.command()
@click.option("--file", "dump_file", type=click.Path(path_type=Path), help="Dump to restore (default: newest)")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@pass_toolkit
def restore(toolkit, dump_file: Path | None, yes: bool) -> None:
    """Restore the newest backup (overwrites existing data!)"""
    from matrixhub_db.backup import latest_backup, restore as restore_dump

    dump = dump_file or latest_backup(toolkit.settings.backup_dir)
    _confirm("restore", f"Restore from '{dump}'? This OVERWRITES existing data.", yes)
    restore_dump(toolkit, dump)
    console.print("✅ Restore complete")


@main.command("backup-install")
@pass_toolkit
def backup_install(toolkit) -> None:
    """Install the nightly backup systemd timer"""
    from matrixhub_db.host.systemd import SystemdManager

    manager = SystemdManager(toolkit.runner, toolkit.settings.systemd_dir)
    outcome = manager.install_backup_timer(toolkit.settings, Path.cwd())
    console.print(f"✅ Backup timer: {outcome.value}")


@main.command("backup-remove")
@pass_toolkit
def backup_remove(toolkit) -> None:
    """Remove the nightly backup systemd timer"""
    from matrixhub_db.host.systemd import SystemdManager

    outcome = SystemdManager(toolkit.runner, toolkit.settings.systemd_dir).remove_backup_timer()
    console.print(f"✅ Backup timer: {outcome.value}")


# ============================================================================
# Auto-start
# ============================================================================


@main.command("systemd-install")
@pass_toolkit
def systemd_install(toolkit) -> None:
    """Install and enable the auto-start unit"""
    from matrixhub_db.host.systemd import SystemdManager

    manager = SystemdManager(toolkit.runner, toolkit.settings.systemd_dir)
    outcome = manager.install_db_service(toolkit.settings)
    console.print(f"✅ Service unit: {outcome.value}")


@main.command("systemd-remove")
@pass_toolkit
def systemd_remove(toolkit) -> None:
    """Disable and remove the auto-start unit"""
    from matrixhub_db.host.systemd import SystemdManager

    outcome = SystemdManager(toolkit.runner, toolkit.settings.systemd_dir).remove_db_service()
    console.print(f"✅ Service unit: {outcome.value}")


# ============================================================================
# Companion services
# ============================================================================


@main.command("pgbouncer-up")
@pass_toolkit
def pgbouncer_up_cmd(toolkit) -> None:
    """Start PgBouncer in front of the database"""
    from matrixhub_db.services.companions import pgbouncer_up

    outcome = pgbouncer_up(toolkit)
    console.print(f"✅ PgBouncer ({outcome.value}) on port {toolkit.settings.pgbouncer_port}")


@main.command("pgbouncer-down")
@pass_toolkit
def pgbouncer_down_cmd(toolkit) -> None:
    """Remove the PgBouncer container"""
    from matrixhub_db.services.companions import pgbouncer_down

    console.print(f"✅ PgBouncer: {pgbouncer_down(toolkit).value}")


@main.command("exporter-up")
@click.option("--skip-role", is_flag=True, help="Do not create the metrics role")
@pass_toolkit
def exporter_up_cmd(toolkit, skip_role: bool) -> None:
    """Start the Prometheus postgres_exporter"""
    from matrixhub_db.services.companions import exporter_up

    target = toolkit if skip_role else toolkit.with_catalog("postgres")
    outcome = exporter_up(target, ensure_metrics_role=not skip_role)
    console.print(f"✅ Exporter ({outcome.value}) on port {toolkit.settings.exporter_port}")


@main.command("exporter-down")
@pass_toolkit
def exporter_down_cmd(toolkit) -> None:
    """Remove the exporter container"""
    from matrixhub_db.services.companions import exporter_down

    console.print(f"✅ Exporter: {exporter_down(toolkit).value}")


@main.command("pgadmin-up")
@click.option("--reset", is_flag=True, help="Wipe pgAdmin state before starting")
@pass_toolkit
def pgadmin_up_cmd(toolkit, reset: bool) -> None:
    """Start pgAdmin, preconfigured with the MatrixHub server"""
    from matrixhub_db.services.companions import pgadmin_up

    settings = toolkit.settings
    if reset:
        _confirm("pgAdmin reset", f"Delete volume '{settings.pgadmin_volume_name}'?", False)
    result = pgadmin_up(toolkit, settings.pgadmin_config_dir, reset=reset)
    url = f"http://<host>:{settings.pgadmin_port}/"
    if result.ok:
        console.print(
            Panel.fit(
                f"[bold green]✅ pgAdmin is ready[/bold green]\nURL: {url}\nLogin: {settings.pgadmin_email}",
                border_style="green",
            )
        )
    else:
        console.print(f"[yellow]⚠️  pgAdmin not ready yet, try {url} in a moment[/yellow]")


@main.command("pgadmin-down")
@pass_toolkit
def pgadmin_down_cmd(toolkit) -> None:
    """Remove the pgAdmin container (state volume is kept)"""
    from matrixhub_db.services.companions import pgadmin_down

    console.print(f"✅ pgAdmin: {pgadmin_down(toolkit).value}")


if __name__ == "__main__":
    main()
