"""
Shared test fixtures

In-memory stand-ins for the Docker daemon, the Postgres catalog and the host
command runner, so no test needs a live Docker or Postgres.
"""

from pathlib import Path

import pytest

from matrixhub_db.core.config import Settings
from matrixhub_db.docker.models import ContainerSpec, ResourceKind
from matrixhub_db.host.commands import CommandResult


class FakeDocker:
    """Records Docker resources in dictionaries instead of talking to a daemon"""

    def __init__(self):
        self.networks: set[str] = set()
        self.volumes: set[str] = set()
        self.images: set[str] = set()
        self.containers: dict[str, dict] = {}
        self.health: dict[str, list[str]] = {}
        self.files: dict[tuple[str, str], tuple[bytes, int]] = {}
        self.execs: list[tuple[str, list[str], str]] = []
        self.exec_results: dict[str, tuple[int, str]] = {}
        self.dump_bytes = b"PGDMP"
        self.dump_result: tuple[int, str] = (0, "")
        self.calls: list[tuple] = []

    def exists(self, kind: ResourceKind, name: str) -> bool:
        return name in {
            ResourceKind.NETWORK: self.networks,
            ResourceKind.VOLUME: self.volumes,
            ResourceKind.IMAGE: self.images,
            ResourceKind.CONTAINER: self.containers,
        }[kind]

    def container_running(self, name: str) -> bool:
        return self.container_status(name) == "running"

    def container_status(self, name: str) -> str:
        if name not in self.containers:
            return "not_created"
        return "running" if self.containers[name]["running"] else "exited"

    def container_image(self, name: str) -> str | None:
        container = self.containers.get(name)
        return container["image"] if container else None

    def health_status(self, name: str) -> str:
        statuses = self.health.get(name)
        if not statuses:
            return "healthy" if name in self.containers else "starting"
        return statuses.pop(0) if len(statuses) > 1 else statuses[0]

    def logs_tail(self, name: str, lines: int = 200) -> str:
        return f"last {lines} lines of {name}"

    def create_network(self, name: str) -> None:
        self.calls.append(("create_network", name))
        self.networks.add(name)

    def create_volume(self, name: str) -> None:
        self.calls.append(("create_volume", name))
        self.volumes.add(name)

    def remove_volume(self, name: str) -> None:
        self.calls.append(("remove_volume", name))
        self.volumes.discard(name)

    def build_image(self, context: Path, tag: str) -> None:
        self.calls.append(("build_image", tag))
        self.images.add(tag)

    def pull_image(self, reference: str) -> None:
        self.calls.append(("pull_image", reference))
        self.images.add(reference)

    def run_container(self, spec: ContainerSpec) -> None:
        self.calls.append(("run_container", spec.name))
        self.containers[spec.name] = {"image": spec.image, "running": True, "spec": spec}

    def start_container(self, name: str) -> None:
        self.calls.append(("start_container", name))
        self.containers[name]["running"] = True

    def stop_container(self, name: str, timeout: int = 10) -> bool:
        self.calls.append(("stop_container", name))
        if name not in self.containers:
            return False
        self.containers[name]["running"] = False
        return True

    def remove_container(self, name: str, force: bool = False) -> bool:
        self.calls.append(("remove_container", name))
        return self.containers.pop(name, None) is not None

    def exec_in_container(self, name, command, environment=None, user=""):
        self.execs.append((name, list(command), user))
        if command[0] in self.exec_results:
            return self.exec_results[command[0]]
        if command[0] == "head":
            entry = self.files.get((name, command[-1]))
            if entry is None:
                return 1, f"head: cannot open '{command[-1]}': No such file or directory"
            return 0, entry[0].decode().splitlines(keepends=True)[0]
        if command[0] == "mv":
            self.files[(name, command[-1])] = self.files.pop((name, command[-2]))
        return 0, ""

    def exec_to_file(self, name: str, command: list[str], dest: Path) -> tuple[int, str]:
        self.execs.append((name, list(command), ""))
        dest.write_bytes(self.dump_bytes)
        return self.dump_result

    def put_file(self, name: str, dest: str, content: bytes, mode: int = 0o600) -> None:
        self.files[(name, dest)] = (content, mode)


class FakeCatalog:
    """Postgres catalog backed by sets of role and database names"""

    def __init__(self, roles=(), databases=()):
        self.roles = set(roles)
        self.databases = set(databases)
        self.created: list[tuple] = []
        self.rows: dict[str, list[tuple]] = {}

    def role_exists(self, name: str) -> bool:
        return name in self.roles

    def database_exists(self, name: str) -> bool:
        return name in self.databases

    def create_role(self, name: str, password: str, grants: tuple[str, ...] = ()) -> None:
        self.created.append(("role", name, tuple(grants)))
        self.roles.add(name)

    def create_database(self, name: str, owner: str) -> None:
        self.created.append(("database", name, owner))
        self.databases.add(name)

    def fetch_all(self, query: str, params: tuple = ()) -> list[tuple]:
        for marker, rows in self.rows.items():
            if marker in query:
                return rows(params) if callable(rows) else rows
        return []


class FakeRunner:
    """Host command runner returning canned results"""

    def __init__(self):
        self.commands: list[list[str]] = []
        self.interactive: list[list[str]] = []
        self.results: dict[str, CommandResult] = {}
        self.stdin_data: bytes | None = None

    def run(self, command, check=True, timeout=120, stdin=None) -> CommandResult:
        self.commands.append(list(command))
        if stdin is not None:
            self.stdin_data = stdin.read()
        key = " ".join(command)
        for prefix, result in self.results.items():
            if key.startswith(prefix):
                return result
        return CommandResult(list(command), 0)

    def run_interactive(self, command) -> int:
        self.interactive.append(list(command))
        return 0


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment's .env.db"""
    (tmp_path / "systemd").mkdir()
    return Settings(
        _env_file=None,
        postgres_password="s3cret",
        backup_dir=tmp_path / "backups",
        systemd_dir=tmp_path / "systemd",
        pgadmin_config_dir=tmp_path / "pgadmin",
        pgbouncer_config_dir=tmp_path / "pgbouncer",
        health_interval_seconds=0.001,
        health_max_attempts=3,
        pg_allow_cidr="10.0.0.0/8",
    )


@pytest.fixture
def fake_docker():
    return FakeDocker()


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def toolkit(settings, fake_docker, fake_runner, fake_catalog):
    """ToolkitContext wired to the in-memory fakes"""
    from matrixhub_db.context import ToolkitContext

    return ToolkitContext(settings=settings, docker=fake_docker, runner=fake_runner, catalog=fake_catalog)
