"""
Docker resource manager

Thin adapter over the Docker Engine API (docker SDK) exposing typed
existence predicates and create/remove operations for networks, volumes,
images and containers.

Handles:
- Lazy client creation with daemon-unreachable detection
- "Not found" vs "daemon unreachable" distinction (False vs ProbeError)
- Container health status and log tail for diagnostics
- Copying files into containers and running commands inside them
"""

import io
import logging
import shutil
import tarfile
import time
from pathlib import Path

import docker
import docker.errors

from matrixhub_db.core.exceptions import CreateError, ProbeError
from matrixhub_db.docker.models import ContainerSpec, DockerStatus, ResourceKind

logger = logging.getLogger(__name__)

# Health status reported for a container with no healthcheck result yet
STARTING = "starting"


class DockerResourceManager:
    """
    Resource-manager client for Docker-backed resources

    Every public call either returns a structured answer or raises
    ProbeError when the daemon cannot be reached. Resource absence is
    never an error for existence checks.
    """

    def __init__(self, client: docker.DockerClient | None = None):
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as e:
                raise ProbeError(f"Docker daemon is not reachable: {e}") from e
        return self._client

    # ==========================================================================
    # Existence checks
    # ==========================================================================

    def exists(self, kind: ResourceKind, name: str) -> bool:
        """
        Check whether a Docker resource exists.

        Args:
            kind: network, volume, container or image
            name: Resource name (image reference for images)

        Returns:
            True if the resource exists, False if it does not

        Raises:
            ProbeError: If the daemon is unreachable
        """
        collections = {
            ResourceKind.NETWORK: lambda: self.client.networks,
            ResourceKind.VOLUME: lambda: self.client.volumes,
            ResourceKind.CONTAINER: lambda: self.client.containers,
            ResourceKind.IMAGE: lambda: self.client.images,
        }
        if kind not in collections:
            raise ValueError(f"{kind.value} is not a Docker resource kind")

        try:
            collections[kind]().get(name)
            return True
        except docker.errors.NotFound:
            return False
        except (docker.errors.DockerException, OSError) as e:
            raise ProbeError(f"Could not inspect {kind.value} '{name}': {e}") from e

    def container_running(self, name: str) -> bool:
        """Check if a container exists and is running"""
        return self.container_status(name) == "running"

    def container_status(self, name: str) -> str:
        """
        Get container state.

        Returns:
            Docker state string (running, exited, ...) or "not_created"
        """
        try:
            container = self.client.containers.get(name)
            return container.status
        except docker.errors.NotFound:
            return "not_created"
        except (docker.errors.DockerException, OSError) as e:
            raise ProbeError(f"Could not inspect container '{name}': {e}") from e

    def container_image(self, name: str) -> str | None:
        """Image reference the container was created from, or None if absent"""
        try:
            container = self.client.containers.get(name)
            return container.attrs.get("Config", {}).get("Image")
        except docker.errors.NotFound:
            return None
        except (docker.errors.DockerException, OSError) as e:
            raise ProbeError(f"Could not inspect container '{name}': {e}") from e

    def health_status(self, name: str) -> str:
        """
        Get the container healthcheck status.

        A missing container or one without a health result yet reports
        "starting", so pollers keep waiting rather than failing early.
        """
        try:
            container = self.client.containers.get(name)
        except docker.errors.NotFound:
            return STARTING
        except (docker.errors.DockerException, OSError) as e:
            raise ProbeError(f"Could not inspect container '{name}': {e}") from e

        health = container.attrs.get("State", {}).get("Health") or {}
        return health.get("Status", STARTING)

    def logs_tail(self, name: str, lines: int = 200) -> str:
        """Last lines of container output, empty if the container is gone"""
        try:
            container = self.client.containers.get(name)
            return container.logs(tail=lines).decode("utf-8", errors="replace")
        except docker.errors.NotFound:
            return ""
        except (docker.errors.DockerException, OSError) as e:
            logger.warning(f"[Docker] Could not read logs for {name}: {e}")
            return ""

    # ==========================================================================
    # Networks and volumes
    # ==========================================================================

    def create_network(self, name: str) -> None:
        try:
            self.client.networks.create(name, driver="bridge")
            logger.info(f"[Docker] Created network {name}")
        except docker.errors.APIError as e:
            raise CreateError("network", name, str(e)) from e

    def create_volume(self, name: str) -> None:
        try:
            self.client.volumes.create(name=name)
            logger.info(f"[Docker] Created volume {name}")
        except docker.errors.APIError as e:
            raise CreateError("volume", name, str(e)) from e

    def remove_volume(self, name: str) -> None:
        try:
            self.client.volumes.get(name).remove()
            logger.info(f"[Docker] Removed volume {name}")
        except docker.errors.APIError as e:
            raise CreateError(
                "volume",
                name,
                f"removal failed: {e}",
                recovery_hint="Make sure no container still uses the volume",
            ) from e

    # ==========================================================================
    # Images
    # ==========================================================================

    def build_image(self, context: Path, tag: str) -> None:
        """
        Build an image from a local build context.

        Raises:
            CreateError: If the context is missing or the build fails
        """
        if not context.is_dir():
            raise CreateError("image", tag, f"build context not found: {context}")

        logger.info(f"[Docker] Building {tag} from {context}...")
        try:
            _, build_logs = self.client.images.build(path=str(context), tag=tag, rm=True)
        except docker.errors.BuildError as e:
            for chunk in e.build_log:
                if "stream" in chunk:
                    logger.debug(chunk["stream"].rstrip())
            raise CreateError("image", tag, e.msg) from e
        except docker.errors.APIError as e:
            raise CreateError("image", tag, str(e)) from e

        for chunk in build_logs:
            if "stream" in chunk:
                logger.debug(chunk["stream"].rstrip())
        logger.info(f"[Docker] Built {tag}")

    def pull_image(self, reference: str) -> None:
        repository, _, tag = reference.rpartition(":")
        if not repository or "/" in tag:
            repository, tag = reference, "latest"
        logger.info(f"[Docker] Pulling {repository}:{tag}...")
        try:
            self.client.images.pull(repository, tag=tag)
        except docker.errors.APIError as e:
            raise CreateError("image", reference, f"pull failed: {e}") from e

    # ==========================================================================
    # Containers
    # ==========================================================================

    def run_container(self, spec: ContainerSpec) -> None:
        """
        Create and start a container from a spec.

        The container is attached to spec.network with spec.aliases before
        it starts.
        """
        kwargs = {
            "name": spec.name,
            "detach": True,
            "environment": spec.environment,
            "ports": dict(spec.ports),
            "volumes": spec.volumes,
            "restart_policy": {"Name": spec.restart_policy},
        }
        if spec.command:
            kwargs["command"] = spec.command
        if spec.network:
            kwargs["network"] = spec.network
        if spec.healthcheck:
            kwargs["healthcheck"] = spec.healthcheck.to_docker()

        try:
            container = self.client.containers.create(spec.image, **kwargs)
            if spec.network and spec.aliases:
                network = self.client.networks.get(spec.network)
                network.disconnect(container)
                network.connect(container, aliases=spec.aliases)
            container.start()
            logger.info(f"[Docker] Started container {spec.name} ({spec.image})")
        except docker.errors.ImageNotFound as e:
            raise CreateError(
                "container",
                spec.name,
                f"image {spec.image} not found",
                recovery_hint="Build or pull the image first (matrixhub-db build)",
            ) from e
        except docker.errors.APIError as e:
            raise CreateError("container", spec.name, str(e)) from e

    def start_container(self, name: str) -> None:
        try:
            self.client.containers.get(name).start()
        except docker.errors.NotFound as e:
            raise CreateError(
                "container", name, "no such container", recovery_hint="Run 'matrixhub-db up' first"
            ) from e
        except docker.errors.APIError as e:
            raise CreateError("container", name, f"start failed: {e}") from e

    def stop_container(self, name: str, timeout: int = 10) -> bool:
        """Stop a container. Returns False if it does not exist."""
        try:
            self.client.containers.get(name).stop(timeout=timeout)
            logger.info(f"[Docker] Stopped container {name}")
            return True
        except docker.errors.NotFound:
            return False
        except docker.errors.APIError as e:
            raise CreateError("container", name, f"stop failed: {e}") from e

    def remove_container(self, name: str, force: bool = False) -> bool:
        """Remove a container. Returns False if it does not exist."""
        try:
            self.client.containers.get(name).remove(force=force)
            logger.info(f"[Docker] Removed container {name}")
            return True
        except docker.errors.NotFound:
            return False
        except docker.errors.APIError as e:
            raise CreateError("container", name, f"removal failed: {e}") from e

    def exec_in_container(
        self,
        name: str,
        command: list[str],
        environment: dict[str, str] | None = None,
        user: str = "",
    ) -> tuple[int, str]:
        """
        Run a command inside a running container.

        Returns:
            Tuple of (exit_code, combined output)
        """
        try:
            container = self.client.containers.get(name)
            result = container.exec_run(command, environment=environment, user=user)
        except docker.errors.NotFound as e:
            raise ProbeError(f"Container '{name}' not found", component="Docker") from e
        except (docker.errors.DockerException, OSError) as e:
            raise ProbeError(f"Exec in '{name}' failed: {e}") from e
        output = (result.output or b"").decode("utf-8", errors="replace")
        return result.exit_code, output

    def exec_to_file(self, name: str, command: list[str], dest: Path) -> tuple[int, str]:
        """
        Run a command inside a container, streaming its stdout into a host file.

        Returns:
            Tuple of (exit_code, stderr text)
        """
        api = self.client.api
        stderr_chunks: list[bytes] = []
        try:
            exec_id = api.exec_create(name, command, stdout=True, stderr=True)["Id"]
            with open(dest, "wb") as f:
                for stdout, stderr in api.exec_start(exec_id, stream=True, demux=True):
                    if stdout:
                        f.write(stdout)
                    if stderr:
                        stderr_chunks.append(stderr)
            exit_code = api.exec_inspect(exec_id).get("ExitCode")
        except docker.errors.NotFound as e:
            raise ProbeError(f"Container '{name}' not found", component="Docker") from e
        except docker.errors.DockerException as e:
            raise ProbeError(f"Exec in '{name}' failed: {e}") from e
        stderr_text = b"".join(stderr_chunks).decode("utf-8", errors="replace")
        return (exit_code if exit_code is not None else -1), stderr_text

    def put_file(self, name: str, dest: str, content: bytes, mode: int = 0o600) -> None:
        """
        Write a single file into a container.

        Args:
            name: Container name
            dest: Absolute destination path inside the container
            content: File contents
            mode: File permission bits
        """
        directory, _, filename = dest.rpartition("/")
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as tar:
            info = tarfile.TarInfo(name=filename)
            info.size = len(content)
            info.mode = mode
            info.mtime = int(time.time())
            tar.addfile(info, io.BytesIO(content))
        buffer.seek(0)

        try:
            container = self.client.containers.get(name)
            ok = container.put_archive(directory or "/", buffer.getvalue())
        except docker.errors.NotFound as e:
            raise ProbeError(f"Container '{name}' not found", component="Docker") from e
        except docker.errors.APIError as e:
            raise CreateError("file", dest, str(e)) from e
        if not ok:
            raise CreateError("file", dest, f"copy into {name} was rejected")

    # ==========================================================================
    # Daemon status
    # ==========================================================================

    def get_docker_status(self) -> DockerStatus:
        """Get comprehensive Docker status."""
        docker_path = shutil.which("docker")
        try:
            self.client.ping()
            version = self.client.version().get("Version")
            return DockerStatus(installed=True, running=True, version=version, docker_path=docker_path)
        except (ProbeError, docker.errors.DockerException, OSError) as e:
            logger.debug(f"Docker daemon not running: {e}")
            return DockerStatus(installed=docker_path is not None, running=False, docker_path=docker_path)
