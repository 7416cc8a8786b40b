"""
Configuration management

Centralized settings using Pydantic BaseSettings for type-safe configuration
with environment variable and dotenv support.

Settings are resolved once per process (see get_settings) and passed explicitly
to every component. The model is frozen so nothing re-reads or mutates the
environment mid-operation.

Settings can be overridden via environment variables or the dotenv file
(default: ./.env.db, override with MATRIXHUB_DB_ENV_FILE):
- POSTGRES_USER=matrix
- PG_HOST_PORT=5433
- PG_ALLOW_CIDR=10.0.0.0/8,192.168.1.0/24
"""

import logging
import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .validation import EMAIL_PATTERN, split_csv, validate_resource_name

logger = logging.getLogger(__name__)

ENV_FILE_VARIABLE = "MATRIXHUB_DB_ENV_FILE"
DEFAULT_ENV_FILE = ".env.db"

# Permissive default kept for compatibility with existing deployments.
# Operators are expected to set PG_ALLOW_CIDR explicitly.
PERMISSIVE_CIDR = "0.0.0.0/0"

DEFAULT_PGADMIN_EMAIL = "admin@matrixhub.local"


def get_env_file() -> Path:
    """Resolve the dotenv file used for settings and the database container"""
    return Path(os.getenv(ENV_FILE_VARIABLE, DEFAULT_ENV_FILE)).expanduser()


class Settings(BaseSettings):
    """
    Toolkit settings with environment variable support

    Field names match the environment variable names used by the
    Makefile-era scripts (case-insensitive).
    """

    # Database credentials
    postgres_user: str = "matrix"
    postgres_password: str = ""
    postgres_db: str = "matrixhub"
    # The official image makes POSTGRES_USER the superuser; override only
    # when a separate administrative login exists.
    postgres_admin_user: str = ""
    postgres_admin_password: str = ""
    create_extra_dbs: str = ""

    # Image
    image_name: str = "matrixhub-postgres"
    image_tag: str = "16-matrixhub"
    db_build_context: Path = Path("db")

    # Docker resources
    container_name: str = "matrixhub-db"
    network_name: str = "matrixhub-net"
    network_alias: str = "db"
    volume_name: str = "matrixhub-pgdata"
    pg_host_port: int = Field(default=5432, ge=1, le=65535)
    pg_host: str = "127.0.0.1"
    pgdata: str = "/var/lib/postgresql/data"

    # Tuning (safe defaults for small VM)
    shared_buffers: str = "128MB"
    work_mem: str = "4MB"
    max_connections: int = Field(default=200, ge=1)

    # Access control
    pg_allow_cidr: str = PERMISSIVE_CIDR

    # Health polling
    health_interval_seconds: float = Field(default=1.0, gt=0)
    health_max_attempts: int = Field(default=120, ge=1)
    health_log_tail_lines: int = 200

    # Backups
    backup_dir: Path = Path("backups")

    # PgBouncer
    pgbouncer_container_name: str = "pgbouncer"
    pgbouncer_image: str = "edoburu/pgbouncer:latest"
    pgbouncer_port: int = Field(default=6432, ge=1, le=65535)
    pgbouncer_config_dir: Path = Path("pgbouncer")

    # Prometheus postgres_exporter
    exporter_container_name: str = "postgres-exporter"
    exporter_image: str = "quay.io/prometheuscommunity/postgres-exporter:latest"
    exporter_port: int = Field(default=9187, ge=1, le=65535)
    metrics_user: str = "metrics"
    metrics_password: str = "metrics"

    # pgAdmin
    pgadmin_container_name: str = "pgadmin"
    pgadmin_image: str = "dpage/pgadmin4"
    pgadmin_tag: str = "latest"
    pgadmin_port: int = Field(default=5050, ge=1, le=65535)
    pgadmin_email: str = DEFAULT_PGADMIN_EMAIL
    pgadmin_volume_name: str = "matrixhub-pgadmin"
    pgadmin_autoconfig: bool = True
    pgadmin_config_dir: Path = Path("pgadmin")
    pgadmin_ready_attempts: int = 60
    pgadmin_ready_interval_seconds: float = 2.0
    tz: str = "UTC"

    # Host integration
    systemd_dir: Path = Path("/etc/systemd/system")
    use_sudo: bool = False

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=DEFAULT_ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator(
        "container_name",
        "network_name",
        "volume_name",
        "pgbouncer_container_name",
        "exporter_container_name",
        "pgadmin_container_name",
        "pgadmin_volume_name",
    )
    @classmethod
    def validate_docker_name(cls, v: str) -> str:
        """Validate Docker resource names"""
        return validate_resource_name(v)

    @field_validator("pgadmin_email")
    @classmethod
    def validate_pgadmin_email(cls, v: str) -> str:
        """Fall back to a valid address; pgAdmin restart-loops on an invalid one"""
        if not EMAIL_PATTERN.match(v):
            logger.warning(f"PGADMIN_EMAIL='{v}' looks invalid; falling back to {DEFAULT_PGADMIN_EMAIL}")
            return DEFAULT_PGADMIN_EMAIL
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def full_image(self) -> str:
        return f"{self.image_name}:{self.image_tag}"

    @property
    def pgadmin_full_image(self) -> str:
        return f"{self.pgadmin_image}:{self.pgadmin_tag}"

    @property
    def admin_user(self) -> str:
        return self.postgres_admin_user or self.postgres_user

    @property
    def admin_password(self) -> str:
        return self.postgres_admin_password or self.require_password()

    @property
    def extra_databases(self) -> list[str]:
        """Databases from CREATE_EXTRA_DBS, trimmed, empties dropped"""
        return split_csv(self.create_extra_dbs)

    def require_password(self) -> str:
        """
        Return POSTGRES_PASSWORD or fail with a configuration error

        Raises:
            ConfigurationError: If the password is not configured
        """
        if not self.postgres_password:
            raise ConfigurationError(
                "POSTGRES_PASSWORD is not set",
                recovery_hint=f"Set POSTGRES_PASSWORD in {get_env_file()} or the environment",
            )
        return self.postgres_password

    def container_environment(self) -> dict[str, str]:
        """Environment passed to the database container"""
        return {
            "POSTGRES_USER": self.postgres_user,
            "POSTGRES_PASSWORD": self.require_password(),
            "POSTGRES_DB": self.postgres_db,
            "PGDATA": self.pgdata,
            "TZ": self.tz,
        }


# Singleton pattern for settings
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get toolkit settings (singleton)

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        env_file = get_env_file()
        if env_file.exists():
            logger.debug(f"Loading settings from {env_file}")
        else:
            logger.debug(f"Env file {env_file} not found, using environment and defaults")
        try:
            _settings = Settings(_env_file=env_file)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (for testing)"""
    global _settings
    _settings = None
