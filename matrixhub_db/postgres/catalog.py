"""
Postgres catalog client

Role and database existence predicates against the system catalogs, and
the privileged DDL used to create them. Identifiers and literals are
always quoted through psycopg.sql, never interpolated as raw strings.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import psycopg
from psycopg import sql

from matrixhub_db.core.config import Settings
from matrixhub_db.core.exceptions import CreateError, ProbeError

logger = logging.getLogger(__name__)

ROLE_EXISTS_QUERY = "SELECT 1 FROM pg_roles WHERE rolname = %s"
DATABASE_EXISTS_QUERY = "SELECT 1 FROM pg_database WHERE datname = %s"


class PostgresCatalog:
    """
    Administrative SQL interface to the database server

    Opens a short-lived autocommit connection per operation
    (CREATE DATABASE cannot run inside a transaction block).
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        dbname: str = "postgres",
        connect_timeout: int = 10,
        connect: Callable[..., psycopg.Connection] = psycopg.connect,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.dbname = dbname
        self._password = password
        self._connect_timeout = connect_timeout
        self._connect = connect

    @classmethod
    def from_settings(cls, settings: Settings, dbname: str = "postgres") -> "PostgresCatalog":
        return cls(
            host=settings.pg_host,
            port=settings.pg_host_port,
            user=settings.admin_user,
            password=settings.admin_password,
            dbname=dbname,
        )

    @contextmanager
    def connection(self) -> Iterator[psycopg.Connection]:
        """
        Open an autocommit connection

        Raises:
            ProbeError: If the server cannot be reached or rejects the login
        """
        try:
            conn = self._connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self._password,
                dbname=self.dbname,
                connect_timeout=self._connect_timeout,
                autocommit=True,
            )
        except psycopg.OperationalError as e:
            raise ProbeError(
                f"Cannot connect to Postgres at {self.host}:{self.port} as {self.user}: {e}",
                component="Postgres",
                recovery_hint="Check that the database container is healthy (matrixhub-db health)",
            ) from e
        try:
            yield conn
        finally:
            conn.close()

    def _exists(self, query: str, name: str) -> bool:
        with self.connection() as conn:
            try:
                row = conn.execute(query, (name,)).fetchone()
            except psycopg.OperationalError as e:
                raise ProbeError(f"Catalog query failed: {e}", component="Postgres") from e
        return row is not None

    def role_exists(self, name: str) -> bool:
        return self._exists(ROLE_EXISTS_QUERY, name)

    def database_exists(self, name: str) -> bool:
        return self._exists(DATABASE_EXISTS_QUERY, name)

    def create_role(self, name: str, password: str, grants: tuple[str, ...] = ()) -> None:
        """
        Create a login role, optionally granting membership in other roles

        Args:
            name: Role name
            password: Login password
            grants: Roles to grant (e.g. "pg_monitor")
        """
        statements = [
            sql.SQL("CREATE ROLE {} LOGIN PASSWORD {}").format(sql.Identifier(name), sql.Literal(password))
        ]
        statements += [
            sql.SQL("GRANT {} TO {}").format(sql.Identifier(grant), sql.Identifier(name)) for grant in grants
        ]
        with self.connection() as conn:
            try:
                for statement in statements:
                    conn.execute(statement)
            except psycopg.Error as e:
                raise CreateError("role", name, str(e).strip()) from e
        logger.info(f"[Postgres] Created role {name}" + (f" (granted {', '.join(grants)})" if grants else ""))

    def create_database(self, name: str, owner: str) -> None:
        statement = sql.SQL("CREATE DATABASE {} OWNER {}").format(sql.Identifier(name), sql.Identifier(owner))
        with self.connection() as conn:
            try:
                conn.execute(statement)
            except psycopg.Error as e:
                raise CreateError("database", name, str(e).strip()) from e
        logger.info(f"[Postgres] Created database {name} (owner: {owner})")

    def fetch_all(self, query: str, params: tuple[Any, ...] = ()) -> list[tuple]:
        with self.connection() as conn:
            try:
                return conn.execute(query, params).fetchall()
            except psycopg.OperationalError as e:
                raise ProbeError(f"Query failed: {e}", component="Postgres") from e
