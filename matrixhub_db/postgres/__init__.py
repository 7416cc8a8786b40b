"""
Postgres module - Catalog client and pg_hba.conf access rules
"""

from matrixhub_db.postgres.access import (
    AccessRule,
    compile_access_rules,
    render_hba,
    write_hba,
)
from matrixhub_db.postgres.catalog import PostgresCatalog

__all__ = [
    "AccessRule",
    "PostgresCatalog",
    "compile_access_rules",
    "render_hba",
    "write_hba",
]
