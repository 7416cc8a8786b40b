"""
Schema verification

Quick checks that the MatrixHub schema created by the image init scripts is
present: tables, their columns, and indexes.
"""

import logging
from dataclasses import dataclass, field

from matrixhub_db.postgres.catalog import PostgresCatalog

logger = logging.getLogger(__name__)

EXPECTED_TABLES = ("entity", "remote", "embedding_chunk")
EXPECTED_INDEXES = ("ix_entity_type_name", "ix_entity_created_at", "ix_embedding_chunk_updated_at")

TABLES_QUERY = """
    SELECT table_name FROM information_schema.tables
    WHERE table_schema = 'public' AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""
COLUMNS_QUERY = """
    SELECT column_name, data_type, is_nullable FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = %s
    ORDER BY ordinal_position
"""
INDEXES_QUERY = """
    SELECT tablename, indexname FROM pg_indexes
    WHERE schemaname = 'public'
    ORDER BY tablename, indexname
"""


@dataclass
class SchemaReport:
    """Observed schema and what is missing from it"""

    tables: list[str] = field(default_factory=list)
    columns: dict[str, list[tuple[str, str, str]]] = field(default_factory=dict)
    indexes: list[tuple[str, str]] = field(default_factory=list)

    @property
    def missing_tables(self) -> list[str]:
        return [t for t in EXPECTED_TABLES if t not in self.tables]

    @property
    def missing_indexes(self) -> list[str]:
        present = {name for _, name in self.indexes}
        return [i for i in EXPECTED_INDEXES if i not in present]

    @property
    def ok(self) -> bool:
        return not self.missing_tables and not self.missing_indexes


def inspect_schema(catalog: PostgresCatalog) -> SchemaReport:
    """Read tables, columns and indexes of the public schema"""
    report = SchemaReport()
    report.tables = [row[0] for row in catalog.fetch_all(TABLES_QUERY)]
    for table in EXPECTED_TABLES:
        if table in report.tables:
            report.columns[table] = [tuple(row) for row in catalog.fetch_all(COLUMNS_QUERY, (table,))]
    report.indexes = [tuple(row) for row in catalog.fetch_all(INDEXES_QUERY)]

    if report.ok:
        logger.info("[Verify] Schema OK")
    else:
        logger.warning(
            f"[Verify] Missing tables: {report.missing_tables}, missing indexes: {report.missing_indexes}"
        )
    return report
