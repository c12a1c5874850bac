"""
Database access for the outbox tables.
"""

from .adapter import DatabaseAdapter, DatabaseBackend, DatabaseConfig, affected_rows
from .schema import create_schema, migration_files

__all__ = [
    "DatabaseAdapter",
    "DatabaseBackend",
    "DatabaseConfig",
    "affected_rows",
    "create_schema",
    "migration_files",
]
