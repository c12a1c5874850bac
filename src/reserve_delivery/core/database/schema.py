"""
Outbox schema management.

The SQL files under ``sql/`` are the single source of truth for both the
PostgreSQL migration runner (``migrate.py``) and local SQLite setup.
"""

import logging
from pathlib import Path
from typing import List

from .adapter import DatabaseAdapter

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "sql"


def migration_files() -> List[Path]:
    """Return migration files in version order (rollback files excluded)."""
    files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    return [f for f in files if "rollback" not in f.name.lower()]


async def create_schema(db: DatabaseAdapter) -> None:
    """Apply every migration file; statements are idempotent."""
    for path in migration_files():
        await db.execute_script(path.read_text(encoding="utf-8"))
        logger.debug(f"Applied schema file {path.name}")
