"""Database schema setup and versioning."""

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

# Bump when schema.sql changes in a way existing databases need to pick up
SCHEMA_VERSION = 1


async def init_database(db: aiosqlite.Connection) -> None:
    """Apply schema.sql to an open connection."""
    schema_path = Path(__file__).parent / "schema.sql"
    with open(schema_path) as f:
        await db.executescript(f.read())


async def get_schema_version(db: aiosqlite.Connection) -> int:
    async with db.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
        return row[0] if row else 0


async def run_migrations(db_path: Path) -> None:
    """Bring the database at `db_path` up to SCHEMA_VERSION.

    Every statement in schema.sql is CREATE ... IF NOT EXISTS, so re-applying
    it to an older database only adds what is missing.
    """
    async with aiosqlite.connect(db_path) as db:
        version = await get_schema_version(db)
        if version >= SCHEMA_VERSION:
            logger.info(f"Database schema is current (version {version})")
            return

        await init_database(db)
        await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await db.commit()

        logger.info(f"Database at {db_path} migrated from version {version} to {SCHEMA_VERSION}")
