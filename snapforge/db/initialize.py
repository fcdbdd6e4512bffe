"""
Snapforge Database Schema Management.

Lightweight migration system:
- Tracks current schema version in a `schema_version` table
- Only runs migrations that haven't been applied yet
- Each migration is a (version, description, SQL) tuple
- Safe for concurrent startup (uses advisory lock)

The Alembic revisions under ``migrations/`` create the same schema for
deployments that manage migrations externally.

Usage:
    db = Database(dsn="postgresql://...")
    await db.initialize()
    await ensure_schema(db)
"""

import logging
from typing import List, Tuple

from .database import Database

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────
# Migration registry
#
# Append-only. Never modify or delete existing entries.
# Each entry: (version, description, sql)
# ──────────────────────────────────────────────────────────────
MIGRATIONS: List[Tuple[int, str, str]] = [
    (
        1,
        "Create projects table",
        """
        CREATE TABLE IF NOT EXISTS projects (
            id                  TEXT PRIMARY KEY,
            name                TEXT NOT NULL,
            owner_id            TEXT NOT NULL,
            code_repo_ref       TEXT NOT NULL,
            database_ref        TEXT NOT NULL,
            thread_id           TEXT,
            current_version_id  TEXT,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_projects_owner_id ON projects(owner_id);
        """,
    ),
    (
        2,
        "Create project_versions table",
        """
        CREATE TABLE IF NOT EXISTS project_versions (
            id                    TEXT PRIMARY KEY,
            project_id            TEXT NOT NULL REFERENCES projects(id),
            code_revision         TEXT NOT NULL,
            snapshot_id           TEXT NOT NULL,
            summary               TEXT NOT NULL,
            triggering_message_id TEXT,
            created_at            TIMESTAMPTZ NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_project_versions_project_created
            ON project_versions(project_id, created_at DESC);
        """,
    ),
    (
        3,
        "Create project_secrets table",
        """
        CREATE TABLE IF NOT EXISTS project_secrets (
            project_version_id  TEXT PRIMARY KEY REFERENCES project_versions(id),
            secrets             TEXT NOT NULL,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
    ),
    (
        4,
        "Reference current version from projects",
        """
        ALTER TABLE projects
            ADD CONSTRAINT fk_projects_current_version
            FOREIGN KEY (current_version_id) REFERENCES project_versions(id);
        """,
    ),
]


# ──────────────────────────────────────────────────────────────
# Schema management
# ──────────────────────────────────────────────────────────────

_BOOTSTRAP_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

# PostgreSQL advisory lock ID (arbitrary constant, unique to this app)
_LOCK_ID = 7_3412_2024


async def ensure_schema(db: Database) -> None:
    """Apply any pending migrations.

    - Creates the ``schema_version`` tracking table if needed
    - Uses a PostgreSQL advisory lock to prevent concurrent migration runs
    - Skips migrations that have already been applied
    - Each migration runs in its own transaction

    Args:
        db: Initialized Database instance.
    """
    async with db.pool.acquire() as conn:
        await conn.execute("SELECT pg_advisory_lock($1)", _LOCK_ID)
        try:
            await conn.execute(_BOOTSTRAP_SQL)

            row = await conn.fetchrow(
                "SELECT COALESCE(MAX(version), 0) AS v FROM schema_version"
            )
            current = row["v"]

            pending = [(v, d, s) for v, d, s in MIGRATIONS if v > current]
            if not pending:
                logger.debug(f"Schema up to date (version {current})")
                return

            for version, description, sql in pending:
                async with conn.transaction():
                    await conn.execute(sql)
                    await conn.execute(
                        "INSERT INTO schema_version (version, description) VALUES ($1, $2)",
                        version,
                        description,
                    )
                logger.info(f"Migration {version}: {description}")

            logger.info(
                f"Schema migrated {current} -> {pending[-1][0]} "
                f"({len(pending)} migration(s))"
            )
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", _LOCK_ID)
