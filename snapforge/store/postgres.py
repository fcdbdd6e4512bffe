"""
PostgreSQL version repository.

Stores projects, versions and sealed secrets in the tables created by
``snapforge.db.ensure_schema``. The version commit runs in one
transaction; the pointer update is guarded by a join on the secrets
table so a project can never point at a version without a bundle.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

import asyncpg

from ..db import Database, Repository
from ..models import Project, Version
from .base import IntegrityViolation, VersionRepository

logger = logging.getLogger(__name__)


def _row_to_project(row: Dict[str, Any]) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        owner_id=row["owner_id"],
        code_repo_ref=row["code_repo_ref"],
        database_ref=row["database_ref"],
        thread_id=row.get("thread_id"),
        current_version_id=row.get("current_version_id"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_version(row: Dict[str, Any]) -> Version:
    return Version(
        id=row["id"],
        project_id=row["project_id"],
        code_revision=row["code_revision"],
        snapshot_id=row["snapshot_id"],
        summary=row["summary"],
        triggering_message_id=row.get("triggering_message_id"),
        created_at=row["created_at"],
    )


_INSERT_VERSION_SQL = """
INSERT INTO project_versions
    (id, project_id, code_revision, snapshot_id, summary, triggering_message_id, created_at)
SELECT $1, $2, $3, $4, $5, $6,
       GREATEST(
           clock_timestamp(),
           (SELECT MAX(created_at) + INTERVAL '1 microsecond'
              FROM project_versions WHERE project_id = $2)
       )
RETURNING *
"""

_SET_POINTER_SQL = """
UPDATE projects SET current_version_id = $2, updated_at = NOW()
WHERE id = $1
  AND EXISTS (
      SELECT 1 FROM project_secrets s
      JOIN project_versions v ON v.id = s.project_version_id
      WHERE v.id = $2 AND v.project_id = $1
  )
"""


class PostgresVersionRepository(Repository, VersionRepository):
    """Version repository backed by asyncpg."""

    TABLE_NAME = "project_versions"

    def __init__(self, db: Database):
        super().__init__(db)

    # ── Projects ──

    async def insert_project(self, project: Project) -> Project:
        if project.current_version_id is not None:
            raise IntegrityViolation("A new project cannot point at a version")
        try:
            row = await self.db.fetchrow(
                """
                INSERT INTO projects
                    (id, name, owner_id, code_repo_ref, database_ref, thread_id,
                     created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING *
                """,
                project.id,
                project.name,
                project.owner_id,
                project.code_repo_ref,
                project.database_ref,
                project.thread_id,
                project.created_at,
                project.updated_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise IntegrityViolation(f"Project {project.id} already exists") from e
        return _row_to_project(dict(row))

    async def get_project(self, project_id: str) -> Optional[Project]:
        row = await self.db.fetchrow("SELECT * FROM projects WHERE id = $1", project_id)
        return _row_to_project(dict(row)) if row else None

    async def list_projects(self, owner_id: str) -> List[Project]:
        rows = await self.db.fetch(
            "SELECT * FROM projects WHERE owner_id = $1 ORDER BY created_at DESC",
            owner_id,
        )
        return [_row_to_project(dict(r)) for r in rows]

    async def set_current_version(self, project_id: str, version_id: str) -> bool:
        status = await self.db.execute(_SET_POINTER_SQL, project_id, version_id)
        return self._affected(status) == 1

    async def clear_current_version(self, project_id: str) -> None:
        await self.db.execute(
            "UPDATE projects SET current_version_id = NULL, updated_at = NOW() WHERE id = $1",
            project_id,
        )

    async def delete_project(self, project_id: str) -> bool:
        try:
            status = await self.db.execute("DELETE FROM projects WHERE id = $1", project_id)
        except asyncpg.ForeignKeyViolationError as e:
            raise IntegrityViolation(f"Project {project_id} still has versions") from e
        return self._affected(status) > 0

    # ── Versions ──

    async def commit_version(self, version: Version, sealed_secrets: str) -> Version:
        if not sealed_secrets:
            raise IntegrityViolation("A version cannot be committed without secrets")
        try:
            async with self.db.transaction() as conn:
                row = await conn.fetchrow(
                    _INSERT_VERSION_SQL,
                    version.id,
                    version.project_id,
                    version.code_revision,
                    version.snapshot_id,
                    version.summary,
                    version.triggering_message_id,
                )
                await conn.execute(
                    "INSERT INTO project_secrets (project_version_id, secrets) VALUES ($1, $2)",
                    version.id,
                    sealed_secrets,
                )
                status = await conn.execute(_SET_POINTER_SQL, version.project_id, version.id)
                if self._affected(status) != 1:
                    raise IntegrityViolation(
                        f"Project {version.project_id} could not be pointed at {version.id}"
                    )
        except (asyncpg.ForeignKeyViolationError, asyncpg.UniqueViolationError) as e:
            raise IntegrityViolation(str(e)) from e

        persisted = _row_to_version(dict(row))
        logger.debug(f"Committed version {persisted.id} for project {persisted.project_id}")
        return persisted

    async def get_version(self, project_id: str, version_id: str) -> Optional[Version]:
        row = await self._fetch_one("id = $1 AND project_id = $2", (version_id, project_id))
        return _row_to_version(row) if row else None

    async def list_versions(self, project_id: str) -> List[Version]:
        rows = await self._fetch_many(
            "project_id = $1", (project_id,), order_by="created_at DESC"
        )
        return [_row_to_version(r) for r in rows]

    async def delete_versions(self, project_id: str) -> int:
        try:
            status = await self.db.execute(
                "DELETE FROM project_versions WHERE project_id = $1", project_id
            )
        except asyncpg.ForeignKeyViolationError as e:
            raise IntegrityViolation(
                f"Versions of {project_id} are still referenced"
            ) from e
        return self._affected(status)

    # ── Sealed secrets ──

    async def insert_secrets(self, version_id: str, sealed: str) -> None:
        try:
            await self.db.execute(
                "INSERT INTO project_secrets (project_version_id, secrets) VALUES ($1, $2)",
                version_id,
                sealed,
            )
        except (asyncpg.ForeignKeyViolationError, asyncpg.UniqueViolationError) as e:
            raise IntegrityViolation(str(e)) from e

    async def get_secrets(self, version_id: str) -> Optional[str]:
        return await self.db.fetchval(
            "SELECT secrets FROM project_secrets WHERE project_version_id = $1",
            version_id,
        )

    async def versions_with_secrets(self, version_ids: Iterable[str]) -> Set[str]:
        ids = list(version_ids)
        if not ids:
            return set()
        rows = await self.db.fetch(
            "SELECT project_version_id FROM project_secrets WHERE project_version_id = ANY($1::text[])",
            ids,
        )
        return {r["project_version_id"] for r in rows}

    async def delete_secrets(self, version_ids: Iterable[str]) -> int:
        ids = list(version_ids)
        if not ids:
            return 0
        status = await self.db.execute(
            "DELETE FROM project_secrets WHERE project_version_id = ANY($1::text[])",
            ids,
        )
        return self._affected(status)
