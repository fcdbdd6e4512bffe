"""Tests for snapforge.store.postgres with a mocked asyncpg Database"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from snapforge.models import Version
from snapforge.store.base import IntegrityViolation
from snapforge.store.postgres import PostgresVersionRepository


def _version_row(version_id: str = "v1") -> dict:
    return {
        "id": version_id,
        "project_id": "p1",
        "code_revision": "c" * 40,
        "snapshot_id": "snap-1",
        "summary": "test",
        "triggering_message_id": None,
        "created_at": datetime(2026, 10, 18, tzinfo=timezone.utc),
    }


def _make_db(pointer_status: str = "UPDATE 1"):
    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value=_version_row())
    conn.execute = AsyncMock(side_effect=["INSERT 0 1", pointer_status])

    db = MagicMock()

    @asynccontextmanager
    async def transaction():
        yield conn

    db.transaction = transaction
    db.execute = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    return db, conn


def _make_version() -> Version:
    return Version(id="v1", project_id="p1", code_revision="c" * 40, snapshot_id="snap-1", summary="test")


class TestCommitVersion:

    async def test_commit_runs_three_writes_in_one_transaction(self):
        db, conn = _make_db()
        repo = PostgresVersionRepository(db)

        persisted = await repo.commit_version(_make_version(), "sealed")

        assert persisted.created_at == datetime(2026, 10, 18, tzinfo=timezone.utc)
        assert "INSERT INTO project_versions" in conn.fetchrow.call_args[0][0]
        secrets_sql, pointer_sql = (c[0][0] for c in conn.execute.call_args_list)
        assert "INSERT INTO project_secrets" in secrets_sql
        assert "UPDATE projects SET current_version_id" in pointer_sql
        assert "EXISTS" in pointer_sql
        db.execute.assert_not_called()

    async def test_rejected_pointer_update_aborts_commit(self):
        db, _ = _make_db(pointer_status="UPDATE 0")
        repo = PostgresVersionRepository(db)
        with pytest.raises(IntegrityViolation):
            await repo.commit_version(_make_version(), "sealed")

    async def test_foreign_key_violation_mapped(self):
        db, conn = _make_db()
        conn.fetchrow = AsyncMock(side_effect=asyncpg.ForeignKeyViolationError("fk"))
        repo = PostgresVersionRepository(db)
        with pytest.raises(IntegrityViolation):
            await repo.commit_version(_make_version(), "sealed")


class TestQueries:

    async def test_set_current_version_guarded(self):
        db, _ = _make_db()
        db.execute = AsyncMock(return_value="UPDATE 0")
        repo = PostgresVersionRepository(db)

        assert await repo.set_current_version("p1", "v9") is False
        sql, project_id, version_id = db.execute.call_args[0]
        assert "project_secrets" in sql
        assert (project_id, version_id) == ("p1", "v9")

    async def test_list_versions_newest_first(self):
        db, _ = _make_db()
        db.fetch = AsyncMock(return_value=[_version_row("v2"), _version_row("v1")])
        repo = PostgresVersionRepository(db)

        versions = await repo.list_versions("p1")

        assert [v.id for v in versions] == ["v2", "v1"]
        assert "ORDER BY created_at DESC" in db.fetch.call_args[0][0]

    async def test_delete_project_with_versions_rejected(self):
        db, _ = _make_db()
        db.execute = AsyncMock(side_effect=asyncpg.ForeignKeyViolationError("fk"))
        repo = PostgresVersionRepository(db)
        with pytest.raises(IntegrityViolation):
            await repo.delete_project("p1")

    async def test_versions_with_secrets_empty_input_skips_query(self):
        db, _ = _make_db()
        repo = PostgresVersionRepository(db)
        assert await repo.versions_with_secrets([]) == set()
        db.fetch.assert_not_called()
