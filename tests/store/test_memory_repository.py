"""Tests for snapforge.store.memory: reference rules and ordering"""

import pytest

from snapforge.models import Project, Version
from snapforge.store.base import IntegrityViolation
from snapforge.store.memory import MemoryVersionRepository


def _make_project(project_id: str = "p1", owner_id: str = "o1") -> Project:
    return Project(
        id=project_id,
        name="demo",
        owner_id=owner_id,
        code_repo_ref=f"repo-{project_id}",
        database_ref=f"db-{project_id}",
    )


def _make_version(version_id: str, project_id: str = "p1", summary: str = "test") -> Version:
    return Version(
        id=version_id,
        project_id=project_id,
        code_revision="c" * 40,
        snapshot_id=f"snap-{version_id}",
        summary=summary,
    )


@pytest.fixture
async def repo():
    repository = MemoryVersionRepository()
    await repository.insert_project(_make_project())
    return repository


class TestProjects:

    async def test_insert_and_get_returns_copies(self, repo):
        project = await repo.get_project("p1")
        project.name = "changed"
        assert (await repo.get_project("p1")).name == "demo"

    async def test_duplicate_insert_rejected(self, repo):
        with pytest.raises(IntegrityViolation):
            await repo.insert_project(_make_project())

    async def test_new_project_cannot_have_pointer(self, repo):
        project = _make_project("p2")
        project.current_version_id = "v1"
        with pytest.raises(IntegrityViolation):
            await repo.insert_project(project)

    async def test_list_projects_by_owner(self, repo):
        await repo.insert_project(_make_project("p2", owner_id="o2"))
        assert [p.id for p in await repo.list_projects("o1")] == ["p1"]


class TestCommitVersion:

    async def test_commit_writes_version_secrets_and_pointer(self, repo):
        persisted = await repo.commit_version(_make_version("v1"), "sealed")
        assert (await repo.get_project("p1")).current_version_id == "v1"
        assert await repo.get_secrets("v1") == "sealed"
        assert await repo.get_version("p1", "v1") == persisted

    async def test_commit_without_secrets_writes_nothing(self, repo):
        with pytest.raises(IntegrityViolation):
            await repo.commit_version(_make_version("v1"), "")
        assert await repo.list_versions("p1") == []
        assert (await repo.get_project("p1")).current_version_id is None

    async def test_commit_for_unknown_project_rejected(self, repo):
        with pytest.raises(IntegrityViolation):
            await repo.commit_version(_make_version("v1", project_id="ghost"), "sealed")

    async def test_created_at_strictly_increases(self, repo):
        for i in range(20):
            await repo.commit_version(_make_version(f"v{i}"), "sealed")
        versions = await repo.list_versions("p1")
        stamps = [v.created_at for v in versions]
        assert stamps == sorted(stamps, reverse=True)
        assert len(set(stamps)) == 20
        assert versions[0].id == "v19"

    async def test_get_version_scoped_to_project(self, repo):
        await repo.insert_project(_make_project("p2"))
        await repo.commit_version(_make_version("v1"), "sealed")
        assert await repo.get_version("p2", "v1") is None


class TestPointerGuard:

    async def test_set_current_requires_secrets(self, repo):
        await repo.commit_version(_make_version("v1"), "sealed")
        repo._versions["v-bare"] = _make_version("v-bare")
        assert await repo.set_current_version("p1", "v-bare") is False
        assert (await repo.get_project("p1")).current_version_id == "v1"

    async def test_set_current_requires_same_project(self, repo):
        await repo.insert_project(_make_project("p2"))
        await repo.commit_version(_make_version("v2", project_id="p2"), "sealed")
        assert await repo.set_current_version("p1", "v2") is False

    async def test_set_current_moves_pointer(self, repo):
        await repo.commit_version(_make_version("v1"), "sealed")
        await repo.commit_version(_make_version("v2"), "sealed")
        assert await repo.set_current_version("p1", "v1") is True
        assert (await repo.get_project("p1")).current_version_id == "v1"


class TestDeletionOrder:

    async def test_versions_cannot_be_deleted_before_secrets(self, repo):
        await repo.commit_version(_make_version("v1"), "sealed")
        await repo.clear_current_version("p1")
        with pytest.raises(IntegrityViolation):
            await repo.delete_versions("p1")

    async def test_versions_cannot_be_deleted_while_pointed_at(self, repo):
        await repo.commit_version(_make_version("v1"), "sealed")
        await repo.delete_secrets(["v1"])
        with pytest.raises(IntegrityViolation):
            await repo.delete_versions("p1")

    async def test_project_cannot_be_deleted_with_versions(self, repo):
        await repo.commit_version(_make_version("v1"), "sealed")
        with pytest.raises(IntegrityViolation):
            await repo.delete_project("p1")

    async def test_full_order_succeeds(self, repo):
        for i in range(3):
            await repo.commit_version(_make_version(f"v{i}"), "sealed")
        await repo.clear_current_version("p1")
        ids = await repo.list_version_ids("p1")
        assert await repo.delete_secrets(ids) == 3
        assert await repo.delete_versions("p1") == 3
        assert await repo.delete_project("p1") is True
        assert await repo.get_project("p1") is None
