"""
In-memory version repository.

Suitable for tests and local development. Each method mutates state
without awaiting in between, so every call is atomic with respect to the
event loop. Reference checks mirror the foreign keys of the Postgres schema.
"""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Set

from ..models import Project, Version, utcnow
from .base import IntegrityViolation, VersionRepository

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class MemoryVersionRepository(VersionRepository):
    """
    In-memory record store.

    Example:
        repository = MemoryVersionRepository()
        await repository.insert_project(project)
    """

    def __init__(self):
        self._projects: Dict[str, Project] = {}
        self._versions: Dict[str, Version] = {}
        self._secrets: Dict[str, str] = {}

    # ── Projects ──

    async def insert_project(self, project: Project) -> Project:
        if project.id in self._projects:
            raise IntegrityViolation(f"Project {project.id} already exists")
        if project.current_version_id is not None:
            raise IntegrityViolation("A new project cannot point at a version")
        self._projects[project.id] = replace(project)
        return replace(project)

    async def get_project(self, project_id: str) -> Optional[Project]:
        project = self._projects.get(project_id)
        return replace(project) if project else None

    async def list_projects(self, owner_id: str) -> List[Project]:
        projects = [p for p in self._projects.values() if p.owner_id == owner_id]
        projects.sort(key=lambda p: p.created_at, reverse=True)
        return [replace(p) for p in projects]

    async def set_current_version(self, project_id: str, version_id: str) -> bool:
        project = self._projects.get(project_id)
        version = self._versions.get(version_id)
        if project is None or version is None or version.project_id != project_id:
            return False
        if version_id not in self._secrets:
            return False
        project.current_version_id = version_id
        project.updated_at = utcnow()
        return True

    async def clear_current_version(self, project_id: str) -> None:
        project = self._projects.get(project_id)
        if project is not None:
            project.current_version_id = None
            project.updated_at = utcnow()

    async def delete_project(self, project_id: str) -> bool:
        if any(v.project_id == project_id for v in self._versions.values()):
            raise IntegrityViolation(f"Project {project_id} still has versions")
        return self._projects.pop(project_id, None) is not None

    # ── Versions ──

    def _next_created_at(self, project_id: str):
        now = utcnow()
        latest = max(
            (v.created_at for v in self._versions.values() if v.project_id == project_id),
            default=None,
        )
        if latest is not None and now <= latest:
            return latest + _TICK
        return now

    async def commit_version(self, version: Version, sealed_secrets: str) -> Version:
        project = self._projects.get(version.project_id)
        if project is None:
            raise IntegrityViolation(f"Project {version.project_id} does not exist")
        if version.id in self._versions:
            raise IntegrityViolation(f"Version {version.id} already exists")
        if not sealed_secrets:
            raise IntegrityViolation("A version cannot be committed without secrets")

        persisted = replace(version, created_at=self._next_created_at(version.project_id))
        self._versions[persisted.id] = persisted
        self._secrets[persisted.id] = sealed_secrets
        project.current_version_id = persisted.id
        project.updated_at = utcnow()
        return persisted

    async def get_version(self, project_id: str, version_id: str) -> Optional[Version]:
        version = self._versions.get(version_id)
        if version is None or version.project_id != project_id:
            return None
        return version

    async def list_versions(self, project_id: str) -> List[Version]:
        versions = [v for v in self._versions.values() if v.project_id == project_id]
        versions.sort(key=lambda v: v.created_at, reverse=True)
        return versions

    async def delete_versions(self, project_id: str) -> int:
        ids = [vid for vid, v in self._versions.items() if v.project_id == project_id]
        if any(vid in self._secrets for vid in ids):
            raise IntegrityViolation(f"Secrets still reference versions of {project_id}")
        if any(p.current_version_id in ids for p in self._projects.values()):
            raise IntegrityViolation(f"Project {project_id} still points at one of its versions")
        for vid in ids:
            del self._versions[vid]
        return len(ids)

    # ── Sealed secrets ──

    async def insert_secrets(self, version_id: str, sealed: str) -> None:
        if version_id not in self._versions:
            raise IntegrityViolation(f"Version {version_id} does not exist")
        if version_id in self._secrets:
            raise IntegrityViolation(f"Version {version_id} already has secrets")
        self._secrets[version_id] = sealed

    async def get_secrets(self, version_id: str) -> Optional[str]:
        return self._secrets.get(version_id)

    async def versions_with_secrets(self, version_ids: Iterable[str]) -> Set[str]:
        return {vid for vid in version_ids if vid in self._secrets}

    async def delete_secrets(self, version_ids: Iterable[str]) -> int:
        removed = 0
        for vid in list(version_ids):
            if self._secrets.pop(vid, None) is not None:
                removed += 1
        return removed
