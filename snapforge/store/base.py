"""
Version repository interface.

Durable record store for Projects, Versions and sealed SecretsBundles.
Two implementations:
- MemoryVersionRepository: tests and local development
- PostgresVersionRepository: production (asyncpg)

Secrets are stored sealed (already encrypted); the repository never sees
plaintext. Encryption belongs to ``snapforge.vault``.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Set

from ..errors import SnapforgeError
from ..models import Project, Version


class IntegrityViolation(SnapforgeError):
    """A write would break a reference between projects, versions and secrets."""


class VersionRepository(ABC):
    """Abstract record store for projects, versions and sealed secrets."""

    # ── Projects ──

    @abstractmethod
    async def insert_project(self, project: Project) -> Project:
        ...

    @abstractmethod
    async def get_project(self, project_id: str) -> Optional[Project]:
        ...

    @abstractmethod
    async def list_projects(self, owner_id: str) -> List[Project]:
        """Projects of an owner, newest first."""
        ...

    @abstractmethod
    async def set_current_version(self, project_id: str, version_id: str) -> bool:
        """
        Point the project at an existing version of its own.

        The update only happens when the version belongs to the project and
        has a committed secrets bundle. Returns False when it did not happen.
        """
        ...

    @abstractmethod
    async def clear_current_version(self, project_id: str) -> None:
        ...

    @abstractmethod
    async def delete_project(self, project_id: str) -> bool:
        """Delete the project row. Fails while versions still reference it."""
        ...

    # ── Versions ──

    @abstractmethod
    async def commit_version(self, version: Version, sealed_secrets: str) -> Version:
        """
        Atomically write the version, its sealed bundle and the pointer update.

        Either all three writes are visible or none. ``created_at`` is
        assigned by the store so it increases strictly per project; the
        persisted Version is returned.
        """
        ...

    @abstractmethod
    async def get_version(self, project_id: str, version_id: str) -> Optional[Version]:
        ...

    @abstractmethod
    async def list_versions(self, project_id: str) -> List[Version]:
        """Versions of a project, newest first."""
        ...

    async def list_version_ids(self, project_id: str) -> List[str]:
        return [v.id for v in await self.list_versions(project_id)]

    @abstractmethod
    async def delete_versions(self, project_id: str) -> int:
        """Delete every version row of the project. Fails while secrets remain."""
        ...

    # ── Sealed secrets ──

    @abstractmethod
    async def insert_secrets(self, version_id: str, sealed: str) -> None:
        ...

    @abstractmethod
    async def get_secrets(self, version_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def versions_with_secrets(self, version_ids: Iterable[str]) -> Set[str]:
        """Subset of ``version_ids`` that have a bundle."""
        ...

    @abstractmethod
    async def delete_secrets(self, version_ids: Iterable[str]) -> int:
        ...

    async def close(self) -> None:
        """Release resources held by the repository."""
        return None
