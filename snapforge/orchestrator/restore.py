"""
Version restore.

Moves the live code repository and the live database back to a Version,
then advances the project's current version pointer. Code and database
are restored concurrently; the pointer only moves once both succeeded.

Failure modes:
    - nothing moved: the first error is raised, the project is unchanged
    - one resource moved: PartialRestoreFailure naming what is left
    - both moved, pointer update failed: PartialRestoreFailure naming
      the version pointer

``resume`` picks up a PartialRestoreFailure and redoes only the resources
it lists as failed.
"""

import asyncio
import functools
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from ..constants import (
    DEFAULT_SESSION_TIMEOUT,
    RESOURCE_CODE,
    RESOURCE_DATABASE,
    RESOURCE_POINTER,
)
from ..errors import (
    ExternalServiceError,
    PartialRestoreFailure,
    VersionCorrupt,
    VersionNotFound,
)
from ..models import Project, SecretsBundle, Version
from ..protocols import CodeRevisionService, DatabaseService
from ..providers.branches import fetch_primary_branch
from ..providers.operations import WaiterOptions, wait_with_options
from ..store.base import VersionRepository
from ..vault.store import SecretsStore

logger = logging.getLogger(__name__)

# Restore order when several resources fail: the code error is reported first
_RESOURCES = (RESOURCE_CODE, RESOURCE_DATABASE)


class RestoreOrchestrator:
    """Reinstates a Version's code revision and database snapshot."""

    def __init__(
        self,
        code: CodeRevisionService,
        database: DatabaseService,
        repository: VersionRepository,
        secrets: SecretsStore,
        waiter: Optional[WaiterOptions] = None,
        session_timeout: float = DEFAULT_SESSION_TIMEOUT,
    ):
        self._code = code
        self._database = database
        self._repository = repository
        self._secrets = secrets
        self._waiter = waiter or WaiterOptions()
        self._session_timeout = session_timeout

    async def restore_version(self, project: Project, target_version_id: str) -> Version:
        version, bundle = await self._load_target(project, target_version_id)
        logger.info(f"Restoring project {project.id} to version {version.id}")
        await self._apply(project, version, bundle, _RESOURCES, restored=[])
        return version

    async def resume(self, project: Project, failure: PartialRestoreFailure) -> Version:
        """Finish an interrupted restore by redoing only what failed."""
        version, bundle = await self._load_target(project, failure.version_id)
        pending = [r for r in _RESOURCES if r in failure.failed]
        restored = [r for r in failure.restored if r in _RESOURCES]
        logger.info(
            f"Resuming restore of project {project.id} to version {version.id}: "
            f"redoing {pending or 'nothing'}"
        )
        await self._apply(project, version, bundle, pending, restored=restored)
        return version

    # ── Steps ──

    async def _load_target(self, project: Project, version_id: str):
        version = await self._repository.get_version(project.id, version_id)
        if version is None:
            raise VersionNotFound(version_id, project.id)
        bundle = await self._secrets.fetch(version.id)
        if bundle is None:
            raise VersionCorrupt(version.id)
        return version, bundle

    async def _apply(
        self,
        project: Project,
        version: Version,
        bundle: SecretsBundle,
        resources: Sequence[str],
        restored: List[str],
    ) -> None:
        steps: Dict[str, Callable[[], Awaitable[None]]] = {
            RESOURCE_CODE: functools.partial(self._restore_code, project, version, bundle),
            RESOURCE_DATABASE: functools.partial(self._restore_database, project, version),
        }
        outcomes = await asyncio.gather(
            *(steps[r]() for r in resources), return_exceptions=True
        )

        restored = list(restored)
        failures: Dict[str, BaseException] = {}
        for resource, outcome in zip(resources, outcomes):
            if isinstance(outcome, BaseException):
                failures[resource] = outcome
                logger.warning(f"Restore of {resource} for project {project.id} failed: {outcome}")
            else:
                restored.append(resource)

        if failures:
            first = next(iter(failures.values()))
            if not restored:
                raise first
            raise PartialRestoreFailure(version.id, restored, list(failures), first)

        await self._advance_pointer(project, version, restored)

    async def _restore_code(self, project: Project, version: Version, bundle: SecretsBundle) -> None:
        try:
            await asyncio.wait_for(
                self._code.request_dev_server(project.code_repo_ref, bundle.values),
                timeout=self._session_timeout,
            )
        except asyncio.TimeoutError:
            raise ExternalServiceError(
                "code",
                "request dev server",
                f"session did not start within {self._session_timeout:g}s",
            ) from None
        await self._code.reset_to_revision(project.code_repo_ref, version.code_revision)
        logger.info(f"Code of project {project.id} reset to {version.code_revision[:12]}")

    async def _restore_database(self, project: Project, version: Version) -> None:
        branch = await fetch_primary_branch(self._database, project.database_ref)
        operation_ids = await self._database.restore_snapshot(
            project.database_ref, version.snapshot_id, branch.id
        )
        await wait_with_options(
            functools.partial(self._database.get_operation_status, project.database_ref),
            operation_ids,
            self._waiter,
        )
        logger.info(
            f"Database of project {project.id} restored to snapshot {version.snapshot_id} "
            f"on branch {branch.id}"
        )

    async def _advance_pointer(self, project: Project, version: Version, restored: List[str]) -> None:
        try:
            moved = await self._repository.set_current_version(project.id, version.id)
        except Exception as e:
            raise PartialRestoreFailure(version.id, restored, [RESOURCE_POINTER], e) from e
        if not moved:
            raise PartialRestoreFailure(
                version.id, restored, [RESOURCE_POINTER], VersionCorrupt(version.id)
            )
        project.current_version_id = version.id
