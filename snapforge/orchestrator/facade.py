"""
Orchestrator façade.

Entry point used by the surrounding application (chat completion, manual
checkpoint button, project creation and deletion). Every mutating
operation:

- reloads the project row so decisions use the durable pointer
- runs shielded from caller cancellation, to completion or failure
- returns an OrchestratorResult instead of raising; unexpected errors
  become InternalError with an unknown live state
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from ..constants import INITIAL_SUMMARY, MANUAL_CHECKPOINT_SUMMARY
from ..errors import (
    PartialRestoreFailure,
    ProjectInitializationFailed,
    ProjectNotFound,
    InternalError,
    ProjectNotInitialized,
    ResourceLeakWarning,
    SnapforgeError,
)
from ..models import Project, VersionListing
from ..result import OrchestratorResult
from ..store.base import VersionRepository
from .checkpoint import CheckpointCreator
from .lifecycle import LifecycleManager
from .restore import RestoreOrchestrator

logger = logging.getLogger(__name__)


class VersionOrchestrator:
    """
    Sequences checkpoint, restore and lifecycle operations.

    Example:
        result = await orchestrator.checkpoint(project, "added homepage")
        if result.success:
            print(result.version_id)
        elif result.safe_to_retry:
            ...
    """

    def __init__(
        self,
        repository: VersionRepository,
        checkpoints: CheckpointCreator,
        restorer: RestoreOrchestrator,
        lifecycle: LifecycleManager,
    ):
        self._repository = repository
        self._checkpoints = checkpoints
        self._restorer = restorer
        self._lifecycle = lifecycle
        self._inflight: Set[asyncio.Task] = set()

    # ── Execution ──

    async def _run(
        self,
        name: str,
        operation: Callable[[List[ResourceLeakWarning]], Awaitable[OrchestratorResult]],
    ) -> OrchestratorResult:
        leaks: List[ResourceLeakWarning] = []

        async def _guarded() -> OrchestratorResult:
            try:
                return await operation(leaks)
            except ProjectInitializationFailed as e:
                logger.error(f"{name} failed: {e}")
                return OrchestratorResult.failed(e, project=e.project, warnings=leaks)
            except SnapforgeError as e:
                logger.error(f"{name} failed ({e.live_state}): {e}")
                return OrchestratorResult.failed(e, warnings=leaks)
            except Exception as e:
                logger.exception(f"{name} failed with an unexpected error")
                return OrchestratorResult.failed(InternalError(name, e), warnings=leaks)

        task = asyncio.ensure_future(_guarded())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    async def wait_idle(self) -> None:
        """Wait for shielded operations whose callers went away."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        await self._lifecycle.wait_background()

    async def _reload(self, project: Project) -> Project:
        stored = await self._repository.get_project(project.id)
        if stored is None:
            raise ProjectNotFound(project.id)
        return stored

    # ── Versions ──

    async def initialize_project(self, project: Project) -> OrchestratorResult:
        """Create the initial Version unless the project already has one."""

        async def _op(leaks: List[ResourceLeakWarning]) -> OrchestratorResult:
            stored = await self._reload(project)
            if stored.current_version_id:
                project.current_version_id = stored.current_version_id
                return OrchestratorResult.ok(stored.current_version_id, project=stored)
            version = await self._checkpoints.create_checkpoint(
                stored, INITIAL_SUMMARY, leaks=leaks
            )
            project.current_version_id = version.id
            return OrchestratorResult.ok(version.id, project=stored, warnings=leaks)

        return await self._run("initialize_project", _op)

    async def checkpoint(
        self,
        project: Project,
        summary: str = MANUAL_CHECKPOINT_SUMMARY,
        triggering_message_id: Optional[str] = None,
    ) -> OrchestratorResult:
        """Checkpoint the live state, copying secrets from the current version."""

        async def _op(leaks: List[ResourceLeakWarning]) -> OrchestratorResult:
            stored = await self._reload(project)
            if not stored.current_version_id:
                raise ProjectNotInitialized(stored.id)
            version = await self._checkpoints.create_checkpoint(
                stored,
                summary,
                triggering_message_id=triggering_message_id,
                secrets_source=stored.current_version_id,
                leaks=leaks,
            )
            project.current_version_id = version.id
            return OrchestratorResult.ok(version.id, project=stored, warnings=leaks)

        return await self._run("checkpoint", _op)

    async def restore(self, project: Project, version_id: str) -> OrchestratorResult:

        async def _op(leaks: List[ResourceLeakWarning]) -> OrchestratorResult:
            stored = await self._reload(project)
            version = await self._restorer.restore_version(stored, version_id)
            project.current_version_id = version.id
            return OrchestratorResult.ok(version.id, project=stored)

        return await self._run("restore", _op)

    async def resume_restore(
        self, project: Project, failure: PartialRestoreFailure
    ) -> OrchestratorResult:
        """Redo only the resources a previous restore left behind."""

        async def _op(leaks: List[ResourceLeakWarning]) -> OrchestratorResult:
            stored = await self._reload(project)
            version = await self._restorer.resume(stored, failure)
            project.current_version_id = version.id
            return OrchestratorResult.ok(version.id, project=stored)

        return await self._run("resume_restore", _op)

    async def list_versions(self, project: Project) -> List[VersionListing]:
        """Versions newest first; only versions with a bundle are restorable."""
        stored = await self._reload(project)
        versions = await self._repository.list_versions(stored.id)
        with_secrets = await self._repository.versions_with_secrets(v.id for v in versions)
        return [
            VersionListing(
                version=v,
                restorable=v.id in with_secrets,
                is_current=v.id == stored.current_version_id,
            )
            for v in versions
        ]

    # ── Projects ──

    async def create_project(self, name: str, owner_id: str) -> OrchestratorResult:

        async def _op(leaks: List[ResourceLeakWarning]) -> OrchestratorResult:
            project = await self._lifecycle.create_project(name, owner_id, leaks=leaks)
            return OrchestratorResult.ok(project.current_version_id, project=project, warnings=leaks)

        return await self._run("create_project", _op)

    async def delete_project(self, project: Project) -> OrchestratorResult:

        async def _op(leaks: List[ResourceLeakWarning]) -> OrchestratorResult:
            stored = await self._reload(project)
            report = await self._lifecycle.delete_project(stored)
            project.current_version_id = None
            return OrchestratorResult.ok(warnings=report.leaks)

        return await self._run("delete_project", _op)

    async def get_project(self, project_id: str) -> Optional[Project]:
        return await self._repository.get_project(project_id)

    async def list_projects(self, owner_id: str) -> List[Project]:
        return await self._repository.list_projects(owner_id)
