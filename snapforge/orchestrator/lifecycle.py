"""
Project lifecycle.

Creation provisions the repository, the database and the conversation
thread in parallel and writes the project row only once all of them
exist. Deletion removes dependent rows before the project row and tears
the external resources down last, collecting every failure.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from ..constants import (
    DEFAULT_SESSION_TIMEOUT,
    INITIAL_SUMMARY,
    RESOURCE_DATABASE,
    RESOURCE_REPOSITORY,
    RESOURCE_THREAD,
)
from ..errors import ProjectInitializationFailed, ResourceLeakWarning
from ..models import Project, ProvisionedDatabase, new_id
from ..protocols import CodeRevisionService, ConversationThreadService, DatabaseService
from ..providers.operations import WaiterOptions, wait_with_options
from ..store.base import VersionRepository
from ..vault.store import SecretsStore
from .checkpoint import CheckpointCreator

logger = logging.getLogger(__name__)

Teardown = Tuple[str, str, Callable[[], Awaitable[Any]]]


@dataclass
class TeardownReport:
    """What a project deletion removed and which external resources may leak"""
    project_id: str
    versions_deleted: int = 0
    secrets_deleted: int = 0
    leaks: List[ResourceLeakWarning] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.leaks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "versions_deleted": self.versions_deleted,
            "secrets_deleted": self.secrets_deleted,
            "leaks": [w.to_dict() for w in self.leaks],
        }


class LifecycleManager:
    """
    Creates and destroys projects together with their external resources.

    The thread service is optional; without one no thread is provisioned.
    """

    def __init__(
        self,
        code: CodeRevisionService,
        database: DatabaseService,
        repository: VersionRepository,
        secrets: SecretsStore,
        checkpoints: CheckpointCreator,
        threads: Optional[ConversationThreadService] = None,
        waiter: Optional[WaiterOptions] = None,
        session_timeout: float = DEFAULT_SESSION_TIMEOUT,
        warm_up: bool = True,
    ):
        self._code = code
        self._database = database
        self._repository = repository
        self._secrets = secrets
        self._checkpoints = checkpoints
        self._threads = threads
        self._waiter = waiter or WaiterOptions()
        self._session_timeout = session_timeout
        self._warm_up = warm_up
        self._background: Set[asyncio.Task] = set()

    # ── Creation ──

    async def create_project(
        self,
        name: str,
        owner_id: str,
        leaks: Optional[List[ResourceLeakWarning]] = None,
    ) -> Project:
        """
        Provision resources, write the project row and its initial version.

        Raises:
            The first provisioning error, after best-effort cleanup of the
            resources that were created. No project row is written.
            ProjectInitializationFailed: resources and row exist, the
            initial checkpoint did not commit.
        """
        leaks = leaks if leaks is not None else []
        results = await asyncio.gather(
            self._code.create_repository(name),
            self._provision_database(name, leaks),
            self._provision_thread(owner_id, name),
            return_exceptions=True,
        )
        repo_result, db_result, thread_result = results

        cleanup: List[Teardown] = []
        if not isinstance(repo_result, BaseException):
            cleanup.append(self._repository_teardown(repo_result))
        if not isinstance(db_result, BaseException):
            cleanup.append(self._database_teardown(db_result.database_ref))
        if thread_result is not None and not isinstance(thread_result, BaseException):
            cleanup.append(self._thread_teardown(owner_id, thread_result))

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.error(f"Provisioning of project '{name}' failed: {errors[0]}")
            leaks.extend(await self._teardown(cleanup))
            raise errors[0]

        project = Project(
            id=new_id(),
            name=name,
            owner_id=owner_id,
            code_repo_ref=repo_result,
            database_ref=db_result.database_ref,
            thread_id=thread_result,
        )
        try:
            await self._repository.insert_project(project)
        except Exception:
            leaks.extend(await self._teardown(cleanup))
            raise
        logger.info(f"Created project {project.id} ('{name}') for owner {owner_id}")

        try:
            await self._checkpoints.create_checkpoint(project, INITIAL_SUMMARY, leaks=leaks)
        except Exception as e:
            raise ProjectInitializationFailed(project, e) from e

        if self._warm_up:
            self._spawn(self._warm_dev_server(project))
        return project

    async def _provision_database(
        self, name: str, leaks: List[ResourceLeakWarning]
    ) -> ProvisionedDatabase:
        provisioned = await self._database.create_database(name)
        try:
            await wait_with_options(
                functools.partial(self._database.get_operation_status, provisioned.database_ref),
                provisioned.operation_ids,
                self._waiter,
            )
        except Exception as e:
            logger.error(f"Database {provisioned.database_ref} did not become ready: {e}")
            leaks.extend(await self._teardown([self._database_teardown(provisioned.database_ref)]))
            raise
        return provisioned

    async def _provision_thread(self, owner_id: str, name: str) -> Optional[str]:
        if self._threads is None:
            return None
        return await self._threads.create_thread(owner_id, name)

    async def _warm_dev_server(self, project: Project) -> None:
        bundle = await self._secrets.fetch(project.current_version_id)
        environment = bundle.values if bundle else None
        await asyncio.wait_for(
            self._code.request_dev_server(project.code_repo_ref, environment),
            timeout=self._session_timeout,
        )
        logger.info(f"Dev server of project {project.id} is ready")

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: "asyncio.Task") -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Background dev server warm-up failed: {error!r}")

    async def wait_background(self) -> None:
        """Wait for background warm-ups to finish (used on shutdown and in tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ── Deletion ──

    async def delete_project(self, project: Project) -> TeardownReport:
        """
        Delete a project's rows, then tear its external resources down.

        Row deletions run in dependency order: pointer, secrets, versions,
        project. Teardown failures are collected in the report.
        """
        report = TeardownReport(project_id=project.id)

        await self._repository.clear_current_version(project.id)
        project.current_version_id = None

        version_ids = await self._repository.list_version_ids(project.id)
        report.secrets_deleted = await self._secrets.delete_for_versions(version_ids)
        report.versions_deleted = await self._repository.delete_versions(project.id)
        await self._repository.delete_project(project.id)
        logger.info(
            f"Deleted project {project.id}: {report.versions_deleted} version(s), "
            f"{report.secrets_deleted} secrets bundle(s)"
        )

        teardowns = [
            self._repository_teardown(project.code_repo_ref),
            self._database_teardown(project.database_ref),
        ]
        if project.thread_id and self._threads is not None:
            teardowns.append(self._thread_teardown(project.owner_id, project.thread_id))
        report.leaks = await self._teardown(teardowns)
        return report

    # ── Teardown ──

    def _repository_teardown(self, repo_ref: str) -> Teardown:
        return (RESOURCE_REPOSITORY, repo_ref,
                functools.partial(self._code.delete_repository, repo_ref))

    def _database_teardown(self, database_ref: str) -> Teardown:
        return (RESOURCE_DATABASE, database_ref,
                functools.partial(self._database.delete_database, database_ref))

    def _thread_teardown(self, owner_id: str, thread_id: str) -> Teardown:
        return (RESOURCE_THREAD, thread_id,
                functools.partial(self._threads.delete_thread, owner_id, thread_id))

    @staticmethod
    async def _teardown(teardowns: List[Teardown]) -> List[ResourceLeakWarning]:
        """Run teardown calls concurrently; every failure becomes a leak warning."""
        if not teardowns:
            return []
        outcomes = await asyncio.gather(
            *(call() for _, _, call in teardowns), return_exceptions=True
        )
        leaks: List[ResourceLeakWarning] = []
        for (resource, reference, _), outcome in zip(teardowns, outcomes):
            if isinstance(outcome, BaseException):
                warning = ResourceLeakWarning(resource, reference, outcome)
                logger.warning(str(warning))
                leaks.append(warning)
            else:
                logger.info(f"Tore down {resource} {reference}")
        return leaks
