"""
Checkpoint creation.

Freezes the live code revision and database state into a new Version.
The revision fetch, the snapshot and the secrets bundle are resolved
concurrently; the Version row, its sealed bundle and the pointer update
are then committed in one repository call.
"""

import asyncio
import functools
import logging
from typing import Dict, List, Optional

from ..constants import RESOURCE_SNAPSHOT
from ..errors import ProjectNotFound, ResourceLeakWarning, VersionNotFound
from ..models import Project, Version, new_id, utcnow
from ..protocols import CodeRevisionService, DatabaseService
from ..providers.branches import fetch_primary_branch
from ..providers.operations import WaiterOptions, wait_with_options
from ..store.base import IntegrityViolation, VersionRepository
from ..vault.provisioner import SecretsProvisioner
from ..vault.store import SecretsStore

logger = logging.getLogger(__name__)


class CheckpointCreator:
    """
    Captures a compound Version from the live state of a project.

    Example:
        creator = CheckpointCreator(code, database, repository, secrets, provisioner)
        version = await creator.create_checkpoint(project, "added homepage")
    """

    def __init__(
        self,
        code: CodeRevisionService,
        database: DatabaseService,
        repository: VersionRepository,
        secrets: SecretsStore,
        provisioner: SecretsProvisioner,
        waiter: Optional[WaiterOptions] = None,
    ):
        self._code = code
        self._database = database
        self._repository = repository
        self._secrets = secrets
        self._provisioner = provisioner
        self._waiter = waiter or WaiterOptions()

    async def create_checkpoint(
        self,
        project: Project,
        summary: str,
        triggering_message_id: Optional[str] = None,
        secrets_source: Optional[str] = None,
        leaks: Optional[List[ResourceLeakWarning]] = None,
    ) -> Version:
        """
        Create a Version and make it the project's current version.

        Args:
            project: Project to checkpoint.
            summary: Human readable label.
            triggering_message_id: Conversational turn that produced it.
            secrets_source: Version id whose bundle is copied verbatim.
                Without it a fresh bundle is synthesized.
            leaks: Receives a ResourceLeakWarning when a snapshot was
                created but the checkpoint did not commit.

        Returns:
            The persisted Version (``created_at`` assigned by the store).
        """
        created: List[str] = []

        results = await asyncio.gather(
            self._code.get_latest_revision(project.code_repo_ref),
            self._take_snapshot(project, summary, created),
            self._resolve_secrets(project, secrets_source),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            self._report_orphans(project, created, errors[0], leaks)
            raise errors[0]

        revision, snapshot_id, values = results
        version = Version(
            id=new_id(),
            project_id=project.id,
            code_revision=revision,
            snapshot_id=snapshot_id,
            summary=summary,
            triggering_message_id=triggering_message_id,
        )

        try:
            persisted = await self._repository.commit_version(version, self._secrets.seal(values))
        except IntegrityViolation as e:
            self._report_orphans(project, created, e, leaks)
            if await self._repository.get_project(project.id) is None:
                raise ProjectNotFound(project.id) from e
            raise
        except Exception as e:
            self._report_orphans(project, created, e, leaks)
            raise

        project.current_version_id = persisted.id
        logger.info(
            f"Checkpoint {persisted.id} for project {project.id}: "
            f"revision {revision[:12]}, snapshot {snapshot_id}"
        )
        return persisted

    async def _take_snapshot(self, project: Project, summary: str, created: List[str]) -> str:
        branch = await fetch_primary_branch(self._database, project.database_ref)
        now = utcnow()
        snapshot = await self._database.create_snapshot(
            project.database_ref,
            branch.id,
            name=f"{summary[:40]} {now:%Y-%m-%d %H:%M:%S}",
            timestamp=now.isoformat(),
        )
        created.append(snapshot.id)
        await wait_with_options(
            functools.partial(self._database.get_operation_status, project.database_ref),
            snapshot.operation_ids,
            self._waiter,
        )
        return snapshot.id

    async def _resolve_secrets(
        self, project: Project, secrets_source: Optional[str]
    ) -> Dict[str, str]:
        if secrets_source is None:
            return await self._provisioner.build(project)
        if await self._repository.get_version(project.id, secrets_source) is None:
            raise VersionNotFound(secrets_source, project.id)
        bundle = await self._secrets.require(secrets_source)
        return dict(bundle.values)

    @staticmethod
    def _report_orphans(
        project: Project,
        created: List[str],
        cause: BaseException,
        leaks: Optional[List[ResourceLeakWarning]],
    ) -> None:
        for snapshot_id in created:
            warning = ResourceLeakWarning(RESOURCE_SNAPSHOT, snapshot_id, cause)
            logger.warning(f"Checkpoint of project {project.id} aborted: {warning}")
            if leaks is not None:
                leaks.append(warning)
