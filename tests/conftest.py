"""Shared fakes and fixtures.

The fakes implement the collaborator protocols in memory:
- FakeCodeService: repositories with a head revision and reset history
- FakeDatabaseService: projects with live data, snapshots and scripted
  operation statuses
- FakeThreadService: conversation threads

Failures are injected per method name through ``fail``:
    database.fail["restore_snapshot"] = ExternalServiceError(...)
"""

import asyncio
import itertools
from typing import Dict, List, Optional

import pytest

from snapforge.app import build_orchestrator
from snapforge.errors import ExternalServiceError
from snapforge.models import (
    AuthProviderKeys,
    Branch,
    DevServer,
    OperationStatus,
    ProvisionedDatabase,
    Snapshot,
)
from snapforge.providers.operations import WaiterOptions
from snapforge.store.memory import MemoryVersionRepository
from snapforge.vault.cipher import SecretsCipher, generate_key

FAST_WAITER = WaiterOptions(poll_interval=0.01, timeout=1.0)


class _Failing:
    def __init__(self):
        self.fail: Dict[str, BaseException] = {}
        self.calls: List[tuple] = []

    def _enter(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        error = self.fail.get(name)
        if error is not None:
            raise error

    def called(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeCodeService(_Failing):
    """Hosted repositories with a linear commit history."""

    def __init__(self):
        super().__init__()
        self._ids = itertools.count(1)
        self._shas = itertools.count(1)
        self.heads: Dict[str, str] = {}
        self.environments: Dict[str, Optional[Dict[str, str]]] = {}
        self.dev_server_delay = 0.0

    def new_sha(self) -> str:
        return f"{next(self._shas):040x}"

    def commit(self, repo_ref: str) -> str:
        """Simulate the agent pushing a commit."""
        self.heads[repo_ref] = self.new_sha()
        return self.heads[repo_ref]

    async def create_repository(self, name: str) -> str:
        self._enter("create_repository", name)
        repo_ref = f"repo-{next(self._ids)}"
        self.heads[repo_ref] = self.new_sha()
        return repo_ref

    async def delete_repository(self, repo_ref: str) -> None:
        self._enter("delete_repository", repo_ref)
        self.heads.pop(repo_ref, None)

    async def get_latest_revision(self, repo_ref: str) -> str:
        self._enter("get_latest_revision", repo_ref)
        return self.heads[repo_ref]

    async def reset_to_revision(self, repo_ref: str, revision: str) -> None:
        self._enter("reset_to_revision", repo_ref, revision)
        self.heads[repo_ref] = revision

    async def request_dev_server(
        self, repo_ref: str, environment: Optional[Dict[str, str]] = None
    ) -> DevServer:
        self._enter("request_dev_server", repo_ref)
        if self.dev_server_delay:
            await asyncio.sleep(self.dev_server_delay)
        self.environments[repo_ref] = dict(environment) if environment else None
        return DevServer(repo_ref=repo_ref, url=f"https://{repo_ref}.dev", is_new=False)


class FakeDatabaseService(_Failing):
    """Database projects whose live data is a plain dict."""

    def __init__(self):
        super().__init__()
        self._ids = itertools.count(1)
        self.live: Dict[str, Dict[str, str]] = {}
        self.snapshots: Dict[str, Dict[str, str]] = {}
        self.branches: Dict[str, List[Branch]] = {}
        # op_id -> statuses returned by successive polls (last one repeats)
        self.scripts: Dict[str, List[OperationStatus]] = {}
        self.next_operations: List[str] = []

    def write(self, database_ref: str, key: str, value: str) -> None:
        """Simulate the agent mutating the live database."""
        self.live[database_ref][key] = value

    def _take_operations(self, prefix: str) -> List[str]:
        if self.next_operations:
            ops, self.next_operations = self.next_operations, []
            return ops
        return [f"{prefix}-{next(self._ids)}"]

    async def create_database(self, name: str) -> ProvisionedDatabase:
        self._enter("create_database", name)
        ref = f"db-{next(self._ids)}"
        self.live[ref] = {}
        self.branches[ref] = [
            Branch(id=f"br-{ref}-main", name="main"),
            Branch(id=f"br-{ref}-dev", name="dev", parent_id=f"br-{ref}-main"),
        ]
        return ProvisionedDatabase(
            database_ref=ref,
            connection_uri=f"postgresql://neondb_owner@{ref}.example/neondb",
            operation_ids=self._take_operations("op-create"),
        )

    async def delete_database(self, database_ref: str) -> None:
        self._enter("delete_database", database_ref)
        self.live.pop(database_ref, None)

    async def list_branches(self, database_ref: str) -> List[Branch]:
        self._enter("list_branches", database_ref)
        return list(self.branches[database_ref])

    async def create_snapshot(
        self,
        database_ref: str,
        branch_id: str,
        name: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> Snapshot:
        self._enter("create_snapshot", database_ref, branch_id)
        snapshot_id = f"snap-{next(self._ids)}"
        self.snapshots[snapshot_id] = dict(self.live[database_ref])
        return Snapshot(id=snapshot_id, operation_ids=self._take_operations("op-snap"))

    async def restore_snapshot(
        self, database_ref: str, snapshot_id: str, target_branch_id: str
    ) -> List[str]:
        self._enter("restore_snapshot", database_ref, snapshot_id, target_branch_id)
        self.live[database_ref] = dict(self.snapshots[snapshot_id])
        return self._take_operations("op-restore")

    async def get_operation_status(self, database_ref: str, operation_id: str) -> OperationStatus:
        self._enter("get_operation_status", database_ref, operation_id)
        script = self.scripts.get(operation_id)
        if not script:
            return OperationStatus.FINISHED
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    async def get_connection_uri(
        self,
        database_ref: str,
        branch_id: Optional[str] = None,
        database_name: Optional[str] = None,
        role_name: Optional[str] = None,
        pooled: Optional[bool] = None,
    ) -> str:
        self._enter("get_connection_uri", database_ref)
        return f"postgresql://neondb_owner@{database_ref}.example/neondb"

    async def init_auth(self, database_ref: str, branch_id: str) -> AuthProviderKeys:
        self._enter("init_auth", database_ref, branch_id)
        return AuthProviderKeys(
            project_id=f"auth-{database_ref}",
            publishable_client_key=f"pck-{database_ref}",
            secret_server_key=f"ssk-{database_ref}",
        )


class FakeThreadService(_Failing):

    def __init__(self):
        super().__init__()
        self._ids = itertools.count(1)
        self.threads: Dict[str, str] = {}

    async def create_thread(self, owner_id: str, label: str) -> str:
        self._enter("create_thread", owner_id, label)
        thread_id = f"thread-{next(self._ids)}"
        self.threads[thread_id] = owner_id
        return thread_id

    async def delete_thread(self, owner_id: str, thread_id: str) -> None:
        self._enter("delete_thread", owner_id, thread_id)
        self.threads.pop(thread_id, None)


def external_error(service: str = "neon", action: str = "call") -> ExternalServiceError:
    return ExternalServiceError(service, action, "boom", status_code=500)


# ── Fixtures ──


@pytest.fixture
def code():
    return FakeCodeService()


@pytest.fixture
def database():
    return FakeDatabaseService()


@pytest.fixture
def threads():
    return FakeThreadService()


@pytest.fixture
def repository():
    return MemoryVersionRepository()


@pytest.fixture
def cipher():
    return SecretsCipher(generate_key())


@pytest.fixture
def orchestrator(repository, code, database, threads, cipher):
    return build_orchestrator(
        repository,
        code,
        database,
        cipher,
        threads=threads,
        waiter=FAST_WAITER,
        session_timeout=0.5,
        warm_up=False,
    )


@pytest.fixture
async def project(orchestrator):
    """A created project with its initial version."""
    result = await orchestrator.create_project("demo", "owner-1")
    assert result.success, result.error
    return result.project
