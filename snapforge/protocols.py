"""
Snapforge Protocols - Abstract interfaces for the external collaborators

The orchestrator only talks to these contracts, so any code host, database
host or thread service can be plugged in. Concrete httpx clients live in
``snapforge.providers``; tests use in-memory fakes.
"""

from typing import Dict, List, Optional, Protocol, runtime_checkable

from .models import (
    AuthProviderKeys,
    Branch,
    DevServer,
    OperationStatus,
    ProvisionedDatabase,
    Snapshot,
)


@runtime_checkable
class CodeRevisionService(Protocol):
    """
    Hosted git repositories with a development session per repository.

    ``reset_to_revision`` is a hard reset followed by a forced push of the
    tracked branch: commits after the target revision are discarded.
    """

    async def create_repository(self, name: str) -> str:
        """Create a repository from the project template, return its ref"""
        ...

    async def delete_repository(self, repo_ref: str) -> None:
        ...

    async def get_latest_revision(self, repo_ref: str) -> str:
        """Return the commit hash at the head of the tracked branch"""
        ...

    async def reset_to_revision(self, repo_ref: str, revision: str) -> None:
        ...

    async def request_dev_server(
        self, repo_ref: str, environment: Optional[Dict[str, str]] = None
    ) -> DevServer:
        """Start (or reuse) a dev session and sync its environment file"""
        ...


@runtime_checkable
class DatabaseService(Protocol):
    """Branchable Postgres host with snapshots and async operations"""

    async def create_database(self, name: str) -> ProvisionedDatabase:
        ...

    async def delete_database(self, database_ref: str) -> None:
        ...

    async def list_branches(self, database_ref: str) -> List[Branch]:
        ...

    async def create_snapshot(
        self,
        database_ref: str,
        branch_id: str,
        name: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> Snapshot:
        ...

    async def restore_snapshot(
        self, database_ref: str, snapshot_id: str, target_branch_id: str
    ) -> List[str]:
        """Restore a snapshot onto a branch, return the started operation ids"""
        ...

    async def get_operation_status(
        self, database_ref: str, operation_id: str
    ) -> OperationStatus:
        ...

    async def get_connection_uri(
        self,
        database_ref: str,
        branch_id: Optional[str] = None,
        database_name: Optional[str] = None,
        role_name: Optional[str] = None,
        pooled: Optional[bool] = None,
    ) -> str:
        ...

    async def init_auth(self, database_ref: str, branch_id: str) -> AuthProviderKeys:
        """Enable the integrated auth provider and return its keys"""
        ...


@runtime_checkable
class ConversationThreadService(Protocol):
    """Conversation threads bound to a project (create/delete only)"""

    async def create_thread(self, owner_id: str, label: str) -> str:
        ...

    async def delete_thread(self, owner_id: str, thread_id: str) -> None:
        ...


@runtime_checkable
class CipherProtocol(Protocol):
    """Opaque encrypt/decrypt capability injected into the secrets store"""

    def encrypt(self, plaintext: str) -> str:
        ...

    def decrypt(self, token: str) -> str:
        ...
