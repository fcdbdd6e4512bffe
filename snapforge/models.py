"""
Snapforge Models - Data structures for projects, versions and provider shapes

This module defines:
- Project: a user project and the handles of its external resources
- Version: immutable compound snapshot (code revision + database snapshot)
- SecretsBundle: decrypted environment bundle attached 1:1 to a Version
- Provider shapes (Branch, Snapshot, OperationStatus, ...) produced by the
  normalization step at the provider boundary
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate an opaque record id"""
    return str(uuid.uuid4())


@dataclass
class Project:
    """
    A user project.

    The external resources (code repository, database, conversation thread)
    are owned by the project; ``current_version_id`` names the Version the
    live state is considered to be "on".
    """
    id: str
    name: str
    owner_id: str
    code_repo_ref: str
    database_ref: str
    thread_id: Optional[str] = None
    current_version_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "code_repo_ref": self.code_repo_ref,
            "database_ref": self.database_ref,
            "thread_id": self.thread_id,
            "current_version_id": self.current_version_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Version:
    """
    Immutable compound snapshot of a project.

    Written exactly once by a checkpoint; never updated afterwards.
    """
    id: str
    project_id: str
    code_revision: str
    snapshot_id: str
    summary: str
    triggering_message_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "code_revision": self.code_revision,
            "snapshot_id": self.snapshot_id,
            "summary": self.summary,
            "triggering_message_id": self.triggering_message_id,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class SecretsBundle:
    """Decrypted environment configuration of one Version"""
    version_id: str
    values: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class VersionListing:
    """A Version together with whether it may be offered as a restore target"""
    version: Version
    restorable: bool
    is_current: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = self.version.to_dict()
        data["restorable"] = self.restorable
        data["is_current"] = self.is_current
        return data


# ── Provider shapes ──


class OperationStatus(str, Enum):
    """Status of an asynchronous provider operation"""
    SCHEDULING = "scheduling"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"

    @classmethod
    def terminal_states(cls) -> frozenset:
        """States in which an operation has settled."""
        return frozenset({cls.FINISHED, cls.SKIPPED, cls.CANCELLED})

    @classmethod
    def failure_states(cls) -> frozenset:
        """States that abort waiting with OperationFailed."""
        return frozenset({cls.FAILED, cls.CANCELLING})


@dataclass(frozen=True)
class Branch:
    """A database branch"""
    id: str
    name: Optional[str] = None
    parent_id: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class Snapshot:
    """A created database snapshot and the operations it started"""
    id: str
    operation_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProvisionedDatabase:
    """Result of provisioning a new database project"""
    database_ref: str
    connection_uri: str
    operation_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AuthProviderKeys:
    """Credentials of the auth provider integrated with a database project"""
    project_id: str
    publishable_client_key: str
    secret_server_key: str


@dataclass(frozen=True)
class DevServer:
    """A running development session on the code host"""
    repo_ref: str
    url: Optional[str] = None
    is_new: bool = False
