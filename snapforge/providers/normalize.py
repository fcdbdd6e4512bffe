"""
Normalization of provider JSON into the typed shapes used internally.

Provider responses differ between API versions: a branch may be returned
flat or wrapped in ``{"branch": {...}}``, a list may be bare or sit under
``branches``/``items``/``data``. All of that shape-sniffing happens here so
the orchestrator only ever sees Branch, Snapshot and OperationStatus.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import ExternalServiceError
from ..models import AuthProviderKeys, Branch, OperationStatus, ProvisionedDatabase, Snapshot

logger = logging.getLogger(__name__)

_BRANCH_FIELDS = ("id", "name", "created_at", "parent_id")
_LIST_KEYS = ("branches", "items", "data")


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _is_branch_container(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    for key in _BRANCH_FIELDS:
        if value.get(key) is not None and not isinstance(value.get(key), str):
            return False
    nested = value.get("branch")
    if nested is None:
        return True
    if not isinstance(nested, dict):
        return False
    return all(
        nested.get(key) is None or isinstance(nested.get(key), str)
        for key in _BRANCH_FIELDS
    )


def _extract_branch_containers(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return [item for item in payload if _is_branch_container(item)]
    if not isinstance(payload, dict):
        return []
    for key in _LIST_KEYS:
        candidates = payload.get(key)
        if isinstance(candidates, list):
            return [item for item in candidates if _is_branch_container(item)]
    return []


def normalize_branch(container: Dict[str, Any]) -> Optional[Branch]:
    """Flatten one branch entry; entries without an id are dropped."""
    nested = container.get("branch") or {}

    def pick(key: str) -> Optional[str]:
        return _optional_str(container.get(key)) or _optional_str(nested.get(key))

    branch_id = pick("id")
    if branch_id is None:
        return None
    return Branch(
        id=branch_id,
        name=pick("name"),
        parent_id=pick("parent_id"),
        created_at=pick("created_at"),
    )


def normalize_branches(payload: Any) -> List[Branch]:
    branches = []
    for container in _extract_branch_containers(payload):
        branch = normalize_branch(container)
        if branch is not None:
            branches.append(branch)
    return branches


def operation_ids(payload: Any) -> List[str]:
    """Collect non-empty operation ids from ``{"operations": [...]}``."""
    if not isinstance(payload, dict):
        return []
    ids = []
    for op in payload.get("operations") or []:
        if isinstance(op, dict):
            op_id = _optional_str(op.get("id"))
            if op_id:
                ids.append(op_id)
    return ids


def normalize_snapshot(payload: Any, service: str = "neon") -> Snapshot:
    if not isinstance(payload, dict):
        raise ExternalServiceError(service, "create snapshot", "unexpected response shape")
    nested = payload.get("snapshot") if isinstance(payload.get("snapshot"), dict) else {}
    snapshot_id = _optional_str(nested.get("id")) or _optional_str(payload.get("id"))
    if snapshot_id is None:
        raise ExternalServiceError(service, "create snapshot", "snapshot id missing in response")
    return Snapshot(id=snapshot_id, operation_ids=operation_ids(payload))


def normalize_operation_status(payload: Any, operation_id: str, service: str = "neon") -> OperationStatus:
    raw = None
    if isinstance(payload, dict):
        operation = payload.get("operation")
        if isinstance(operation, dict):
            raw = operation.get("status")
        if raw is None:
            raw = payload.get("status")
    if not raw:
        raise ExternalServiceError(
            service, "get operation", f"status missing for operation {operation_id}"
        )
    try:
        return OperationStatus(raw)
    except ValueError:
        raise ExternalServiceError(
            service, "get operation", f"unknown status '{raw}' for operation {operation_id}"
        ) from None


def normalize_created_database(payload: Any, service: str = "neon") -> ProvisionedDatabase:
    if not isinstance(payload, dict):
        raise ExternalServiceError(service, "create project", "unexpected response shape")
    project = payload.get("project") if isinstance(payload.get("project"), dict) else {}
    database_ref = _optional_str(project.get("id")) or _optional_str(payload.get("id"))
    if database_ref is None:
        raise ExternalServiceError(service, "create project", "project id missing in response")

    connection_uri = None
    for entry in payload.get("connection_uris") or []:
        if isinstance(entry, dict):
            connection_uri = _optional_str(entry.get("connection_uri"))
            if connection_uri:
                break
    if connection_uri is None:
        raise ExternalServiceError(service, "create project", "connection uri missing in response")

    return ProvisionedDatabase(
        database_ref=database_ref,
        connection_uri=connection_uri,
        operation_ids=operation_ids(payload),
    )


def normalize_connection_uri(payload: Any, service: str = "neon") -> str:
    uri = _optional_str(payload.get("uri")) if isinstance(payload, dict) else None
    if uri is None:
        raise ExternalServiceError(service, "get connection uri", "uri missing in response")
    return uri


def normalize_auth_keys(payload: Any, service: str = "neon") -> AuthProviderKeys:
    data = payload if isinstance(payload, dict) else {}
    project_id = _optional_str(data.get("auth_provider_project_id"))
    publishable = _optional_str(data.get("pub_client_key"))
    server_key = _optional_str(data.get("secret_server_key"))
    if not (project_id and publishable and server_key):
        raise ExternalServiceError(service, "init auth", "auth provider keys missing in response")
    return AuthProviderKeys(
        project_id=project_id,
        publishable_client_key=publishable,
        secret_server_key=server_key,
    )


def latest_commit_sha(payload: Any, service: str = "freestyle") -> str:
    """Head commit of a ``{"commits": [{"sha": ...}, ...]}`` listing."""
    commits = payload.get("commits") if isinstance(payload, dict) else None
    if not commits:
        raise ExternalServiceError(service, "get latest revision", "no commits found in repository")
    first = commits[0] if isinstance(commits[0], dict) else {}
    sha = _optional_str(first.get("sha"))
    if sha is None:
        raise ExternalServiceError(service, "get latest revision", "commit sha missing in response")
    return sha
