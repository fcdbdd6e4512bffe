"""
Neon API Client - database provisioning, branches, snapshots and operations.

Implements the DatabaseService protocol against the Neon v2 REST API.
Mutating calls that start control-plane work return operation ids; callers
wait for them with ``wait_for_operations_to_settle``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..constants import DEFAULT_DATABASE_NAME, DEFAULT_ROLE_NAME
from ..models import AuthProviderKeys, Branch, OperationStatus, ProvisionedDatabase, Snapshot
from . import normalize
from .base import BaseProviderClient

logger = logging.getLogger(__name__)

BASE_URL = "https://console.neon.tech/api/v2"


class NeonClient(BaseProviderClient):
    """Async Neon REST API client."""

    SERVICE_NAME = "neon"

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        database_name: str = DEFAULT_DATABASE_NAME,
        role_name: str = DEFAULT_ROLE_NAME,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url, timeout=timeout, transport=transport)
        self.database_name = database_name
        self.role_name = role_name

    # ── Projects ──

    async def create_database(self, name: str) -> ProvisionedDatabase:
        """Create a Neon project. Pending operations are returned, not awaited."""
        logger.info(f"Creating Neon project: {name}")
        payload = await self._request(
            "POST", "/projects", "create project",
            json={"project": {"name": name}},
        )
        provisioned = normalize.normalize_created_database(payload)
        logger.info(
            f"Neon project created: {provisioned.database_ref} "
            f"({len(provisioned.operation_ids)} pending operation(s))"
        )
        return provisioned

    async def delete_database(self, database_ref: str) -> None:
        logger.info(f"Deleting Neon project: {database_ref}")
        await self._request("DELETE", f"/projects/{database_ref}", "delete project")

    # ── Branches ──

    async def list_branches(self, database_ref: str) -> List[Branch]:
        payload = await self._request(
            "GET", f"/projects/{database_ref}/branches", "list branches"
        )
        branches = normalize.normalize_branches(payload)
        logger.debug(f"Branches of {database_ref}: {[b.name or b.id for b in branches]}")
        return branches

    # ── Snapshots ──

    async def create_snapshot(
        self,
        database_ref: str,
        branch_id: str,
        name: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> Snapshot:
        body: Dict[str, Any] = {
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
        }
        if name:
            body["name"] = name
        payload = await self._request(
            "POST",
            f"/projects/{database_ref}/branches/{branch_id}/snapshot",
            "create snapshot",
            json=body,
        )
        snapshot = normalize.normalize_snapshot(payload)
        logger.info(f"Snapshot created: {snapshot.id} (branch {branch_id})")
        return snapshot

    async def restore_snapshot(
        self, database_ref: str, snapshot_id: str, target_branch_id: str
    ) -> List[str]:
        """
        One-step restore with finalize, so computes move to the restored
        timeline and existing connection strings keep working.

        Returns the started operations (typically timeline_unarchive,
        create_branch and suspend_compute).
        """
        logger.info(f"Restoring snapshot {snapshot_id} onto branch {target_branch_id}")
        payload = await self._request(
            "POST",
            f"/projects/{database_ref}/snapshots/{snapshot_id}/restore",
            "restore snapshot",
            json={
                "name": f"restored_{int(datetime.now(timezone.utc).timestamp() * 1000)}",
                "finalize_restore": True,
                "target_branch_id": target_branch_id,
            },
        )
        ops = normalize.operation_ids(payload)
        if not ops:
            logger.info("No operations returned from restore response")
        return ops

    # ── Operations ──

    async def get_operation_status(
        self, database_ref: str, operation_id: str
    ) -> OperationStatus:
        payload = await self._request(
            "GET",
            f"/projects/{database_ref}/operations/{operation_id}",
            "get operation",
        )
        return normalize.normalize_operation_status(payload, operation_id)

    # ── Connection ──

    async def get_connection_uri(
        self,
        database_ref: str,
        branch_id: Optional[str] = None,
        database_name: Optional[str] = None,
        role_name: Optional[str] = None,
        pooled: Optional[bool] = None,
    ) -> str:
        params: Dict[str, Any] = {
            "database_name": database_name or self.database_name,
            "role_name": role_name or self.role_name,
        }
        if branch_id:
            params["branch_id"] = branch_id
        if pooled is not None:
            params["pooled"] = "true" if pooled else "false"
        payload = await self._request(
            "GET",
            f"/projects/{database_ref}/connection_uri",
            "get connection uri",
            params=params,
        )
        return normalize.normalize_connection_uri(payload)

    # ── Auth ──

    async def init_auth(self, database_ref: str, branch_id: str) -> AuthProviderKeys:
        """Enable the Stack Auth integration of the project."""
        logger.info(f"Initializing auth provider for {database_ref}")
        payload = await self._request(
            "POST",
            "/projects/auth/create",
            "init auth",
            json={
                "auth_provider": "stack",
                "project_id": database_ref,
                "branch_id": branch_id,
                "database_name": self.database_name,
                "role_name": self.role_name,
            },
        )
        return normalize.normalize_auth_keys(payload)
