"""
Snapforge Repository - Base class for table-backed data access.

Subclasses name the table they own and add domain-specific queries on top
of the generic helpers below.

Usage:
    class VersionRows(Repository):
        TABLE_NAME = "project_versions"

        async def for_project(self, project_id: str) -> list[dict]:
            return await self._fetch_many("project_id = $1", (project_id,))
"""

import logging
from typing import Any, Dict, List, Optional

from .database import Database

logger = logging.getLogger(__name__)


class Repository:
    """
    Base class for domain data access.

    Subclasses define TABLE_NAME and domain methods.
    """

    TABLE_NAME: str = ""

    def __init__(self, db: Database):
        self._db = db

    @property
    def db(self) -> Database:
        return self._db

    # -- Generic helpers (subclasses can use or ignore) --

    async def _fetch_one(
        self,
        where: str,
        args: tuple = (),
    ) -> Optional[Dict[str, Any]]:
        """Fetch the first row matching WHERE."""
        row = await self._db.fetchrow(
            f"SELECT * FROM {self.TABLE_NAME} WHERE {where} LIMIT 1", *args
        )
        return dict(row) if row else None

    async def _fetch_many(
        self,
        where: str = "",
        args: tuple = (),
        order_by: str = "",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch multiple rows with optional WHERE, ORDER BY, LIMIT."""
        query = f"SELECT * FROM {self.TABLE_NAME}"
        if where:
            query += f" WHERE {where}"
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit:
            query += f" LIMIT {limit}"

        rows = await self._db.fetch(query, *args)
        return [dict(r) for r in rows]

    @staticmethod
    def _affected(status: str) -> int:
        """Row count from an asyncpg status string such as 'DELETE 3'."""
        try:
            return int(status.rsplit(" ", 1)[-1])
        except (ValueError, AttributeError):
            return 0
