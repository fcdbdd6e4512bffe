"""
Assistant Cloud thread client - one conversation thread per project.

Only used at project boundaries: a thread is created with the project and
deleted with it.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

import httpx

from ..errors import ExternalServiceError
from .base import BaseProviderClient

logger = logging.getLogger(__name__)

BASE_URL = "https://backend.assistant-api.com/v1"


class AssistantThreadClient(BaseProviderClient):
    """Async Assistant Cloud threads client (workspace per owner)."""

    SERVICE_NAME = "assistant-cloud"

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url, timeout=timeout, transport=transport)

    @staticmethod
    def _owner_headers(owner_id: str) -> Dict[str, str]:
        return {"Aui-User-Id": owner_id, "Aui-Workspace-Id": owner_id}

    async def create_thread(self, owner_id: str, label: str) -> str:
        payload = await self._request(
            "POST",
            "/threads",
            "create thread",
            json={
                "last_message_at": datetime.now(timezone.utc).isoformat(),
                "metadata": {"projectName": label},
            },
            extra_headers=self._owner_headers(owner_id),
        )
        thread_id = payload.get("thread_id") if isinstance(payload, dict) else None
        if not thread_id:
            raise ExternalServiceError(self.SERVICE_NAME, "create thread", "thread_id missing in response")
        logger.info(f"Thread created for '{label}': {thread_id}")
        return thread_id

    async def delete_thread(self, owner_id: str, thread_id: str) -> None:
        await self._request(
            "DELETE",
            f"/threads/{thread_id}",
            "delete thread",
            extra_headers=self._owner_headers(owner_id),
        )
        logger.info(f"Thread deleted: {thread_id}")
