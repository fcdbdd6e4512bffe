"""
Base HTTP provider - shared request plumbing for the provider clients.

Each client is a stateless handle: a fresh ``httpx.AsyncClient`` is opened
per call, so one instance can be shared across requests. Every non-2xx
response and every transport failure is converted into
ExternalServiceError carrying the provider name and the attempted action.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import ExternalServiceError

logger = logging.getLogger(__name__)


class BaseProviderClient:
    """
    Base class for REST provider clients.

    Subclasses set SERVICE_NAME and call ``_request``.
    """

    SERVICE_NAME: str = "provider"
    DEFAULT_TIMEOUT: float = 15.0

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError(f"{self.SERVICE_NAME} api_key is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None when empty)."""
        kwargs: Dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if params:
            kwargs["params"] = params
        if timeout is not None:
            kwargs["timeout"] = timeout
        if extra_headers:
            kwargs["headers"] = extra_headers

        try:
            async with self._client() as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ExternalServiceError(self.SERVICE_NAME, action, f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(self.SERVICE_NAME, action, f"request failed: {e}") from e

        if resp.is_error:
            logger.error(f"{self.SERVICE_NAME} {action} -> {resp.status_code}: {resp.text[:500]}")
            raise ExternalServiceError(
                self.SERVICE_NAME, action, resp.text[:500], status_code=resp.status_code
            )

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ExternalServiceError(self.SERVICE_NAME, action, "response is not JSON") from e
