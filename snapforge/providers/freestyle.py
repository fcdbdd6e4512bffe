"""
Freestyle API Client - hosted git repositories and dev servers.

Implements the CodeRevisionService protocol. Revisions are read through the
git API; resets run inside the repository's dev server (``git reset --hard``
followed by ``git push --force``), which is destructive for every commit
after the target revision.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from ..constants import DEFAULT_TEMPLATE_URL, DEFAULT_TRACKED_BRANCH
from ..errors import ExternalServiceError
from ..models import DevServer
from . import normalize
from .base import BaseProviderClient

logger = logging.getLogger(__name__)

BASE_URL = "https://api.freestyle.sh"
ENV_FILE_PATH = "/template/.env"

_REVISION_RE = re.compile(r"^[0-9a-fA-F]{7,64}$")


def render_env_file(environment: Dict[str, str]) -> str:
    """Render KEY=value lines in insertion order."""
    return "\n".join(f"{key}={value}" for key, value in environment.items())


class FreestyleClient(BaseProviderClient):
    """Async Freestyle REST API client."""

    SERVICE_NAME = "freestyle"

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        template_url: str = DEFAULT_TEMPLATE_URL,
        branch: str = DEFAULT_TRACKED_BRANCH,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url, timeout=timeout, transport=transport)
        self.template_url = template_url
        self.branch = branch

    # ── Repositories ──

    async def create_repository(self, name: str) -> str:
        logger.info(f"Creating repository '{name}' from {self.template_url}")
        payload = await self._request(
            "POST",
            "/git/v1/repo",
            "create repository",
            json={
                "name": name,
                "public": True,
                "source": {"url": self.template_url, "type": "git"},
                "devServers": {"preset": "nextJs"},
            },
        )
        repo_id = payload.get("repoId") if isinstance(payload, dict) else None
        if not repo_id:
            raise ExternalServiceError(self.SERVICE_NAME, "create repository", "repoId missing in response")
        logger.info(f"Repository created: {repo_id}")
        return repo_id

    async def delete_repository(self, repo_ref: str) -> None:
        logger.info(f"Deleting repository: {repo_ref}")
        await self._request("DELETE", f"/git/v1/repo/{repo_ref}", "delete repository")

    # ── Revisions ──

    async def get_commits(
        self,
        repo_ref: str,
        branch: Optional[str] = None,
        limit: int = 1,
        offset: int = 0,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit}
        if branch:
            params["branch"] = branch
        if offset:
            params["offset"] = offset
        return await self._request(
            "GET",
            f"/git/v1/repo/{repo_ref}/git/commits",
            "get latest revision",
            params=params,
        )

    async def get_latest_revision(self, repo_ref: str) -> str:
        payload = await self.get_commits(repo_ref, branch=self.branch, limit=1)
        sha = normalize.latest_commit_sha(payload)
        logger.info(f"Latest revision of {repo_ref}: {sha}")
        return sha

    async def reset_to_revision(self, repo_ref: str, revision: str) -> None:
        if not _REVISION_RE.match(revision):
            raise ExternalServiceError(
                self.SERVICE_NAME, "reset to revision", f"not a commit hash: {revision!r}"
            )
        logger.info(f"Resetting {repo_ref} to {revision}")
        await self.exec(repo_ref, f"git reset --hard {revision}", action="reset to revision")
        await self.exec(repo_ref, f"git push --force origin {self.branch}", action="force push")
        logger.info(f"{repo_ref}/{self.branch} now at {revision}")

    # ── Dev servers ──

    async def request_dev_server(
        self, repo_ref: str, environment: Optional[Dict[str, str]] = None
    ) -> DevServer:
        """
        Start (or reuse) the dev server and sync its .env file.

        The file is rewritten only when its content changed, to avoid an
        unnecessary reload of the running app.
        """
        payload = await self._request(
            "POST",
            "/ephemeral/v1/dev-servers",
            "request dev server",
            json={"devServer": {"repoId": repo_ref}},
        )
        data = payload if isinstance(payload, dict) else {}
        server = DevServer(
            repo_ref=repo_ref,
            url=data.get("ephemeralUrl"),
            is_new=bool(data.get("isNew", False)),
        )

        if environment:
            content = render_env_file(environment)
            existing = await self.read_file(repo_ref, ENV_FILE_PATH)
            if existing != content:
                await self.write_file(repo_ref, ENV_FILE_PATH, content)
                logger.info(f"Wrote {len(environment)} environment variable(s) to {ENV_FILE_PATH}")
            else:
                logger.debug("Environment unchanged, skipping .env update")
        return server

    async def exec(self, repo_ref: str, command: str, action: str = "exec") -> List[str]:
        """Run a shell command in the dev server, return stdout lines."""
        payload = await self._request(
            "POST",
            "/ephemeral/v1/dev-servers/exec",
            action,
            json={"devServer": {"repoId": repo_ref}, "command": command, "background": False},
        )
        data = payload if isinstance(payload, dict) else {}
        stderr = data.get("stderr") or []
        exit_code = data.get("exitCode")
        if exit_code not in (None, 0):
            raise ExternalServiceError(
                self.SERVICE_NAME, action, f"`{command}` exited with {exit_code}: {' '.join(stderr)}"
            )
        if stderr:
            # git reports progress on stderr
            logger.warning(f"`{command}` stderr: {' '.join(stderr)}")
        return data.get("stdout") or []

    async def read_file(self, repo_ref: str, path: str) -> Optional[str]:
        try:
            payload = await self._request(
                "GET",
                f"/ephemeral/v1/dev-servers/files{path}",
                "read file",
                params={"repoId": repo_ref, "encoding": "utf-8"},
            )
        except ExternalServiceError as e:
            if e.status_code == 404:
                return None
            raise
        if isinstance(payload, dict):
            return payload.get("content")
        return None

    async def write_file(self, repo_ref: str, path: str, content: str) -> None:
        await self._request(
            "PUT",
            f"/ephemeral/v1/dev-servers/files{path}",
            "write file",
            json={"devServer": {"repoId": repo_ref}, "content": content, "encoding": "utf-8"},
        )
