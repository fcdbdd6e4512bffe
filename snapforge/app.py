"""
Snapforge Application - Single entry point for versioned projects.

Usage:
    from snapforge import Snapforge

    app = Snapforge("config.yaml")

    result = await app.create_project("demo", owner_id="user1")
    project = result.project

    result = await app.checkpoint(project, "added homepage")
    result = await app.restore(project, result.version_id)
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional

import yaml

from .constants import DEFAULT_SESSION_TIMEOUT, MANUAL_CHECKPOINT_SUMMARY
from .errors import ConfigError, PartialRestoreFailure
from .models import Project, VersionListing
from .orchestrator import (
    CheckpointCreator,
    LifecycleManager,
    RestoreOrchestrator,
    VersionOrchestrator,
)
from .protocols import CipherProtocol, CodeRevisionService, ConversationThreadService, DatabaseService
from .providers import WaiterOptions
from .result import OrchestratorResult
from .store.base import VersionRepository
from .vault import SecretsCipher, SecretsProvisioner, SecretsStore

logger = logging.getLogger(__name__)

MEMORY_DATABASE = "memory://"


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


def _require(cfg: dict, dotted: str) -> Any:
    value: Any = cfg
    for part in dotted.split("."):
        value = value.get(part) if isinstance(value, dict) else None
    if value in (None, ""):
        raise ConfigError(f"Missing required config field: '{dotted}'")
    return value


def build_orchestrator(
    repository: VersionRepository,
    code: CodeRevisionService,
    database: DatabaseService,
    cipher: CipherProtocol,
    threads: Optional[ConversationThreadService] = None,
    waiter: Optional[WaiterOptions] = None,
    session_timeout: float = DEFAULT_SESSION_TIMEOUT,
    auth_enabled: bool = True,
    warm_up: bool = True,
) -> VersionOrchestrator:
    """Wire the orchestrator components around injected collaborators."""
    waiter = waiter or WaiterOptions()
    secrets = SecretsStore(repository, cipher)
    provisioner = SecretsProvisioner(database, auth_enabled=auth_enabled)
    checkpoints = CheckpointCreator(
        code, database, repository, secrets, provisioner, waiter=waiter
    )
    restorer = RestoreOrchestrator(
        code, database, repository, secrets, waiter=waiter, session_timeout=session_timeout
    )
    lifecycle = LifecycleManager(
        code,
        database,
        repository,
        secrets,
        checkpoints,
        threads=threads,
        waiter=waiter,
        session_timeout=session_timeout,
        warm_up=warm_up,
    )
    return VersionOrchestrator(repository, checkpoints, restorer, lifecycle)


class Snapforge:
    """
    Snapforge Application entry point.

    Sync constructor reads and validates config; the connection pool,
    schema and provider clients are created on the first operation.

    Args:
        config: Path to YAML configuration file.
    """

    def __init__(self, config: str):
        self._config = _load_config(config)
        self._initialized = False

        cfg = self._config
        _require(cfg, "database")
        _require(cfg, "neon.api_key")
        _require(cfg, "freestyle.api_key")
        self._cipher = SecretsCipher(str(_require(cfg, "encryption_key")))

        # Will be set during lazy initialization
        self._database = None
        self._repository: Optional[VersionRepository] = None
        self._orchestrator: Optional[VersionOrchestrator] = None

    async def _ensure_initialized(self) -> None:
        """Lazy initialization, runs once on first operation."""
        if self._initialized:
            return

        cfg = self._config

        # 1. Version repository
        if cfg["database"] == MEMORY_DATABASE:
            from .store import MemoryVersionRepository
            self._repository = MemoryVersionRepository()
            logger.warning("Using in-memory repository; versions are lost on restart")
        else:
            from .db import Database, ensure_schema
            from .store import PostgresVersionRepository
            self._database = Database(dsn=cfg["database"])
            await self._database.initialize()
            await ensure_schema(self._database)
            self._repository = PostgresVersionRepository(self._database)

        # 2. Provider clients
        from .providers import AssistantThreadClient, FreestyleClient, NeonClient

        neon_cfg = cfg["neon"]
        neon_kwargs = {k: neon_cfg[k] for k in ("base_url", "database_name", "role_name") if neon_cfg.get(k)}
        database = NeonClient(api_key=neon_cfg["api_key"], **neon_kwargs)

        freestyle_cfg = cfg["freestyle"]
        freestyle_kwargs = {k: freestyle_cfg[k] for k in ("base_url", "template_url", "branch") if freestyle_cfg.get(k)}
        code = FreestyleClient(api_key=freestyle_cfg["api_key"], **freestyle_kwargs)

        threads = None
        threads_cfg = cfg.get("threads") or {}
        if threads_cfg.get("api_key"):
            threads_kwargs = {"base_url": threads_cfg["base_url"]} if threads_cfg.get("base_url") else {}
            threads = AssistantThreadClient(api_key=threads_cfg["api_key"], **threads_kwargs)
        else:
            logger.info("threads.api_key not set; conversation threads are not provisioned")

        # 3. Orchestrator
        waiter_cfg = cfg.get("waiter") or {}
        waiter = WaiterOptions(
            poll_interval=float(waiter_cfg.get("poll_interval", WaiterOptions.poll_interval)),
            timeout=float(waiter_cfg.get("timeout", WaiterOptions.timeout)),
        )
        self._orchestrator = build_orchestrator(
            self._repository,
            code,
            database,
            self._cipher,
            threads=threads,
            waiter=waiter,
            session_timeout=float(cfg.get("session_timeout", DEFAULT_SESSION_TIMEOUT)),
            auth_enabled=bool((cfg.get("auth") or {}).get("enabled", True)),
        )

        self._initialized = True
        logger.info("Snapforge initialized")

    @property
    def config(self) -> dict:
        """Return a copy of the raw configuration dict."""
        return dict(self._config)

    async def shutdown(self) -> None:
        """Wait for in-flight operations, then close the connection pool."""
        if not self._initialized:
            return
        try:
            if self._orchestrator:
                await self._orchestrator.wait_idle()
            if self._database:
                await self._database.close()
        finally:
            self._initialized = False
            self._database = None
            self._repository = None
            self._orchestrator = None
            logger.info("Snapforge shut down")

    # ── Projects ──

    async def create_project(self, name: str, owner_id: str = "default") -> OrchestratorResult:
        await self._ensure_initialized()
        return await self._orchestrator.create_project(name, owner_id)

    async def delete_project(self, project: Project) -> OrchestratorResult:
        await self._ensure_initialized()
        return await self._orchestrator.delete_project(project)

    async def get_project(self, project_id: str) -> Optional[Project]:
        await self._ensure_initialized()
        return await self._orchestrator.get_project(project_id)

    async def list_projects(self, owner_id: str = "default") -> List[Project]:
        await self._ensure_initialized()
        return await self._orchestrator.list_projects(owner_id)

    # ── Versions ──

    async def initialize_project(self, project: Project) -> OrchestratorResult:
        await self._ensure_initialized()
        return await self._orchestrator.initialize_project(project)

    async def checkpoint(
        self,
        project: Project,
        summary: str = MANUAL_CHECKPOINT_SUMMARY,
        triggering_message_id: Optional[str] = None,
    ) -> OrchestratorResult:
        await self._ensure_initialized()
        return await self._orchestrator.checkpoint(project, summary, triggering_message_id)

    async def restore(self, project: Project, version_id: str) -> OrchestratorResult:
        await self._ensure_initialized()
        return await self._orchestrator.restore(project, version_id)

    async def resume_restore(self, project: Project, failure: PartialRestoreFailure) -> OrchestratorResult:
        await self._ensure_initialized()
        return await self._orchestrator.resume_restore(project, failure)

    async def list_versions(self, project: Project) -> List[VersionListing]:
        await self._ensure_initialized()
        return await self._orchestrator.list_versions(project)


def mask_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Config with secrets masked for display."""

    def _mask(value: Any) -> str:
        value = str(value or "")
        if len(value) > 8:
            return value[:4] + "..." + value[-4:]
        return "****" if value else ""

    masked: Dict[str, Any] = {}
    for key, value in cfg.items():
        if isinstance(value, dict):
            masked[key] = mask_config(value)
        elif key in ("api_key", "encryption_key"):
            masked[key] = _mask(value)
        elif key == "database" and isinstance(value, str) and "@" in value:
            masked[key] = re.sub(r"//([^:/@]+):[^@]*@", r"//\1:****@", value)
        else:
            masked[key] = value
    return masked
