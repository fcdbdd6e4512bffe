"""FastAPI app creation, CORS, global state, and helper functions."""

import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader

from ..app import Snapforge
from ..errors import (
    ConfigError,
    InternalError,
    OperationTimeout,
    ProjectNotFound,
    ProjectNotInitialized,
    VersionCorrupt,
    VersionNotFound,
)
from ..models import Project
from ..result import OrchestratorResult

logger = logging.getLogger(__name__)

_config_path = os.getenv("SNAPFORGE_CONFIG", "config.yaml")

_app: Optional[Snapforge] = None


def _try_load_app():
    """Attempt to load Snapforge from config. Logs and stays unconfigured on failure."""
    global _app
    if not os.path.exists(_config_path):
        logger.warning(f"Config not found: {_config_path}")
        return
    try:
        _app = Snapforge(_config_path)
        logger.info(f"Snapforge loaded from {_config_path}")
    except (ConfigError, OSError) as e:
        logger.warning(f"Failed to load config: {e}")
        _app = None


def require_app() -> Snapforge:
    """Raise 503 if app is not configured. Lazy-loads on first call."""
    global _app
    if _app is None:
        _try_load_app()
    if _app is None:
        raise HTTPException(503, "Not configured. Provide a valid config file.")
    return _app


def set_app(new_app: Optional[Snapforge]):
    """Set the global _app instance (tests and embedding applications)."""
    global _app
    _app = new_app


def get_app_instance() -> Optional[Snapforge]:
    return _app


# ── Optional API key authentication ──

_API_KEY = os.getenv("SNAPFORGE_API_KEY")
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    request: Request,
    api_key_header_value: Optional[str] = Security(_api_key_header),
):
    """Verify API key from Authorization: Bearer <key> or X-API-Key header.

    When SNAPFORGE_API_KEY is not set, all requests are allowed (dev mode).
    """
    if _API_KEY is None:
        return None

    if api_key_header_value and api_key_header_value == _API_KEY:
        return api_key_header_value

    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        if token == _API_KEY:
            return token

    raise HTTPException(401, "Invalid or missing API key")


# ── Result helpers ──

def status_for_error(error: Exception) -> int:
    """HTTP status for a failed orchestrator result."""
    if isinstance(error, (ProjectNotFound, VersionNotFound)):
        return 404
    if isinstance(error, (VersionCorrupt, ProjectNotInitialized)):
        return 409
    if isinstance(error, OperationTimeout):
        return 504
    if isinstance(error, InternalError):
        return 500
    return 502


def result_or_raise(result: OrchestratorResult) -> dict:
    """Return the result as JSON, or raise an HTTPException carrying it."""
    if result.success:
        return result.to_dict()
    raise HTTPException(status_for_error(result.error), detail=result.to_dict())


async def load_project(app: Snapforge, project_id: str) -> Project:
    project = await app.get_project(project_id)
    if project is None:
        raise HTTPException(404, f"Project not found: {project_id}")
    return project


# --- FastAPI app creation (after all helpers are defined to avoid circular imports) ---

def _create_api() -> FastAPI:
    """Create and configure the FastAPI app with routes."""
    _api = FastAPI(title="Snapforge", version="0.1.0")

    allowed_origins_str = os.getenv(
        "SNAPFORGE_ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:5173",
    )
    allowed_origins = [o.strip() for o in allowed_origins_str.split(",") if o.strip()]
    _api.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if _API_KEY is None:
        logger.warning(
            "SNAPFORGE_API_KEY is not set. API endpoints are unauthenticated. "
            "Set SNAPFORGE_API_KEY environment variable to enable authentication."
        )

    from .routes import register_routes
    register_routes(_api)
    return _api


api = _create_api()
