"""Checkpoint and restore routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..app import load_project, require_app, result_or_raise, verify_api_key
from ..models import CheckpointRequest

router = APIRouter()


@router.post("/api/projects/{project_id}/checkpoint", dependencies=[Depends(verify_api_key)])
async def checkpoint(project_id: str, req: Optional[CheckpointRequest] = None):
    """Checkpoint the live state of a project."""
    req = req or CheckpointRequest()
    app = require_app()
    project = await load_project(app, project_id)
    result = await app.checkpoint(project, req.summary, req.triggering_message_id)
    return result_or_raise(result)


@router.get("/api/projects/{project_id}/versions", dependencies=[Depends(verify_api_key)])
async def list_versions(project_id: str):
    """Versions newest first, with restorable and current flags."""
    app = require_app()
    project = await load_project(app, project_id)
    listings = await app.list_versions(project)
    return [listing.to_dict() for listing in listings]


@router.post(
    "/api/projects/{project_id}/versions/{version_id}/restore",
    dependencies=[Depends(verify_api_key)],
)
async def restore(project_id: str, version_id: str):
    """Restore code and database to a version."""
    app = require_app()
    project = await load_project(app, project_id)
    return result_or_raise(await app.restore(project, version_id))
