"""Project lifecycle routes."""

from fastapi import APIRouter, Depends

from ..app import load_project, require_app, result_or_raise, verify_api_key
from ..models import ProjectCreateRequest

router = APIRouter()


@router.get("/api/projects", dependencies=[Depends(verify_api_key)])
async def list_projects(owner_id: str = "default"):
    """List projects of an owner, newest first."""
    app = require_app()
    projects = await app.list_projects(owner_id)
    return [p.to_dict() for p in projects]


@router.post("/api/projects", dependencies=[Depends(verify_api_key)])
async def create_project(req: ProjectCreateRequest):
    """Provision a project and its initial version."""
    app = require_app()
    return result_or_raise(await app.create_project(req.name, req.owner_id))


@router.get("/api/projects/{project_id}", dependencies=[Depends(verify_api_key)])
async def get_project(project_id: str):
    app = require_app()
    project = await load_project(app, project_id)
    return project.to_dict()


@router.delete("/api/projects/{project_id}", dependencies=[Depends(verify_api_key)])
async def delete_project(project_id: str):
    """Delete a project; teardown failures are reported as warnings."""
    app = require_app()
    project = await load_project(app, project_id)
    result = await app.delete_project(project)
    body = result_or_raise(result)
    body["deleted"] = True
    return body


@router.post("/api/projects/{project_id}/initialize", dependencies=[Depends(verify_api_key)])
async def initialize_project(project_id: str):
    """Create the initial version unless the project already has one."""
    app = require_app()
    project = await load_project(app, project_id)
    return result_or_raise(await app.initialize_project(project))
