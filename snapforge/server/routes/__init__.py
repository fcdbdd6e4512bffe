"""Route registration for the Snapforge API."""

from fastapi import FastAPI

from .projects import router as projects_router
from .versions import router as versions_router


def register_routes(app: FastAPI):
    app.include_router(projects_router)
    app.include_router(versions_router)
