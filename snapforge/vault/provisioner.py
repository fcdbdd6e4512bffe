"""
Fresh secrets bundle synthesis.

Builds the environment a project's code needs to reach its database:
the connection string of the primary branch and, when enabled, the keys
of the auth provider integrated with the database project.
"""

import logging
from typing import Dict

from ..constants import (
    SECRET_AUTH_PROJECT_ID,
    SECRET_AUTH_PUBLISHABLE_KEY,
    SECRET_AUTH_SERVER_KEY,
    SECRET_DATABASE_URL,
)
from ..models import Project
from ..protocols import DatabaseService
from ..providers.branches import fetch_primary_branch

logger = logging.getLogger(__name__)


class SecretsProvisioner:
    """Synthesizes a new bundle from live provider state."""

    def __init__(self, database: DatabaseService, auth_enabled: bool = True):
        self._database = database
        self._auth_enabled = auth_enabled

    async def build(self, project: Project) -> Dict[str, str]:
        branch = await fetch_primary_branch(self._database, project.database_ref)
        values = {
            SECRET_DATABASE_URL: await self._database.get_connection_uri(
                project.database_ref, branch_id=branch.id
            ),
        }
        if self._auth_enabled:
            keys = await self._database.init_auth(project.database_ref, branch.id)
            values[SECRET_AUTH_PROJECT_ID] = keys.project_id
            values[SECRET_AUTH_PUBLISHABLE_KEY] = keys.publishable_client_key
            values[SECRET_AUTH_SERVER_KEY] = keys.secret_server_key
        logger.info(f"Provisioned fresh secrets for project {project.id}")
        return values
