"""Primary database branch resolution."""

import logging
from typing import List, Sequence

from ..constants import PRIMARY_BRANCH_NAMES
from ..errors import ExternalServiceError
from ..models import Branch
from ..protocols import DatabaseService

logger = logging.getLogger(__name__)


def resolve_primary_branch(branches: Sequence[Branch], service: str = "neon") -> Branch:
    """
    Pick the primary branch: ``main``, else ``production``, else the
    branch without a parent.
    """
    for name in PRIMARY_BRANCH_NAMES:
        for branch in branches:
            if branch.name == name:
                return branch
    for branch in branches:
        if not branch.parent_id:
            return branch
    names: List[str] = [b.name or b.id for b in branches]
    raise ExternalServiceError(
        service, "resolve primary branch", f"no primary branch among {names}"
    )


async def fetch_primary_branch(database: DatabaseService, database_ref: str) -> Branch:
    branches = await database.list_branches(database_ref)
    branch = resolve_primary_branch(branches)
    logger.debug(f"Primary branch of {database_ref}: {branch.id} ({branch.name})")
    return branch
