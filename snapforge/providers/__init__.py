"""
Snapforge Providers - httpx clients for the external collaborators

- NeonClient: database provisioning, branches, snapshots, operations
- FreestyleClient: hosted git repositories and dev servers
- AssistantThreadClient: conversation threads
- wait_for_operations_to_settle: the single polling primitive
- resolve_primary_branch: main, production, then the parentless branch
"""

from .branches import fetch_primary_branch, resolve_primary_branch
from .freestyle import FreestyleClient
from .neon import NeonClient
from .operations import WaiterOptions, wait_for_operations_to_settle, wait_with_options
from .threads import AssistantThreadClient

__all__ = [
    "FreestyleClient",
    "NeonClient",
    "AssistantThreadClient",
    "WaiterOptions",
    "wait_for_operations_to_settle",
    "wait_with_options",
    "fetch_primary_branch",
    "resolve_primary_branch",
]
