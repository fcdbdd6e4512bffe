"""
Shared constants for Snapforge.

Centralizes values needed by the orchestrator, the providers and the
server so they are defined once.
"""

from typing import Tuple

# ── Version summaries ──

INITIAL_SUMMARY = "initial"
MANUAL_CHECKPOINT_SUMMARY = "Manual checkpoint"

# ── Waiter defaults (seconds) ──

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_OPERATION_TIMEOUT = 5 * 60.0

# Deadline for "warm up a session" calls against the code host
DEFAULT_SESSION_TIMEOUT = 45.0

# ── Database branches ──

# Primary branch lookup order; a branch without a parent is the last resort
PRIMARY_BRANCH_NAMES: Tuple[str, ...] = ("main", "production")

DEFAULT_DATABASE_NAME = "neondb"
DEFAULT_ROLE_NAME = "neondb_owner"

# ── Code host ──

DEFAULT_TRACKED_BRANCH = "main"
DEFAULT_TEMPLATE_URL = "https://github.com/andrelandgraf/neon-freestyle-template"

# ── Restorable resources ──
# Names used in PartialRestoreFailure.restored / .failed

RESOURCE_CODE = "code"
RESOURCE_DATABASE = "database"
RESOURCE_POINTER = "version_pointer"

# ── Teardown resources ──

RESOURCE_REPOSITORY = "repository"
RESOURCE_THREAD = "thread"
RESOURCE_SNAPSHOT = "snapshot"

# ── Secret bundle keys ──

SECRET_DATABASE_URL = "DATABASE_URL"
SECRET_AUTH_PROJECT_ID = "NEXT_PUBLIC_STACK_PROJECT_ID"
SECRET_AUTH_PUBLISHABLE_KEY = "NEXT_PUBLIC_STACK_PUBLISHABLE_CLIENT_KEY"
SECRET_AUTH_SERVER_KEY = "STACK_SECRET_SERVER_KEY"
