"""
Snapforge - Compound checkpoints for agent-generated projects

A version of a project is not just a git commit: it binds a code revision,
a database snapshot and an encrypted bundle of environment secrets.
Snapforge captures such versions from the live state, restores the live
state to any of them, and brackets the lifetime of the external resources
a project depends on.

Key Features:
- Checkpoints that commit version, secrets and pointer atomically
- Restores that report partially moved state instead of hiding it
- Parallel provisioning with best-effort cleanup, ordered teardown
- A single poller for every asynchronous provider operation
- Typed results distinguishing "safe to retry" from "needs remediation"

Quick Start:
    from snapforge import Snapforge

    app = Snapforge("config.yaml")
    result = await app.create_project("demo", owner_id="user1")
    project = result.project

    result = await app.checkpoint(project, "added homepage")
    if not result.success and result.live_state == "partial":
        await app.resume_restore(project, result.error)
"""

__version__ = "0.1.0"

from .app import Snapforge, build_orchestrator
from .errors import (
    ConfigError,
    ExternalServiceError,
    OperationFailed,
    OperationTimeout,
    PartialRestoreFailure,
    ProjectInitializationFailed,
    ProjectNotFound,
    ProjectNotInitialized,
    ResourceLeakWarning,
    SnapforgeError,
    VersionCorrupt,
    VersionNotFound,
)
from .models import (
    Branch,
    OperationStatus,
    Project,
    SecretsBundle,
    Snapshot,
    Version,
    VersionListing,
)
from .orchestrator import (
    CheckpointCreator,
    LifecycleManager,
    RestoreOrchestrator,
    TeardownReport,
    VersionOrchestrator,
)
from .providers import WaiterOptions, wait_for_operations_to_settle
from .result import OrchestratorResult

__all__ = [
    "__version__",
    # Application
    "Snapforge",
    "build_orchestrator",
    # Orchestrator
    "VersionOrchestrator",
    "CheckpointCreator",
    "RestoreOrchestrator",
    "LifecycleManager",
    "TeardownReport",
    "OrchestratorResult",
    # Waiter
    "WaiterOptions",
    "wait_for_operations_to_settle",
    # Models
    "Project",
    "Version",
    "SecretsBundle",
    "VersionListing",
    "Branch",
    "Snapshot",
    "OperationStatus",
    # Errors
    "SnapforgeError",
    "ConfigError",
    "ExternalServiceError",
    "OperationTimeout",
    "OperationFailed",
    "ProjectNotFound",
    "ProjectNotInitialized",
    "ProjectInitializationFailed",
    "VersionNotFound",
    "VersionCorrupt",
    "PartialRestoreFailure",
    "ResourceLeakWarning",
]
