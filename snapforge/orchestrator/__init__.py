"""
Snapforge Orchestrator - checkpoint, restore and project lifecycle.

- CheckpointCreator: live state -> Version
- RestoreOrchestrator: Version -> live state
- LifecycleManager: provisioning and ordered teardown
- VersionOrchestrator: façade returning OrchestratorResult
"""

from .checkpoint import CheckpointCreator
from .facade import VersionOrchestrator
from .lifecycle import LifecycleManager, TeardownReport
from .restore import RestoreOrchestrator

__all__ = [
    "CheckpointCreator",
    "RestoreOrchestrator",
    "LifecycleManager",
    "TeardownReport",
    "VersionOrchestrator",
]
