"""
Snapforge Result - Typed results returned by the orchestrator façade

Every façade operation returns an OrchestratorResult instead of raising, so
the surrounding application can tell "nothing changed" from "partially
changed" without inspecting exception types.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import LIVE_STATE_UNCHANGED, ResourceLeakWarning, SnapforgeError
from .models import Project


@dataclass
class OrchestratorResult:
    """
    Outcome of a façade operation.

    Attributes:
        success: True when the operation completed
        version_id: Resulting Version id (checkpoint, restore, initialize)
        project: Resulting Project (create) when available
        error: Typed error when success is False
        warnings: Non-fatal leak warnings collected along the way

    Example:
        result = await orchestrator.restore(project, version_id)
        if not result.success and result.live_state == "partial":
            await orchestrator.resume_restore(project, result.error)
    """
    success: bool
    version_id: Optional[str] = None
    project: Optional[Project] = None
    error: Optional[SnapforgeError] = None
    warnings: List[ResourceLeakWarning] = field(default_factory=list)

    @classmethod
    def ok(
        cls,
        version_id: Optional[str] = None,
        project: Optional[Project] = None,
        warnings: Optional[List[ResourceLeakWarning]] = None,
    ) -> "OrchestratorResult":
        return cls(success=True, version_id=version_id, project=project, warnings=warnings or [])

    @classmethod
    def failed(
        cls,
        error: SnapforgeError,
        project: Optional[Project] = None,
        warnings: Optional[List[ResourceLeakWarning]] = None,
    ) -> "OrchestratorResult":
        return cls(success=False, project=project, error=error, warnings=warnings or [])

    @property
    def error_type(self) -> Optional[str]:
        return type(self.error).__name__ if self.error else None

    @property
    def live_state(self) -> str:
        """unchanged / partial / unknown"""
        if self.error is None:
            return LIVE_STATE_UNCHANGED
        return self.error.live_state

    @property
    def safe_to_retry(self) -> bool:
        return self.success or self.live_state == LIVE_STATE_UNCHANGED

    def unwrap(self) -> Optional[str]:
        """Return version_id or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.version_id

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.version_id:
            data["version_id"] = self.version_id
        if self.project:
            data["project"] = self.project.to_dict()
        if self.error:
            data["error"] = self.error.to_dict()
        if self.warnings:
            data["warnings"] = [w.to_dict() for w in self.warnings]
        return data
