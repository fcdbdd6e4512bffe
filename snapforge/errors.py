"""
Snapforge Errors - Typed failures surfaced by the orchestrator

Every error carries ``live_state`` so callers can tell whether the live
code/database state is untouched (safe to retry), partially moved (needs
targeted remediation) or unknown (re-query provider state first).
"""

from typing import Any, Dict, List, Optional, Sequence


LIVE_STATE_UNCHANGED = "unchanged"
LIVE_STATE_PARTIAL = "partial"
LIVE_STATE_UNKNOWN = "unknown"


class SnapforgeError(Exception):
    """Base class for all orchestrator errors."""

    live_state = LIVE_STATE_UNCHANGED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": str(self),
            "live_state": self.live_state,
        }


class ConfigError(SnapforgeError, ValueError):
    """Raised when the configuration is missing or invalid."""


class ExternalServiceError(SnapforgeError):
    """A provider returned a non-success response or could not be reached."""

    def __init__(
        self,
        service: str,
        action: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.service = service
        self.action = action
        self.status_code = status_code
        detail = f"{service} {action} failed"
        if status_code is not None:
            detail += f" ({status_code})"
        super().__init__(f"{detail}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(service=self.service, action=self.action, status_code=self.status_code)
        return data


class OperationTimeout(SnapforgeError):
    """Provider operations did not settle before the deadline."""

    live_state = LIVE_STATE_UNKNOWN

    def __init__(self, pending: Dict[str, Optional[str]], timeout: float):
        self.pending = dict(pending)
        self.timeout = timeout
        summary = ", ".join(
            f"{op_id} (last status: {status or 'unknown'})"
            for op_id, status in self.pending.items()
        )
        super().__init__(
            f"Timed out after {timeout:g}s waiting for operations to settle: {summary}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["pending"] = self.pending
        return data


class OperationFailed(SnapforgeError):
    """A provider operation reached a failure status."""

    def __init__(self, operation_id: str, status: str):
        self.operation_id = operation_id
        self.status = status
        super().__init__(f"Operation {operation_id} ended with status '{status}'")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(operation_id=self.operation_id, status=self.status)
        return data


class ProjectNotFound(SnapforgeError):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class ProjectNotInitialized(SnapforgeError):
    """The project has no current version to derive a checkpoint from."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} has no current version")


class VersionNotFound(SnapforgeError):
    def __init__(self, version_id: str, project_id: str):
        self.version_id = version_id
        self.project_id = project_id
        super().__init__(f"Version {version_id} not found in project {project_id}")


class VersionCorrupt(SnapforgeError):
    """A Version has no SecretsBundle and must never be restored."""

    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(f"Version {version_id} has no secrets bundle")


class PartialRestoreFailure(SnapforgeError):
    """
    Some resources of a restore moved to the target version, others did not.

    ``restored`` lists the resources now on the target version, ``failed``
    the ones that still need to be restored. The project's current version
    pointer was left unchanged.
    """

    live_state = LIVE_STATE_PARTIAL

    def __init__(
        self,
        version_id: str,
        restored: Sequence[str],
        failed: Sequence[str],
        cause: BaseException,
    ):
        self.version_id = version_id
        self.restored: List[str] = list(restored)
        self.failed: List[str] = list(failed)
        self.cause = cause
        super().__init__(
            f"Restore of version {version_id} incomplete: "
            f"restored {self.restored or 'nothing'}, failed {self.failed}: {cause}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            version_id=self.version_id,
            restored=self.restored,
            failed=self.failed,
            cause=str(self.cause),
        )
        return data


class ResourceLeakWarning(SnapforgeError):
    """
    An external resource may have been orphaned.

    Non-fatal: logged and collected in reports, never raised to the caller.
    """

    def __init__(self, resource: str, reference: str, cause: Optional[BaseException] = None):
        self.resource = resource
        self.reference = reference
        self.cause = cause
        message = f"Possibly orphaned {resource} '{reference}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(resource=self.resource, reference=self.reference)
        return data


class ProjectInitializationFailed(SnapforgeError):
    """
    The project's resources and row exist, but its initial version could
    not be created. ``initialize_project`` may be retried for ``project``.
    """

    def __init__(self, project: Any, cause: BaseException):
        self.project = project
        self.cause = cause
        super().__init__(f"Project {project.id} created without an initial version: {cause}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(project_id=self.project.id, cause=str(self.cause))
        return data


class InternalError(SnapforgeError):
    """
    An operation failed with an unexpected error, typically from the record
    store (lost connection, driver error). Re-query state before retrying.
    """

    live_state = LIVE_STATE_UNKNOWN

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed unexpectedly: {type(cause).__name__}: {cause}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(operation=self.operation, cause=type(self.cause).__name__)
        return data
