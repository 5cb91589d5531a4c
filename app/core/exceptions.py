"""
Error taxonomy for the lifecycle, reclamation and usage subsystems.

Rejections (InvalidTransition, AlreadyRemoved, ...) are final and must not be
retried. TransientStoreFailure marks errors that are safe to retry with
backoff; BatchJobAborted is raised once a batch job has exhausted its budget.
"""
from typing import Any, List, Optional


class LifecycleError(Exception):
    """Base class for all errors raised by this service."""

    retryable = False


class InvalidTransition(LifecycleError):
    """Raised on a backward, same-state or otherwise illegal status move."""

    def __init__(self, entity: str, entity_id: Any, current: Any, target: Any):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid {entity} transition for {entity_id}: "
            f"{_status_name(current)} -> {_status_name(target)}"
        )


class AlreadyRemoved(LifecycleError):
    """Raised when removing a folder that is already removed."""

    def __init__(self, folder_uuid: str):
        self.folder_uuid = folder_uuid
        super().__init__(f"Folder already removed: {folder_uuid}")


class EntityNotFound(LifecycleError):
    """Raised when the addressed entity does not exist."""

    entity = "entity"

    def __init__(self, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class FileNotFound(EntityNotFound):
    entity = "File"


class FolderNotFound(EntityNotFound):
    entity = "Folder"


class FileVersionNotFound(EntityNotFound):
    entity = "File version"


class ReclamationRecordNotFound(EntityNotFound):
    entity = "Reclamation record"


class InvalidMove(LifecycleError):
    """Raised when a folder move would create a cycle or target a dead folder."""


class CascadeLimitExceeded(LifecycleError):
    """Raised when a cascade walks deeper or wider than the configured guard."""

    def __init__(self, folder_uuid: str, limit: str, value: int):
        self.folder_uuid = folder_uuid
        self.limit = limit
        self.value = value
        super().__init__(
            f"Cascade from folder {folder_uuid} exceeded {limit}={value}"
        )


class TransientStoreFailure(LifecycleError):
    """Lock timeout, connection loss or similar; safe to retry."""

    retryable = True


class DuplicateReclamationIntent(LifecycleError):
    """A reclamation record already exists for the entity."""

    def __init__(self, kind: Any, entity_id: Any):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(
            f"Reclamation record already exists for {_status_name(kind)} {entity_id}"
        )


class IncompleteRollupWindow(LifecycleError):
    """A rollup was requested before every lower-granularity run completed."""

    def __init__(self, granularity: str, period: Any, missing: List[Any]):
        self.granularity = granularity
        self.period = period
        self.missing = missing
        preview = ", ".join(str(m) for m in missing[:5])
        if len(missing) > 5:
            preview += ", ..."
        super().__init__(
            f"Cannot run {granularity} rollup for {period}: "
            f"{len(missing)} lower-granularity period(s) not rolled up ({preview})"
        )


class BatchJobAborted(LifecycleError):
    """A batch job gave up after exhausting its retry budget."""

    def __init__(self, job_name: str, report: Optional[Any] = None, cause: Optional[BaseException] = None):
        self.job_name = job_name
        self.report = report
        self.cause = cause
        super().__init__(f"Batch job '{job_name}' aborted: {cause}")


def _status_name(value: Any) -> str:
    return getattr(value, "value", value)
