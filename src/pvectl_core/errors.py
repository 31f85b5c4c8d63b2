"""Exception taxonomy for the resource mutation pipeline.

Services catch these at their boundary and turn them into failed or
partial OperationResults. Only caller-level errors (UnsupportedOperationError,
InvalidOptionsError) are raised out of a service.
"""
from typing import Iterable, Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""
    pass


class ResourceNotFoundError(PipelineError):
    """Resource, node or volume does not exist."""
    pass


class MalformedDocumentError(PipelineError):
    """Editable document could not be parsed back into a config map."""
    pass


class DocumentValidationError(PipelineError):
    """Edited document was rejected by the session validator."""

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("Validation failed: " + "; ".join(self.errors))


class ReadOnlyViolationError(PipelineError):
    """An edit touched fields that cannot be changed."""

    def __init__(self, fields: Iterable[str]):
        self.fields = sorted(fields)
        super().__init__(f"Cannot modify read-only fields: {', '.join(self.fields)}")


class InvalidSizeFormatError(PipelineError, ValueError):
    """Resize token does not match [+]<number>[K|M|G|T]."""
    pass


class SizeTooSmallError(PipelineError):
    """Absolute resize target is not larger than the current size."""

    def __init__(self, requested: str, current: str):
        self.requested = requested
        self.current = current
        super().__init__(
            f"New size {requested} must be larger than current size {current}"
        )


class RepositoryError(PipelineError):
    """Opaque control-plane failure, message passed through verbatim."""
    pass


class TaskTimeoutError(PipelineError):
    """Task did not reach a terminal state before the deadline."""

    def __init__(self, upid: str, timeout: float, message: Optional[str] = None):
        self.upid = upid
        self.timeout = timeout
        super().__init__(message or f"Task {upid} timed out after {timeout:g}s")


class UnsupportedOperationError(PipelineError):
    """Operation is not in the allow-list for the resource kind."""
    pass


class InvalidOptionsError(PipelineError):
    """Mutually exclusive or otherwise invalid dispatch options."""
    pass
