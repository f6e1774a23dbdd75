"""
Error types for the Keihyo RAG core.

Input validation errors are raised before any I/O. Provider and store
failures are wrapped with the name of the failing operation and chain the
original exception. Decode errors flag persisted rows that cannot be
trusted.
"""

from typing import Optional


class KeihyoRagError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(KeihyoRagError, ValueError):
    """Rejected input (empty query, unknown source)."""


class _OperationError(KeihyoRagError):
    """Error carrying the failing operation name and its cause."""

    def __init__(
        self,
        message: str,
        operation: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.cause = cause

    def __str__(self) -> str:
        return f"[{self.operation}] {super().__str__()}"


class EmbeddingError(_OperationError):
    """The embedding provider could not be built or failed a call."""


class VectorStoreError(_OperationError):
    """A database operation of the document store failed."""


class DecodeError(KeihyoRagError):
    """A persisted row is missing or mis-typing a required field."""


class OperationCancelledError(KeihyoRagError):
    """The caller's cancel event was set before an I/O step."""

    def __init__(self, operation: str):
        super().__init__(f"Operation cancelled: {operation}")
        self.operation = operation
