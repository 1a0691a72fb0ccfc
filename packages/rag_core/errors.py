from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable names for the failure categories surfaced by the core."""

    INVALID_CONFIGURATION = "InvalidConfiguration"
    EMBEDDING_UNAVAILABLE = "EmbeddingUnavailable"
    DIMENSION_MISMATCH = "DimensionMismatch"
    NO_COMPLETION_AVAILABLE = "NoCompletionAvailable"
    COMPLETION_SERVICE_ERROR = "CompletionServiceError"
    STORAGE_ERROR = "StorageError"


class RagError(Exception):
    """Base class for all errors raised by the retrieval pipeline."""

    kind: ErrorKind


class InvalidConfiguration(RagError, ValueError):
    """Chunker or retry parameters are out of range."""

    kind = ErrorKind.INVALID_CONFIGURATION


class EmbeddingUnavailable(RagError):
    """The embedding service was unreachable or exhausted all retries."""

    kind = ErrorKind.EMBEDDING_UNAVAILABLE


class DimensionMismatch(RagError, ValueError):
    """Two vectors of different lengths were compared."""

    kind = ErrorKind.DIMENSION_MISMATCH

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vector dimensions differ: {left} != {right}")
        self.left = left
        self.right = right


class NoCompletionAvailable(RagError):
    """The completion service answered without any alternatives."""

    kind = ErrorKind.NO_COMPLETION_AVAILABLE


class CompletionServiceError(RagError):
    """The completion service failed; ``status_code`` is None for transport errors."""

    kind = ErrorKind.COMPLETION_SERVICE_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageError(RagError):
    """The SQLite persistence layer failed."""

    kind = ErrorKind.STORAGE_ERROR


__all__ = [
    "ErrorKind",
    "RagError",
    "InvalidConfiguration",
    "EmbeddingUnavailable",
    "DimensionMismatch",
    "NoCompletionAvailable",
    "CompletionServiceError",
    "StorageError",
]
