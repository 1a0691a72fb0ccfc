from __future__ import annotations

from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind, RagError

T = TypeVar("T")

MODE_RAG = "RAG"
MODE_NO_CONTEXT = "RAG (no context)"
MODE_LOW_RELEVANCE = "RAG (low relevance)"
MODE_WITHOUT_RAG = "Without RAG"


class TextChunk(BaseModel):
    """A segment of raw text produced by the chunker."""

    content: str
    index: int = Field(..., description="Sequential index among non-blank chunks.")
    start_offset: int = Field(..., description="Best-effort start position in the source text.")
    end_offset: int = Field(..., description="Best-effort end position in the source text.")


class LoadedDocument(BaseModel):
    """A source file read from the vault, ready for chunking."""

    path: str = Field(..., description="Absolute path of the source file.")
    content: str
    metadata: Dict[str, str] = Field(default_factory=dict)


class Document(BaseModel):
    """One row per indexed source file. ``id`` and ``path`` are identical."""

    id: str
    path: str
    indexed_at: int = Field(..., description="Indexing time in epoch milliseconds.")


class Chunk(BaseModel):
    """A document segment paired with its embedding vector."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str = Field(..., description="Id of the owning Document.")
    content: str
    embedding: List[float] = Field(default_factory=list)
    chunk_index: int
    metadata: Dict[str, str] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """A chunk scored against a query vector."""

    chunk: Chunk
    similarity: float


class StoreStats(BaseModel):
    document_count: int = 0
    chunk_count: int = 0


class RagAnswer(BaseModel):
    """Answer produced by the RAG agent in one of its modes."""

    answer: str
    used_context: List[SearchResult] = Field(default_factory=list)
    duration_ms: int = 0
    mode: str


class ComparisonResult(BaseModel):
    """Side-by-side answers with and without retrieved context."""

    question: str
    with_rag: RagAnswer
    without_rag: RagAnswer
    rag_helpful: bool = Field(
        default=False,
        description="Heuristic verdict on whether retrieved context improved the answer.",
    )


class IndexingResult(BaseModel):
    success: bool
    documents_processed: int = 0
    chunks_created: int = 0
    documents_skipped: int = 0
    duration_ms: int = 0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class Outcome(BaseModel, Generic[T]):
    """Success or failure of a query-path operation, never an uncaught exception."""

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, exc: RagError) -> "Outcome[T]":
        return cls(success=False, error=str(exc), error_kind=exc.kind)


__all__ = [
    "TextChunk",
    "LoadedDocument",
    "Document",
    "Chunk",
    "SearchResult",
    "StoreStats",
    "RagAnswer",
    "ComparisonResult",
    "IndexingResult",
    "Outcome",
    "MODE_RAG",
    "MODE_NO_CONTEXT",
    "MODE_LOW_RELEVANCE",
    "MODE_WITHOUT_RAG",
]
