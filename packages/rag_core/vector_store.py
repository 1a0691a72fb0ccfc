"""
SQLite-backed store for documents and embedded chunks.

Embeddings and metadata are kept as JSON text columns and similarity search
is a full scan over every stored chunk. This is only viable for small,
personal corpora; no vector index is built.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import StorageError
from .models import Chunk, Document, SearchResult, StoreStats
from .retrieval import rank_chunks

_log = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        path TEXT NOT NULL UNIQUE,
        indexed_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chunks (
        id TEXT PRIMARY KEY,
        doc_id TEXT NOT NULL,
        content TEXT NOT NULL,
        embedding_json TEXT NOT NULL,
        chunk_index INTEGER NOT NULL,
        metadata_json TEXT NOT NULL,
        FOREIGN KEY (doc_id) REFERENCES documents(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_chunks_doc_id ON chunks(doc_id)",
)


class VectorStore:
    """Durable repository of documents and chunk embeddings with brute-force search."""

    def __init__(self, database_path: str | Path, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or _log
        self.database_path = str(database_path)

        if self.database_path != IN_MEMORY:
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            # Opened once for the store's lifetime; the API serves requests from a threadpool.
            self._conn = sqlite3.connect(self.database_path, check_same_thread=False)
            self._lock = threading.RLock()
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            with self._conn:
                for statement in _SCHEMA:
                    self._conn.execute(statement)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open vector store at {self.database_path}: {exc}") from exc

        self._log.info("Vector store ready at %s", self.database_path)

    def save_document(self, document: Document) -> None:
        self._execute(
            """
            INSERT INTO documents (id, path, indexed_at) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                path = excluded.path,
                indexed_at = excluded.indexed_at
            """,
            (document.id, document.path, document.indexed_at),
        )
        self._log.debug("Saved document %s", document.path)

    def save_chunk(self, chunk: Chunk) -> None:
        self._execute(
            """
            INSERT INTO chunks (id, doc_id, content, embedding_json, chunk_index, metadata_json)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                doc_id = excluded.doc_id,
                content = excluded.content,
                embedding_json = excluded.embedding_json,
                chunk_index = excluded.chunk_index,
                metadata_json = excluded.metadata_json
            """,
            (
                chunk.id,
                chunk.document_id,
                chunk.content,
                json.dumps(chunk.embedding),
                chunk.chunk_index,
                json.dumps(chunk.metadata, ensure_ascii=False),
            ),
        )

    def document_exists(self, path: str) -> bool:
        row = self._query_one("SELECT COUNT(*) AS count FROM documents WHERE path = ?", (path,))
        return bool(row and row["count"] > 0)

    def delete_document(self, path: str) -> None:
        """Remove a document; its chunks go with it through the foreign key cascade."""
        self._execute("DELETE FROM documents WHERE path = ?", (path,))
        self._log.info("Deleted document %s", path)

    def get_all_chunks(self) -> List[Chunk]:
        try:
            with self._lock:
                rows = self._conn.execute(
                    "SELECT id, doc_id, content, embedding_json, chunk_index, metadata_json FROM chunks"
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read chunks: {exc}") from exc

        try:
            return [
                Chunk(
                    id=row["id"],
                    document_id=row["doc_id"],
                    content=row["content"],
                    embedding=json.loads(row["embedding_json"]),
                    chunk_index=row["chunk_index"],
                    metadata=json.loads(row["metadata_json"]),
                )
                for row in rows
            ]
        except ValueError as exc:
            raise StorageError(f"Corrupt chunk row in {self.database_path}: {exc}") from exc

    def search(self, query_vector: Sequence[float], top_k: int = 5) -> List[SearchResult]:
        """Rank every stored chunk by cosine similarity to `query_vector`."""
        chunks = self.get_all_chunks()
        results = rank_chunks(query_vector, chunks, top_k)
        self._log.debug("Search over %d chunks returned %d results", len(chunks), len(results))
        return results

    def get_stats(self) -> StoreStats:
        documents = self._query_one("SELECT COUNT(*) AS count FROM documents")
        chunks = self._query_one("SELECT COUNT(*) AS count FROM chunks")
        return StoreStats(
            document_count=documents["count"] if documents else 0,
            chunk_count=chunks["count"] if chunks else 0,
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        self._log.info("Vector store closed")

    def __enter__(self) -> "VectorStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _execute(self, sql: str, params: Sequence[object] = ()) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StorageError(f"Storage operation failed: {exc}") from exc

    def _query_one(self, sql: str, params: Sequence[object] = ()) -> Optional[sqlite3.Row]:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Storage query failed: {exc}") from exc


__all__ = ["VectorStore", "IN_MEMORY"]
