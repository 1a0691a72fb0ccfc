from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import List, Optional, Protocol

from .chunking import TextChunker
from .embeddings import EmbeddingClient
from .errors import ErrorKind, RagError
from .models import Chunk, Document, IndexingResult, LoadedDocument, Outcome, SearchResult, StoreStats
from .vector_store import VectorStore

_log = logging.getLogger(__name__)


class DocumentSource(Protocol):
    def load_documents(self) -> List[LoadedDocument]:
        ...


def _now_ms() -> int:
    return int(time.time() * 1000)


class IndexingPipeline:
    """
    Coordinates loading, chunking, embedding and persisting vault documents.

    Documents are processed one at a time. A failure of the embedding service
    or the store aborts the whole run; the result then reports success=False
    together with whatever was completed before the failure.
    """

    def __init__(
        self,
        loader: DocumentSource,
        chunker: TextChunker,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.loader = loader
        self.chunker = chunker
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self._log = logger or _log
        # One run at a time per pipeline; overlapping runs would both pass the
        # existence check and store the same document twice.
        self._index_lock = threading.Lock()

    def index(self, force: bool = False) -> IndexingResult:
        """
        Index every document from the loader; `force` re-indexes documents already stored.

        Concurrent calls are serialized: a second caller waits for the running
        pass to finish and then sees its documents as already indexed.
        """
        if not self._index_lock.acquire(blocking=False):
            self._log.info("Indexing already in progress, waiting for it to finish")
            self._index_lock.acquire()
        try:
            return self._run_index(force)
        finally:
            self._index_lock.release()

    def _run_index(self, force: bool) -> IndexingResult:
        self._log.info("Starting indexing (force=%s)", force)
        start = time.perf_counter()
        processed = 0
        skipped = 0
        chunks_created = 0

        def _elapsed() -> int:
            return int((time.perf_counter() - start) * 1000)

        if not self.embedding_client.check_health():
            message = f"Embedding service is unavailable at {self.embedding_client.base_url}"
            self._log.error("%s", message)
            return IndexingResult(
                success=False,
                duration_ms=_elapsed(),
                error=message,
                error_kind=ErrorKind.EMBEDDING_UNAVAILABLE,
            )

        documents = self.loader.load_documents()
        if not documents:
            self._log.warning("No documents found to index")
            return IndexingResult(success=True, duration_ms=_elapsed())

        try:
            for i, loaded in enumerate(documents, start=1):
                name = loaded.metadata.get("fileName", loaded.path)
                self._log.info("Processing document %d/%d: %s", i, len(documents), name)

                exists = self.vector_store.document_exists(loaded.path)
                if exists and not force:
                    self._log.info("Already indexed, skipping: %s", loaded.path)
                    skipped += 1
                    continue

                text_chunks = self.chunker.chunk_by_words(loaded.content)
                if not text_chunks:
                    self._log.warning("Document has no text to index: %s", loaded.path)
                    skipped += 1
                    continue

                embeddings = self.embedding_client.embed_batch([c.content for c in text_chunks])

                if exists:
                    self.vector_store.delete_document(loaded.path)

                self.vector_store.save_document(
                    Document(id=loaded.path, path=loaded.path, indexed_at=_now_ms())
                )
                for text_chunk, embedding in zip(text_chunks, embeddings):
                    self.vector_store.save_chunk(
                        Chunk(
                            id=str(uuid.uuid4()),
                            document_id=loaded.path,
                            content=text_chunk.content,
                            embedding=embedding,
                            chunk_index=text_chunk.index,
                            metadata=dict(loaded.metadata),
                        )
                    )
                    chunks_created += 1

                processed += 1
                self._log.info("Indexed %s (%d chunks)", name, len(text_chunks))
        except RagError as exc:
            self._log.error("Indexing aborted (%s): %s", exc.kind.value, exc, exc_info=True)
            return IndexingResult(
                success=False,
                documents_processed=processed,
                chunks_created=chunks_created,
                documents_skipped=skipped,
                duration_ms=_elapsed(),
                error=str(exc),
                error_kind=exc.kind,
            )

        duration = _elapsed()
        self._log.info(
            "Indexing finished: %d documents, %d chunks, %d skipped in %dms",
            processed,
            chunks_created,
            skipped,
            duration,
        )
        return IndexingResult(
            success=True,
            documents_processed=processed,
            chunks_created=chunks_created,
            documents_skipped=skipped,
            duration_ms=duration,
        )

    def search(self, query: str, top_k: int = 5) -> Outcome[List[SearchResult]]:
        self._log.info("Searching: %s", query[:80])
        try:
            query_embedding = self.embedding_client.embed(query)
            results = self.vector_store.search(query_embedding, top_k)
        except RagError as exc:
            self._log.error("Search failed (%s): %s", exc.kind.value, exc)
            return Outcome[List[SearchResult]].failed(exc)

        self._log.info("Found %d results", len(results))
        return Outcome[List[SearchResult]].ok(results)

    def stats(self) -> StoreStats:
        return self.vector_store.get_stats()

    def close(self) -> None:
        self.embedding_client.close()
        self.vector_store.close()
        self._log.info("Indexing pipeline closed")


__all__ = ["IndexingPipeline", "DocumentSource"]
