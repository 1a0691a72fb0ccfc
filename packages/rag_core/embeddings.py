from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence

import httpx
from pydantic import BaseModel, ValidationError

from .errors import EmbeddingUnavailable
from .retry import RetryPolicy

_log = logging.getLogger(__name__)

DEFAULT_MODEL = "nomic-embed-text"
# Longer texts are cut before they are sent to the embedding model.
MAX_EMBEDDING_CHARS = 8000
# Pause between consecutive requests in a batch.
BATCH_PAUSE_SECONDS = 0.1
PROGRESS_EVERY = 10


class OllamaEmbeddingRequest(BaseModel):
    model: str
    prompt: str


class OllamaEmbeddingResponse(BaseModel):
    embedding: List[float]


class _EmbeddingRequestFailed(Exception):
    """Non-success status or malformed body from the embedding service."""


class EmbeddingClient:
    """
    Client for the Ollama embeddings endpoint.

    Every request goes through the retry policy; once it is exhausted the last
    failure is raised as `EmbeddingUnavailable`. Batches are embedded strictly
    sequentially with a fixed pause between requests.
    """

    def __init__(
        self,
        base_url: str,
        model: str = DEFAULT_MODEL,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        batch_pause: float = BATCH_PAUSE_SECONDS,
        timeout: float = 60.0,
        http_client: Optional[httpx.Client] = None,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.retry_policy = retry_policy or RetryPolicy()
        self.batch_pause = batch_pause
        self._sleep = sleep or self.retry_policy.sleep or time.sleep
        self._log = logger or _log
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)

    def embed(self, text: str) -> List[float]:
        """Return the embedding vector for `text`; blank text yields an empty vector."""
        if not text or not text.strip():
            self._log.warning("Skipping embedding request for blank text")
            return []

        if len(text) > MAX_EMBEDDING_CHARS:
            self._log.warning(
                "Text of %d chars truncated to %d before embedding", len(text), MAX_EMBEDDING_CHARS
            )
            text = text[:MAX_EMBEDDING_CHARS]

        retrying = self.retry_policy.retrying(
            retry_on=(httpx.HTTPError, _EmbeddingRequestFailed),
            logger=self._log,
            operation="Embedding request",
        )
        try:
            return retrying(self._request_embedding, text)
        except (httpx.HTTPError, _EmbeddingRequestFailed) as exc:
            self._log.error(
                "Embedding service unavailable after %d attempts: %s", self.retry_policy.max_attempts, exc
            )
            raise EmbeddingUnavailable(
                f"Embedding request failed after {self.retry_policy.max_attempts} attempts: {exc}"
            ) from exc

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed texts in order; the first failure aborts the remaining batch."""
        total = len(texts)
        self._log.info("Generating embeddings for %d texts", total)

        embeddings: list[list[float]] = []
        for i, text in enumerate(texts):
            if i > 0:
                self._sleep(self.batch_pause)
                if i % PROGRESS_EVERY == 0:
                    self._log.info("Embedded %d/%d texts", i, total)
            embeddings.append(self.embed(text))
        return embeddings

    def check_health(self) -> bool:
        """Cheap reachability probe used before a full indexing run."""
        try:
            response = self._client.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as exc:
            self._log.error("Embedding service at %s is unreachable: %s", self.base_url, exc)
            return False
        if response.status_code != httpx.codes.OK:
            self._log.error("Embedding service health check returned HTTP %d", response.status_code)
            return False
        return True

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
        self._log.info("Embedding client closed")

    def __enter__(self) -> "EmbeddingClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request_embedding(self, text: str) -> List[float]:
        payload = OllamaEmbeddingRequest(model=self.model, prompt=text)
        response = self._client.post(f"{self.base_url}/api/embeddings", json=payload.model_dump())
        if response.status_code != httpx.codes.OK:
            raise _EmbeddingRequestFailed(f"HTTP {response.status_code} from embedding service")
        try:
            body = OllamaEmbeddingResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise _EmbeddingRequestFailed(f"Malformed embedding response: {exc}") from exc
        self._log.debug("Received embedding of dimension %d", len(body.embedding))
        return body.embedding


__all__ = [
    "EmbeddingClient",
    "OllamaEmbeddingRequest",
    "OllamaEmbeddingResponse",
    "MAX_EMBEDDING_CHARS",
    "BATCH_PAUSE_SECONDS",
    "DEFAULT_MODEL",
]
