"""
Shared test fixtures.

Provides: recording sleep, keyword-based fake embedding service (httpx.MockTransport),
fake completion client, in-memory vector store, temporary vault directory.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest

from rag_core.embeddings import EmbeddingClient
from rag_core.errors import RagError
from rag_core.retry import RetryPolicy
from rag_core.vector_store import IN_MEMORY, VectorStore

OLLAMA_URL = "http://ollama.test"

# Each keyword present in the prompt switches on one dimension.
KEYWORDS = ("capital", "france", "paris", "python", "garden")


def keyword_vector(text: str) -> List[float]:
    lowered = text.lower()
    return [1.0 if word in lowered else 0.0 for word in KEYWORDS] + [0.1]


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeOllama:
    """MockTransport handler emulating /api/embeddings and /api/tags."""

    def __init__(self, vector_fn: Callable[[str], List[float]] = keyword_vector) -> None:
        self.vector_fn = vector_fn
        self.embedding_calls = 0
        self.prompts: List[str] = []
        self.healthy = True
        # Status codes to return for the next embedding calls before succeeding.
        self.failures: List[int] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            if not self.healthy:
                return httpx.Response(503)
            return httpx.Response(200, json={"models": [{"name": "nomic-embed-text"}]})

        if request.url.path == "/api/embeddings":
            self.embedding_calls += 1
            if self.failures:
                return httpx.Response(self.failures.pop(0), text="unavailable")
            prompt = json.loads(request.content)["prompt"]
            self.prompts.append(prompt)
            return httpx.Response(200, json={"embedding": self.vector_fn(prompt)})

        return httpx.Response(404)


class FakeCompletion:
    """Stands in for YandexGptClient; records every call."""

    def __init__(self, answer: str = "Paris is the capital of France, as stated in the provided notes.") -> None:
        self.answer = answer
        self.calls: List[dict] = []
        self.error: Optional[RagError] = None
        self.closed = False

    def complete(self, messages, temperature: float = 0.7) -> str:
        self.calls.append({"messages": list(messages), "temperature": temperature})
        if self.error is not None:
            raise self.error
        return self.answer

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_ollama() -> FakeOllama:
    return FakeOllama()


@pytest.fixture
def embedding_client(fake_ollama: FakeOllama, sleep: RecordingSleep) -> EmbeddingClient:
    client = EmbeddingClient(
        OLLAMA_URL,
        retry_policy=RetryPolicy(max_attempts=3, sleep=sleep),
        http_client=httpx.Client(transport=httpx.MockTransport(fake_ollama)),
    )
    yield client
    client.close()


@pytest.fixture
def store() -> VectorStore:
    vector_store = VectorStore(IN_MEMORY)
    yield vector_store
    vector_store.close()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    root.mkdir()
    (root / "paris.md").write_text("Paris is the capital of France.", encoding="utf-8")
    return root
