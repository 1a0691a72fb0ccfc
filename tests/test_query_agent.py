import math

import pytest

from agents.query_agent import (
    LOW_RELEVANCE_ANSWER,
    NO_CONTEXT_ANSWER,
    RagAgent,
    is_rag_helpful,
)
from rag_core.errors import CompletionServiceError, EmbeddingUnavailable, ErrorKind
from rag_core.models import (
    MODE_LOW_RELEVANCE,
    MODE_NO_CONTEXT,
    MODE_RAG,
    MODE_WITHOUT_RAG,
    Chunk,
    Document,
    RagAnswer,
    SearchResult,
)


class FixedEmbedder:
    def __init__(self, vector):
        self.vector = vector
        self.calls = 0
        self.error = None

    def embed(self, text):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.vector)


def _store_chunk(store, embedding, content="Paris is the capital of France.", chunk_id="c1"):
    if not store.document_exists("/vault/paris.md"):
        store.save_document(Document(id="/vault/paris.md", path="/vault/paris.md", indexed_at=0))
    store.save_chunk(
        Chunk(
            id=chunk_id,
            document_id="/vault/paris.md",
            content=content,
            embedding=embedding,
            chunk_index=0,
            metadata={"fileName": "paris.md"},
        )
    )


@pytest.fixture
def agent_factory(store, completion):
    def _make(query_vector=(1.0, 0.0)):
        embedder = FixedEmbedder(query_vector)
        return RagAgent(vector_store=store, embedding_client=embedder, completion_client=completion), embedder

    return _make


def test_empty_store_answers_without_completion_call(agent_factory, completion):
    agent, _ = agent_factory()

    answer = agent.answer_with_rag("What is the capital of France?")

    assert answer.mode == MODE_NO_CONTEXT
    assert answer.answer == NO_CONTEXT_ANSWER
    assert answer.used_context == []
    assert completion.calls == []


def test_low_relevance_returns_context_and_skips_completion(agent_factory, store, completion):
    _store_chunk(store, [1.0, 1.4])
    agent, _ = agent_factory()

    answer = agent.answer_with_rag("Unrelated question?")

    assert answer.mode == MODE_LOW_RELEVANCE
    assert answer.answer.startswith(LOW_RELEVANCE_ANSWER)
    assert "58.1%" in answer.answer
    assert len(answer.used_context) == 1
    assert completion.calls == []


def test_similarity_of_059_is_low_relevance(agent_factory, store, completion):
    _store_chunk(store, [0.59, math.sqrt(1 - 0.59 ** 2)])
    agent, _ = agent_factory()

    answer = agent.answer_with_rag("What is the capital of France?")

    assert answer.used_context[0].similarity == pytest.approx(0.59)
    assert answer.mode == MODE_LOW_RELEVANCE
    assert "59.0%" in answer.answer
    assert completion.calls == []


def test_similarity_exactly_at_threshold_uses_completion(agent_factory, store, completion):
    # cos([1, 0], [3, 4]) == 3 / 5 == 0.6
    _store_chunk(store, [3.0, 4.0])
    agent, _ = agent_factory()

    answer = agent.answer_with_rag("What is the capital of France?")

    assert answer.used_context[0].similarity == pytest.approx(0.6)
    assert answer.mode == MODE_RAG
    assert len(completion.calls) == 1
    assert completion.calls[0]["temperature"] == 0.3


def test_rag_prompt_contains_context_and_question(agent_factory, store, completion):
    _store_chunk(store, [1.0, 0.0])
    agent, _ = agent_factory()

    answer = agent.answer_with_rag("What is the capital of France?")

    system, user = completion.calls[0]["messages"]
    assert system.role == "system"
    assert user.role == "user"
    assert "[Document 1: paris.md, relevance: 100.00%]\nParis is the capital of France." in user.text
    assert "Question: What is the capital of France?" in user.text
    assert answer.answer == completion.answer
    assert answer.duration_ms >= 0


def test_answer_without_rag_skips_retrieval(agent_factory, completion):
    agent, embedder = agent_factory()

    answer = agent.answer_without_rag("Tell me a joke")

    assert answer.mode == MODE_WITHOUT_RAG
    assert answer.used_context == []
    assert embedder.calls == 0
    assert completion.calls[0]["temperature"] == 0.7
    assert completion.calls[0]["messages"][1].text == "Tell me a joke"


def test_compare_runs_both_modes_with_verdict(agent_factory, store, completion):
    _store_chunk(store, [1.0, 0.0])
    agent, _ = agent_factory()

    result = agent.compare_modes("What is the capital of France?")

    assert result.with_rag.mode == MODE_RAG
    assert result.without_rag.mode == MODE_WITHOUT_RAG
    assert result.rag_helpful is True
    assert len(completion.calls) == 2


def test_compare_on_empty_store_is_not_helpful(agent_factory, completion):
    agent, _ = agent_factory()

    result = agent.compare_modes("What is the capital of France?")

    assert result.with_rag.mode == MODE_NO_CONTEXT
    assert result.rag_helpful is False
    assert len(completion.calls) == 1


def _answer(text, with_context=True):
    context = []
    if with_context:
        context = [
            SearchResult(
                chunk=Chunk(id="1", document_id="d", content="x", chunk_index=0),
                similarity=0.9,
            )
        ]
    return RagAnswer(answer=text, used_context=context, mode=MODE_RAG)


@pytest.mark.parametrize(
    "text, with_context, expected",
    [
        ("A" * 51, True, True),
        ("A" * 50, True, False),
        ("A" * 51, False, False),
        ("The notes contain NO INFORMATION about this topic, unfortunately, sorry.", True, False),
        ("The context does not contain anything useful about the question you asked.", True, False),
        ("There is insufficient material in the retrieved notes to answer this well.", True, False),
    ],
)
def test_is_rag_helpful(text, with_context, expected):
    assert is_rag_helpful(_answer(text, with_context)) is expected


def test_answer_outcome_reports_embedding_failure(agent_factory, completion):
    agent, embedder = agent_factory()
    embedder.error = EmbeddingUnavailable("ollama down")

    outcome = agent.answer("What is the capital of France?")

    assert outcome.success is False
    assert outcome.value is None
    assert outcome.error_kind is ErrorKind.EMBEDDING_UNAVAILABLE
    assert "ollama down" in outcome.error
    assert completion.calls == []


def test_compare_outcome_reports_completion_failure(agent_factory, completion):
    completion.error = CompletionServiceError("HTTP 500", status_code=500)
    agent, _ = agent_factory()

    outcome = agent.compare("Anything?")

    assert outcome.success is False
    assert outcome.error_kind is ErrorKind.COMPLETION_SERVICE_ERROR


def test_answer_outcome_success(agent_factory, completion):
    agent, _ = agent_factory()

    outcome = agent.answer("Hello?", use_rag=False)

    assert outcome.success is True
    assert outcome.value.mode == MODE_WITHOUT_RAG
