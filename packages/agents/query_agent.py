from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List

from rag_core.embeddings import EmbeddingClient
from rag_core.errors import RagError
from rag_core.models import (
    MODE_LOW_RELEVANCE,
    MODE_NO_CONTEXT,
    MODE_RAG,
    MODE_WITHOUT_RAG,
    ComparisonResult,
    Outcome,
    RagAnswer,
    SearchResult,
)
from rag_core.vector_store import VectorStore
from apps.backend.llm.yandex_client import ChatMessage, YandexGptClient, build_context_block

_log = logging.getLogger(__name__)

DEFAULT_TOP_K = 3
RELEVANCE_THRESHOLD = 0.6
RAG_TEMPERATURE = 0.3
NO_RAG_TEMPERATURE = 0.7

# Verdict heuristics for compare().
NEGATIVE_SIGNALS = ("no information", "does not contain", "insufficient")
MIN_HELPFUL_ANSWER_LENGTH = 50

NO_CONTEXT_ANSWER = (
    "Sorry, I found no information in the knowledge base relevant to your question."
)
LOW_RELEVANCE_ANSWER = (
    "The retrieved documents contain insufficient relevant information to answer this question."
)
LOW_RELEVANCE_NOTE = (
    "\n\nNote: the relevance of the retrieved documents is low ({percent:.1f}%). "
    "Your knowledge base may not cover this question. "
    "Try asking without RAG for a general answer."
)

RAG_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer questions using the provided context. "
    "If the context is only partially relevant, give the most useful answer you can "
    "from what is there. Be specific and informative."
)
NO_RAG_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer briefly and to the point from your own knowledge."
)
RAG_PROMPT_TEMPLATE = (
    "Context from the user's knowledge base:\n\n"
    "{context}\n\n"
    "---\n\n"
    "Question: {question}\n\n"
    "Instructions:\n"
    "- Answer the question using the information from the provided context\n"
    "- If the context contains relevant information, use it in the answer\n"
    "- If the context is only partially relevant, give a useful answer based on what is there\n"
    "- If the context is unrelated to the question, say so honestly\n"
    "- Be specific and informative"
)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def is_rag_helpful(answer: RagAnswer) -> bool:
    """Heuristic verdict: context was used, no negative phrasing, and the answer is substantive."""
    if not answer.used_context:
        return False
    lowered = answer.answer.lower()
    if any(signal in lowered for signal in NEGATIVE_SIGNALS):
        return False
    return len(answer.answer) > MIN_HELPFUL_ANSWER_LENGTH


@dataclass
class RagAgent:
    """
    Retrieval-augmented answering over the vector store.

    The RAG path ends in one of three states: answered by the LLM, no context
    found, or context below the relevance threshold. Only the first makes a
    completion call.
    """

    vector_store: VectorStore
    embedding_client: EmbeddingClient
    completion_client: YandexGptClient
    relevance_threshold: float = RELEVANCE_THRESHOLD
    logger: logging.Logger = field(default=_log)

    def answer_with_rag(self, question: str, top_k: int = DEFAULT_TOP_K) -> RagAnswer:
        """Answer from retrieved context. Embedding and completion failures propagate."""
        self.logger.info("Answering with RAG: %s", question[:80])
        start = time.perf_counter()

        query_embedding = self.embedding_client.embed(question)
        results = self.vector_store.search(query_embedding, top_k)
        self.logger.debug("Retrieved %d chunks", len(results))

        if not results:
            return RagAnswer(
                answer=NO_CONTEXT_ANSWER,
                used_context=[],
                duration_ms=_elapsed_ms(start),
                mode=MODE_NO_CONTEXT,
            )

        max_similarity = max(r.similarity for r in results)
        self.logger.debug("Max similarity: %.2f%%", max_similarity * 100)

        if max_similarity < self.relevance_threshold:
            self.logger.info(
                "Best match %.3f below threshold %.2f, skipping completion",
                max_similarity,
                self.relevance_threshold,
            )
            return RagAnswer(
                answer=LOW_RELEVANCE_ANSWER + LOW_RELEVANCE_NOTE.format(percent=max_similarity * 100),
                used_context=results,
                duration_ms=_elapsed_ms(start),
                mode=MODE_LOW_RELEVANCE,
            )

        messages = [
            ChatMessage(role="system", text=RAG_SYSTEM_PROMPT),
            ChatMessage(role="user", text=self.build_prompt(question, results)),
        ]
        answer_text = self.completion_client.complete(messages, temperature=RAG_TEMPERATURE)

        duration = _elapsed_ms(start)
        self.logger.info("RAG answer ready in %dms", duration)
        return RagAnswer(answer=answer_text, used_context=results, duration_ms=duration, mode=MODE_RAG)

    def answer_without_rag(self, question: str) -> RagAnswer:
        """Send the bare question to the LLM."""
        self.logger.info("Answering without RAG: %s", question[:80])
        start = time.perf_counter()

        messages = [
            ChatMessage(role="system", text=NO_RAG_SYSTEM_PROMPT),
            ChatMessage(role="user", text=question),
        ]
        answer_text = self.completion_client.complete(messages, temperature=NO_RAG_TEMPERATURE)

        duration = _elapsed_ms(start)
        self.logger.info("Answer without RAG ready in %dms", duration)
        return RagAnswer(answer=answer_text, used_context=[], duration_ms=duration, mode=MODE_WITHOUT_RAG)

    def compare_modes(self, question: str, top_k: int = DEFAULT_TOP_K) -> ComparisonResult:
        """Run both paths sequentially for side-by-side inspection."""
        self.logger.info("Comparing modes for: %s", question[:80])
        with_rag = self.answer_with_rag(question, top_k)
        without_rag = self.answer_without_rag(question)
        return ComparisonResult(
            question=question,
            with_rag=with_rag,
            without_rag=without_rag,
            rag_helpful=is_rag_helpful(with_rag),
        )

    def answer(self, question: str, use_rag: bool = True, top_k: int = DEFAULT_TOP_K) -> Outcome[RagAnswer]:
        """Like `answer_with_rag`/`answer_without_rag`, but failures come back as a failed Outcome."""
        try:
            if use_rag:
                result = self.answer_with_rag(question, top_k)
            else:
                result = self.answer_without_rag(question)
        except RagError as exc:
            self.logger.error("Answer failed (%s): %s", exc.kind.value, exc)
            return Outcome[RagAnswer].failed(exc)
        return Outcome[RagAnswer].ok(result)

    def compare(self, question: str, top_k: int = DEFAULT_TOP_K) -> Outcome[ComparisonResult]:
        try:
            result = self.compare_modes(question, top_k)
        except RagError as exc:
            self.logger.error("Comparison failed (%s): %s", exc.kind.value, exc)
            return Outcome[ComparisonResult].failed(exc)
        return Outcome[ComparisonResult].ok(result)

    @staticmethod
    def build_prompt(question: str, results: List[SearchResult]) -> str:
        return RAG_PROMPT_TEMPLATE.format(context=build_context_block(results), question=question)

    def close(self) -> None:
        self.completion_client.close()
        self.logger.info("RAG agent closed")


__all__ = [
    "RagAgent",
    "is_rag_helpful",
    "RELEVANCE_THRESHOLD",
    "DEFAULT_TOP_K",
    "NEGATIVE_SIGNALS",
    "MIN_HELPFUL_ANSWER_LENGTH",
    "NO_CONTEXT_ANSWER",
    "LOW_RELEVANCE_ANSWER",
]
