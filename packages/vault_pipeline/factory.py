from __future__ import annotations

import logging
from typing import Optional

from agents.query_agent import RagAgent
from apps.backend.llm.yandex_client import YandexGptClient
from rag_core.chunking import TextChunker
from rag_core.embeddings import EmbeddingClient
from rag_core.indexing import IndexingPipeline
from rag_core.retry import RetryPolicy
from rag_core.vector_store import VectorStore

from .config import VaultRagSettings, get_settings
from .loader import VaultLoader


def build_pipeline(
    settings: Optional[VaultRagSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> IndexingPipeline:
    """Wire the default indexing components from settings."""
    if settings is None:
        settings = get_settings()

    return IndexingPipeline(
        loader=VaultLoader(settings.vault_path, logger=logger),
        chunker=TextChunker(settings.chunk_size, settings.chunk_overlap, logger=logger),
        embedding_client=EmbeddingClient(
            settings.ollama_url,
            settings.ollama_model,
            retry_policy=RetryPolicy(max_attempts=settings.embedding_max_retries),
            timeout=settings.request_timeout,
            logger=logger,
        ),
        vector_store=VectorStore(settings.database_path, logger=logger),
        logger=logger,
    )


def build_agent(
    pipeline: IndexingPipeline,
    settings: Optional[VaultRagSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> RagAgent:
    """Build an agent sharing the pipeline's store and embedder, answering through YandexGPT."""
    if settings is None:
        settings = get_settings()

    completion_client = YandexGptClient(
        settings.yandex_api_key,
        settings.yandex_folder_id,
        model=settings.yandex_model,
        completion_url=settings.completion_url,
        timeout=settings.request_timeout,
        logger=logger,
    )
    agent = RagAgent(
        vector_store=pipeline.vector_store,
        embedding_client=pipeline.embedding_client,
        completion_client=completion_client,
    )
    if logger is not None:
        agent.logger = logger
    return agent


__all__ = ["build_pipeline", "build_agent"]
