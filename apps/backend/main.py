from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, List

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from agents.query_agent import DEFAULT_TOP_K, RagAgent
from rag_core.indexing import IndexingPipeline
from rag_core.models import ComparisonResult, IndexingResult, RagAnswer, SearchResult, StoreStats
from vault_pipeline.config import get_settings
from vault_pipeline.factory import build_agent, build_pipeline

load_dotenv()

_log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Close only what was actually created during the app's lifetime.
    if get_agent.cache_info().currsize:
        get_agent().close()
    if get_pipeline.cache_info().currsize:
        get_pipeline().close()


app = FastAPI(title="Vault RAG API", lifespan=lifespan)

# CORS: allow local frontends without credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class IndexRequest(BaseModel):
    force: bool = False


class SearchRequest(BaseModel):
    query: str
    top_k: int = Field(default=5, ge=0)


class QueryRequest(BaseModel):
    question: str
    use_rag: bool = True
    top_k: int = Field(default=DEFAULT_TOP_K, ge=0)


class CompareRequest(BaseModel):
    question: str
    top_k: int = Field(default=DEFAULT_TOP_K, ge=0)


@lru_cache
def get_pipeline() -> IndexingPipeline:
    """Shared pipeline for the process; heavy components are created on first use."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return build_pipeline(settings)


@lru_cache
def get_agent() -> RagAgent:
    return build_agent(get_pipeline())


@app.get("/health")
def health(pipeline: IndexingPipeline = Depends(get_pipeline)) -> dict[str, str]:
    embedding_ok = pipeline.embedding_client.check_health()
    return {"status": "ok", "embedding_service": "ok" if embedding_ok else "unavailable"}


@app.get("/stats", response_model=StoreStats)
def stats(pipeline: IndexingPipeline = Depends(get_pipeline)) -> StoreStats:
    return pipeline.stats()


@app.post("/index", response_model=IndexingResult)
def index(req: IndexRequest, pipeline: IndexingPipeline = Depends(get_pipeline)) -> IndexingResult:
    """
    Index the vault synchronously.

    Intended for manual/admin use: a full re-index embeds every chunk one at a
    time and can take a long time.
    """
    result = pipeline.index(force=req.force)
    if not result.success:
        _log.error("Indexing via API failed: %s", result.error)
        raise HTTPException(status_code=500, detail=result.model_dump(mode="json"))
    return result


@app.post("/search", response_model=List[SearchResult])
def search(req: SearchRequest, pipeline: IndexingPipeline = Depends(get_pipeline)) -> List[SearchResult]:
    outcome = pipeline.search(req.query, top_k=req.top_k)
    if not outcome.success:
        raise HTTPException(status_code=502, detail=f"Search failed: {outcome.error}")
    return outcome.value


@app.post("/query", response_model=RagAnswer)
def query(req: QueryRequest, agent: RagAgent = Depends(get_agent)) -> RagAnswer:
    outcome = agent.answer(req.question, use_rag=req.use_rag, top_k=req.top_k)
    if not outcome.success:
        raise HTTPException(status_code=502, detail=f"Answer failed: {outcome.error}")
    return outcome.value


@app.post("/compare", response_model=ComparisonResult)
def compare(req: CompareRequest, agent: RagAgent = Depends(get_agent)) -> ComparisonResult:
    outcome = agent.compare(req.question, top_k=req.top_k)
    if not outcome.success:
        raise HTTPException(status_code=502, detail=f"Comparison failed: {outcome.error}")
    return outcome.value


__all__ = ["app", "get_pipeline", "get_agent"]
