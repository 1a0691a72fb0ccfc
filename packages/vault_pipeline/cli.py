from __future__ import annotations

import logging
import sys

import click

from agents.query_agent import DEFAULT_TOP_K, RagAgent
from rag_core.indexing import IndexingPipeline
from rag_core.models import RagAnswer, SearchResult

from .config import VaultRagSettings, get_settings
from .factory import build_agent, build_pipeline

_log = logging.getLogger(__name__)

SNIPPET_CHARS = 200


def _configure_logging(settings: VaultRagSettings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _print_result(i: int, result: SearchResult) -> None:
    file_name = result.chunk.metadata.get("fileName", "unknown")
    click.echo(f"{i}. {file_name} (similarity: {result.similarity * 100:.1f}%)")
    snippet = result.chunk.content[:SNIPPET_CHARS].replace("\n", " ")
    click.echo(f"   {snippet}")


def _print_answer(answer: RagAnswer) -> None:
    click.echo(f"[{answer.mode}] ({answer.duration_ms}ms)")
    click.echo(answer.answer)
    if answer.used_context:
        click.echo("")
        click.echo("Sources:")
        for i, res in enumerate(answer.used_context, 1):
            _print_result(i, res)


@click.group()
@click.pass_context
def main(ctx: click.Context) -> None:
    """Index an Obsidian-style vault and ask questions over it."""
    settings = get_settings()
    _configure_logging(settings)
    ctx.obj = settings


def _pipeline(ctx: click.Context) -> IndexingPipeline:
    pipeline = build_pipeline(ctx.obj)
    ctx.call_on_close(pipeline.close)
    return pipeline


def _agent(ctx: click.Context, pipeline: IndexingPipeline) -> RagAgent:
    agent = build_agent(pipeline, ctx.obj)
    ctx.call_on_close(agent.close)
    return agent


@main.command("index")
@click.option("--force", is_flag=True, help="Re-index documents that are already stored.")
@click.pass_context
def index_cmd(ctx: click.Context, force: bool) -> None:
    """Chunk, embed and store every Markdown note in the vault."""
    settings: VaultRagSettings = ctx.obj
    _log.info("Using vault_path=%s", settings.vault_path)
    _log.info("Database path=%s", settings.database_path)

    result = _pipeline(ctx).index(force=force)
    if not result.success:
        click.echo(f"Indexing failed: {result.error}", err=True)
        sys.exit(1)

    click.echo(
        f"Indexed {result.documents_processed} documents, "
        f"{result.chunks_created} chunks, skipped {result.documents_skipped} "
        f"in {result.duration_ms}ms"
    )


@main.command("search")
@click.argument("query")
@click.option("--top-k", default=5, show_default=True, type=int)
@click.pass_context
def search_cmd(ctx: click.Context, query: str, top_k: int) -> None:
    """Show the chunks most similar to QUERY."""
    outcome = _pipeline(ctx).search(query, top_k=top_k)
    if not outcome.success:
        click.echo(f"Search failed: {outcome.error}", err=True)
        sys.exit(1)

    if not outcome.value:
        click.echo("No results.")
        return
    for i, res in enumerate(outcome.value, 1):
        _print_result(i, res)


@main.command("ask")
@click.argument("question")
@click.option("--no-rag", is_flag=True, help="Ask the LLM directly, without retrieved context.")
@click.option("--top-k", default=DEFAULT_TOP_K, show_default=True, type=int)
@click.pass_context
def ask_cmd(ctx: click.Context, question: str, no_rag: bool, top_k: int) -> None:
    """Answer QUESTION, by default with context from the vault."""
    agent = _agent(ctx, _pipeline(ctx))
    outcome = agent.answer(question, use_rag=not no_rag, top_k=top_k)
    if not outcome.success:
        click.echo(f"Answer failed: {outcome.error}", err=True)
        sys.exit(1)
    _print_answer(outcome.value)


@main.command("compare")
@click.argument("question")
@click.option("--top-k", default=DEFAULT_TOP_K, show_default=True, type=int)
@click.pass_context
def compare_cmd(ctx: click.Context, question: str, top_k: int) -> None:
    """Answer QUESTION with and without RAG and print both."""
    agent = _agent(ctx, _pipeline(ctx))
    outcome = agent.compare(question, top_k=top_k)
    if not outcome.success:
        click.echo(f"Comparison failed: {outcome.error}", err=True)
        sys.exit(1)

    comparison = outcome.value
    click.echo("=== With RAG ===")
    _print_answer(comparison.with_rag)
    click.echo("")
    click.echo("=== Without RAG ===")
    _print_answer(comparison.without_rag)
    click.echo("")
    click.echo(f"RAG helpful: {'yes' if comparison.rag_helpful else 'no'}")


@main.command("stats")
@click.pass_context
def stats_cmd(ctx: click.Context) -> None:
    """Print document and chunk counts."""
    stats = _pipeline(ctx).stats()
    click.echo(f"Documents: {stats.document_count}")
    click.echo(f"Chunks: {stats.chunk_count}")


@main.command("health")
@click.pass_context
def health_cmd(ctx: click.Context) -> None:
    """Check that the embedding service is reachable."""
    pipeline = _pipeline(ctx)
    if pipeline.embedding_client.check_health():
        click.echo(f"Embedding service OK at {pipeline.embedding_client.base_url}")
        return
    click.echo(f"Embedding service unavailable at {pipeline.embedding_client.base_url}", err=True)
    sys.exit(1)


if __name__ == "__main__":
    main()
