#!/usr/bin/env python3
"""
RAG comparison script - run a list of questions through the Vault RAG API
with and without retrieved context.

Usage:
    python scripts/run_comparison.py questions.md [--output comparison_results/run.json]

The questions file is plain text or Markdown; every line ending with "?"
(optionally prefixed by "1." or "-") is treated as a question.
"""
from __future__ import annotations

import argparse
import json
import re
import time
from datetime import datetime
from pathlib import Path
from typing import TypedDict

import httpx


class ComparisonRow(TypedDict):
    id: int
    question: str
    with_rag: str
    with_rag_mode: str
    without_rag: str
    rag_helpful: bool
    sources: list[str]
    response_time_ms: int
    timestamp: str
    error: str | None


DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_OUTPUT_DIR = Path(__file__).parent.parent / "comparison_results"

_QUESTION_RE = re.compile(r"^(?:\d+\.|-|\*)?\s*(.+\?)\s*$")


def parse_questions(filepath: Path) -> list[str]:
    questions: list[str] = []
    for line in filepath.read_text(encoding="utf-8").splitlines():
        match = _QUESTION_RE.match(line.strip())
        if match:
            questions.append(match.group(1).strip())
    return questions


def compare_question(client: httpx.Client, api_url: str, question: str, top_k: int) -> tuple[dict, int]:
    """POST one question to /compare; returns the response body and the elapsed time."""
    start_time = time.perf_counter()
    response = client.post(f"{api_url}/compare", json={"question": question, "top_k": top_k})
    response.raise_for_status()
    elapsed_ms = int((time.perf_counter() - start_time) * 1000)
    return response.json(), elapsed_ms


def run_comparison(
    questions: list[str],
    output_path: Path,
    api_url: str = DEFAULT_API_URL,
    top_k: int = 3,
    delay_between_queries: float = 1.0,
    timeout: float = 120.0,
) -> list[ComparisonRow]:
    rows: list[ComparisonRow] = []
    total = len(questions)

    print(f"\n{'='*60}")
    print(f"Comparing {total} questions")
    print(f"API: {api_url}")
    print(f"Output: {output_path}")
    print(f"{'='*60}\n")

    with httpx.Client(timeout=timeout) as client:
        for i, question in enumerate(questions, 1):
            print(f"[{i:3d}/{total}] {question[:60]}")
            try:
                body, elapsed_ms = compare_question(client, api_url, question, top_k)
            except httpx.HTTPError as exc:
                rows.append(
                    ComparisonRow(
                        id=i,
                        question=question,
                        with_rag="",
                        with_rag_mode="",
                        without_rag="",
                        rag_helpful=False,
                        sources=[],
                        response_time_ms=0,
                        timestamp=datetime.now().isoformat(),
                        error=str(exc),
                    )
                )
                print(f"         ERROR: {exc}")
            else:
                with_rag = body["with_rag"]
                row = ComparisonRow(
                    id=i,
                    question=question,
                    with_rag=with_rag["answer"],
                    with_rag_mode=with_rag["mode"],
                    without_rag=body["without_rag"]["answer"],
                    rag_helpful=body["rag_helpful"],
                    sources=[
                        r["chunk"]["metadata"].get("fileName", "unknown") for r in with_rag["used_context"]
                    ],
                    response_time_ms=elapsed_ms,
                    timestamp=datetime.now().isoformat(),
                    error=None,
                )
                rows.append(row)
                print(f"         {elapsed_ms}ms | {row['with_rag_mode']} | helpful={row['rag_helpful']}")

            if i % 10 == 0:
                _save_results(rows, output_path, api_url)
                print(f"         [Saved checkpoint: {i} questions]")

            if i < total:
                time.sleep(delay_between_queries)

    _save_results(rows, output_path, api_url)
    _print_summary(rows)
    return rows


def _save_results(rows: list[ComparisonRow], output_path: Path, api_url: str) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_data = {
        "metadata": {
            "run_date": datetime.now().isoformat(),
            "api_url": api_url,
            "total_questions": len(rows),
            "completed": sum(1 for r in rows if r["error"] is None),
            "errors": sum(1 for r in rows if r["error"] is not None),
            "rag_helpful": sum(1 for r in rows if r["rag_helpful"]),
        },
        "results": rows,
    }
    output_path.write_text(json.dumps(output_data, ensure_ascii=False, indent=2), encoding="utf-8")


def _print_summary(rows: list[ComparisonRow]) -> None:
    completed = [r for r in rows if r["error"] is None]
    errors = [r for r in rows if r["error"] is not None]
    helpful = [r for r in completed if r["rag_helpful"]]
    modes: dict[str, int] = {}
    for r in completed:
        modes[r["with_rag_mode"]] = modes.get(r["with_rag_mode"], 0) + 1

    avg_time = sum(r["response_time_ms"] for r in completed) / len(completed) if completed else 0

    print(f"\n{'='*60}")
    print("COMPARISON SUMMARY")
    print(f"{'='*60}")
    print(f"Total questions:    {len(rows)}")
    print(f"Successful:         {len(completed)}")
    print(f"Errors:             {len(errors)}")
    print(f"RAG helpful:        {len(helpful)}")
    for mode, count in sorted(modes.items()):
        print(f"  {mode:<20} {count}")
    print(f"Avg response time:  {avg_time:.0f}ms")
    print(f"{'='*60}\n")

    if errors:
        print("ERRORS:")
        for r in errors[:5]:
            print(f"  - Q{r['id']}: {r['error']}")
        if len(errors) > 5:
            print(f"  ... and {len(errors) - 5} more errors")


def main() -> None:
    parser = argparse.ArgumentParser(description="Compare answers with and without RAG")
    parser.add_argument("questions", type=Path, help="Questions file (one question per line)")
    parser.add_argument("--output", "-o", type=Path, default=None, help="Output JSON file path")
    parser.add_argument("--api-url", default=DEFAULT_API_URL, help="Vault RAG API base URL")
    parser.add_argument("--top-k", type=int, default=3)
    parser.add_argument("--delay", "-d", type=float, default=1.0, help="Delay between questions in seconds")
    parser.add_argument("--limit", "-l", type=int, default=None, help="Limit number of questions")
    args = parser.parse_args()

    if args.output:
        output_path = args.output
    else:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M")
        output_path = DEFAULT_OUTPUT_DIR / f"run_{timestamp}.json"

    questions = parse_questions(args.questions)
    print(f"Loaded {len(questions)} questions from {args.questions}")
    if args.limit:
        questions = questions[: args.limit]
        print(f"Limited to {len(questions)} questions")

    run_comparison(
        questions,
        output_path,
        api_url=args.api_url.rstrip("/"),
        top_k=args.top_k,
        delay_between_queries=args.delay,
    )
    print(f"\nResults saved to: {output_path}")


if __name__ == "__main__":
    main()
