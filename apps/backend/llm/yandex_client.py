from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import httpx
from pydantic import BaseModel, Field, ValidationError

from rag_core.errors import CompletionServiceError, NoCompletionAvailable
from rag_core.models import SearchResult

_log = logging.getLogger(__name__)

YANDEX_COMPLETION_URL = "https://llm.api.cloud.yandex.net/foundationModels/v1/completion"
YANDEX_MODEL = "yandexgpt"
MAX_TOKENS = 8000
CONTEXT_SEPARATOR = "\n\n---\n\n"


class ChatMessage(BaseModel):
    role: str
    text: str


class CompletionOptions(BaseModel):
    stream: bool = False
    temperature: float = 0.7
    maxTokens: int = MAX_TOKENS


class CompletionRequest(BaseModel):
    modelUri: str
    completionOptions: CompletionOptions
    messages: List[ChatMessage]


class CompletionAlternative(BaseModel):
    message: ChatMessage
    status: Optional[str] = None


class CompletionUsage(BaseModel):
    inputTextTokens: Optional[str] = None
    completionTokens: Optional[str] = None
    totalTokens: Optional[str] = None


class CompletionResult(BaseModel):
    alternatives: List[CompletionAlternative] = Field(default_factory=list)
    usage: CompletionUsage = Field(default_factory=CompletionUsage)
    modelVersion: Optional[str] = None


class CompletionResponse(BaseModel):
    result: CompletionResult


def build_context_block(results: Sequence[SearchResult]) -> str:
    """Format retrieved chunks into a single context block for the LLM."""
    parts: list[str] = []
    for i, res in enumerate(results, 1):
        file_name = res.chunk.metadata.get("fileName", "unknown")
        header = f"[Document {i}: {file_name}, relevance: {res.similarity * 100:.2f}%]"
        parts.append(header + "\n" + res.chunk.content)
    return CONTEXT_SEPARATOR.join(parts)


class YandexGptClient:
    """Chat completion client for the YandexGPT foundation models API. No retries."""

    def __init__(
        self,
        api_key: str,
        folder_id: str,
        *,
        model: str = YANDEX_MODEL,
        completion_url: str = YANDEX_COMPLETION_URL,
        max_tokens: int = MAX_TOKENS,
        timeout: float = 60.0,
        http_client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_key = api_key
        self.model_uri = f"gpt://{folder_id}/{model}"
        self.completion_url = completion_url
        self.max_tokens = max_tokens
        self._log = logger or _log
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)

    def complete(self, messages: Sequence[ChatMessage], temperature: float = 0.7) -> str:
        """Send the transcript and return the text of the first alternative."""
        request = CompletionRequest(
            modelUri=self.model_uri,
            completionOptions=CompletionOptions(
                stream=False,
                temperature=temperature,
                maxTokens=self.max_tokens,
            ),
            messages=list(messages),
        )

        try:
            response = self._client.post(
                self.completion_url,
                json=request.model_dump(),
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as exc:
            self._log.error("Completion request failed: %s", exc)
            raise CompletionServiceError(f"Completion request failed: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            self._log.error("Completion service returned HTTP %d", response.status_code)
            raise CompletionServiceError(
                f"Completion service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = CompletionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise CompletionServiceError(
                f"Malformed completion response: {exc}", status_code=response.status_code
            ) from exc

        if not body.result.alternatives:
            raise NoCompletionAvailable("Completion service returned no alternatives")

        self._log.debug("Completion used %s tokens", body.result.usage.totalTokens)
        return body.result.alternatives[0].message.text

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
        self._log.info("Completion client closed")

    def __enter__(self) -> "YandexGptClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "YandexGptClient",
    "ChatMessage",
    "CompletionResponse",
    "build_context_block",
    "YANDEX_COMPLETION_URL",
]
