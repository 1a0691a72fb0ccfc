"""LLM completion clients."""
from apps.backend.llm.yandex_client import ChatMessage, YandexGptClient

__all__ = ["ChatMessage", "YandexGptClient"]
