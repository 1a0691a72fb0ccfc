from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VaultRagSettings(BaseSettings):
    """Configuration for indexing the vault and answering questions over it."""

    model_config = SettingsConfigDict(
        env_prefix="VAULT_RAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project_root: Path = Field(
        default_factory=lambda: Path(__file__).resolve().parents[2],
        description="Repository root directory.",
    )

    vault_path: Path = Field(
        default_factory=lambda: Path("vault"),
        description="Root directory of the Markdown notes to index.",
    )
    database_path: Path = Field(
        default_factory=lambda: Path("data") / "vault_rag.db",
        description="SQLite file holding documents, chunks and embeddings.",
    )

    chunk_size: int = Field(default=500, description="Maximum characters per chunk.")
    chunk_overlap: int = Field(default=50, description="Overlap between consecutive chunks.")

    ollama_url: str = Field(default="http://localhost:11434", description="Ollama base URL.")
    ollama_model: str = Field(default="nomic-embed-text", description="Embedding model name.")
    embedding_max_retries: int = Field(default=3, description="Attempts per embedding request.")

    yandex_api_key: str = Field(default="", description="API key for the YandexGPT completion API.")
    yandex_folder_id: str = Field(default="", description="Yandex Cloud folder id used in the model URI.")
    yandex_model: str = Field(default="yandexgpt")
    completion_url: str = Field(
        default="https://llm.api.cloud.yandex.net/foundationModels/v1/completion",
    )

    request_timeout: float = Field(default=60.0, description="HTTP timeout for remote calls, seconds.")
    log_level: str = Field(default="INFO")

    def resolve_paths(self) -> "VaultRagSettings":
        """Return a copy with all relative paths resolved against project_root."""

        def _resolve(path: Path) -> Path:
            if path.is_absolute():
                return path
            return self.project_root / path

        return self.model_copy(
            update={
                "vault_path": _resolve(self.vault_path),
                "database_path": _resolve(self.database_path),
            }
        )


def get_settings() -> VaultRagSettings:
    """Return settings with resolved paths."""
    return VaultRagSettings().resolve_paths()


__all__ = ["VaultRagSettings", "get_settings"]
