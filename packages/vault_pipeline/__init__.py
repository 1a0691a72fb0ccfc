"""
Vault ingestion and command-line tooling.

This package is responsible for:
- Settings (pydantic-settings, VAULT_RAG_ environment prefix)
- Loading Markdown notes from the vault directory
- Wiring the indexing pipeline and the RAG agent from settings
- Providing a CLI for indexing, searching and asking questions
"""
