"""
Core RAG logic for the vault.

This package contains:
- Domain models and the error taxonomy
- Text chunking (fixed-size and word-aware)
- Embedding client with retry/backoff
- SQLite vector store with brute-force cosine search
- The indexing pipeline tying them together
"""
