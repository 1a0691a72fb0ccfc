"""FastAPI backend for Vault RAG."""
