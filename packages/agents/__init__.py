"""Question answering agents over the vault index."""
