"""Command-line interface for SealedQuery."""
