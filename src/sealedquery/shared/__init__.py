"""Shared modules for SealedQuery."""
