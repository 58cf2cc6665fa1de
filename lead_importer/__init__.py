"""Bulk lead import & deduplication pipeline (CSV -> team lead store)."""

__version__ = "0.1.0"
