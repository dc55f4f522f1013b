"""Experiment with BM25 ranking over SQLite FTS5: corpora, search, statistics and charts."""

__version__ = "0.1.0"