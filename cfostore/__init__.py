"""Path layout, JSON-ready records, vector filtering helpers and a SQLite store for financial documents."""

__version__ = "0.1.0"