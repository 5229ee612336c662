"""Persistence and query layer for cluster batch-job records."""

__version__ = "0.1.0"
