"""Streamer tag and category enrichment pipeline."""

__version__ = "1.0.0"
