"""Database models."""

from tag_enrichment.models.streamer import Streamer

__all__ = ["Streamer"]
