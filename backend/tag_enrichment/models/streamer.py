"""Streamer record model."""

from sqlalchemy import Column, String, Integer, DateTime, JSON, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from datetime import datetime
import uuid

from tag_enrichment.database import Base


class Streamer(Base):
    """
    A creator on one platform.

    The enrichment pipeline only ever touches ``tags``, ``inferred_category``,
    ``last_enrichment_update`` and ``version``; everything else is written by
    upstream scraping.
    """

    __tablename__ = "streamers"
    __table_args__ = (
        UniqueConstraint("platform", "username", name="uq_streamers_platform_username"),
        Index("idx_streamers_platform_enrichment", "platform", "last_enrichment_update"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    platform = Column(String(20), nullable=False, index=True)  # 'TWITCH', 'KICK', 'YOUTUBE', ...
    username = Column(String(100), nullable=False)
    display_name = Column(String(200), nullable=True)

    current_game = Column(String(200), nullable=True)
    top_games = Column(JSON, default=list, nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    inferred_category = Column(String(20), nullable=True, index=True)

    last_enrichment_update = Column(DateTime, nullable=True)
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Streamer(id={self.id}, platform={self.platform}, username={self.username})>"
