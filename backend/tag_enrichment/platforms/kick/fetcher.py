"""Kick tag fetcher."""

from typing import List, Optional
import logging

from tag_enrichment.errors import PlatformResponseError
from tag_enrichment.models.schemas import Platform
from tag_enrichment.platforms.base import TagFetcher
from tag_enrichment.platforms.kick.kick_api import KickAPI

logger = logging.getLogger(__name__)


class KickTagFetcher(TagFetcher):
    """Return a Kick channel's tags exactly as listed, plus its category."""

    platform = Platform.KICK

    def __init__(self, api: Optional[KickAPI] = None):
        self.api = api or KickAPI()

    def fetch_tags(self, username: str) -> List[str]:
        channel = self.api.get_channel(username)
        if channel is None:
            logger.warning(f"Kick channel {username} not found")
            return []

        tags = channel.get("tags") or []
        category = channel.get("category") or {}
        if not isinstance(tags, list) or not isinstance(category, dict):
            raise PlatformResponseError(self.platform.value, f"Malformed channel data for {username}")

        all_tags = [str(tag) for tag in tags]
        if category.get("name"):
            all_tags.append(category["name"])

        return all_tags
