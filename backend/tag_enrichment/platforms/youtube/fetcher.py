"""YouTube tag fetcher."""

from tag_enrichment.models.schemas import Platform
from tag_enrichment.platforms.base import NullTagFetcher


class YouTubeTagFetcher(NullTagFetcher):
    """
    YouTube has no public endpoint for channel tags or a live category.

    Always returns an empty list; YouTube streamers are still enriched
    through content inference.
    """

    def __init__(self):
        super().__init__(Platform.YOUTUBE)
