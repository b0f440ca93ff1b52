"""Map each platform to its tag fetcher."""

from typing import Dict, Optional

from tag_enrichment.models.schemas import Platform
from tag_enrichment.platforms.base import NullTagFetcher, TagFetcher
from tag_enrichment.platforms.kick.fetcher import KickTagFetcher
from tag_enrichment.platforms.kick.kick_api import KickAPI
from tag_enrichment.platforms.twitch.fetcher import TwitchTagFetcher
from tag_enrichment.platforms.twitch.twitch_api import TwitchAPI
from tag_enrichment.platforms.youtube.fetcher import YouTubeTagFetcher


def build_fetchers(
    twitch_api: Optional[TwitchAPI] = None,
    kick_api: Optional[KickAPI] = None
) -> Dict[Platform, TagFetcher]:
    """
    Build one fetcher per platform.

    Platforms without a tag source get a NullTagFetcher so the orchestrator
    never has to special-case them.
    """
    fetchers: Dict[Platform, TagFetcher] = {
        platform: NullTagFetcher(platform) for platform in Platform
    }
    fetchers[Platform.TWITCH] = TwitchTagFetcher(twitch_api)
    fetchers[Platform.KICK] = KickTagFetcher(kick_api)
    fetchers[Platform.YOUTUBE] = YouTubeTagFetcher()
    return fetchers
