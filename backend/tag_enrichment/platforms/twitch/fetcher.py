"""Twitch tag fetcher."""

from typing import Dict, Iterable, List, Optional
import logging

from tag_enrichment.errors import PlatformResponseError
from tag_enrichment.models.schemas import Platform
from tag_enrichment.platforms.base import TagFetcher
from tag_enrichment.platforms.twitch.twitch_api import TwitchAPI

logger = logging.getLogger(__name__)


class TwitchTagFetcher(TagFetcher):
    """
    Fetch channel tags and current game for Twitch streamers.

    Logins are resolved to broadcaster IDs in one call and the channels are
    read in a second call, 100 identities at a time.
    """

    platform = Platform.TWITCH
    supports_batch = True
    max_batch_size = TwitchAPI.MAX_IDS_PER_REQUEST

    def __init__(self, api: Optional[TwitchAPI] = None):
        self.api = api or TwitchAPI()

    def fetch_tags(self, username: str) -> List[str]:
        return self.fetch_tags_batch([username]).get(username.lower(), [])

    def fetch_tags_batch(self, usernames: Iterable[str]) -> Dict[str, List[str]]:
        """
        Fetch tags for many logins.

        Args:
            usernames: Twitch logins (any case)

        Returns:
            Mapping of lower-cased login to ``channel.tags + [game_name]``.
            Logins that do not resolve to a broadcaster are left out.
        """
        logins = list(dict.fromkeys(name.lower() for name in usernames if name))
        results: Dict[str, List[str]] = {}

        for start in range(0, len(logins), self.max_batch_size):
            results.update(self._fetch_chunk(logins[start:start + self.max_batch_size]))

        return results

    def _fetch_chunk(self, logins: List[str]) -> Dict[str, List[str]]:
        users = self.api.get_users(logins)
        if not users:
            logger.warning(f"None of {len(logins)} Twitch logins resolved")
            return {}

        login_by_id: Dict[str, str] = {}
        for user in users:
            try:
                login_by_id[str(user["id"])] = user["login"].lower()
            except (KeyError, TypeError, AttributeError) as e:
                raise PlatformResponseError(self.platform.value, f"Malformed user object: {user!r}") from e

        unresolved = len(logins) - len(login_by_id)
        if unresolved > 0:
            logger.warning(f"{unresolved} of {len(logins)} Twitch logins did not resolve")

        results: Dict[str, List[str]] = {}
        for channel in self.api.get_channels(list(login_by_id)):
            if not isinstance(channel, dict):
                raise PlatformResponseError(self.platform.value, f"Malformed channel object: {channel!r}")

            login = login_by_id.get(str(channel.get("broadcaster_id")))
            if login is None:
                continue

            tags = list(channel.get("tags") or [])
            game_name = channel.get("game_name") or ""
            if game_name:
                tags.append(game_name)

            results[login] = tags

        return results
