"""Kick public API client."""

from typing import Dict, Optional
from urllib.parse import quote

from tag_enrichment.config import settings
from tag_enrichment.errors import PlatformResponseError
from tag_enrichment.models.schemas import Platform
from tag_enrichment.platforms.base import PlatformClient


class KickAPI(PlatformClient):
    """
    Client for Kick's unauthenticated channel endpoint.

    Kick answers 403 instead of 429 when it throttles, and blocks clients
    that don't look like a browser.
    """

    platform = Platform.KICK
    rate_limit_statuses = (403, 429)

    def __init__(self, base_url: Optional[str] = None, user_agent: Optional[str] = None, **kwargs):
        """
        Initialize Kick API client.

        Args:
            base_url: API base URL
            user_agent: Browser-like User-Agent header
            **kwargs: timeout / pacer / retry_policy / session for PlatformClient
        """
        super().__init__(**kwargs)
        self.base_url = (base_url or settings.KICK_API_BASE_URL).rstrip("/")
        self.user_agent = user_agent or settings.KICK_USER_AGENT

    def _headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": "https://kick.com/",
            "Origin": "https://kick.com"
        }

    def get_channel(self, username: str) -> Optional[Dict]:
        """
        Get channel information.

        Args:
            username: Kick channel slug

        Returns:
            Channel dictionary, or None if the channel does not exist
        """
        response = self._request("GET", f"{self.base_url}/channels/{quote(username)}")
        if response is None:
            return None

        payload = self._json(response)
        if not payload:
            return None
        if not isinstance(payload, dict):
            raise PlatformResponseError(self.platform.value, f"Unexpected channel payload for {username}")

        return payload
