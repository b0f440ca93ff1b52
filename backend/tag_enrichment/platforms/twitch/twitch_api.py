"""Twitch Helix API client for channel tag lookups."""

from typing import Dict, List, Optional
import logging
import threading

import requests

from tag_enrichment.config import settings
from tag_enrichment.errors import PlatformRequestError, PlatformResponseError, UnauthorizedError
from tag_enrichment.models.schemas import Platform
from tag_enrichment.platforms.base import PlatformClient

logger = logging.getLogger(__name__)


class TokenCache:
    """
    App access token for one Twitch client.

    There is no expiry tracking: the token is dropped when Twitch answers
    401 and a fresh one is fetched on the next call.
    """

    def __init__(self):
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    def get(self) -> Optional[str]:
        with self._lock:
            return self._token

    def set(self, token: str):
        with self._lock:
            self._token = token

    def invalidate(self):
        with self._lock:
            self._token = None


class TwitchAPI(PlatformClient):
    """Client for the Twitch Helix API using client-credentials auth."""

    platform = Platform.TWITCH
    MAX_IDS_PER_REQUEST = 100

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        auth_url: Optional[str] = None,
        base_url: Optional[str] = None,
        token_cache: Optional[TokenCache] = None,
        **kwargs
    ):
        """
        Initialize Twitch API client.

        Args:
            client_id: Twitch API client ID
            client_secret: Twitch API client secret
            auth_url: OAuth token endpoint
            base_url: Helix base URL
            token_cache: Token holder; one per client unless shared explicitly
            **kwargs: timeout / pacer / retry_policy / session for PlatformClient
        """
        super().__init__(**kwargs)
        self.client_id = client_id if client_id is not None else settings.TWITCH_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.TWITCH_CLIENT_SECRET
        self.auth_url = auth_url or settings.TWITCH_AUTH_URL
        self.base_url = (base_url or settings.TWITCH_API_BASE_URL).rstrip("/")
        self.token_cache = token_cache or TokenCache()

    def authenticate(self) -> str:
        """
        Request a new app access token and cache it.

        Returns:
            The access token

        Raises:
            UnauthorizedError: Credentials missing or rejected
            PlatformRequestError: Token endpoint unreachable
        """
        if not self.client_id or not self.client_secret:
            raise UnauthorizedError(self.platform.value, "TWITCH_CLIENT_ID / TWITCH_CLIENT_SECRET not configured")

        try:
            response = self.session.post(
                self.auth_url,
                params={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials"
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise PlatformRequestError(self.platform.value, f"Token request failed: {e}") from e

        if response.status_code >= 400:
            raise UnauthorizedError(
                self.platform.value,
                f"Token request rejected with HTTP {response.status_code}",
                response.status_code
            )

        payload = self._json(response)
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise PlatformResponseError(self.platform.value, "Token response has no access_token")

        self.token_cache.set(token)
        logger.info("Twitch access token obtained")
        return token

    def get_access_token(self) -> str:
        """Cached token, authenticating on first use."""
        return self.token_cache.get() or self.authenticate()

    def _headers(self) -> Dict[str, str]:
        return {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {self.get_access_token()}"
        }

    def _on_unauthorized(self) -> bool:
        logger.info("Twitch token rejected, re-authenticating")
        self.token_cache.invalidate()
        self.authenticate()
        return True

    def get_users(self, logins: List[str]) -> List[Dict]:
        """
        Look up users by login name.

        Args:
            logins: Up to 100 login names

        Returns:
            User objects (``id``, ``login``, ...); unknown logins are simply absent
        """
        self._check_batch(logins)
        response = self._request("GET", f"{self.base_url}/users", params=[("login", login) for login in logins])
        return self._data(response)

    def get_channels(self, broadcaster_ids: List[str]) -> List[Dict]:
        """
        Get channel information for broadcasters.

        Args:
            broadcaster_ids: Up to 100 numeric broadcaster IDs

        Returns:
            Channel objects (``broadcaster_id``, ``game_name``, ``tags``, ...)
        """
        self._check_batch(broadcaster_ids)
        response = self._request(
            "GET",
            f"{self.base_url}/channels",
            params=[("broadcaster_id", broadcaster_id) for broadcaster_id in broadcaster_ids]
        )
        return self._data(response)

    def _check_batch(self, values: List[str]):
        if len(values) > self.MAX_IDS_PER_REQUEST:
            raise ValueError(f"Twitch accepts at most {self.MAX_IDS_PER_REQUEST} values per request, got {len(values)}")

    def _data(self, response: Optional[requests.Response]) -> List[Dict]:
        if response is None:
            return []

        payload = self._json(response)
        if not isinstance(payload, dict) or not isinstance(payload.get("data", []), list):
            raise PlatformResponseError(self.platform.value, "Helix response has no data array")

        return payload.get("data") or []
