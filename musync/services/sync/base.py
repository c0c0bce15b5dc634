"""Abstract base for streaming-platform adapters.

Each adapter wraps one provider's API (Spotify, Apple Music, SoundCloud) and
exposes a uniform surface: OAuth URL and code exchange, liked-songs listing,
track search and save-to-library.

Adapters are stateless strategies. The only instance state is the provider
configuration, which never changes after startup. User credentials travel on
the ``Platform`` passed to every call, so one adapter instance can serve any
number of users concurrently. When a call refreshes credentials, the new pair
is written back through ``Storage`` and onto that same ``Platform`` object.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from musync.core.errors import (
    AuthExpired,
    MusyncError,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
)
from musync.core.time import expires_in, is_expired, utcnow
from musync.schemas.platform import TokenPair

if TYPE_CHECKING:
    from musync.models.platform import Platform, PlatformType
    from musync.schemas.playlist import Playlist
    from musync.schemas.song import PlatformSongRecord
    from musync.services.storage import Storage

logger = logging.getLogger(__name__)

# HTTP timeout for provider API calls
HTTP_TIMEOUT = 15.0


def sanitize_provider_error(e: Exception) -> str:
    """Return a safe error message that never leaks tokens or credentials.

    httpx exceptions can contain Authorization headers, Bearer tokens,
    client secrets, and full URLs with query parameters in their string
    representations. This function returns only generic, safe messages.
    """
    if isinstance(e, httpx.TimeoutException):
        return "External API timeout"
    if isinstance(e, httpx.ConnectError):
        return "External API connection failed"
    if isinstance(e, httpx.HTTPStatusError):
        return f"External API error: HTTP {e.response.status_code}"
    if isinstance(e, httpx.HTTPError):
        return "External API error"
    if isinstance(e, MusyncError):
        return e.message
    return "Sync operation failed"


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a provider timestamp into a naive UTC datetime.

    Handles ISO 8601 (``2024-01-31T10:00:00Z``) and SoundCloud's
    ``2024/01/31 10:00:00 +0000``. Unparseable values give None.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.strptime(value, "%Y/%m/%d %H:%M:%S %z")
        except ValueError:
            logger.debug("Unparseable provider timestamp: %r", value)
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


@dataclass(frozen=True)
class ProviderConfig:
    """OAuth client configuration for one provider. Read-only after startup."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    timeout: float = HTTP_TIMEOUT


class PlatformAdapter(ABC):
    """Abstract base for streaming-platform adapters."""

    authorize_url: str = ""
    token_url: str = ""
    scopes: tuple[str, ...] = ()
    # "basic" sends client credentials as HTTP Basic auth, "body" as form fields
    token_auth: str = "body"

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    @abstractmethod
    def platform_type(self) -> PlatformType:
        """The provider this adapter talks to."""

    @property
    def name(self) -> str:
        return self.platform_type.value

    @property
    def is_configured(self) -> bool:
        return bool(self.config.client_id)

    # OAuth

    def _auth_params(self, state: str) -> dict[str, str]:
        return {
            "client_id": self.config.client_id,
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
        }

    def get_auth_url(self, state: str) -> str:
        """Build the provider authorization URL carrying the CSRF ``state``."""
        return f"{self.authorize_url}?{urlencode(self._auth_params(state))}"

    def exchange_code(self, code: str) -> TokenPair:
        """Exchange an authorization code for a token pair.

        The pair is returned, not kept: callers persist it with ``connect``.
        """
        pair = self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.config.redirect_uri,
            }
        )
        logger.info("Authorization code exchanged for %s", self.name)
        return pair

    def refresh_credentials(self, refresh_token: str | None) -> TokenPair:
        """Run the refresh-token grant. Raises AuthExpired when it fails."""
        if not refresh_token:
            raise AuthExpired(self.name)
        pair = self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})
        if not pair.refresh_token:
            pair = pair.model_copy(update={"refresh_token": refresh_token})
        return pair

    def _token_request(self, data: dict[str, str]) -> TokenPair:
        auth = None
        if self.token_auth == "basic":
            auth = (self.config.client_id, self.config.client_secret)
        else:
            data = {
                **data,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            }

        try:
            with httpx.Client(timeout=self.config.timeout) as client:
                response = client.post(self.token_url, data=data, auth=auth)
        except httpx.TimeoutException as e:
            logger.error("%s token request timed out", self.name)
            raise ProviderTimeout(self.name, sanitize_provider_error(e)) from e
        except httpx.HTTPError as e:
            logger.error("%s token request failed: %s", self.name, type(e).__name__)
            raise ProviderUnavailable(self.name, sanitize_provider_error(e)) from e

        if response.status_code >= 500:
            raise ProviderUnavailable(
                self.name,
                f"token endpoint error: HTTP {response.status_code}",
                response.status_code,
            )
        if response.status_code >= 400:
            logger.warning("%s token request rejected: HTTP %d", self.name, response.status_code)
            raise AuthExpired(self.name)

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning("%s token endpoint returned a non-JSON body", self.name)
            raise ProviderError(self.name, "Malformed token response") from e
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthExpired(self.name, f"{self.name} token response had no access token")
        return TokenPair(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_in(payload.get("expires_in")),
        )

    # Connection state

    def find_platform(self, storage: Storage, user_id: int) -> Platform | None:
        for platform in storage.get_platforms_by_user_id(user_id):
            if platform.type == self.name:
                return platform
        return None

    def connect(
        self,
        storage: Storage,
        user_id: int,
        access_token: str,
        refresh_token: str,
        expires_at: datetime | None = None,
    ) -> Platform:
        """Store credentials on the user's platform row, creating it if needed."""
        if not access_token or not refresh_token:
            raise ValueError("Access token and refresh token are required")

        existing = self.find_platform(storage, user_id)
        if existing is None:
            platform = storage.create_platform(
                user_id,
                self.name,
                is_connected=True,
                access_token=access_token,
                refresh_token=refresh_token,
                token_expires_at=expires_at,
                connected_at=utcnow(),
            )
        else:
            changes: dict[str, Any] = {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "token_expires_at": expires_at,
                "is_connected": True,
            }
            if not existing.is_connected:
                changes["connected_at"] = utcnow()
            platform = storage.update_platform(existing.id, **changes)

        logger.info("User %d connected %s", user_id, self.name)
        return platform

    def disconnect(self, storage: Storage, user_id: int, clear_credentials: bool = True) -> None:
        """Mark the user's platform disconnected. No-op when there is none."""
        platform = self.find_platform(storage, user_id)
        if platform is None:
            return
        changes: dict[str, Any] = {"is_connected": False}
        if clear_credentials:
            changes.update(access_token=None, refresh_token=None, token_expires_at=None)
        storage.update_platform(platform.id, **changes)
        logger.info("User %d disconnected %s", user_id, self.name)

    # Library operations

    @abstractmethod
    def get_liked_songs(self, storage: Storage, platform: Platform) -> list[PlatformSongRecord]:
        """Fetch the complete liked-songs catalog, following every page."""

    @abstractmethod
    def search_song(
        self, storage: Storage, platform: Platform, query: str
    ) -> PlatformSongRecord | None:
        """Free-text track search. Returns the top result, or None."""

    @abstractmethod
    def _save_track(self, storage: Storage, platform: Platform, external_id: str) -> None:
        """Mark a provider track as liked/saved. Raises on failure."""

    def add_song_to_library(self, storage: Storage, platform: Platform, external_id: str) -> bool:
        """Save a track to the user's library. Returns True on success.

        False means "could not add", not "definitely not added": provider
        saves are idempotent, so retrying a False is always safe.
        """
        if not external_id:
            return False
        try:
            self._save_track(storage, platform, external_id)
        except MusyncError as e:
            logger.warning("Adding track to %s failed: %s", self.name, e.message)
            return False
        return True

    # Playlists

    @abstractmethod
    def get_playlists(self, storage: Storage, platform: Platform) -> list[Playlist]:
        """The user's own playlists."""

    @abstractmethod
    def create_playlist(
        self,
        storage: Storage,
        platform: Platform,
        name: str,
        description: str = "",
        is_public: bool = True,
    ) -> Playlist: ...

    @abstractmethod
    def add_tracks_to_playlist(
        self, storage: Storage, platform: Platform, playlist_id: str, track_ids: list[str]
    ) -> None:
        """Append provider tracks to a playlist. Raises on failure."""

    # HTTP plumbing

    def _auth_headers(self, platform: Platform) -> dict[str, str]:
        return {"Authorization": f"Bearer {platform.access_token}"}

    def _perform(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            with httpx.Client(timeout=self.config.timeout) as client:
                return client.request(method, url, headers=headers, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.error("%s %s timed out", self.name, method)
            raise ProviderTimeout(self.name, sanitize_provider_error(e)) from e
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", self.name, method, type(e).__name__)
            raise ProviderUnavailable(self.name, sanitize_provider_error(e)) from e

    def _refresh_platform(self, storage: Storage, platform: Platform) -> None:
        pair = self.refresh_credentials(platform.refresh_token)
        storage.update_platform(
            platform.id,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_expires_at=pair.expires_at,
        )
        platform.access_token = pair.access_token
        platform.refresh_token = pair.refresh_token
        platform.token_expires_at = pair.expires_at
        logger.info("Refreshed %s credentials for platform %d", self.name, platform.id)

    def _send(
        self,
        storage: Storage,
        platform: Platform,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send an authorized request with the refresh-and-retry-once policy.

        1. Refresh up front when the stored expiry has passed
        2. On 401, refresh once and replay the same request
        3. A second 401, or a 401 with no refresh token, is AuthExpired

        At most one refresh happens per call: a 401 right after the up-front
        refresh counts as the failed retry.
        """
        if not platform.access_token:
            raise AuthExpired(self.name)

        refreshed = False
        if is_expired(platform.token_expires_at) and platform.refresh_token:
            self._refresh_platform(storage, platform)
            refreshed = True

        response = self._perform(method, url, self._auth_headers(platform), params, json)
        if response.status_code == 401:
            if refreshed or not platform.refresh_token:
                raise AuthExpired(self.name)
            self._refresh_platform(storage, platform)
            response = self._perform(method, url, self._auth_headers(platform), params, json)
            if response.status_code == 401:
                raise AuthExpired(self.name)

        if response.status_code == 429 or response.status_code >= 500:
            raise ProviderUnavailable(
                self.name, f"External API error: HTTP {response.status_code}", response.status_code
            )
        if response.status_code >= 400:
            raise ProviderError(
                self.name, f"External API error: HTTP {response.status_code}", response.status_code
            )
        return response

    def _get_json(
        self,
        storage: Storage,
        platform: Platform,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return self._send_json(storage, platform, "GET", url, params=params)

    def _send_json(
        self,
        storage: Storage,
        platform: Platform,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        response = self._send(storage, platform, method, url, params=params, json=json)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, "Malformed response body") from e
