"""Apple Music API adapter.

Every request carries two credentials: the app-wide MusicKit developer token
as the Bearer and the user's music token in ``Music-User-Token``. Only the
user token is stored on the platform row and refreshed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

from musync.core.errors import ProviderError
from musync.models.platform import PlatformType
from musync.schemas.playlist import Playlist
from musync.schemas.song import PlatformSongRecord
from musync.services.sync.base import PlatformAdapter, ProviderConfig, parse_timestamp

if TYPE_CHECKING:
    from musync.models.platform import Platform
    from musync.services.storage import Storage

logger = logging.getLogger(__name__)

APPLE_MUSIC_API_ROOT = "https://api.music.apple.com"
APPLE_MUSIC_API_BASE = f"{APPLE_MUSIC_API_ROOT}/v1"
APPLE_AUTHORIZE_URL = "https://appleid.apple.com/auth/authorize"
APPLE_TOKEN_URL = "https://appleid.apple.com/auth/token"  # nosec B105

PAGE_SIZE = 100
ARTWORK_SIZE = 500


def _artwork_url(artwork: dict[str, Any] | None) -> str | None:
    """Fill the ``{w}x{h}`` placeholders of an Apple artwork template."""
    if not artwork or not artwork.get("url"):
        return None
    size = str(ARTWORK_SIZE)
    return artwork["url"].replace("{w}", size).replace("{h}", size)


def _song_to_record(item: dict[str, Any]) -> PlatformSongRecord:
    attributes = item.get("attributes") or {}
    return PlatformSongRecord(
        title=attributes.get("name") or "",
        artist=attributes.get("artistName") or "",
        album=attributes.get("albumName"),
        cover_url=_artwork_url(attributes.get("artwork")),
        external_id=str(item.get("id") or ""),
        added_at=parse_timestamp(attributes.get("dateAdded")),
    )


def _playlist(item: dict[str, Any]) -> Playlist:
    attributes = item.get("attributes") or {}
    description = attributes.get("description") or {}
    return Playlist(
        external_id=str(item.get("id") or ""),
        name=attributes.get("name") or "",
        description=description.get("standard") if isinstance(description, dict) else None,
        is_public=attributes.get("isPublic"),
    )


class AppleMusicAdapter(PlatformAdapter):
    authorize_url = APPLE_AUTHORIZE_URL
    token_url = APPLE_TOKEN_URL
    scopes = ("user-library-read", "user-library-modify")

    def __init__(self, config: ProviderConfig, developer_token: str = "", storefront: str = "us"):
        super().__init__(config)
        self.developer_token = developer_token
        self.storefront = storefront

    @property
    def platform_type(self) -> PlatformType:
        return PlatformType.APPLE_MUSIC

    @property
    def is_configured(self) -> bool:
        return bool(self.config.client_id and self.developer_token)

    def _auth_params(self, state: str) -> dict[str, str]:
        params = super()._auth_params(state)
        params["response_mode"] = "form_post"
        return params

    def _auth_headers(self, platform: Platform) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.developer_token}",
            "Music-User-Token": platform.access_token or "",
        }

    def get_liked_songs(self, storage: Storage, platform: Platform) -> list[PlatformSongRecord]:
        records: list[PlatformSongRecord] = []
        url: str | None = f"{APPLE_MUSIC_API_BASE}/me/library/songs"
        params: dict[str, Any] | None = {"limit": PAGE_SIZE}
        while url:
            page = self._get_json(storage, platform, url, params=params)
            records.extend(_song_to_record(item) for item in page.get("data") or [])
            next_path = page.get("next")
            # ``next`` is a path relative to the API root, offset included
            url = urljoin(APPLE_MUSIC_API_ROOT, next_path) if next_path else None
            params = None
        logger.info("Fetched %d library songs from Apple Music", len(records))
        return records

    def search_song(
        self, storage: Storage, platform: Platform, query: str
    ) -> PlatformSongRecord | None:
        data = self._get_json(
            storage,
            platform,
            f"{APPLE_MUSIC_API_BASE}/catalog/{self.storefront}/search",
            params={"term": query, "types": "songs", "limit": 1},
        )
        songs = ((data.get("results") or {}).get("songs") or {}).get("data") or []
        if not songs:
            return None
        return _song_to_record(songs[0])

    def _save_track(self, storage: Storage, platform: Platform, external_id: str) -> None:
        self._send(
            storage,
            platform,
            "POST",
            f"{APPLE_MUSIC_API_BASE}/me/library",
            params={"ids[songs]": external_id},
        )

    def get_playlists(self, storage: Storage, platform: Platform) -> list[Playlist]:
        playlists: list[Playlist] = []
        url: str | None = f"{APPLE_MUSIC_API_BASE}/me/library/playlists"
        params: dict[str, Any] | None = {"limit": PAGE_SIZE}
        while url:
            page = self._get_json(storage, platform, url, params=params)
            playlists.extend(_playlist(item) for item in page.get("data") or [])
            next_path = page.get("next")
            url = urljoin(APPLE_MUSIC_API_ROOT, next_path) if next_path else None
            params = None
        return playlists

    def create_playlist(
        self,
        storage: Storage,
        platform: Platform,
        name: str,
        description: str = "",
        is_public: bool = True,
    ) -> Playlist:
        # Library playlists are always private; is_public has no effect here
        created = self._send_json(
            storage,
            platform,
            "POST",
            f"{APPLE_MUSIC_API_BASE}/me/library/playlists",
            json={"attributes": {"name": name, "description": description}},
        )
        data = created.get("data") or []
        if not data:
            raise ProviderError(self.name, "Playlist response had no data")
        logger.info("Created Apple Music playlist %s", data[0].get("id"))
        return _playlist(data[0])

    def add_tracks_to_playlist(
        self, storage: Storage, platform: Platform, playlist_id: str, track_ids: list[str]
    ) -> None:
        self._send(
            storage,
            platform,
            "POST",
            f"{APPLE_MUSIC_API_BASE}/me/library/playlists/{playlist_id}/tracks",
            json={"data": [{"id": t, "type": "songs"} for t in track_ids]},
        )
