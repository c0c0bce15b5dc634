"""Spotify Web API adapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from musync.core.errors import ProviderError
from musync.models.platform import PlatformType
from musync.schemas.playlist import Playlist
from musync.schemas.song import PlatformSongRecord
from musync.services.sync.base import PlatformAdapter, parse_timestamp

if TYPE_CHECKING:
    from musync.models.platform import Platform
    from musync.services.storage import Storage

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE = "https://api.spotify.com/v1"
SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"  # nosec B105

# Largest page /me/tracks and /me/playlists accept
PAGE_SIZE = 50
# Most track URIs one playlist POST accepts
PLAYLIST_BATCH_SIZE = 100


def _track_to_record(track: dict[str, Any], added_at: str | None = None) -> PlatformSongRecord:
    artists = ", ".join(a.get("name", "") for a in track.get("artists") or [] if a.get("name"))
    album = track.get("album") or {}
    images = album.get("images") or []
    return PlatformSongRecord(
        title=track.get("name") or "",
        artist=artists,
        album=album.get("name"),
        cover_url=images[0].get("url") if images else None,
        external_id=str(track.get("id") or ""),
        added_at=parse_timestamp(added_at),
    )


def _playlist(item: dict[str, Any]) -> Playlist:
    return Playlist(
        external_id=str(item.get("id") or ""),
        name=item.get("name") or "",
        description=item.get("description") or None,
        is_public=item.get("public"),
        track_count=(item.get("tracks") or {}).get("total"),
    )


def _track_uri(track_id: str) -> str:
    return track_id if track_id.startswith("spotify:") else f"spotify:track:{track_id}"


class SpotifyAdapter(PlatformAdapter):
    authorize_url = SPOTIFY_AUTHORIZE_URL
    token_url = SPOTIFY_TOKEN_URL
    scopes = (
        "user-library-read",
        "user-library-modify",
        "playlist-read-private",
        "playlist-modify-private",
        "playlist-modify-public",
    )
    token_auth = "basic"

    @property
    def platform_type(self) -> PlatformType:
        return PlatformType.SPOTIFY

    def _auth_params(self, state: str) -> dict[str, str]:
        params = super()._auth_params(state)
        # Always show the consent screen so users can switch accounts
        params["show_dialog"] = "true"
        return params

    def get_liked_songs(self, storage: Storage, platform: Platform) -> list[PlatformSongRecord]:
        records: list[PlatformSongRecord] = []
        url: str | None = f"{SPOTIFY_API_BASE}/me/tracks"
        params: dict[str, Any] | None = {"limit": PAGE_SIZE}
        while url:
            page = self._get_json(storage, platform, url, params=params)
            for item in page.get("items") or []:
                track = item.get("track")
                if not track:
                    continue
                records.append(_track_to_record(track, item.get("added_at")))
            # ``next`` is an absolute URL that already carries offset and limit
            url = page.get("next")
            params = None
        logger.info("Fetched %d liked songs from Spotify", len(records))
        return records

    def search_song(
        self, storage: Storage, platform: Platform, query: str
    ) -> PlatformSongRecord | None:
        data = self._get_json(
            storage,
            platform,
            f"{SPOTIFY_API_BASE}/search",
            params={"q": query, "type": "track", "limit": 1},
        )
        items = (data.get("tracks") or {}).get("items") or []
        if not items:
            return None
        return _track_to_record(items[0])

    def _save_track(self, storage: Storage, platform: Platform, external_id: str) -> None:
        self._send(
            storage, platform, "PUT", f"{SPOTIFY_API_BASE}/me/tracks", params={"ids": external_id}
        )

    def get_playlists(self, storage: Storage, platform: Platform) -> list[Playlist]:
        playlists: list[Playlist] = []
        url: str | None = f"{SPOTIFY_API_BASE}/me/playlists"
        params: dict[str, Any] | None = {"limit": PAGE_SIZE}
        while url:
            page = self._get_json(storage, platform, url, params=params)
            playlists.extend(_playlist(item) for item in page.get("items") or [] if item)
            url = page.get("next")
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
        # Playlists are created under the user id, not under /me
        me = self._get_json(storage, platform, f"{SPOTIFY_API_BASE}/me")
        if not me.get("id"):
            raise ProviderError(self.name, "Profile response had no user id")
        created = self._send_json(
            storage,
            platform,
            "POST",
            f"{SPOTIFY_API_BASE}/users/{me['id']}/playlists",
            json={"name": name, "description": description, "public": is_public},
        )
        logger.info("Created Spotify playlist %s", created.get("id"))
        return _playlist(created)

    def add_tracks_to_playlist(
        self, storage: Storage, platform: Platform, playlist_id: str, track_ids: list[str]
    ) -> None:
        uris = [_track_uri(t) for t in track_ids]
        for start in range(0, len(uris), PLAYLIST_BATCH_SIZE):
            self._send(
                storage,
                platform,
                "POST",
                f"{SPOTIFY_API_BASE}/playlists/{playlist_id}/tracks",
                json={"uris": uris[start : start + PLAYLIST_BATCH_SIZE]},
            )
