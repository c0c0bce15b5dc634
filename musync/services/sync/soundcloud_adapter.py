"""SoundCloud API adapter.

SoundCloud has no album concept: the track genre stands in for it, falling
back to "Unknown". The uploader's username is reported as the artist.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from musync.models.platform import PlatformType
from musync.schemas.playlist import Playlist
from musync.schemas.song import PlatformSongRecord
from musync.services.sync.base import PlatformAdapter, parse_timestamp

if TYPE_CHECKING:
    from musync.models.platform import Platform
    from musync.services.storage import Storage

logger = logging.getLogger(__name__)

SOUNDCLOUD_API_BASE = "https://api.soundcloud.com"
SOUNDCLOUD_AUTHORIZE_URL = "https://secure.soundcloud.com/authorize"
SOUNDCLOUD_TOKEN_URL = "https://secure.soundcloud.com/oauth/token"  # nosec B105

PAGE_SIZE = 200


def _artwork_url(url: str | None) -> str | None:
    # "-large" is 100x100; the t500x500 variant exists for every artwork
    if not url:
        return None
    return url.replace("-large.", "-t500x500.")


def _track_to_record(track: dict[str, Any], liked_at: str | None = None) -> PlatformSongRecord:
    user = track.get("user") or {}
    return PlatformSongRecord(
        title=track.get("title") or "",
        artist=user.get("username") or "",
        album=track.get("genre") or "Unknown",
        cover_url=_artwork_url(track.get("artwork_url")),
        external_id=str(track.get("id") or ""),
        added_at=parse_timestamp(liked_at or track.get("created_at")),
    )


def _playlist(item: dict[str, Any]) -> Playlist:
    return Playlist(
        external_id=str(item.get("id") or ""),
        name=item.get("title") or "",
        description=item.get("description") or None,
        is_public=item.get("sharing") == "public" if item.get("sharing") else None,
        track_count=item.get("track_count"),
    )


def _collection(payload: Any) -> list[dict[str, Any]]:
    # Endpoints return a bare list unless linked_partitioning is on
    if isinstance(payload, list):
        return payload
    return payload.get("collection") or []


class SoundCloudAdapter(PlatformAdapter):
    authorize_url = SOUNDCLOUD_AUTHORIZE_URL
    token_url = SOUNDCLOUD_TOKEN_URL
    scopes = ("non-expiring",)

    @property
    def platform_type(self) -> PlatformType:
        return PlatformType.SOUNDCLOUD

    def _auth_headers(self, platform: Platform) -> dict[str, str]:
        return {"Authorization": f"OAuth {platform.access_token}"}

    def get_liked_songs(self, storage: Storage, platform: Platform) -> list[PlatformSongRecord]:
        records: list[PlatformSongRecord] = []
        url: str | None = f"{SOUNDCLOUD_API_BASE}/me/likes/tracks"
        params: dict[str, Any] | None = {"limit": PAGE_SIZE, "linked_partitioning": "true"}
        while url:
            page = self._get_json(storage, platform, url, params=params)
            for track in _collection(page):
                if track.get("kind", "track") != "track":
                    continue
                records.append(_track_to_record(track))
            url = page.get("next_href") if isinstance(page, dict) else None
            params = None
        logger.info("Fetched %d liked tracks from SoundCloud", len(records))
        return records

    def search_song(
        self, storage: Storage, platform: Platform, query: str
    ) -> PlatformSongRecord | None:
        data = self._get_json(
            storage, platform, f"{SOUNDCLOUD_API_BASE}/tracks", params={"q": query, "limit": 1}
        )
        tracks = _collection(data)
        if not tracks:
            return None
        return _track_to_record(tracks[0])

    def _save_track(self, storage: Storage, platform: Platform, external_id: str) -> None:
        self._send(storage, platform, "POST", f"{SOUNDCLOUD_API_BASE}/likes/tracks/{external_id}")

    def get_playlists(self, storage: Storage, platform: Platform) -> list[Playlist]:
        playlists: list[Playlist] = []
        url: str | None = f"{SOUNDCLOUD_API_BASE}/me/playlists"
        params: dict[str, Any] | None = {"limit": PAGE_SIZE, "linked_partitioning": "true"}
        while url:
            page = self._get_json(storage, platform, url, params=params)
            playlists.extend(_playlist(item) for item in _collection(page))
            url = page.get("next_href") if isinstance(page, dict) else None
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
        created = self._send_json(
            storage,
            platform,
            "POST",
            f"{SOUNDCLOUD_API_BASE}/playlists",
            json={
                "playlist": {
                    "title": name,
                    "description": description,
                    "sharing": "public" if is_public else "private",
                }
            },
        )
        logger.info("Created SoundCloud playlist %s", created.get("id"))
        return _playlist(created)

    def add_tracks_to_playlist(
        self, storage: Storage, platform: Platform, playlist_id: str, track_ids: list[str]
    ) -> None:
        # PUT replaces the track list, so the current tracks are sent back first
        url = f"{SOUNDCLOUD_API_BASE}/playlists/{playlist_id}"
        current = self._get_json(storage, platform, url)
        existing = [str(t.get("id")) for t in current.get("tracks") or [] if t.get("id")]
        tracks = [{"id": t} for t in dict.fromkeys([*existing, *track_ids])]
        self._send(storage, platform, "PUT", url, json={"playlist": {"tracks": tracks}})
