"""Shared test doubles: HTTP mocking helpers and an in-memory adapter."""

from unittest.mock import MagicMock

import httpx

from musync.core.errors import ProviderError
from musync.models.platform import PlatformType
from musync.schemas.playlist import Playlist
from musync.schemas.song import PlatformSongRecord
from musync.services.sync.base import PlatformAdapter, ProviderConfig


def make_response(status_code: int, payload=None, method: str = "GET"):
    """A real httpx.Response so ``.json()`` behaves as in production."""
    request = httpx.Request(method, "https://api.test")
    if payload is None:
        return httpx.Response(status_code, request=request)
    return httpx.Response(status_code, json=payload, request=request)


def mock_http_client(mock_client_cls: MagicMock) -> MagicMock:
    """Wire a patched ``httpx.Client`` so every ``with Client() as c`` yields one mock."""
    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def record(title: str, artist: str, external_id: str | None = None) -> PlatformSongRecord:
    return PlatformSongRecord(
        title=title,
        artist=artist,
        album="Album",
        external_id=external_id or f"{title}-{artist}".lower().replace(" ", "-"),
    )


class FakeAdapter(PlatformAdapter):
    """In-memory provider: a liked catalog plus a searchable catalog."""

    def __init__(
        self,
        platform_type: PlatformType,
        liked: list[PlatformSongRecord] | None = None,
        catalog: list[PlatformSongRecord] | None = None,
        fail_add: set[str] | None = None,
        search_errors: dict[str, Exception] | None = None,
        fetch_error: Exception | None = None,
    ):
        super().__init__(ProviderConfig(client_id="fake-client"))
        self._platform_type = platform_type
        self.liked = list(liked or [])
        self.catalog = list(catalog or [])
        self.fail_add = fail_add or set()
        self.search_errors = search_errors or {}
        self.fetch_error = fetch_error
        self.fetch_calls = 0
        self.searches: list[str] = []
        self.saved: list[str] = []
        self.playlists: dict[str, Playlist] = {}
        self.playlist_tracks: dict[str, list[str]] = {}

    @property
    def platform_type(self) -> PlatformType:
        return self._platform_type

    def get_liked_songs(self, storage, platform):
        self.fetch_calls += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.liked)

    def search_song(self, storage, platform, query):
        self.searches.append(query)
        if query in self.search_errors:
            raise self.search_errors[query]
        for candidate in self.catalog:
            if f"{candidate.title} {candidate.artist}".casefold() == query.casefold():
                return candidate
        return None

    def _save_track(self, storage, platform, external_id):
        if external_id in self.fail_add:
            raise ProviderError(self.name, "External API error: HTTP 403", 403)
        self.saved.append(external_id)
        for candidate in self.catalog:
            if candidate.external_id == external_id and candidate not in self.liked:
                self.liked.append(candidate)

    def get_playlists(self, storage, platform):
        return list(self.playlists.values())

    def create_playlist(self, storage, platform, name, description="", is_public=True):
        playlist = Playlist(
            external_id=f"pl-{len(self.playlists) + 1}",
            name=name,
            description=description or None,
            is_public=is_public,
            track_count=0,
        )
        self.playlists[playlist.external_id] = playlist
        self.playlist_tracks[playlist.external_id] = []
        return playlist

    def add_tracks_to_playlist(self, storage, platform, playlist_id, track_ids):
        if playlist_id not in self.playlists:
            raise ProviderError(self.name, "External API error: HTTP 404", 404)
        self.playlist_tracks[playlist_id].extend(track_ids)
