"""Library operations for the HTTP layer.

Each function takes a ``Storage`` and a user id, validates its input, and
returns schema objects that never carry OAuth tokens. Errors are raised as
``MusyncError`` subclasses whose ``status_code`` maps straight to a response.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import TYPE_CHECKING

from musync.core.config import get_settings
from musync.core.errors import (
    DuplicateRecordError,
    InvalidSyncRequest,
    MusyncError,
    NotFound,
    ProviderError,
)
from musync.models.platform import PlatformType
from musync.schemas.platform import AuthUrlResponse, PlatformStatus
from musync.schemas.song import LiveSong, MissingSongs, SongOut
from musync.schemas.sync import SyncHistoryOut
from musync.services.sync.base import sanitize_provider_error
from musync.services.sync.engine import sync_platforms
from musync.services.sync.importer import import_all
from musync.services.sync.registry import get_adapter, get_connected_adapters

if TYPE_CHECKING:
    from musync.models.platform import Platform
    from musync.schemas.playlist import Playlist, PlaylistCreate, PlaylistTracksAdd
    from musync.schemas.sync import SyncRequest
    from musync.services.storage import Storage
    from musync.services.sync.base import PlatformAdapter
    from musync.services.sync.engine import SyncRunResult
    from musync.services.sync.importer import ImportResult

logger = logging.getLogger(__name__)


def _platform_type(value: str | PlatformType) -> PlatformType:
    try:
        return PlatformType(value)
    except ValueError:
        raise InvalidSyncRequest(f"Unknown platform type: {value!r}") from None


def _adapter(platform_type: PlatformType) -> PlatformAdapter:
    adapter = get_adapter(platform_type)
    if adapter is None:
        raise InvalidSyncRequest(f"No adapter registered for {platform_type.value}")
    return adapter


def _require_user(storage: Storage, user_id: int) -> None:
    if storage.get_user(user_id) is None:
        raise NotFound("User", user_id)


def _connected(
    storage: Storage, user_id: int, platform_type: str
) -> tuple[PlatformAdapter, Platform]:
    ptype = _platform_type(platform_type)
    adapter = _adapter(ptype)
    _require_user(storage, user_id)
    platform = adapter.find_platform(storage, user_id)
    if platform is None or not platform.is_connected:
        raise InvalidSyncRequest(f"{ptype.value} is not connected")
    return adapter, platform


def ensure_default_platforms(storage: Storage, user_id: int) -> list[Platform]:
    """Give the user one disconnected platform row per provider."""
    _require_user(storage, user_id)
    existing = {p.type for p in storage.get_platforms_by_user_id(user_id)}
    for platform_type in PlatformType:
        if platform_type.value in existing:
            continue
        try:
            storage.create_platform(user_id, platform_type.value, is_connected=False)
        except DuplicateRecordError:
            logger.info("Platform %s for user %d already created", platform_type.value, user_id)
    return storage.get_platforms_by_user_id(user_id)


def begin_connect(platform_type: str) -> AuthUrlResponse:
    """Start the OAuth flow. The caller keeps ``state`` to check the callback."""
    ptype = _platform_type(platform_type)
    adapter = _adapter(ptype)
    if not adapter.is_configured:
        raise InvalidSyncRequest(f"{ptype.value} is not configured")
    state = secrets.token_urlsafe(32)
    return AuthUrlResponse(platform_type=ptype, auth_url=adapter.get_auth_url(state), state=state)


def complete_connect(
    storage: Storage,
    user_id: int,
    platform_type: str,
    code: str,
    state: str,
    expected_state: str | None,
) -> PlatformStatus:
    """Finish the OAuth flow: check state, exchange the code, store tokens."""
    ptype = _platform_type(platform_type)
    adapter = _adapter(ptype)
    _require_user(storage, user_id)

    if not expected_state or not state or not secrets.compare_digest(state, expected_state):
        raise InvalidSyncRequest("Invalid OAuth state")
    if not code:
        raise InvalidSyncRequest("Missing authorization code")

    pair = adapter.exchange_code(code)
    if not pair.refresh_token:
        raise ProviderError(ptype.value, "Token response had no refresh token")
    platform = adapter.connect(
        storage, user_id, pair.access_token, pair.refresh_token, expires_at=pair.expires_at
    )
    return PlatformStatus.model_validate(platform)


def disconnect_platform(storage: Storage, user_id: int, platform_type: str) -> None:
    ptype = _platform_type(platform_type)
    _require_user(storage, user_id)
    _adapter(ptype).disconnect(
        storage, user_id, clear_credentials=get_settings().clear_credentials_on_disconnect
    )


def list_platforms(storage: Storage, user_id: int) -> list[PlatformStatus]:
    _require_user(storage, user_id)
    return [PlatformStatus.model_validate(p) for p in storage.get_platforms_by_user_id(user_id)]


def list_songs(storage: Storage, user_id: int, platform_type: str | None = None) -> list[SongOut]:
    """All stored songs, or only those tagged with one platform type."""
    _require_user(storage, user_id)
    if platform_type is None:
        songs = storage.get_songs_by_user_id(user_id)
    else:
        ptype = _platform_type(platform_type)
        platform = next(
            (p for p in storage.get_platforms_by_user_id(user_id) if p.type == ptype.value), None
        )
        if platform is None:
            return []
        songs = storage.get_songs_by_user_id_and_platform(user_id, platform.id)
    return [SongOut.model_validate(s) for s in songs]


def list_live_songs(
    storage: Storage, user_id: int, platform_type: str | None = None
) -> list[LiveSong]:
    """Fetch liked songs straight from each connected platform, newest first.

    ``platform_type`` of None or "all" means every connected platform. A
    platform whose fetch fails is logged and left out. Nothing is stored.
    """
    _require_user(storage, user_id)
    platforms = storage.get_platforms_by_user_id(user_id)
    if platform_type not in (None, "all"):
        ptype = _platform_type(platform_type)
        platforms = [p for p in platforms if p.type == ptype.value]

    songs: list[LiveSong] = []
    for adapter, platform in get_connected_adapters(platforms):
        try:
            records = adapter.get_liked_songs(storage, platform)
        except MusyncError as e:
            logger.warning(
                "Skipping %s in live listing: %s", platform.type, sanitize_provider_error(e)
            )
            continue
        songs.extend(
            LiveSong(**r.model_dump(), platform_type=platform.type, platform_id=platform.id)
            for r in records
        )

    songs.sort(key=lambda s: s.added_at or datetime.min, reverse=True)
    return songs


def list_missing_songs(storage: Storage, user_id: int) -> list[MissingSongs]:
    """Per connected platform, the stored songs it does not have yet.

    Empty unless at least two platforms are connected.
    """
    _require_user(storage, user_id)
    connected = [p for p in storage.get_platforms_by_user_id(user_id) if p.is_connected]
    if len(connected) < 2:
        return []

    songs = storage.get_songs_by_user_id(user_id)
    return [
        MissingSongs(
            platform_id=platform.id,
            platform_type=platform.type,
            songs=[
                SongOut.model_validate(s)
                for s in songs
                if platform.id not in (s.platform_ids or [])
            ],
        )
        for platform in connected
    ]


def import_all_songs(storage: Storage, user_id: int) -> ImportResult:
    return import_all(storage, user_id)


def run_sync(storage: Storage, user_id: int, request: SyncRequest) -> SyncRunResult:
    return sync_platforms(storage, user_id, request.source_platform, request.target_platforms)


def get_sync_history(storage: Storage, user_id: int) -> list[SyncHistoryOut]:
    """Sync runs for the user, newest first."""
    _require_user(storage, user_id)
    return [SyncHistoryOut.model_validate(h) for h in storage.get_sync_history_by_user_id(user_id)]


def list_playlists(storage: Storage, user_id: int, platform_type: str) -> list[Playlist]:
    adapter, platform = _connected(storage, user_id, platform_type)
    return adapter.get_playlists(storage, platform)


def create_playlist(
    storage: Storage, user_id: int, platform_type: str, request: PlaylistCreate
) -> Playlist:
    adapter, platform = _connected(storage, user_id, platform_type)
    name = request.name.strip()
    if not name:
        raise InvalidSyncRequest("Playlist name is required")
    return adapter.create_playlist(
        storage, platform, name, request.description, request.is_public
    )


def add_playlist_tracks(
    storage: Storage,
    user_id: int,
    platform_type: str,
    playlist_id: str,
    request: PlaylistTracksAdd,
) -> None:
    """Append tracks to one of the user's playlists on a connected platform."""
    track_ids = [t for t in request.track_ids if t]
    if not playlist_id or not track_ids:
        raise InvalidSyncRequest("A playlist id and at least one track id are required")
    adapter, platform = _connected(storage, user_id, platform_type)
    adapter.add_tracks_to_playlist(storage, platform, playlist_id, track_ids)
    logger.info("Added %d tracks to %s playlist %s", len(track_ids), adapter.name, playlist_id)
