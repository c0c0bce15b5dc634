"""Import engine - pulls every connected platform's catalog into the library.

Read-only towards providers: importing never likes, saves or removes
anything on a platform. It only creates local Song rows and tags them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from musync.core.errors import InvalidSyncRequest, MusyncError, NotFound
from musync.services.song_index import SongIndex
from musync.services.sync.base import sanitize_provider_error
from musync.services.sync.registry import get_connected_adapters

if TYPE_CHECKING:
    from musync.services.storage import Storage

logger = logging.getLogger(__name__)


@dataclass
class PlatformImportResult:
    platform_type: str
    platform_id: int
    songs_imported: int = 0
    total_songs: int = 0
    error: str | None = None


@dataclass
class ImportResult:
    platforms: list[PlatformImportResult] = field(default_factory=list)

    @property
    def total_imported(self) -> int:
        return sum(p.songs_imported for p in self.platforms)


def import_all(storage: Storage, user_id: int) -> ImportResult:
    """Import the liked songs of every connected platform for ``user_id``.

    A failing platform is recorded on its result and the loop moves on.
    """
    if storage.get_user(user_id) is None:
        raise NotFound("User", user_id)

    connected = get_connected_adapters(storage.get_platforms_by_user_id(user_id))
    if not connected:
        raise InvalidSyncRequest("No connected platforms found")

    index = SongIndex(storage, user_id)
    result = ImportResult()

    for adapter, platform in connected:
        entry = PlatformImportResult(platform_type=platform.type, platform_id=platform.id)
        result.platforms.append(entry)
        try:
            records = adapter.get_liked_songs(storage, platform)
            entry.total_songs = len(records)
            for record in records:
                if index.tag(record, platform.id):
                    entry.songs_imported += 1
        except MusyncError as e:
            logger.error("Import from %s failed: %s", platform.type, type(e).__name__)
            entry.error = sanitize_provider_error(e)
            continue
        logger.info(
            "Imported %d of %d songs from %s",
            entry.songs_imported,
            entry.total_songs,
            platform.type,
        )

    return result
