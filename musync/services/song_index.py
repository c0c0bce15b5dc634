"""In-memory view of a user's library, keyed by song identity.

Loaded once per engine run so that tagging a song never needs a per-song
lookup query, and kept current as the run creates or tags rows.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from musync.core.errors import DuplicateRecordError
from musync.core.time import utcnow
from musync.services.matcher import song_key

if TYPE_CHECKING:
    from musync.models.song import Song
    from musync.schemas.song import PlatformSongRecord
    from musync.services.storage import Storage

logger = logging.getLogger(__name__)


class SongIndex:
    def __init__(self, storage: Storage, user_id: int):
        self.storage = storage
        self.user_id = user_id
        self._songs: dict[tuple[str, str], Song] = {}
        self._load()

    def _load(self) -> None:
        self._songs = {
            song_key(s.title, s.artist): s for s in self.storage.get_songs_by_user_id(self.user_id)
        }

    def tag(self, record: PlatformSongRecord, platform_id: int) -> bool:
        """Record that ``record`` exists on ``platform_id``.

        Creates the Song row when the identity is new, otherwise adds the
        platform id to its tags. Returns False when it was already tagged.
        """
        key = song_key(record.title, record.artist)
        song = self._songs.get(key)
        if song is None:
            try:
                song = self.storage.create_song(
                    self.user_id,
                    record.title,
                    record.artist,
                    [platform_id],
                    album=record.album,
                    cover_url=record.cover_url,
                    added_at=record.added_at or utcnow(),
                )
                self._songs[key] = song
                return True
            except DuplicateRecordError:
                # Another writer created the same identity since we loaded
                logger.info("Song row created concurrently for user %d, merging", self.user_id)
                self._load()
                song = self._songs.get(key)
                if song is None:
                    raise

        if platform_id in (song.platform_ids or []):
            return False
        song = self.storage.update_song(song.id, platform_ids=[*song.platform_ids, platform_id])
        self._songs[key] = song
        return True
