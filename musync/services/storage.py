"""Repository interface for users, platforms, songs and sync history.

The sync and import engines only talk to ``Storage``. ``SqlStorage`` backs it
with a SQLAlchemy session; any other store works as long as it honours the
same contract. Uniqueness of (user, platform type) and (user, normalized
title, normalized artist) is matched by callers first; the SQL backend also
enforces it and reports violations as ``DuplicateRecordError``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from musync.core.errors import DuplicateRecordError, NotFound, StorageError
from musync.core.time import utcnow
from musync.models.platform import Platform
from musync.models.song import Song
from musync.models.sync_history import SyncHistory
from musync.models.user import User
from musync.services.matcher import song_key

logger = logging.getLogger(__name__)


class Storage(ABC):
    """Persistence contract consumed by the engines. Every method may raise."""

    # Users
    @abstractmethod
    def get_user(self, user_id: int) -> User | None: ...

    @abstractmethod
    def create_user(self, username: str, **fields: Any) -> User: ...

    # Platforms
    @abstractmethod
    def get_platforms_by_user_id(self, user_id: int) -> list[Platform]: ...

    @abstractmethod
    def get_platform(self, platform_id: int) -> Platform | None: ...

    @abstractmethod
    def create_platform(self, user_id: int, type: str, **fields: Any) -> Platform: ...

    @abstractmethod
    def update_platform(self, platform_id: int, **changes: Any) -> Platform: ...

    # Songs
    @abstractmethod
    def get_songs_by_user_id(self, user_id: int) -> list[Song]: ...

    @abstractmethod
    def get_songs_by_user_id_and_platform(self, user_id: int, platform_id: int) -> list[Song]: ...

    @abstractmethod
    def create_song(
        self, user_id: int, title: str, artist: str, platform_ids: list[int], **fields: Any
    ) -> Song: ...

    @abstractmethod
    def update_song(self, song_id: int, **changes: Any) -> Song: ...

    # Sync history
    @abstractmethod
    def get_sync_history_by_user_id(self, user_id: int) -> list[SyncHistory]: ...

    @abstractmethod
    def create_sync_history(
        self,
        user_id: int,
        type: str,
        target_platforms: list[int],
        songs_added: int,
        status: str,
        results: list[dict] | None = None,
    ) -> SyncHistory: ...


class SqlStorage(Storage):
    """``Storage`` over a SQLAlchemy session. Commits after every write."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, entity_type: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Duplicate %s rejected by storage", entity_type)
            raise DuplicateRecordError(f"{entity_type} already exists") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Writing %s failed: %s", entity_type, type(e).__name__)
            raise StorageError(f"Could not save {entity_type}") from e

    def get_user(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)

    def create_user(self, username: str, **fields: Any) -> User:
        user = User(username=username, **fields)
        self.db.add(user)
        self._commit("User")
        self.db.refresh(user)
        return user

    def get_platforms_by_user_id(self, user_id: int) -> list[Platform]:
        return (
            self.db.query(Platform).filter(Platform.user_id == user_id).order_by(Platform.id).all()
        )

    def get_platform(self, platform_id: int) -> Platform | None:
        return self.db.get(Platform, platform_id)

    def create_platform(self, user_id: int, type: str, **fields: Any) -> Platform:
        platform = Platform(user_id=user_id, type=type, **fields)
        if platform.is_connected and platform.connected_at is None:
            platform.connected_at = utcnow()
        self.db.add(platform)
        self._commit("Platform")
        self.db.refresh(platform)
        return platform

    def update_platform(self, platform_id: int, **changes: Any) -> Platform:
        platform = self.get_platform(platform_id)
        if platform is None:
            raise NotFound("Platform", platform_id)
        for name, value in changes.items():
            setattr(platform, name, value)
        self._commit("Platform")
        return platform

    def get_songs_by_user_id(self, user_id: int) -> list[Song]:
        return self.db.query(Song).filter(Song.user_id == user_id).order_by(Song.id).all()

    def get_songs_by_user_id_and_platform(self, user_id: int, platform_id: int) -> list[Song]:
        # JSON containment differs per dialect; tag sets are small, filter in Python.
        return [
            song
            for song in self.get_songs_by_user_id(user_id)
            if platform_id in (song.platform_ids or [])
        ]

    def create_song(
        self, user_id: int, title: str, artist: str, platform_ids: list[int], **fields: Any
    ) -> Song:
        normalized_title, normalized_artist = song_key(title, artist)
        song = Song(
            user_id=user_id,
            title=title,
            artist=artist,
            normalized_title=normalized_title,
            normalized_artist=normalized_artist,
            platform_ids=list(platform_ids),
            **fields,
        )
        self.db.add(song)
        self._commit("Song")
        self.db.refresh(song)
        return song

    def update_song(self, song_id: int, **changes: Any) -> Song:
        song = self.db.get(Song, song_id)
        if song is None:
            raise NotFound("Song", song_id)
        for name, value in changes.items():
            # Reassign lists so SQLAlchemy sees the JSON column change
            setattr(song, name, list(value) if isinstance(value, list) else value)
        if "title" in changes or "artist" in changes:
            song.normalized_title, song.normalized_artist = song_key(song.title, song.artist)
        self._commit("Song")
        return song

    def get_sync_history_by_user_id(self, user_id: int) -> list[SyncHistory]:
        return (
            self.db.query(SyncHistory)
            .filter(SyncHistory.user_id == user_id)
            .order_by(SyncHistory.completed_at.desc(), SyncHistory.id.desc())
            .all()
        )

    def create_sync_history(
        self,
        user_id: int,
        type: str,
        target_platforms: list[int],
        songs_added: int,
        status: str,
        results: list[dict] | None = None,
    ) -> SyncHistory:
        history = SyncHistory(
            user_id=user_id,
            type=type,
            target_platforms=list(target_platforms),
            songs_added=songs_added,
            status=status,
            results=list(results or []),
        )
        self.db.add(history)
        self._commit("SyncHistory")
        self.db.refresh(history)
        return history
