"""Sync engine - copies liked songs from one platform to others.

Pipeline for one run:
1. Validate the source/target selection (no provider is called on failure)
2. Fetch the full source catalog
3. Per target: diff against what the target already has, then search and
   add every missing song, tagging the local Song row on success
4. Persist one SyncHistory row with per-target tallies

Targets are processed one after another in the order given, and songs within
a target in source order. Each target is independently failable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from musync.core.config import get_settings
from musync.core.errors import AuthExpired, InvalidSyncRequest, MusyncError, NotFound
from musync.models.platform import PlatformType
from musync.models.sync_history import SyncRunStatus, SyncType
from musync.services.matcher import compute_missing, song_key
from musync.services.song_index import SongIndex
from musync.services.sync.base import sanitize_provider_error
from musync.services.sync.registry import get_adapter

if TYPE_CHECKING:
    from musync.models.platform import Platform
    from musync.schemas.song import PlatformSongRecord
    from musync.services.storage import Storage
    from musync.services.sync.base import PlatformAdapter

logger = logging.getLogger(__name__)


class SongSyncStatus(str, Enum):
    ADDED = "added"
    NOT_FOUND = "not_found"
    ADD_FAILED = "add_failed"
    ERROR = "error"


@dataclass(frozen=True)
class SongOutcome:
    """What happened to one missing source song on one target."""

    title: str
    artist: str
    status: SongSyncStatus
    external_id: str | None = None
    error: str | None = None


@dataclass
class TargetSyncResult:
    platform_type: str
    platform_id: int
    outcomes: list[SongOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def songs_added(self) -> int:
        return sum(1 for o in self.outcomes if o.status == SongSyncStatus.ADDED)

    def to_dict(self) -> dict:
        return {
            "platform_type": self.platform_type,
            "platform_id": self.platform_id,
            "songs_added": self.songs_added,
            "not_found": sum(1 for o in self.outcomes if o.status == SongSyncStatus.NOT_FOUND),
            "failed": sum(
                1
                for o in self.outcomes
                if o.status in (SongSyncStatus.ADD_FAILED, SongSyncStatus.ERROR)
            ),
            "error": self.error,
        }


@dataclass
class SyncRunResult:
    """Aggregate result of one sync run across all targets."""

    history_id: int
    targets: list[TargetSyncResult] = field(default_factory=list)

    @property
    def total_added(self) -> int:
        return sum(t.songs_added for t in self.targets)

    def tally(self) -> dict[str, int]:
        """Songs added per target platform type, zeros included."""
        return {t.platform_type: t.songs_added for t in self.targets}


def _known_type(value: str) -> bool:
    return value in {t.value for t in PlatformType}


def _resolve(
    storage: Storage, user_id: int, source_type: str, target_types: list[str]
) -> tuple[tuple[PlatformAdapter, Platform], list[tuple[PlatformAdapter, Platform]]]:
    """Check every precondition and pair each involved platform with its adapter."""
    if storage.get_user(user_id) is None:
        raise NotFound("User", user_id)

    if not source_type or not _known_type(source_type):
        raise InvalidSyncRequest(f"Unknown source platform: {source_type!r}")
    if not target_types:
        raise InvalidSyncRequest("At least one target platform is required")
    if len(set(target_types)) != len(target_types):
        raise InvalidSyncRequest("Target platforms must be distinct")
    for target_type in target_types:
        if not _known_type(target_type):
            raise InvalidSyncRequest(f"Unknown target platform: {target_type!r}")
        if target_type == source_type:
            raise InvalidSyncRequest("Source platform cannot also be a target")

    platforms = {p.type: p for p in storage.get_platforms_by_user_id(user_id)}

    def pair(platform_type: str, role: str) -> tuple[PlatformAdapter, Platform]:
        platform = platforms.get(platform_type)
        if platform is None or not platform.is_connected:
            raise InvalidSyncRequest(
                f"{role.capitalize()} platform {platform_type} is not connected"
            )
        adapter = get_adapter(platform_type)
        if adapter is None:
            raise InvalidSyncRequest(f"No adapter registered for {platform_type}")
        return adapter, platform

    return pair(source_type, "source"), [pair(t, "target") for t in target_types]


def _sync_target(
    storage: Storage,
    index: SongIndex,
    adapter: PlatformAdapter,
    platform: Platform,
    source_songs: list[PlatformSongRecord],
    refetch_catalog: bool,
) -> TargetSyncResult:
    result = TargetSyncResult(platform_type=platform.type, platform_id=platform.id)

    existing: list = list(storage.get_songs_by_user_id_and_platform(platform.user_id, platform.id))
    if refetch_catalog:
        try:
            existing.extend(adapter.get_liked_songs(storage, platform))
        except MusyncError as e:
            result.error = sanitize_provider_error(e)
            logger.error("Fetching %s catalog failed: %s", platform.type, type(e).__name__)
            return result

    missing = compute_missing(source_songs, existing)
    logger.info("%d of %d songs missing on %s", len(missing), len(source_songs), platform.type)

    seen: set[tuple[str, str]] = set()
    pending = []
    for record in missing:
        key = song_key(record.title, record.artist)
        if key not in seen:
            seen.add(key)
            pending.append(record)

    for position, record in enumerate(pending):
        try:
            result.outcomes.append(_sync_song(storage, index, adapter, platform, record))
        except AuthExpired as e:
            # No later call on this target can succeed
            result.error = e.message
            logger.warning("Stopping %s sync: %s", platform.type, e.message)
            result.outcomes.extend(
                SongOutcome(r.title, r.artist, SongSyncStatus.ERROR, error=e.message)
                for r in pending[position:]
            )
            break
        except Exception as e:
            logger.error("Syncing song to %s failed: %s", platform.type, type(e).__name__)
            result.outcomes.append(
                SongOutcome(
                    record.title,
                    record.artist,
                    SongSyncStatus.ERROR,
                    error=sanitize_provider_error(e),
                )
            )

    return result


def _sync_song(
    storage: Storage,
    index: SongIndex,
    adapter: PlatformAdapter,
    platform: Platform,
    record: PlatformSongRecord,
) -> SongOutcome:
    match = adapter.search_song(storage, platform, f"{record.title} {record.artist}")
    if match is None or not match.external_id:
        return SongOutcome(record.title, record.artist, SongSyncStatus.NOT_FOUND)

    if not adapter.add_song_to_library(storage, platform, match.external_id):
        return SongOutcome(
            record.title, record.artist, SongSyncStatus.ADD_FAILED, external_id=match.external_id
        )

    index.tag(record, platform.id)
    return SongOutcome(
        record.title, record.artist, SongSyncStatus.ADDED, external_id=match.external_id
    )


def sync_platforms(
    storage: Storage, user_id: int, source_type: str, target_types: list[str]
) -> SyncRunResult:
    """Copy the source platform's liked songs to every target platform.

    Raises InvalidSyncRequest/NotFound before any provider call when the
    selection is invalid, and re-raises a source fetch failure after
    recording a failed SyncHistory row.
    """
    (source_adapter, source_platform), targets = _resolve(
        storage, user_id, source_type, target_types
    )
    target_ids = [platform.id for _, platform in targets]
    logger.info("Sync for user %d: %s -> %s", user_id, source_type, ", ".join(target_types))

    try:
        source_songs = source_adapter.get_liked_songs(storage, source_platform)
    except MusyncError as e:
        logger.error("Fetching %s catalog failed: %s", source_type, type(e).__name__)
        error = sanitize_provider_error(e)
        storage.create_sync_history(
            user_id,
            SyncType.FULL.value,
            target_ids,
            0,
            SyncRunStatus.FAILED.value,
            results=[
                TargetSyncResult(platform.type, platform.id, error=error).to_dict()
                for _, platform in targets
            ],
        )
        raise

    refetch = get_settings().sync_refetch_target_catalog
    index = SongIndex(storage, user_id)
    results = [
        _sync_target(storage, index, adapter, platform, source_songs, refetch)
        for adapter, platform in targets
    ]

    history = storage.create_sync_history(
        user_id,
        SyncType.FULL.value,
        target_ids,
        sum(r.songs_added for r in results),
        SyncRunStatus.COMPLETED.value,
        results=[r.to_dict() for r in results],
    )
    run = SyncRunResult(history_id=history.id, targets=results)
    logger.info("Sync for user %d finished: %s", user_id, run.tally())
    return run
