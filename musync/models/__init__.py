from musync.models.base import Base
from musync.models.platform import Platform, PlatformType
from musync.models.song import Song
from musync.models.sync_history import SyncHistory, SyncRunStatus, SyncType
from musync.models.user import User

__all__ = [
    "Base",
    "User",
    "Platform",
    "PlatformType",
    "Song",
    "SyncHistory",
    "SyncRunStatus",
    "SyncType",
]
