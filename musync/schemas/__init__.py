from musync.schemas.platform import AuthUrlResponse, PlatformStatus, TokenPair
from musync.schemas.playlist import Playlist, PlaylistCreate, PlaylistTracksAdd
from musync.schemas.song import LiveSong, MissingSongs, PlatformSongRecord, SongOut
from musync.schemas.sync import SyncHistoryOut, SyncRequest

__all__ = [
    "AuthUrlResponse",
    "LiveSong",
    "MissingSongs",
    "PlatformSongRecord",
    "PlatformStatus",
    "Playlist",
    "PlaylistCreate",
    "PlaylistTracksAdd",
    "SongOut",
    "SyncHistoryOut",
    "SyncRequest",
    "TokenPair",
]
