from datetime import datetime

from pydantic import BaseModel, Field, field_serializer


class PlatformSongRecord(BaseModel):
    """A track as one provider reports it, normalized to a common shape."""

    title: str
    artist: str
    album: str | None = None
    cover_url: str | None = None
    external_id: str
    added_at: datetime | None = None


class LiveSong(PlatformSongRecord):
    """A track fetched live from a connected platform, labelled with its source."""

    platform_type: str
    platform_id: int


class SongOut(BaseModel):
    """A stored library entry."""

    id: int
    title: str
    artist: str
    album: str | None = None
    cover_url: str | None = None
    platform_ids: list[int] = Field(default_factory=list)
    added_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("added_at")
    def serialize_datetime(self, dt: datetime) -> str:
        return dt.isoformat() + "Z"


class MissingSongs(BaseModel):
    """Stored songs not yet tagged with one connected platform."""

    platform_id: int
    platform_type: str
    songs: list[SongOut]
