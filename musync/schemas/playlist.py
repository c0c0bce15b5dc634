from pydantic import BaseModel, Field


class Playlist(BaseModel):
    """A provider playlist, normalized across platforms."""

    external_id: str
    name: str
    description: str | None = None
    is_public: bool | None = None
    track_count: int | None = None


class PlaylistCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=300)
    is_public: bool = True


class PlaylistTracksAdd(BaseModel):
    track_ids: list[str] = Field(..., min_length=1)
