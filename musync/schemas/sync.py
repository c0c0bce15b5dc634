from datetime import datetime

from pydantic import BaseModel, Field, field_serializer


class SyncRequest(BaseModel):
    """Source and target selection for one sync run.

    Platform types are validated by the engine so that an unknown type is
    reported as an invalid sync request rather than a schema error.
    """

    source_platform: str = Field(..., min_length=1, max_length=20)
    target_platforms: list[str] = Field(default_factory=list)


class SyncHistoryOut(BaseModel):
    id: int
    type: str
    target_platforms: list[int]
    songs_added: int
    status: str
    results: list[dict] = Field(default_factory=list)
    completed_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("completed_at")
    def serialize_datetime(self, dt: datetime) -> str:
        return dt.isoformat() + "Z"
