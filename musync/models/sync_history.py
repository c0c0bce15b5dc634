from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from musync.core.time import utcnow
from musync.models.base import Base


class SyncType(str, Enum):
    FULL = "full"


class SyncRunStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class SyncHistory(Base):
    """Audit record of one sync run. Written once, never updated."""

    __tablename__ = "sync_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    type: Mapped[str] = mapped_column(String(20), default=SyncType.FULL.value)
    target_platforms: Mapped[list[int]] = mapped_column(JSON, default=list)
    songs_added: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20))
    # Per-target tallies: [{"platform_type", "platform_id", "songs_added", "error"}]
    results: Mapped[list[dict]] = mapped_column(JSON, default=list)
    completed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
