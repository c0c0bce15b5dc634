from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from musync.core.time import utcnow
from musync.models.base import Base


class Song(Base):
    """A library entry for a user, shared across the platforms it is known on."""

    __tablename__ = "songs"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "normalized_title",
            "normalized_artist",
            name="uq_songs_user_title_artist",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(Text)
    artist: Mapped[str] = mapped_column(Text)
    album: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Identity key, see services.matcher.song_key
    normalized_title: Mapped[str] = mapped_column(Text)
    normalized_artist: Mapped[str] = mapped_column(Text)

    # Ids of the Platform rows this song is known to exist on. Only ever grows.
    platform_ids: Mapped[list[int]] = mapped_column(JSON, default=list)

    added_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
