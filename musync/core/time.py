"""UTC datetime helpers.

All timestamps are stored as **naive** UTC datetimes so they compare cleanly
against SQLAlchemy ``DateTime`` columns on both SQLite and PostgreSQL.
"""

from datetime import UTC, datetime, timedelta


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def expires_in(seconds: int | float | None) -> datetime | None:
    """Absolute expiry for an OAuth ``expires_in`` value, or None when absent."""
    if seconds is None:
        return None
    return utcnow() + timedelta(seconds=float(seconds))


def is_expired(expires_at: datetime | None) -> bool:
    """True when ``expires_at`` is set and already in the past.

    Timezone-aware values are converted to naive UTC first.
    """
    if expires_at is None:
        return False
    if expires_at.tzinfo is not None:
        expires_at = expires_at.astimezone(UTC).replace(tzinfo=None)
    return expires_at <= utcnow()
