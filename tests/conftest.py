"""Pytest configuration and fixtures for musync tests."""

from collections.abc import Callable, Generator
from datetime import datetime

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.exc import DataError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from musync.core.config import get_settings
from musync.models.base import Base
from musync.models.platform import Platform, PlatformType
from musync.models.user import User
from musync.services.storage import SqlStorage
from musync.services.sync import register_default_adapters
from musync.services.sync.registry import _clear_adapters

# Use SQLite in-memory for tests (fast, isolated)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(db: Session) -> SqlStorage:
    return SqlStorage(db)


@pytest.fixture
def test_user(storage: SqlStorage) -> User:
    return storage.create_user("testuser", email="test@example.com", full_name="Test User")


@pytest.fixture
def connect_platform(storage: SqlStorage, test_user: User) -> Callable[..., Platform]:
    """Factory for a connected platform row owned by ``test_user``."""

    def _connect(
        platform_type: PlatformType,
        access_token: str = "access-token",
        refresh_token: str | None = "refresh-token",
        token_expires_at: datetime | None = None,
    ) -> Platform:
        return storage.create_platform(
            test_user.id,
            platform_type.value,
            is_connected=True,
            access_token=access_token,
            refresh_token=refresh_token,
            token_expires_at=token_expires_at,
        )

    return _connect


@pytest.fixture
def empty_registry() -> Generator[None, None, None]:
    """Run with no adapters registered, restoring the built-ins afterwards."""
    _clear_adapters()
    yield
    _clear_adapters()
    register_default_adapters(get_settings())



@pytest.fixture
def reject_song_insert() -> Generator[Callable[[str], None], None, None]:
    """Make the database reject any Song insert whose values contain ``marker``.

    Mimics a column-level DataError (e.g. a value PostgreSQL will not store),
    which leaves the session needing a rollback.
    """
    listeners = []

    def _reject(marker: str) -> None:
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            if statement.lstrip().upper().startswith("INSERT INTO SONGS") and marker in str(
                parameters
            ):
                raise DataError(statement, parameters, Exception("value rejected"))

        event.listen(engine, "before_cursor_execute", before_cursor_execute)
        listeners.append(before_cursor_execute)

    yield _reject
    for listener in listeners:
        event.remove(engine, "before_cursor_execute", listener)
