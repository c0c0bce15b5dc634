from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from musync.core.config import get_settings
from musync.services.storage import SqlStorage

settings = get_settings()

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url_sync, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage() -> Generator[SqlStorage, None, None]:
    """Per-request ``Storage`` for the functions in ``musync.services.library``."""
    db = SessionLocal()
    try:
        yield SqlStorage(db)
    finally:
        db.close()
