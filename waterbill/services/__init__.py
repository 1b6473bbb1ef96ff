"""Database connection and session management."""

from typing import Generator

from sqlalchemy import create_engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from waterbill.config import get_settings


def is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def build_engine(database_url: str, echo: bool = False, isolation_level: str | None = None):
    """Create an engine for the given URL.

    In-memory SQLite shares one connection through StaticPool so every
    session sees the same database. File SQLite keeps the default pool, one
    connection per session. Other backends get pre-ping and the configured
    isolation level.
    """
    if database_url.startswith("sqlite"):
        if is_memory_sqlite(database_url):
            return create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
    kwargs = {"echo": echo, "pool_pre_ping": True}
    if isolation_level:
        kwargs["isolation_level"] = isolation_level
    return create_engine(database_url, **kwargs)


_settings = get_settings()
engine = build_engine(
    _settings.database_url,
    echo=_settings.database_echo,
    isolation_level=_settings.database_isolation_level,
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Session factory for work that runs after the request session is gone."""
    return SessionLocal


__all__ = [
    "build_engine",
    "is_memory_sqlite",
    "engine",
    "SessionLocal",
    "get_db",
    "get_session_factory",
]
