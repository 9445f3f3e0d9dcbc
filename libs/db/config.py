from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.common.config import Settings, get_settings


def create_engine_from_url(url: str, *, echo: bool = False, **pool_options) -> AsyncEngine:
    """Create an async engine, adjusting pool options for SQLite.

    In-memory SQLite databases live inside a single connection, so they are
    pinned with ``StaticPool``; every other SQLite URL simply skips the
    server-side pool sizing options.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=echo, future=True, **kwargs)

    return create_async_engine(
        url,
        echo=echo,
        future=True,
        pool_pre_ping=True,  # Test connections before using
        **pool_options,
    )


def create_engine_from_settings(settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    return create_engine_from_url(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )
