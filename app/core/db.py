from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def to_async_database_url(url: str) -> str:
    """Use asyncpg for postgres URLs. asyncpg does not accept psycopg params like
    sslmode/channel_binding, so those are stripped; SSL is enabled via connect_args.
    Other URLs (e.g. sqlite+aiosqlite) pass through unchanged."""
    parsed = urlparse(url)
    if parsed.scheme != "postgresql":
        return url
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    return urlunparse(("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment))


def build_engine(url: str) -> AsyncEngine:
    async_url = to_async_database_url(url)
    if async_url.startswith("postgresql+asyncpg"):
        return create_async_engine(
            async_url,
            echo=settings.env == "development",
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            connect_args={"ssl": True},
        )
    return create_async_engine(async_url, echo=False)


engine = build_engine(settings.database_url)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

