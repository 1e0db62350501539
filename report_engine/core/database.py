import ssl
from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from report_engine.config import get_settings
from report_engine.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def _prepare_url(url: str) -> tuple[str, dict]:
    """
    Clean a connection URL for the async driver.

    libpq-style params like sslmode and channel_binding are not accepted by
    asyncpg. They are stripped and SSL is passed through connect_args.

    - SQLite and local hosts (localhost/127.0.0.1/db): no SSL
    - Any other Postgres host: SSL with default context
    """
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url, {}

    params = parse_qs(parsed.query)

    # Remove unsupported asyncpg params
    unsupported = ["sslmode", "channel_binding", "options"]
    for param in unsupported:
        params.pop(param, None)

    new_query = urlencode(params, doseq=True)
    clean_url = urlunparse(parsed._replace(query=new_query))

    hostname = parsed.hostname or ""
    is_local = hostname in ("localhost", "127.0.0.1", "db")

    if is_local:
        return clean_url, {}
    else:
        ssl_context = ssl.create_default_context()
        return clean_url, {"ssl": ssl_context}


def _engine_options(url: str) -> dict[str, Any]:
    """Pool options; SQLite engines do not take a sized queue pool."""
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 280,
    }


clean_url, connect_args = _prepare_url(settings.database_url)


engine = create_async_engine(
    clean_url,
    echo=settings.debug,
    connect_args=connect_args,
    **_engine_options(clean_url),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise
