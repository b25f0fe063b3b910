from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    # The conflict query that follows a location lock must see rows committed
    # by whichever writer held the lock before us.
    return create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        isolation_level="READ COMMITTED",
        pool_pre_ping=True,
        pool_recycle=3600,
    )


engine = build_engine(get_settings())

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
