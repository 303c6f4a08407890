from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from strategy_core.config.settings import settings
from strategy_core.db.base import Base


def _engine_kwargs(url: str) -> dict:
    # SQLite uses a static pool, which rejects sizing arguments.
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 20, "max_overflow": 0}


# Create async engine
engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_kwargs(settings.DATABASE_URL),
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


async def get_db():
    """
    Async generator that yields database sessions for FastAPI Depends.

    Usage in routes:
        async def get_strategy(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    # Register models on Base.metadata before create_all.
    import strategy_core.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
