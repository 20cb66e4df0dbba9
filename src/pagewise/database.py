from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from pagewise.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("postgresql+asyncpg"):
        return {"server_settings": {"application_name": "pagewise"}}
    return {}


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL (asyncpg or aiosqlite)"""
    return create_async_engine(
        url,
        echo=echo,
        future=True,
        poolclass=NullPool,
        connect_args=_connect_args(url),
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Engine and session factory for the configured database
engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
async_session = create_session_factory(engine)

async def init_db(bind: AsyncEngine = None):
    """Initialize database tables"""
    from pagewise.models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
