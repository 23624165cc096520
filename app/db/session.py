from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from app.config import settings

Base = declarative_base()

engine_kwargs = {"echo": settings.DB_ECHO}
if settings.DATABASE_URL.startswith("sqlite"):
    # aiosqlite connections must not outlive the event loop that opened them
    engine_kwargs["poolclass"] = NullPool

# Async engine
engine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)

# Async session
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# FastAPI dependency providing a session per request
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


async def init_models():
    """Create every table registered on Base.metadata."""
    # Model modules must be imported so their tables are registered
    import app.auth.models  # noqa: F401
    import app.roles.models  # noqa: F401
    import app.events.models  # noqa: F401
    import app.friends.models  # noqa: F401
    import app.participation.models  # noqa: F401
    import app.chats.models  # noqa: F401
    import app.notifications.models  # noqa: F401
    import app.reports.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
