# roomgate/database/postgres.py
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from roomgate.core.config import settings
from roomgate.models.base import Base
from roomgate.models import post, room, room_membership, user  # noqa: F401  (register tables)

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine, expire_on_commit=False, class_=AsyncSession
)

async def get_db_session():
    """
    Provide a database session for dependency injection.

    Commits whatever the request left pending and rolls back on any error,
    so a failed action leaves no partial writes behind.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

async def initialize_db():
    """
    Initialize the database by creating all tables defined in SQLAlchemy models.
    This method is idempotent and safe to run at startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
