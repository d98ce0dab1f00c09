import logging
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from showsphere.core.config import get_settings
from showsphere.db.base import Base


logger = logging.getLogger(__name__)
settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_pre_ping=True
)

async_session = async_sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False
)


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create all tables based on models.
    Deployments that manage the schema with migrations skip this.
    """
    # register every mapped class on Base.metadata
    import showsphere.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created all tables")
