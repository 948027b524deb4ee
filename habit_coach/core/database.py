from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from habit_coach.config import settings
from habit_coach.models.base import Base


def _engine_kwargs() -> dict:
    if settings.is_sqlite:
        return {"echo": False}
    return {
        "echo": False,
        "pool_size": 5,
        "max_overflow": 2,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs())

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_models() -> None:
    import habit_coach.models  # noqa: F401  registers tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
