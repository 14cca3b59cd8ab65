
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import DeclarativeBase

class Base(DeclarativeBase):
    pass

def make_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, echo=False, pool_pre_ping=True)

async def init_models(engine: AsyncEngine) -> None:
    """Create the documents/chunks tables if they are missing."""
    from . import models  # noqa: F401  registers the mappers on Base.metadata
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
