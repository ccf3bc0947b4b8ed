from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from skillpath.core.config import settings

engine = create_async_engine(settings.async_database_url, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
