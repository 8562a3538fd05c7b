from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from src.config import DATABASE_URL


engine = create_async_engine(DATABASE_URL)
async_session = async_sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Зависимость FastAPI: отдает сессию базы данных на время запроса."""
    async with async_session() as session:
        yield session
