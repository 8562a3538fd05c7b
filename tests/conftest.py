import pytest
import httpx
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from src.database import get_db
from src.models.models import Base
from main import app

DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def session_factory():
    engine = create_async_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

    async def override_get_db() -> AsyncSession:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield factory

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def client(session_factory) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://localhost:9999") as ac:
        yield ac


@pytest.fixture
def register(client):
    async def _register(username="alice", email=None, password="password123", phoneno="5551234"):
        return await client.post("/register", json={
            "username": username,
            "email": email or f"{username}@example.com",
            "phoneno": phoneno,
            "password": password
        })
    return _register


@pytest.fixture
def create_link(client):
    async def _create_link(owner="alice", original_link="https://example.com", **extra):
        response = await client.post("/createlinks", json={
            "original_link": original_link,
            "owner": owner,
            **extra
        })
        assert response.status_code == 201
        return response.json()["short_link"]
    return _create_link
