"""
Shared fixtures: in-memory collaborators and a SQLite-backed API client
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fleetwatch.core.security import create_access_token, get_password_hash
from fleetwatch.main import app
from fleetwatch.models import Base, Client, User, UserRole, get_db
from fleetwatch.schemas import Actor, UserSummary

from fakes import FakeDirectory, FakeMapSurface


@pytest.fixture
def surface():
    return FakeMapSurface()


@pytest.fixture
def directory_users():
    return [
        UserSummary(id="u-admin", name="Ada Admin", email="ada@example.com",
                    role=UserRole.ADMIN, client_id="c1"),
        UserSummary(id="u-ana", name="Ana", email="ana@example.com",
                    role=UserRole.CLIENT_USER, client_id="c1"),
        UserSummary(id="u-beto", name="Beto", email="beto@example.com",
                    role=UserRole.OPERATOR_MONITOR, client_id="c1"),
        UserSummary(id="u-carla", name="Carla", email="carla@example.com",
                    role=UserRole.CLIENT_USER, client_id="c2"),
        UserSummary(id="u-root", name="Root", email="root@example.com",
                    role=UserRole.SUPERUSER, client_id=None),
    ]


@pytest.fixture
def directory(directory_users):
    return FakeDirectory(directory_users)


@pytest.fixture
def superuser():
    return Actor(id="u-root", role=UserRole.SUPERUSER, client_id=None)


@pytest.fixture
def admin():
    return Actor(id="u-admin", role=UserRole.ADMIN, client_id="c1")


@pytest.fixture
def client_user():
    return Actor(id="u-ana", role=UserRole.CLIENT_USER, client_id="c1")


# API fixtures

@pytest.fixture
async def session_maker():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def seeded(session_maker):
    """Two clients and one user per role"""
    async with session_maker() as session:
        session.add_all([Client(id="c1", name="Transportes Uno"), Client(id="c2", name="Logistica Dos")])
        session.add_all([
            User(id="u-root", email="root@example.com", full_name="Root",
                 hashed_password=get_password_hash("root-pass"), role=UserRole.SUPERUSER),
            User(id="u-admin", email="ada@example.com", full_name="Ada Admin",
                 hashed_password="-", role=UserRole.ADMIN, client_id="c1"),
            User(id="u-opadmin", email="omar@example.com", full_name="Omar",
                 hashed_password="-", role=UserRole.OPERATOR_ADMIN, client_id="c1"),
            User(id="u-monitor", email="beto@example.com", full_name="Beto",
                 hashed_password="-", role=UserRole.OPERATOR_MONITOR, client_id="c1"),
            User(id="u-ana", email="ana@example.com", full_name="Ana",
                 hashed_password="-", role=UserRole.CLIENT_USER, client_id="c1"),
            User(id="u-luis", email="luis@example.com", full_name="Luis",
                 hashed_password="-", role=UserRole.CLIENT_USER, client_id="c1"),
            User(id="u-carla", email="carla@example.com", full_name="Carla",
                 hashed_password="-", role=UserRole.CLIENT_USER, client_id="c2"),
        ])
        await session.commit()
    return session_maker


@pytest.fixture
async def api(seeded):
    async def override_get_db():
        async with seeded() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
    return headers
