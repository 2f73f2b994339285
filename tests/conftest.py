"""
Shared fixtures.

Settings are read at import time, so the environment is prepared before any
``app`` module is imported: a throwaway SQLite database, an upload directory in
a temp folder, no SMTP and rate limits high enough for the whole suite.
"""
import asyncio
import os
import tempfile
from uuid import uuid4

_TMP = tempfile.mkdtemp(prefix="civictrack-tests-")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/default.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["SMTP_HOST"] = ""
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["RATE_LIMIT_ANONYMOUS_WRITES"] = "100000"
os.environ["PUBLIC_APP_URL"] = "https://civictrack.test"

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.main import app
from app.core.db import Base, get_db
from app.core.security import create_access_token
from app.modules.auth.models import User, UserRole, AuthMode
from app.modules.auth.schemas import Principal
from app.modules.reports import service as report_service
from app.modules.reports.schemas import ReportCreate
from app.modules.worker.runner import worker


def principal_for(user: User) -> Principal:
    return Principal(id=user.id, role=user.role, email=user.email)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


def report_payload(**overrides) -> dict:
    payload = {
        "category": "POTHOLE",
        "description": "Deep pothole in the right lane",
        "location": {"lat": -34.6037, "lng": -58.3816},
        "address_text": "Av. de Mayo 500",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def queued_jobs(monkeypatch):
    """Every job handed to the worker, instead of running it."""
    jobs = []

    async def fake_enqueue(task_name, **kwargs):
        jobs.append((task_name, kwargs))

    monkeypatch.setattr(worker, "enqueue_job", fake_enqueue)
    return jobs


# --- Service tests (async) ---

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(db):
    async def _make(role=UserRole.CITIZEN, email=None, is_active=True, auth_mode=AuthMode.PASSWORD):
        user = User(
            email=email or f"{role.value.lower()}-{uuid4().hex[:8]}@example.com",
            role=role,
            auth_mode=auth_mode,
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest_asyncio.fixture
async def citizen(make_user):
    return await make_user(UserRole.CITIZEN, email="vecina@example.com")


@pytest_asyncio.fixture
async def operator(make_user):
    return await make_user(UserRole.OPERATOR)


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN)


@pytest_asyncio.fixture
async def make_report(db, citizen):
    async def _make(owner=None, **overrides):
        owner = owner or citizen
        report_in = ReportCreate(**report_payload(**overrides))
        return await report_service.create_report(db, report_in, principal_for(owner))
    return _make


# --- API tests (sync TestClient) ---

async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def api_sessions(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    asyncio.run(_create_schema(engine))
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def client(api_sessions):
    async def override_get_db():
        async with api_sessions() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def seed_user(api_sessions):
    def _seed(role=UserRole.CITIZEN, email=None, is_active=True):
        async def _insert():
            async with api_sessions() as session:
                user = User(
                    email=email or f"{role.value.lower()}-{uuid4().hex[:8]}@example.com",
                    role=role,
                    is_active=is_active,
                )
                session.add(user)
                await session.commit()
                return user
        return asyncio.run(_insert())
    return _seed
