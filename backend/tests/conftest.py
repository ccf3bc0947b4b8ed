import os
import sys
import uuid
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
import httpx
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.dialects.postgresql import JSONB, UUID as PGUUID
from sqlalchemy.ext.compiler import compiles

ROOT = Path(__file__).resolve().parents[1]
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "0")
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from skillpath.db.base import Base
import skillpath.models  # noqa: F401
from skillpath.api.deps import get_advisor, get_async_session
from skillpath.main import app
from skillpath.services.advisor_service import AdvisoryService

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):  # noqa: ANN001
    return "JSON"


@compiles(PGUUID, "sqlite")
def _compile_uuid_sqlite(type_, compiler, **kw):  # noqa: ANN001
    return "CHAR(36)"


@pytest_asyncio.fixture
async def engine():
    # Fresh shared-cache database per test so sessions opened from the same engine see each other.
    engine = create_async_engine(
        f"sqlite+aiosqlite:///file:memdb-{uuid.uuid4().hex}?mode=memory&cache=shared",
        connect_args={"uri": True},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def advisor() -> AdvisoryService:
    # No providers configured: every capability answers with its deterministic fallback.
    return AdvisoryService(providers=[])


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, advisor: AdvisoryService):
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_advisor] = lambda: advisor
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://test", headers={"X-User-ID": USER_ID}
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
