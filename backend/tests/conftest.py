import asyncio
import os
from collections.abc import AsyncIterator, Generator

import pytest

# Keep the module-level engine off a real server and outbound error reporting disabled.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["SENTRY_DSN"] = ""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from showcase.core.security import create_access_token
from showcase.models import Base
from showcase.services.catalog import STORE_GIVE_UP_ON, CatalogRepository
from showcase.services.resilience import ResilientExecutor


class CountingExecutor(ResilientExecutor):
    """ResilientExecutor that records how many times each operation body ran."""

    def __init__(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(*args, **kwargs)
        self.attempts: list[str] = []

    async def execute(self, operation, *, label: str = "store_operation"):  # type: ignore[no-untyped-def]
        async def counted():
            self.attempts.append(label)
            return await operation()

        return await super().execute(counted, label=label)


@pytest.fixture(scope="module")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def executor() -> CountingExecutor:
    return CountingExecutor(lambda: True, max_attempts=3, delay_seconds=0, give_up_on=STORE_GIVE_UP_ON)


@pytest.fixture
def repository(session_factory: async_sessionmaker[AsyncSession], executor: CountingExecutor) -> CatalogRepository:
    return CatalogRepository(session_factory=session_factory, executor=executor)


@pytest.fixture
def sync_session_factory() -> Generator[async_sessionmaker[AsyncSession], None, None]:
    """Session factory for TestClient based tests, which run the app on their own loop."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token('owner')}"}
