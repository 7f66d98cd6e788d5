"""Shared fixtures: an aiosqlite-backed database and in-memory collaborators."""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from qa_batch.models import Base
from qa_batch.schemas.framework import Framework
from qa_batch.services.batch.cancellation import CancellationToken
from tests.helpers import FakeProgress


@pytest.fixture
def framework() -> Framework:
    return Framework.model_validate({
        "id": "fw-1",
        "accountId": "acc-1",
        "name": "Support QA",
        "passingScore": 60,
        "sections": [{
            "id": "s1",
            "name": "Greeting",
            "description": "Opening of the conversation",
            "weight": 100,
            "items": [
                {"id": "i1", "description": "Greets the customer", "type": "binary", "isCritical": True},
                {"id": "i2", "description": "Uses the customer's name", "type": "binary"},
            ],
        }],
    })


@pytest.fixture
def token() -> CancellationToken:
    return CancellationToken("job-test")


@pytest.fixture
def progress() -> FakeProgress:
    return FakeProgress()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'qa_batch.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()
