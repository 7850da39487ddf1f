import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from trip_importer.database import Base
from trip_importer.models.items import SourceAttribution
from trip_importer.models.orm import TripGroup
from trip_importer.models.places import SourceTypeEnum
from trip_importer.services.item_store import SQLAlchemyItemStore

TRIP_ID = "0b7e4c52-2f1e-4a53-9d0c-5f0b1f6f7a10"
OTHER_TRIP_ID = "6d1f1c1e-8f37-4a70-a0a5-0f3c5b7c2b22"


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database with two trips and no items."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        session.add_all([
            TripGroup(id=TRIP_ID, name="Japan spring", destination="Tokyo"),
            TripGroup(id=OTHER_TRIP_ID, name="Osaka weekend", destination="Osaka"),
        ])
        await session.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def item_store(session_factory):
    return SQLAlchemyItemStore(session_factory)


@pytest.fixture
def youtube_source():
    return SourceAttribution(
        url="https://www.youtube.com/watch?v=abc123",
        source_type=SourceTypeEnum.YOUTUBE,
        title="48 hours of eating in Tokyo",
    )
