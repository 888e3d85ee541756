import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("MATCH_QUEUE_ENABLED", "true")

from datetime import date
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.auth.security import create_access_token
from app.database import Base, get_db
from app.main import app
from app.models.enums import FoundItemStatus, ItemType, LostItemStatus, MatchStatus
from app.models.lost_found import FoundItem, LostItem, Match
from app.models.user import User
from app.services.match_queue import MatchQueue, get_match_queue


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(scope="function")
async def db_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'lost_found.db'}",
        poolclass=NullPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def match_queue(session_factory) -> AsyncGenerator[MatchQueue, None]:
    queue = MatchQueue(session_factory, worker_count=2, max_attempts=3)
    await queue.start()
    yield queue
    await queue.stop()


@pytest.fixture(scope="function")
async def client(db_session, match_queue) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_match_queue] = lambda: match_queue
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    async def _make(uni: str | None = None, *, reputation_score: int = 0, verified: bool = True, **profile) -> User:
        counter["n"] += 1
        uni = uni or f"tu{1000 + counter['n']}"
        user = User(
            email=f"{uni}@columbia.edu",
            uni=uni,
            full_name=f"Student {uni.upper()}",
            reputation_score=reputation_score,
            verified=verified,
            **profile,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_lost_item(db_session):
    async def _make(owner: User, **overrides) -> LostItem:
        values = {
            "item_type": ItemType.PHONE,
            "description": "iPhone 13 Pro with a blue case",
            "location": "Butler Library",
            "lost_date": date(2024, 1, 1),
            "status": LostItemStatus.ACTIVE,
            "verification_questions": [],
            "photos": [],
        }
        values.update(overrides)
        item = LostItem(user_id=owner.id, **values)
        db_session.add(item)
        await db_session.commit()
        return item

    return _make


@pytest.fixture
def make_found_item(db_session):
    async def _make(owner: User, **overrides) -> FoundItem:
        values = {
            "item_type": ItemType.PHONE,
            "description": "iPhone 13 Pro with a blue case",
            "location": "Butler Library",
            "found_date": date(2024, 1, 1),
            "status": FoundItemStatus.ACTIVE,
            "photos": [],
        }
        values.update(overrides)
        item = FoundItem(user_id=owner.id, **values)
        db_session.add(item)
        await db_session.commit()
        return item

    return _make


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def token_headers():
    return auth_headers


@pytest.fixture
def make_match(db_session):
    async def _make(found_item: FoundItem, lost_item: LostItem | None = None, **overrides) -> Match:
        values = {
            "similarity_score": 0.8,
            "status": MatchStatus.PENDING,
            "verification_answers": {},
        }
        values.update(overrides)
        match = Match(
            lost_item_id=lost_item.id if lost_item is not None else None,
            found_item_id=found_item.id,
            **values,
        )
        db_session.add(match)
        await db_session.commit()
        return match

    return _make
