"""Shared fixtures: in-memory record store, temporary bucket, recording notifier."""
from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from portal import models  # noqa: F401 - registers tables on Base.metadata
from portal.config import Settings
from portal.database import Base
from portal.models import Opportunity, StudentProfile
from portal.storage import DocumentStorage
from workflow.errors import Outcome

TEST_ACTOR_ID = "actor-0001"

VALID_COVER_LETTER = (
    "I am a third year computer science student with hands-on experience building data pipelines "
    "in Python. During my last internship I automated reporting for a logistics team, and I would "
    "love to bring the same care for reliable software to your engineering group this summer."
)


class RecordingNotifier:
    def __init__(self) -> None:
        self.outcomes: list[Outcome] = []

    def notify(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)

    @property
    def failures(self) -> list[Outcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


def utc(days: float = 0) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        data_directory=tmp_path,
        document_storage_directory=tmp_path / "storage",
        document_public_base_url="http://files.test",
    )


@pytest.fixture
def storage(settings: Settings) -> DocumentStorage:
    return DocumentStorage(
        settings.document_storage_directory,
        settings.document_bucket,
        settings.document_public_base_url,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_opportunity(db_session: AsyncSession) -> Callable[..., Awaitable[Opportunity]]:
    async def _make(**overrides: Any) -> Opportunity:
        values: dict[str, Any] = {
            "title": "Backend Engineering Intern",
            "status": "active",
            "application_deadline": None,
            "max_applications": None,
            "current_applications": 0,
            "custom_questions": None,
        }
        values.update(overrides)
        opportunity = Opportunity(**values)
        db_session.add(opportunity)
        await db_session.commit()
        return opportunity

    return _make


@pytest.fixture
def make_student(db_session: AsyncSession) -> Callable[..., Awaitable[StudentProfile]]:
    async def _make(**overrides: Any) -> StudentProfile:
        values: dict[str, Any] = {
            "user_id": TEST_ACTOR_ID,
            "full_name": "Priya Raman",
            "college_name": "State Institute of Technology",
            "course": "B.Tech Computer Science",
            "resume_url": "http://files.test/resumes/priya.pdf",
            "skills": ["Python", "SQL", "Docker"],
            "linkedin_url": "https://linkedin.example/priya",
            "achievements_count": 2,
        }
        values.update(overrides)
        profile = StudentProfile(**values)
        db_session.add(profile)
        await db_session.commit()
        return profile

    return _make
