"""Pytest configuration and shared fakes."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Union
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from wildwatch.infrastructure.database import Base
from wildwatch.triage.application import ICandidateStore, ILLMClient, ITagRepository
from wildwatch.triage.domain import SimilarityCandidate, StatusUpdate, Tag


@dataclass
class FakeCompletion:
    content: str


class FakeLLMClient(ILLMClient):
    """
    Answers by operation name.

    A response can be a string, an exception to raise, or a list consumed
    one item per call.
    """

    def __init__(self, responses: Optional[Dict[str, object]] = None):
        self.responses = dict(responses or {})
        self.calls: List[str] = []

    async def chat_completion(self, messages, temperature=0.0, max_tokens=500, operation="chat_completion"):
        self.calls.append(operation)
        response = self.responses.get(operation, "")
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, BaseException):
            raise response
        return FakeCompletion(response)


class FakeCandidateStore(ICandidateStore):
    """In-memory candidate store recording every call."""

    def __init__(self, candidates: Sequence[SimilarityCandidate] = ()):
        self.candidates = list(candidates)
        self.updates: Dict[str, List[StatusUpdate]] = {}
        self.fetch_count = 0
        self.update_lookups = 0
        self.fail_fetch: Optional[Exception] = None
        self.fail_updates: Optional[Exception] = None

    async def find_active_candidates(self, limit: int) -> List[SimilarityCandidate]:
        self.fetch_count += 1
        await asyncio.sleep(0)
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return self.candidates[:limit]

    async def find_latest_update(self, incident_id: str, statuses=None) -> Optional[StatusUpdate]:
        self.update_lookups += 1
        if self.fail_updates is not None:
            raise self.fail_updates
        updates = self.updates.get(incident_id, [])
        if statuses:
            wanted = {s.lower() for s in statuses}
            updates = [u for u in updates if u.status.lower() in wanted]
        if not updates:
            return None
        return max(updates, key=lambda u: u.updated_at)


class FakeTagRepository(ITagRepository):
    """In-memory tag store; yields to the event loop between lookup and insert."""

    def __init__(self):
        self.tags: Dict[str, Tag] = {}
        self.create_calls = 0

    async def find_by_name(self, name: str) -> Optional[Tag]:
        await asyncio.sleep(0)
        return self.tags.get(name.strip().lower())

    async def create(self, name: str) -> Tag:
        await asyncio.sleep(0)
        self.create_calls += 1
        tag = Tag(id=str(uuid4()), name=name)
        self.tags[name.lower()] = tag
        return tag


BASE_TIME = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


def make_candidate(
    tags: Union[Sequence[str], None],
    id: Optional[str] = None,
    status: str = "Pending",
    minutes_ago: int = 0
) -> SimilarityCandidate:
    incident_id = id or str(uuid4())
    return SimilarityCandidate(
        id=incident_id,
        tracking_number=f"INC-{incident_id[:8]}",
        tags=tuple(tags or ()),
        incident_type="Safety Hazard",
        location="Engineering Building",
        assigned_office="OPC",
        submitted_at=BASE_TIME - timedelta(minutes=minutes_ago),
        status=status,
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def candidate_store():
    return FakeCandidateStore()


@pytest.fixture
def tag_repository():
    return FakeTagRepository()


@pytest_asyncio.fixture
async def session_maker():
    """In-memory SQLite database with every table created."""
    import wildwatch.triage.infrastructure.models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()
