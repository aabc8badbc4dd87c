import os
import random
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlmodel import SQLModel

# The application engine is configured at import time, so point it somewhere
# disposable before anything from the app is imported.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="followtrain-tests-")
os.environ.setdefault(
    "DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'app.db')}"
)

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import app
from api.dependencies import get_profile_resolver, get_train_service, get_train_store
from core.database import build_engine, build_session_factory
from core.models import Participant, Train
from core.platforms import Platform
from providers.profile_provider import FallbackProfileProvider
from services.profile_service import ProfileResolver
from services.train_service import TRAIN_TTL, TrainService
from services.train_store import TrainStore

START_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START_TIME)


@pytest.fixture
def database_url(tmp_path) -> str:
    """A fresh SQLite file with all tables created."""
    path = tmp_path / "trains.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    SQLModel.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def session_factory(database_url):
    engine = build_engine(database_url)
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory, clock) -> TrainStore:
    return TrainStore(session_factory, clock=clock)


@pytest.fixture
def fallback_provider() -> FallbackProfileProvider:
    return FallbackProfileProvider(rng=random.Random(42))


@pytest.fixture
def resolver(fallback_provider) -> ProfileResolver:
    """Resolver without live integrations: every profile is a fallback."""
    return ProfileResolver(providers=[], fallback=fallback_provider)


@pytest.fixture
def train_service(store, resolver, clock) -> TrainService:
    return TrainService(store, resolver, clock=clock)


@pytest.fixture
def make_participant(clock):
    def factory(username: str, is_host: bool = False) -> Participant:
        return Participant(
            username=username,
            display_name=username.capitalize(),
            bio="Test user",
            avatar=f"https://example.com/{username}.png",
            followers=10,
            is_verified=False,
            is_host=is_host,
            joined_at=clock(),
        )

    return factory


@pytest.fixture
def make_train(clock, make_participant):
    def factory(
        train_id: str = "ABC123",
        platform: Platform = Platform.INSTAGRAM,
        usernames: List[str] = ("host",),
        created_at: datetime = None,
    ) -> Train:
        created_at = created_at or clock()
        return Train(
            id=train_id,
            name="Test Train",
            platform=platform,
            participants=[
                make_participant(name, is_host=index == 0)
                for index, name in enumerate(usernames)
            ],
            created_at=created_at,
            updated_at=created_at,
            expires_at=created_at + TRAIN_TTL,
        )

    return factory


@pytest.fixture
def test_client(store, resolver, train_service) -> Generator[TestClient, None, None]:
    """Test client wired to the per-test database and clock."""
    app.dependency_overrides[get_train_store] = lambda: store
    app.dependency_overrides[get_profile_resolver] = lambda: resolver
    app.dependency_overrides[get_train_service] = lambda: train_service
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
