"""Shared test fixtures."""
from datetime import date, timedelta
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from healthcoach.config import Settings
from healthcoach.db.store import MetricStore

# Import all models so SQLModel.metadata knows about them
from healthcoach.models.derived import DetectedPattern, MetricBaseline  # noqa: F401
from healthcoach.models.health import DailyMetricRecord, WearablePayload  # noqa: F401
from healthcoach.models.insight import ProactiveInsight  # noqa: F401
from healthcoach.models.profile import UserProfile  # noqa: F401


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="store")
def store_fixture(engine) -> MetricStore:
    return MetricStore(engine, timeout_seconds=5.0)


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    """Reference settings, isolated from any local .env file."""
    return Settings(_env_file=None, anthropic_api_key="test-key")


@pytest.fixture(name="seed_daily")
def seed_daily_fixture(engine):
    """
    Factory: seed_daily(user_id, first_day, [fields, ...]) inserts one
    health_daily row per dict on consecutive days. None entries skip a day.
    """

    def _seed(user_id: str, first_day: date, days):
        with Session(engine) as s:
            for offset, fields in enumerate(days):
                if fields is None:
                    continue
                s.add(DailyMetricRecord(
                    user_id=user_id,
                    record_date=first_day + timedelta(days=offset),
                    **fields,
                ))
            s.commit()

    return _seed
