"""Fixtures for API integration tests: the real app over the in-memory store."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from healthcoach.api.deps import get_insight_writer, get_store
from healthcoach.api.main import create_app


@pytest.fixture(name="writer")
def writer_fixture():
    """InsightWriter stand-in; no Claude calls."""
    writer = MagicMock()
    writer.generate_insight_message = AsyncMock(return_value="Resting HR is up 16% on yesterday.")
    return writer


@pytest.fixture(name="client")
def client_fixture(store, writer):
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_insight_writer] = lambda: writer
    with TestClient(app) as c:
        yield c
