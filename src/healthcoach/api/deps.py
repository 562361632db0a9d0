"""Shared FastAPI dependencies. Tests swap these via app.dependency_overrides."""
from healthcoach.ai.claude_client import ClaudeClient
from healthcoach.ai.insight_writer import InsightWriter
from healthcoach.config import get_settings
from healthcoach.db.engine import get_engine
from healthcoach.db.store import MetricStore


def get_store() -> MetricStore:
    return MetricStore(get_engine(), timeout_seconds=get_settings().store_timeout_seconds)


def get_insight_writer() -> InsightWriter:
    settings = get_settings()
    return InsightWriter(ClaudeClient(api_key=settings.anthropic_api_key, model=settings.insight_model))
