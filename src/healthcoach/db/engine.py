"""SQLModel engine singleton."""
from sqlmodel import SQLModel, create_engine

from healthcoach.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False  # store work runs in executor threads
        _engine = create_engine(settings.database_url, connect_args=connect_args)
        # Import all models so metadata is populated before create_all
        from healthcoach.models.derived import DetectedPattern, MetricBaseline  # noqa
        from healthcoach.models.health import DailyMetricRecord, WearablePayload  # noqa
        from healthcoach.models.insight import ProactiveInsight  # noqa
        from healthcoach.models.profile import UserProfile  # noqa
        SQLModel.metadata.create_all(_engine)
        from healthcoach.db.migrations import run_migrations
        run_migrations(_engine)
    return _engine

