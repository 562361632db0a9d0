"""
APScheduler jobs for background recomputation.

Baselines and patterns are normally refreshed on demand when a user's data
is read; the nightly job keeps them warm for every user with daily rows.
Both steps honour the recompute cooldown, so running it twice is harmless.

The scheduler runs inside the CLI process (wired in __main__.py).
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from healthcoach.analysis.baselines import BaselineComputer
from healthcoach.analysis.correlation import CorrelationEngine
from healthcoach.config import get_settings
from healthcoach.errors import StoreUnavailableError
from healthcoach.models.common import utcnow

logger = logging.getLogger(__name__)


def build_scheduler(store) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        store: MetricStore handed to the recompute job.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        _nightly_recompute,
        trigger="cron",
        hour=settings.recompute_hour,
        minute=0,
        id="nightly_recompute",
        replace_existing=True,
        kwargs={"store": store},
    )

    return scheduler


async def recompute_user(store, user_id: str, force: bool = False) -> dict:
    """Refresh one user's baselines and patterns. Returns a small summary."""
    settings = get_settings()
    baselines_updated = await BaselineComputer(store, settings).update_if_needed(user_id, force=force)
    patterns = await CorrelationEngine(store, settings).detect_patterns_if_needed(user_id, force=force)
    return {
        "user_id": user_id,
        "baselines_updated": baselines_updated,
        "patterns": None if patterns is None else len(patterns),
    }


async def _nightly_recompute(store) -> None:
    """Nightly job: refresh derived data for every user with daily rows."""
    logger.info("Nightly recompute starting at %s", utcnow().isoformat())

    try:
        user_ids = await store.user_ids_with_data()
    except StoreUnavailableError as exc:
        logger.error("Nightly recompute could not list users: %s", exc)
        return

    for user_id in user_ids:
        try:
            summary = await recompute_user(store, user_id)
            logger.info("Recomputed %s: %s", user_id, summary)
        except Exception as exc:
            logger.error("Nightly recompute failed for %s: %s", user_id, exc)
