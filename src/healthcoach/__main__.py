"""
Main entrypoint: runs the nightly recompute scheduler, or one recompute.

FastAPI runs separately under uvicorn.

Usage:
    python -m healthcoach                       # starts the scheduler
    python -m healthcoach recompute <user_id>   # forced recompute for one user
    uvicorn healthcoach.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _build_store():
    from healthcoach.config import get_settings
    from healthcoach.db.engine import get_engine
    from healthcoach.db.store import MetricStore

    settings = get_settings()
    return MetricStore(get_engine(), timeout_seconds=settings.store_timeout_seconds)


async def _run_recompute(user_id: str) -> None:
    from healthcoach.scheduler.jobs import recompute_user

    summary = await recompute_user(_build_store(), user_id, force=True)
    print(
        f"{summary['user_id']}: baselines "
        f"{'updated' if summary['baselines_updated'] else 'not updated'}, "
        f"{summary['patterns'] or 0} patterns"
    )


async def _run_scheduler() -> None:
    from healthcoach.config import get_settings
    from healthcoach.scheduler.jobs import build_scheduler

    settings = get_settings()
    scheduler = build_scheduler(_build_store())
    scheduler.start()
    logger.info(
        "Scheduler started (nightly recompute at %02d:00 UTC)",
        settings.recompute_hour,
    )

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()
        logger.info("Goodbye.")


if __name__ == "__main__":
    # Dispatch on first argument: `python -m healthcoach recompute <user>` or just `python -m healthcoach`
    if len(sys.argv) > 1 and sys.argv[1] == "recompute":
        if len(sys.argv) < 3:
            print("usage: python -m healthcoach recompute <user_id>", file=sys.stderr)
            sys.exit(2)
        asyncio.run(_run_recompute(sys.argv[2]))
    else:
        asyncio.run(_run_scheduler())
