"""
Proactive insights: a short coach comment when newly arrived data moves.

Flow for one sleep/daily payload:

  1. Resolve the date the payload describes (metadata, else today)
  2. Read, concurrently, the same data type for yesterday and for the
     7 days before yesterday ([d-7, d-1)), the "clean" baseline window
  3. Compare every metric in the payload against both (comparison.py)
  4. Keep the notable ones, pick the single most notable
  5. Ask the writer for the wording. No message → no insight
  6. Store it keyed by (user, metric, metric date):
       existing row → refreshed in place, read flag reset
       new row      → only while the user has fewer than
                      max_daily_insights metrics for that date

Store failures at any step are logged and end the run with None.
"""
import asyncio
import json
import logging
from dataclasses import asdict
from datetime import date, timedelta
from statistics import mean
from typing import Any, Dict, Iterable, List, Optional

from healthcoach.analysis.timeseries import round_half_up
from healthcoach.config import Settings, get_settings
from healthcoach.errors import StoreUnavailableError
from healthcoach.ingest.normalizer import extract_payload_metrics, resolve_metric_date
from healthcoach.insights.comparison import (
    MetricComparison,
    compare_metric,
    is_notable,
    most_notable,
)
from healthcoach.models.common import DATA_TYPE_DAILY, DATA_TYPE_SLEEP, MetricType, utcnow
from healthcoach.models.health import WearablePayload
from healthcoach.models.insight import ProactiveInsight

logger = logging.getLogger(__name__)

SUPPORTED_DATA_TYPES = (DATA_TYPE_SLEEP, DATA_TYPE_DAILY)
BASELINE_DAYS = 7
DEFAULT_USER_NAME = "there"

INSIGHT_KEY = ("user_id", "metric_type", "metric_date")
# created_at is left alone on refresh
REFRESH_COLUMNS = (
    "message",
    "insight_type",
    "priority",
    "today_value",
    "yesterday_value",
    "baseline_7day",
    "data_context_json",
    "read",
    "updated_at",
)


def _payload_metrics(payload: WearablePayload) -> Dict[MetricType, float]:
    try:
        data = json.loads(payload.raw_json)
    except (TypeError, ValueError):
        logger.warning("Skipping unreadable payload %s", payload.id)
        return {}
    return extract_payload_metrics(data, payload.data_type)


def latest_values(payloads: Iterable[WearablePayload]) -> Dict[MetricType, float]:
    """Newest value of each metric across payloads ordered newest first."""
    values: Dict[MetricType, float] = {}
    for payload in payloads:
        for metric, value in _payload_metrics(payload).items():
            values.setdefault(metric, value)
    return values


def baseline_values(payloads: Iterable[WearablePayload]) -> Dict[MetricType, float]:
    """
    Per-metric average over days, using the newest payload of each day.

    A re-synced day therefore counts once, with its latest numbers.
    """
    newest_per_day: Dict[date, WearablePayload] = {}
    for payload in payloads:
        newest_per_day.setdefault(payload.metric_date, payload)

    samples: Dict[MetricType, List[float]] = {}
    for payload in newest_per_day.values():
        for metric, value in _payload_metrics(payload).items():
            samples.setdefault(metric, []).append(value)
    return {metric: round_half_up(mean(vals), 1) for metric, vals in samples.items()}


class ProactiveInsightGenerator:
    """Change detection over new wearable data, with per-day dedup and cap."""

    def __init__(self, store, writer, settings: Optional[Settings] = None):
        """
        Args:
            store: MetricStore.
            writer: InsightWriter (anything with async generate_insight_message);
                may be None when only the read paths are used.
            settings: defaults to get_settings().
        """
        self.store = store
        self.writer = writer
        self.settings = settings or get_settings()

    async def process_new_health_data(
        self,
        user_id: str,
        data_type: str,
        payload: Dict[str, Any],
        today: Optional[date] = None,
    ) -> Optional[ProactiveInsight]:
        """
        Generate (or refresh) the insight for one newly arrived payload.

        Returns the stored row, or None when the data type is unsupported,
        nothing is notable, wording failed, the daily cap is reached, or the
        store is unavailable.
        """
        if data_type not in SUPPORTED_DATA_TYPES:
            return None

        metrics = extract_payload_metrics(payload, data_type)
        if not metrics:
            logger.info("No comparable metrics in %s payload for %s", data_type, user_id)
            return None

        metric_date = resolve_metric_date(payload, data_type) or today or utcnow().date()
        comparisons = await self.compare(user_id, data_type, metric_date, metrics)

        notable = [
            c for c in comparisons
            if is_notable(
                c,
                self.settings.notable_change_yesterday_pct,
                self.settings.notable_change_baseline_pct,
            )
        ]
        chosen = most_notable(notable)
        if chosen is None:
            logger.info("No notable changes in %s data for %s on %s", data_type, user_id, metric_date)
            return None

        user_name = await self._user_name(user_id)
        message = await self.writer.generate_insight_message(user_name, chosen)
        if not message:
            logger.warning("No insight message generated for %s (%s)", user_id, chosen.metric.value)
            return None

        return await self.store_insight(user_id, metric_date, chosen, message, data_type, comparisons)

    async def compare(
        self,
        user_id: str,
        data_type: str,
        metric_date: date,
        metrics: Dict[MetricType, float],
    ) -> List[MetricComparison]:
        """Dual comparison for every metric; missing history means no comparison."""
        yesterday = metric_date - timedelta(days=1)
        baseline_start = metric_date - timedelta(days=BASELINE_DAYS)
        try:
            yesterday_payloads, baseline_payloads = await asyncio.gather(
                self.store.get_payloads(user_id, data_type, yesterday, metric_date),
                self.store.get_payloads(user_id, data_type, baseline_start, yesterday),
            )
        except StoreUnavailableError as exc:
            logger.warning("Could not read history for %s (user %s): %s", data_type, user_id, exc)
            yesterday_payloads, baseline_payloads = [], []

        previous = latest_values(yesterday_payloads)
        baseline = baseline_values(baseline_payloads)
        return [
            compare_metric(metric, value, previous.get(metric), baseline.get(metric))
            for metric, value in metrics.items()
        ]

    async def store_insight(
        self,
        user_id: str,
        metric_date: date,
        comparison: MetricComparison,
        message: str,
        data_type: str,
        comparisons: Optional[List[MetricComparison]] = None,
    ) -> Optional[ProactiveInsight]:
        """Insert or refresh the (user, metric, date) row, honouring the daily cap."""
        metric_type = comparison.metric.value
        try:
            existing = await self.store.find_insight(user_id, metric_type, metric_date)
            if existing is None:
                count = await self.store.count_insight_metrics(user_id, metric_date)
                if count >= self.settings.max_daily_insights:
                    logger.info(
                        "Daily insight cap reached for %s on %s (%d metrics)",
                        user_id, metric_date, count,
                    )
                    return None

            now = utcnow()
            row = ProactiveInsight(
                user_id=user_id,
                message=message,
                insight_type=comparison.insight_type.value,
                priority=comparison.priority.value,
                metric_type=metric_type,
                metric_date=metric_date,
                today_value=comparison.today,
                yesterday_value=comparison.yesterday,
                baseline_7day=comparison.baseline_7day,
                data_context_json=json.dumps(
                    {
                        "data_type": data_type,
                        "comparisons": [asdict(c) for c in (comparisons or [comparison])],
                    }
                ),
                read=False,
                created_at=now,
                updated_at=now,
            )
            await self.store.upsert([row], conflict_keys=INSIGHT_KEY, update_columns=REFRESH_COLUMNS)
            stored = await self.store.find_insight(user_id, metric_type, metric_date)
        except StoreUnavailableError as exc:
            logger.error("Could not store proactive insight (user %s): %s", user_id, exc)
            return None

        logger.info(
            "%s proactive insight for %s: %s",
            "Refreshed" if existing else "Created", user_id, message,
        )
        return stored

    async def _user_name(self, user_id: str) -> str:
        try:
            name = await self.store.get_profile_name(user_id)
        except StoreUnavailableError as exc:
            logger.warning("Could not read profile name (user %s): %s", user_id, exc)
            return DEFAULT_USER_NAME
        return name or DEFAULT_USER_NAME

    # ─── Read paths ───────────────────────────────────────────────────────────

    async def get_unread_insights(self, user_id: str, limit: int = 5) -> List[ProactiveInsight]:
        try:
            return await self.store.get_unread_insights(user_id, limit)
        except StoreUnavailableError as exc:
            logger.warning("Could not read unread insights (user %s): %s", user_id, exc)
            return []

    async def mark_insight_read(self, insight_id: int) -> Optional[bool]:
        """True once marked, False for an unknown id, None when the store is down."""
        try:
            return await self.store.mark_insight_read(insight_id)
        except StoreUnavailableError as exc:
            logger.warning("Could not mark insight %s read: %s", insight_id, exc)
            return None

    async def dismiss_all(self, user_id: str) -> bool:
        try:
            dismissed = await self.store.dismiss_all_insights(user_id)
        except StoreUnavailableError as exc:
            logger.warning("Could not dismiss insights (user %s): %s", user_id, exc)
            return False
        logger.info("Dismissed %d insights for %s", dismissed, user_id)
        return True
