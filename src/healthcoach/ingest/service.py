"""
IngestService: persists webhook data items and triggers proactive insights.

Flow for each item of one delivery:
  1. Resolve the date the item describes (metadata, else today)
  2. Store it verbatim as a WearablePayload
  3. Upsert the health_daily columns it carries for (user, date)
  4. Run proactive insight generation on it

A store failure skips that item. Insight generation never aborts ingestion:
whatever goes wrong there is logged and the next item is processed.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from healthcoach.errors import StoreUnavailableError
from healthcoach.ingest.normalizer import daily_record_fields, resolve_metric_date
from healthcoach.models.common import utcnow
from healthcoach.models.health import DailyMetricRecord, WearablePayload
from healthcoach.models.insight import ProactiveInsight

logger = logging.getLogger(__name__)

DAILY_KEY = ("user_id", "record_date")


@dataclass
class IngestResult:
    received: int = 0
    stored: int = 0
    skipped: int = 0
    insights: List[ProactiveInsight] = field(default_factory=list)


class IngestService:
    """Webhook data → raw payloads + daily rows + proactive insights."""

    def __init__(self, store, insights=None):
        """
        Args:
            store: MetricStore.
            insights: ProactiveInsightGenerator, or None to only persist.
        """
        self.store = store
        self.insights = insights

    async def ingest(
        self,
        user_id: str,
        data_type: str,
        items: Iterable[Dict[str, Any]],
        today: Optional[date] = None,
    ) -> IngestResult:
        result = IngestResult()
        for item in items:
            result.received += 1
            if not isinstance(item, dict):
                logger.warning("Skipping non-object %s item for %s", data_type, user_id)
                result.skipped += 1
                continue

            metric_date = resolve_metric_date(item, data_type) or today or utcnow().date()
            try:
                await self._persist(user_id, data_type, metric_date, item)
            except StoreUnavailableError as exc:
                logger.error("Could not store %s data for %s: %s", data_type, user_id, exc)
                result.skipped += 1
                continue
            result.stored += 1

            insight = await self._generate_insight(user_id, data_type, item, today)
            if insight is not None:
                result.insights.append(insight)

        logger.info(
            "Ingested %d/%d %s items for %s (%d insights)",
            result.stored, result.received, data_type, user_id, len(result.insights),
        )
        return result

    async def _persist(
        self, user_id: str, data_type: str, metric_date: date, item: Dict[str, Any]
    ) -> None:
        await self.store.add_payload(
            WearablePayload(
                user_id=user_id,
                data_type=data_type,
                metric_date=metric_date,
                raw_json=json.dumps(item),
            )
        )

        fields = daily_record_fields(item, data_type)
        if not fields:
            return
        record = DailyMetricRecord(
            user_id=user_id, record_date=metric_date, updated_at=utcnow(), **fields
        )
        # Only the columns this item carries are overwritten on conflict
        await self.store.upsert(
            [record],
            conflict_keys=DAILY_KEY,
            update_columns=[*fields, "updated_at"],
        )

    async def _generate_insight(
        self, user_id: str, data_type: str, item: Dict[str, Any], today: Optional[date]
    ) -> Optional[ProactiveInsight]:
        if self.insights is None:
            return None
        try:
            return await self.insights.process_new_health_data(user_id, data_type, item, today)
        except Exception:
            logger.exception("Proactive insight generation failed for %s", user_id)
            return None
