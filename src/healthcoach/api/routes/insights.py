"""Daily insight, check-in and proactive insight routes."""
import logging
from dataclasses import asdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from healthcoach.analysis.trends import MetricTrend, compute_metric_trends
from healthcoach.api.deps import get_store
from healthcoach.errors import StoreUnavailableError
from healthcoach.insights.checkin import check_in_response, generate_check_in_context
from healthcoach.insights.context import HealthSnapshot, snapshot_from_record
from healthcoach.insights.daily import generate_daily_insight, generate_multiple_insights
from healthcoach.insights.proactive import ProactiveInsightGenerator
from healthcoach.models.common import utcnow
from healthcoach.models.insight import ProactiveInsight

logger = logging.getLogger(__name__)

router = APIRouter()

TREND_LOOKBACK_DAYS = 14


async def load_rule_inputs(
    store, user_id: str, today: Optional[date] = None
) -> Tuple[Optional[HealthSnapshot], Optional[Dict[str, MetricTrend]]]:
    """Snapshot of the newest daily row and week-over-week trends; (None, None) without data."""
    today = today or utcnow().date()
    try:
        rows = await store.get_rows(user_id, today - timedelta(days=TREND_LOOKBACK_DAYS))
    except StoreUnavailableError as exc:
        logger.warning("Could not load daily rows for insights (user %s): %s", user_id, exc)
        return None, None
    if not rows:
        return None, None
    return snapshot_from_record(rows[-1]), compute_metric_trends(rows, today)


class CheckInAnswer(BaseModel):
    value: str


@router.get("/daily/{user_id}")
async def daily_insights(
    user_id: str,
    streak: int = 0,
    days_on_platform: int = 0,
    limit: int = Query(1, ge=1, le=10),
    store=Depends(get_store),
):
    """Best daily insight (limit=1) or up to `limit` insights, one per metric."""
    metrics, trends = await load_rule_inputs(store, user_id)
    if limit == 1:
        insights = [generate_daily_insight(metrics, trends, streak, days_on_platform)]
    else:
        insights = generate_multiple_insights(metrics, trends, streak, days_on_platform, limit)
    return {"insights": [asdict(i) for i in insights]}


@router.get("/check-in/{user_id}")
async def check_in(
    user_id: str,
    streak: int = 0,
    last_check_in: Optional[datetime] = None,
    store=Depends(get_store),
):
    """Question and answer options for today's check-in."""
    metrics, _ = await load_rule_inputs(store, user_id)
    return asdict(generate_check_in_context(metrics, streak, last_check_in))


@router.post("/check-in/respond")
def respond_to_check_in(answer: CheckInAnswer):
    return {"message": check_in_response(answer.value)}


@router.get("/proactive/{user_id}", response_model=List[ProactiveInsight])
async def unread_proactive_insights(
    user_id: str,
    limit: int = Query(5, ge=1, le=50),
    store=Depends(get_store),
):
    """Unread proactive insights, newest first."""
    return await ProactiveInsightGenerator(store, writer=None).get_unread_insights(user_id, limit)


@router.post("/proactive/{insight_id}/read")
async def mark_read(insight_id: int, store=Depends(get_store)):
    marked = await ProactiveInsightGenerator(store, writer=None).mark_insight_read(insight_id)
    if marked is None:
        raise HTTPException(status_code=503, detail="Insight store unavailable")
    if not marked:
        raise HTTPException(status_code=404, detail="Insight not found")
    return {"read": True}


@router.post("/proactive/{user_id}/dismiss-all")
async def dismiss_all(user_id: str, store=Depends(get_store)):
    return {"dismissed": await ProactiveInsightGenerator(store, writer=None).dismiss_all(user_id)}
