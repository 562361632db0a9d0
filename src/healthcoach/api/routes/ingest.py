"""Webhook-style ingestion of wearable data items."""
from typing import Any, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from healthcoach.api.deps import get_insight_writer, get_store
from healthcoach.ingest.service import IngestService
from healthcoach.insights.proactive import ProactiveInsightGenerator

router = APIRouter()


class IngestRequest(BaseModel):
    user_id: str
    data_type: str
    data: List[Any] = Field(default_factory=list)  # non-object items are counted as skipped


@router.post("")
async def ingest(
    request: IngestRequest,
    store=Depends(get_store),
    writer=Depends(get_insight_writer),
):
    """
    Store a delivery and generate proactive insights from it.

    Always answers 200 so the sender does not retry; the counts say what
    was kept.
    """
    service = IngestService(store, ProactiveInsightGenerator(store, writer))
    result = await service.ingest(request.user_id, request.data_type, request.data)
    return {
        "received": result.received,
        "stored": result.stored,
        "skipped": result.skipped,
        "insights": [i.id for i in result.insights],
    }
