"""Integration tests for IngestService over the in-memory store."""
import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlmodel import Session, select

from healthcoach.errors import StoreUnavailableError
from healthcoach.ingest.service import IngestService
from healthcoach.models.health import DailyMetricRecord, WearablePayload

TODAY = date(2025, 3, 10)


def _daily(steps: int, start_time="2025-03-09T00:00:00Z") -> dict:
    payload = {"distance_data": {"steps": steps}}
    if start_time:
        payload["metadata"] = {"start_time": start_time}
    return payload


class TestIngestService:
    @pytest.mark.asyncio
    async def test_metric_date_from_metadata(self, store, engine):
        result = await IngestService(store).ingest("u1", "daily", [_daily(7000)], today=TODAY)

        assert (result.received, result.stored, result.skipped) == (1, 1, 0)
        with Session(engine) as s:
            payload = s.exec(select(WearablePayload)).one()
            row = s.exec(select(DailyMetricRecord)).one()
        assert payload.metric_date == date(2025, 3, 9)
        assert json.loads(payload.raw_json) == _daily(7000)
        assert (row.record_date, row.steps) == (date(2025, 3, 9), 7000)

    @pytest.mark.asyncio
    async def test_missing_metadata_uses_today(self, store, engine):
        await IngestService(store).ingest("u1", "daily", [_daily(7000, start_time=None)], today=TODAY)
        with Session(engine) as s:
            assert s.exec(select(DailyMetricRecord)).one().record_date == TODAY

    @pytest.mark.asyncio
    async def test_resync_updates_row(self, store, engine):
        service = IngestService(store)
        await service.ingest("u1", "daily", [_daily(7000)], today=TODAY)
        await service.ingest("u1", "daily", [_daily(9100)], today=TODAY)

        with Session(engine) as s:
            assert [r.steps for r in s.exec(select(DailyMetricRecord)).all()] == [9100]
            assert len(s.exec(select(WearablePayload)).all()) == 2

    @pytest.mark.asyncio
    async def test_item_without_metrics_only_kept_raw(self, store, engine):
        await IngestService(store).ingest("u1", "activity", [{"metadata": {"start_time": "2025-03-09T10:00:00Z"}}])
        with Session(engine) as s:
            assert len(s.exec(select(WearablePayload)).all()) == 1
            assert s.exec(select(DailyMetricRecord)).all() == []

    @pytest.mark.asyncio
    async def test_insights_collected(self, store):
        insights = MagicMock()
        insights.process_new_health_data = AsyncMock(side_effect=[None, "insight"])
        result = await IngestService(store, insights).ingest(
            "u1", "daily", [_daily(7000), _daily(8000)], today=TODAY
        )
        assert result.insights == ["insight"]
        insights.process_new_health_data.assert_awaited_with("u1", "daily", _daily(8000), TODAY)

    @pytest.mark.asyncio
    async def test_insight_failure_is_contained(self, store):
        insights = MagicMock()
        insights.process_new_health_data = AsyncMock(side_effect=ValueError("bad payload"))
        result = await IngestService(store, insights).ingest("u1", "daily", [_daily(7000)], today=TODAY)
        assert result.stored == 1
        assert result.insights == []

    @pytest.mark.asyncio
    async def test_store_failure_skips_item(self):
        store = AsyncMock()
        store.add_payload.side_effect = StoreUnavailableError("down")
        insights = MagicMock()
        insights.process_new_health_data = AsyncMock()

        result = await IngestService(store, insights).ingest("u1", "daily", [_daily(7000)], today=TODAY)

        assert (result.stored, result.skipped) == (0, 1)
        insights.process_new_health_data.assert_not_awaited()
