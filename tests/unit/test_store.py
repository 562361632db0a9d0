"""Tests for MetricStore against in-memory SQLite."""
import time
from datetime import date, datetime
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from healthcoach.db.store import MetricStore
from healthcoach.errors import StoreUnavailableError
from healthcoach.models.derived import MetricBaseline
from healthcoach.models.health import DailyMetricRecord, WearablePayload
from healthcoach.models.insight import ProactiveInsight

DAY = date(2025, 3, 10)


def _insight(metric_type, metric_date=DAY, user_id="u1", **kwargs):
    return ProactiveInsight(
        user_id=user_id, message="m", insight_type="notable_change", priority="medium",
        metric_type=metric_type, metric_date=metric_date, **kwargs
    )


class TestGetRows:
    @pytest.mark.asyncio
    async def test_range_and_order(self, store, seed_daily):
        seed_daily("u1", date(2025, 3, 1), [{"steps": i} for i in range(10)])
        seed_daily("u2", date(2025, 3, 1), [{"steps": 1}])

        rows = await store.get_rows("u1", date(2025, 3, 3), end=date(2025, 3, 6))
        assert [r.record_date.day for r in rows] == [3, 4, 5]

        newest_first = await store.get_rows("u1", date(2025, 3, 8), ascending=False)
        assert [r.record_date.day for r in newest_first] == [10, 9, 8]

    @pytest.mark.asyncio
    async def test_user_ids_with_data(self, store, seed_daily):
        seed_daily("u1", DAY, [{"steps": 1}, {"steps": 2}])
        seed_daily("u2", DAY, [{"steps": 1}])
        assert sorted(await store.user_ids_with_data()) == ["u1", "u2"]


class TestPayloads:
    @pytest.mark.asyncio
    async def test_half_open_range_newest_first(self, store):
        for day, hour in [(9, 8), (9, 10), (10, 9), (8, 7)]:
            await store.add_payload(WearablePayload(
                user_id="u1", data_type="daily", metric_date=date(2025, 3, day),
                raw_json=f'{{"hour": {hour}}}', received_at=datetime(2025, 3, 10, hour),
            ))
        rows = await store.get_payloads("u1", "daily", date(2025, 3, 8), date(2025, 3, 10))
        assert [p.raw_json for p in rows] == ['{"hour": 10}', '{"hour": 8}', '{"hour": 7}']

    @pytest.mark.asyncio
    async def test_filters_data_type(self, store):
        await store.add_payload(WearablePayload(
            user_id="u1", data_type="sleep", metric_date=DAY, raw_json="{}"
        ))
        assert await store.get_payloads("u1", "daily", DAY, date(2025, 3, 11)) == []


class TestUpsert:
    @pytest.mark.asyncio
    async def test_conflict_updates_only_named_columns(self, store, engine):
        await store.upsert(
            [DailyMetricRecord(user_id="u1", record_date=DAY, steps=5000, resting_heart_rate=55.0)],
            conflict_keys=("user_id", "record_date"),
        )
        await store.upsert(
            [DailyMetricRecord(user_id="u1", record_date=DAY, steps=9000)],
            conflict_keys=("user_id", "record_date"),
            update_columns=["steps"],
        )
        with Session(engine) as s:
            rows = s.exec(select(DailyMetricRecord)).all()
        assert len(rows) == 1
        assert rows[0].steps == 9000
        assert rows[0].resting_heart_rate == 55.0

    @pytest.mark.asyncio
    async def test_empty_rows(self, store):
        assert await store.upsert([], conflict_keys=("user_id",)) == 0

    @pytest.mark.asyncio
    async def test_baselines_keyed_by_metric(self, store):
        for avg in (10.0, 12.0):
            await store.upsert(
                [MetricBaseline(user_id="u1", metric_type="steps", avg_7day=avg, computed_at=datetime(2025, 3, 1))],
                conflict_keys=("user_id", "metric_type"),
            )
        [baseline] = await store.get_baselines("u1")
        assert baseline.avg_7day == 12.0
        assert await store.latest_baseline_computed_at("u1") == datetime(2025, 3, 1)
        assert await store.latest_baseline_computed_at("nobody") is None


class TestInsights:
    @pytest.mark.asyncio
    async def test_count_distinct_metrics_for_day(self, store):
        await store.upsert(
            [_insight("steps"), _insight("hrv"), _insight("rhr", metric_date=date(2025, 3, 9))],
            conflict_keys=("user_id", "metric_type", "metric_date"),
        )
        assert await store.count_insight_metrics("u1", DAY) == 2
        assert (await store.find_insight("u1", "hrv", DAY)).metric_type == "hrv"
        assert await store.find_insight("u1", "rhr", DAY) is None

    @pytest.mark.asyncio
    async def test_read_flags(self, store):
        await store.upsert(
            [_insight("steps"), _insight("hrv"), _insight("steps", user_id="u2")],
            conflict_keys=("user_id", "metric_type", "metric_date"),
        )
        [first, second] = await store.get_unread_insights("u1")
        assert await store.mark_insight_read(first.id) is True
        assert [i.id for i in await store.get_unread_insights("u1")] == [second.id]
        assert await store.dismiss_all_insights("u1") == 1
        assert await store.get_unread_insights("u1") == []
        assert len(await store.get_unread_insights("u2")) == 1
        assert await store.mark_insight_read(9999) is False


class TestFailures:
    @pytest.mark.asyncio
    async def test_sqlalchemy_error_becomes_unavailable(self, store):
        def locked(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        with patch.object(store, "_get_rows_sync", locked):
            with pytest.raises(StoreUnavailableError):
                await store.get_rows("u1", DAY)

    @pytest.mark.asyncio
    async def test_timeout_becomes_unavailable(self, engine):
        store = MetricStore(engine, timeout_seconds=0.05)

        def slow(*args, **kwargs):
            time.sleep(0.3)
            return []

        with patch.object(store, "_get_rows_sync", slow):
            with pytest.raises(StoreUnavailableError, match="timed out"):
                await store.get_rows("u1", DAY)
