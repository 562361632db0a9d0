"""Integration tests for the /ingest webhook route."""
from datetime import date, timedelta

from sqlmodel import Session, select

from healthcoach.models.health import DailyMetricRecord, WearablePayload
from healthcoach.models.insight import ProactiveInsight

DAY = date(2025, 3, 10)


def _daily(day: date, rhr: float) -> dict:
    return {
        "metadata": {"start_time": f"{day.isoformat()}T00:00:00Z", "end_time": f"{day.isoformat()}T23:59:59Z"},
        "heart_rate_data": {"summary": {"resting_hr_bpm": rhr}},
    }


def _sleep(day: date, seconds: int) -> dict:
    return {
        "metadata": {"start_time": f"{(day - timedelta(days=1)).isoformat()}T23:00:00Z",
                     "end_time": f"{day.isoformat()}T07:00:00Z"},
        "sleep_durations_data": {"asleep": {"duration_asleep_state_seconds": seconds}, "sleep_efficiency": 0.9},
    }


class TestIngestRoute:
    def test_stores_payloads_and_daily_rows(self, client, engine):
        resp = client.post("/ingest", json={
            "user_id": "u1",
            "data_type": "daily",
            "data": [_daily(DAY - timedelta(days=1), 55), _daily(DAY, 56)],
        })
        assert resp.status_code == 200
        assert resp.json() == {"received": 2, "stored": 2, "skipped": 0, "insights": []}

        with Session(engine) as s:
            assert len(s.exec(select(WearablePayload)).all()) == 2
            rows = s.exec(select(DailyMetricRecord).order_by(DailyMetricRecord.record_date)).all()
        assert [(r.record_date, r.resting_heart_rate) for r in rows] == [
            (DAY - timedelta(days=1), 55),
            (DAY, 56),
        ]

    def test_sleep_and_daily_merge_into_one_row(self, client, engine):
        client.post("/ingest", json={"user_id": "u1", "data_type": "daily", "data": [_daily(DAY, 55)]})
        client.post("/ingest", json={"user_id": "u1", "data_type": "sleep", "data": [_sleep(DAY, 27000)]})

        with Session(engine) as s:
            [row] = s.exec(select(DailyMetricRecord)).all()
        assert row.resting_heart_rate == 55
        assert row.sleep_duration_minutes == 450
        assert row.sleep_efficiency == 0.9

    def test_rhr_spike_produces_insight(self, client, engine, writer):
        history = [_daily(DAY - timedelta(days=offset), 55) for offset in range(6, 0, -1)]
        client.post("/ingest", json={"user_id": "u1", "data_type": "daily", "data": history})

        resp = client.post("/ingest", json={"user_id": "u1", "data_type": "daily", "data": [_daily(DAY, 64)]})

        [insight_id] = resp.json()["insights"]
        with Session(engine) as s:
            insight = s.get(ProactiveInsight, insight_id)
        assert insight.metric_type == "rhr"
        assert insight.insight_type == "concern"
        assert insight.message == "Resting HR is up 16% on yesterday."
        assert writer.generate_insight_message.await_count == 1

    def test_non_object_items_skipped(self, client):
        resp = client.post("/ingest", json={
            "user_id": "u1", "data_type": "daily", "data": ["junk", _daily(DAY, 55)],
        })
        assert resp.json()["received"] == 2
        assert resp.json()["stored"] == 1
        assert resp.json()["skipped"] == 1

    def test_writer_failure_does_not_fail_ingest(self, client, writer, engine):
        writer.generate_insight_message.side_effect = RuntimeError("boom")
        resp = client.post("/ingest", json={
            "user_id": "u1", "data_type": "daily",
            "data": [{**_daily(DAY, 55), "distance_data": {"steps": 15000}}],
        })
        assert resp.status_code == 200
        assert resp.json()["stored"] == 1
        assert resp.json()["insights"] == []

    def test_missing_fields_rejected(self, client):
        assert client.post("/ingest", json={"data_type": "daily"}).status_code == 422
