"""
MetricStore: async handle over the analytics tables.

Every analytics component talks to the database through one of these,
passed in explicitly. The underlying SQLModel work is synchronous, so each
call runs in the default thread pool under a timeout:

  - SQLAlchemyError       → StoreUnavailableError
  - timeout               → StoreUnavailableError

Callers decide what "unavailable" means for them (usually: no data).

Upserts use the dialect's native INSERT .. ON CONFLICT DO UPDATE against
the table's unique key, so two concurrent writers for the same key both
end up updating one row instead of inserting two.
"""
import asyncio
import threading
from contextlib import nullcontext
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from healthcoach.errors import StoreUnavailableError
from healthcoach.models.derived import DetectedPattern, MetricBaseline
from healthcoach.models.health import DailyMetricRecord, WearablePayload
from healthcoach.models.insight import ProactiveInsight
from healthcoach.models.profile import UserProfile


class MetricStore:
    """Keyed access to raw daily rows and the derived-data tables."""

    def __init__(self, engine, timeout_seconds: float = 5.0):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
            timeout_seconds: per-call limit; a slower call counts as unavailable.
        """
        self.engine = engine
        self.timeout_seconds = timeout_seconds
        # A single SQLite connection must not be used from two threads at once
        self._lock = threading.Lock() if engine.dialect.name == "sqlite" else nullcontext()

    async def _run(self, fn, *args, **kwargs):
        """Run a sync DB call in the thread pool, bounded by the timeout."""
        loop = asyncio.get_event_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, lambda: self._locked(fn, *args, **kwargs)),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise StoreUnavailableError(
                f"{fn.__name__} timed out after {self.timeout_seconds}s"
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"{fn.__name__} failed: {exc}") from exc

    def _locked(self, fn, *args, **kwargs):
        with self._lock:
            return fn(*args, **kwargs)

    # ─── Raw data ─────────────────────────────────────────────────────────────

    async def get_rows(
        self,
        user_id: str,
        start: date,
        end: Optional[date] = None,
        ascending: bool = True,
    ) -> List[DailyMetricRecord]:
        """Daily rows with start <= record_date (< end when given), ordered by date."""
        return await self._run(self._get_rows_sync, user_id, start, end, ascending)

    def _get_rows_sync(self, user_id, start, end, ascending):
        order = DailyMetricRecord.record_date.asc() if ascending else DailyMetricRecord.record_date.desc()
        stmt = select(DailyMetricRecord).where(
            DailyMetricRecord.user_id == user_id,
            DailyMetricRecord.record_date >= start,
        )
        if end is not None:
            stmt = stmt.where(DailyMetricRecord.record_date < end)
        with Session(self.engine) as s:
            return list(s.exec(stmt.order_by(order)).all())

    async def get_payloads(
        self, user_id: str, data_type: str, start: date, end: date
    ) -> List[WearablePayload]:
        """Raw payloads of one data type with start <= metric_date < end, newest first."""
        return await self._run(self._get_payloads_sync, user_id, data_type, start, end)

    def _get_payloads_sync(self, user_id, data_type, start, end):
        stmt = (
            select(WearablePayload)
            .where(
                WearablePayload.user_id == user_id,
                WearablePayload.data_type == data_type,
                WearablePayload.metric_date >= start,
                WearablePayload.metric_date < end,
            )
            .order_by(WearablePayload.received_at.desc())
        )
        with Session(self.engine) as s:
            return list(s.exec(stmt).all())

    async def add_payload(self, payload: WearablePayload) -> WearablePayload:
        return await self._run(self._add_sync, payload)

    def _add_sync(self, obj):
        with Session(self.engine) as s:
            s.add(obj)
            s.commit()
            s.refresh(obj)
            return obj

    async def user_ids_with_data(self) -> List[str]:
        return await self._run(self._user_ids_sync)

    def _user_ids_sync(self):
        with Session(self.engine) as s:
            return list(s.exec(select(DailyMetricRecord.user_id).distinct()).all())

    async def get_profile_name(self, user_id: str) -> Optional[str]:
        return await self._run(self._profile_name_sync, user_id)

    def _profile_name_sync(self, user_id):
        with Session(self.engine) as s:
            profile = s.get(UserProfile, user_id)
            return profile.name if profile else None

    # ─── Generic upsert ───────────────────────────────────────────────────────

    async def upsert(
        self,
        rows: Sequence[SQLModel],
        conflict_keys: Sequence[str],
        update_columns: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Insert-or-update rows of one table keyed on conflict_keys.

        Args:
            rows: model instances of the same table; their id is ignored.
            conflict_keys: columns of the table's unique key.
            update_columns: columns overwritten on conflict. Defaults to every
                non-key column supplied.

        Returns:
            Number of rows written.
        """
        if not rows:
            return 0
        return await self._run(self._upsert_sync, rows, conflict_keys, update_columns)

    def _upsert_sync(self, rows, conflict_keys, update_columns):
        model: Type[SQLModel] = type(rows[0])
        records = [_record(r) for r in rows]
        if update_columns is None:
            update_columns = [c for c in records[0] if c not in conflict_keys]

        stmt = self._insert(model.__table__).values(records)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_keys),
            set_={c: stmt.excluded[c] for c in update_columns},
        )
        with self.engine.begin() as conn:
            conn.execute(stmt)
        return len(records)

    def _insert(self, table):
        if self.engine.dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert
        return insert(table)

    # ─── Baselines ────────────────────────────────────────────────────────────

    async def get_baselines(self, user_id: str) -> List[MetricBaseline]:
        return await self._run(self._get_baselines_sync, user_id)

    def _get_baselines_sync(self, user_id):
        with Session(self.engine) as s:
            return list(
                s.exec(select(MetricBaseline).where(MetricBaseline.user_id == user_id)).all()
            )

    async def latest_baseline_computed_at(self, user_id: str) -> Optional[datetime]:
        """computed_at of the most recently computed baseline row, if any."""
        return await self._run(self._latest_sync, MetricBaseline, MetricBaseline.computed_at, user_id)

    async def latest_pattern_updated_at(self, user_id: str) -> Optional[datetime]:
        """updated_at of the most recently written pattern row, if any."""
        return await self._run(self._latest_sync, DetectedPattern, DetectedPattern.updated_at, user_id)

    def _latest_sync(self, model, column, user_id):
        with Session(self.engine) as s:
            return s.exec(
                select(column).where(model.user_id == user_id).order_by(column.desc()).limit(1)
            ).first()

    # ─── Patterns ─────────────────────────────────────────────────────────────

    async def get_active_patterns(self, user_id: str) -> List[DetectedPattern]:
        return await self._run(self._active_patterns_sync, user_id)

    def _active_patterns_sync(self, user_id):
        stmt = (
            select(DetectedPattern)
            .where(DetectedPattern.user_id == user_id, DetectedPattern.is_active == True)  # noqa: E712
            .order_by(DetectedPattern.confidence.desc())
        )
        with Session(self.engine) as s:
            return list(s.exec(stmt).all())

    async def deactivate_patterns(
        self, user_id: str, pattern_type: str, keep_ids: Iterable[int], now: datetime
    ) -> int:
        """Mark active patterns of a type inactive unless their id is in keep_ids."""
        return await self._run(self._deactivate_sync, user_id, pattern_type, set(keep_ids), now)

    def _deactivate_sync(self, user_id, pattern_type, keep_ids, now):
        stmt = update(DetectedPattern).where(
            DetectedPattern.user_id == user_id,
            DetectedPattern.pattern_type == pattern_type,
            DetectedPattern.is_active == True,  # noqa: E712
        )
        if keep_ids:
            stmt = stmt.where(DetectedPattern.id.not_in(keep_ids))
        with self.engine.begin() as conn:
            return conn.execute(stmt.values(is_active=False, updated_at=now)).rowcount

    async def pattern_ids(self, user_id: str, keys: Iterable[tuple]) -> List[int]:
        """Ids of pattern rows matching (pattern_type, metric_a, metric_b, lag) keys."""
        return await self._run(self._pattern_ids_sync, user_id, list(keys))

    def _pattern_ids_sync(self, user_id, keys):
        wanted = set(keys)
        with Session(self.engine) as s:
            rows = s.exec(select(DetectedPattern).where(DetectedPattern.user_id == user_id)).all()
        return [
            r.id for r in rows
            if (r.pattern_type, r.metric_a, r.metric_b, r.time_lag_days) in wanted
        ]

    # ─── Proactive insights ───────────────────────────────────────────────────

    async def find_insight(
        self, user_id: str, metric_type: str, metric_date: date
    ) -> Optional[ProactiveInsight]:
        return await self._run(self._find_insight_sync, user_id, metric_type, metric_date)

    def _find_insight_sync(self, user_id, metric_type, metric_date):
        with Session(self.engine) as s:
            return s.exec(
                select(ProactiveInsight).where(
                    ProactiveInsight.user_id == user_id,
                    ProactiveInsight.metric_type == metric_type,
                    ProactiveInsight.metric_date == metric_date,
                )
            ).first()

    async def count_insight_metrics(self, user_id: str, metric_date: date) -> int:
        """Distinct metric types that already have an insight for metric_date."""
        return await self._run(self._count_metrics_sync, user_id, metric_date)

    def _count_metrics_sync(self, user_id, metric_date):
        with Session(self.engine) as s:
            return s.exec(
                select(func.count(func.distinct(ProactiveInsight.metric_type))).where(
                    ProactiveInsight.user_id == user_id,
                    ProactiveInsight.metric_date == metric_date,
                    ProactiveInsight.metric_type.is_not(None),
                )
            ).one()

    async def get_unread_insights(self, user_id: str, limit: int = 5) -> List[ProactiveInsight]:
        return await self._run(self._unread_sync, user_id, limit)

    def _unread_sync(self, user_id, limit):
        stmt = (
            select(ProactiveInsight)
            .where(ProactiveInsight.user_id == user_id, ProactiveInsight.read == False)  # noqa: E712
            .order_by(ProactiveInsight.updated_at.desc(), ProactiveInsight.id.desc())
            .limit(limit)
        )
        with Session(self.engine) as s:
            return list(s.exec(stmt).all())

    async def mark_insight_read(self, insight_id: int) -> bool:
        return await self._run(self._mark_read_sync, insight_id)

    def _mark_read_sync(self, insight_id):
        with Session(self.engine) as s:
            insight = s.get(ProactiveInsight, insight_id)
            if insight is None:
                return False
            insight.read = True
            s.add(insight)
            s.commit()
            return True

    async def dismiss_all_insights(self, user_id: str) -> int:
        return await self._run(self._dismiss_all_sync, user_id)

    def _dismiss_all_sync(self, user_id):
        stmt = (
            update(ProactiveInsight)
            .where(ProactiveInsight.user_id == user_id, ProactiveInsight.read == False)  # noqa: E712
            .values(read=True)
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount


def _record(row: SQLModel) -> Dict[str, Any]:
    """Column dict for a Core insert; enum members are stored by value."""
    data = row.model_dump(exclude={"id"})
    return {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
