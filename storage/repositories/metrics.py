"""
Metric Series Repository.

============================================================
PURPOSE
============================================================
MetricSeriesWriter validates raw upstream samples and stores
them as daily time series keyed on
(metric_type, chain_identifier, timestamp).

============================================================
IDEMPOTENCE
============================================================
Writes are bulk upserts guarded by ``value IS DISTINCT FROM``:
re-applying a sample with the same value leaves the row alone,
last_updated included. Existing rows are read first so the
summary can say what was inserted, updated or left unchanged.

============================================================
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chain_sources.models import MetricPoint, MetricType
from core.clock import ClockProtocol, SystemClock
from storage.models.metrics import MetricSampleRow
from storage.repositories.base import BaseRepository


DEFAULT_HISTORY_DAYS = 30

# Rows per INSERT statement; keeps SQLite under its bound-parameter limit.
WRITE_BATCH_SIZE = 150


@dataclass
class WriteSummary:
    """Counts for one write() call."""
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    dropped: int = 0

    @property
    def written(self) -> int:
        return self.inserted + self.updated

    def add(self, other: "WriteSummary") -> None:
        self.inserted += other.inserted
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.dropped += other.dropped

    def to_dict(self) -> Dict[str, int]:
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "dropped": self.dropped,
        }


@dataclass(frozen=True)
class NetworkLatest:
    """Network-wide sum at the most recent timestamp."""
    timestamp: int
    value: float
    chain_count: int


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _metric_name(metric_type: Any) -> str:
    return metric_type.value if isinstance(metric_type, MetricType) else str(metric_type)


class MetricSeriesWriter(BaseRepository[MetricSampleRow]):
    """
    Validates and persists metric samples; serves the read side too.

    The session is injected; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        history_days: int = DEFAULT_HISTORY_DAYS,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(session, MetricSampleRow, "MetricSeriesWriter")
        self._history_days = history_days
        self._clock = clock or SystemClock()

    @property
    def history_days(self) -> int:
        return self._history_days

    # =========================================================
    # VALIDATION
    # =========================================================

    def normalize_points(
        self,
        raw_points: Iterable[Any],
        now: Optional[datetime] = None,
    ) -> Tuple[List[MetricPoint], int]:
        """
        Keep well-formed samples inside the history window.

        Args:
            raw_points: Upstream items, ``{"timestamp": ..., "value": ...}``
            now: Upper bound of the window (defaults to the clock)

        Returns:
            (samples sorted by timestamp, number of points dropped)
        """
        now = now or self._clock.now()
        upper = int(now.timestamp())
        lower = int((now - timedelta(days=self._history_days)).timestamp())

        samples: Dict[int, MetricPoint] = {}
        dropped = 0
        for raw in raw_points:
            if not isinstance(raw, dict):
                dropped += 1
                continue
            ts = _as_number(raw.get("timestamp"))
            value = _as_number(raw.get("value"))
            if ts is None or value is None or ts != int(ts):
                dropped += 1
                continue
            ts = int(ts)
            if ts < lower or ts > upper or ts in samples:
                dropped += 1
                continue
            samples[ts] = MetricPoint(timestamp=ts, value=value)

        if dropped:
            self._logger.debug(f"Dropped {dropped} malformed or out-of-window points")
        return [samples[ts] for ts in sorted(samples)], dropped

    # =========================================================
    # WRITES
    # =========================================================

    def write(
        self,
        metric_type: Any,
        chain_identifier: str,
        samples: List[MetricPoint],
    ) -> WriteSummary:
        """
        Idempotent bulk upsert of validated samples.

        Returns:
            WriteSummary (``dropped`` is left for the caller to fill)
        """
        metric = _metric_name(metric_type)
        summary = WriteSummary()
        if not samples:
            return summary

        existing = self._existing_values(metric, chain_identifier, [s.timestamp for s in samples])
        pending = []
        for sample in samples:
            if sample.timestamp not in existing:
                summary.inserted += 1
            elif existing[sample.timestamp] != sample.value:
                summary.updated += 1
            else:
                summary.unchanged += 1
                continue
            pending.append(sample)

        now = self._clock.now()
        for start in range(0, len(pending), WRITE_BATCH_SIZE):
            batch = pending[start:start + WRITE_BATCH_SIZE]
            insert_stmt = self._insert().values([
                {
                    "metric_type": metric,
                    "chain_identifier": chain_identifier,
                    "timestamp": s.timestamp,
                    "value": s.value,
                    "last_updated": now,
                }
                for s in batch
            ])
            excluded = insert_stmt.excluded
            stmt = insert_stmt.on_conflict_do_update(
                index_elements=["metric_type", "chain_identifier", "timestamp"],
                set_={"value": excluded.value, "last_updated": excluded.last_updated},
                where=MetricSampleRow.value.is_distinct_from(excluded.value),
            )
            self._execute(stmt, "write", {"metric_type": metric, "chain": chain_identifier})

        self._logger.debug(
            f"{metric}/{chain_identifier}: {summary.inserted} inserted, "
            f"{summary.updated} updated, {summary.unchanged} unchanged"
        )
        return summary

    def _existing_values(
        self,
        metric: str,
        chain_identifier: str,
        timestamps: List[int],
    ) -> Dict[int, float]:
        values: Dict[int, float] = {}
        for start in range(0, len(timestamps), WRITE_BATCH_SIZE):
            chunk = timestamps[start:start + WRITE_BATCH_SIZE]
            stmt = select(MetricSampleRow.timestamp, MetricSampleRow.value).where(
                MetricSampleRow.metric_type == metric,
                MetricSampleRow.chain_identifier == chain_identifier,
                MetricSampleRow.timestamp.in_(chunk),
            )
            for ts, value in self._execute_rows(stmt, "existing_values"):
                values[ts] = value
        return values

    # =========================================================
    # READS
    # =========================================================

    def _since(self, days: Optional[int]) -> int:
        days = days or self._history_days
        return int((self._clock.now() - timedelta(days=days)).timestamp())

    def history(
        self,
        metric_type: Any,
        chain_identifier: str,
        days: Optional[int] = None,
    ) -> List[MetricPoint]:
        """Samples of one chain, oldest first."""
        stmt = (
            select(MetricSampleRow.timestamp, MetricSampleRow.value)
            .where(
                MetricSampleRow.metric_type == _metric_name(metric_type),
                MetricSampleRow.chain_identifier == chain_identifier,
                MetricSampleRow.timestamp >= self._since(days),
            )
            .order_by(MetricSampleRow.timestamp)
        )
        return [MetricPoint(ts, value) for ts, value in self._execute_rows(stmt, "history")]

    def latest(self, metric_type: Any, chain_identifier: str) -> Optional[MetricPoint]:
        stmt = (
            select(MetricSampleRow.timestamp, MetricSampleRow.value)
            .where(
                MetricSampleRow.metric_type == _metric_name(metric_type),
                MetricSampleRow.chain_identifier == chain_identifier,
            )
            .order_by(MetricSampleRow.timestamp.desc())
            .limit(1)
        )
        rows = self._execute_rows(stmt, "latest")
        return MetricPoint(rows[0][0], rows[0][1]) if rows else None

    def network_history(self, metric_type: Any, days: Optional[int] = None) -> List[MetricPoint]:
        """Sum across all chains per timestamp, oldest first."""
        stmt = (
            select(MetricSampleRow.timestamp, func.sum(MetricSampleRow.value))
            .where(
                MetricSampleRow.metric_type == _metric_name(metric_type),
                MetricSampleRow.timestamp >= self._since(days),
            )
            .group_by(MetricSampleRow.timestamp)
            .order_by(MetricSampleRow.timestamp)
        )
        return [
            MetricPoint(ts, float(total or 0.0))
            for ts, total in self._execute_rows(stmt, "network_history")
        ]

    def network_latest(self, metric_type: Any) -> Optional[NetworkLatest]:
        metric = _metric_name(metric_type)
        latest_ts = (
            select(func.max(MetricSampleRow.timestamp))
            .where(MetricSampleRow.metric_type == metric)
            .scalar_subquery()
        )
        stmt = (
            select(
                MetricSampleRow.timestamp,
                func.sum(MetricSampleRow.value),
                func.count(MetricSampleRow.id),
            )
            .where(
                MetricSampleRow.metric_type == metric,
                MetricSampleRow.timestamp == latest_ts,
            )
            .group_by(MetricSampleRow.timestamp)
        )
        rows = self._execute_rows(stmt, "network_latest")
        if not rows:
            return None
        ts, total, count = rows[0]
        return NetworkLatest(timestamp=ts, value=float(total or 0.0), chain_count=count)

    def count(self) -> int:
        return self._count()
