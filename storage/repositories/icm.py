"""
ICM Message Count Repository.

============================================================
PURPOSE
============================================================
IcmCountWriter stores daily cross-chain message counts keyed on
(day, source_chain_id, destination_chain_id) and serves them
back grouped by day.

============================================================
IDEMPOTENCE
============================================================
Same scheme as MetricSeriesWriter: bulk upserts guarded by
``message_count IS DISTINCT FROM``, with a prior read so the
summary can say what was inserted, updated or left unchanged.
A day is always written from a complete recount, so a newer
count simply replaces the stored one.

============================================================
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from core.clock import ClockProtocol, SystemClock
from storage.models.icm import IcmMessageCountRow
from storage.repositories.base import BaseRepository
from storage.repositories.metrics import WRITE_BATCH_SIZE, WriteSummary


DEFAULT_ICM_HISTORY_DAYS = 90

DAY_SECONDS = 86400

PairKey = Tuple[int, str, str]


def day_start(timestamp: int) -> int:
    """UTC midnight opening the day that contains ``timestamp``."""
    return timestamp - timestamp % DAY_SECONDS


@dataclass(frozen=True)
class IcmPairCount:
    day: int
    source_chain_id: str
    destination_chain_id: str
    message_count: int

    @property
    def key(self) -> PairKey:
        return (self.day, self.source_chain_id, self.destination_chain_id)


@dataclass
class IcmDay:
    """All pair counts of one day, busiest pair first."""
    day: int
    pairs: List[IcmPairCount] = field(default_factory=list)

    @property
    def total_messages(self) -> int:
        return sum(p.message_count for p in self.pairs)


class IcmCountWriter(BaseRepository[IcmMessageCountRow]):
    """
    Persists and reads daily ICM pair counts.

    The session is injected; the caller commits.
    """

    def __init__(
        self,
        session: Session,
        history_days: int = DEFAULT_ICM_HISTORY_DAYS,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(session, IcmMessageCountRow, "IcmCountWriter")
        self._history_days = history_days
        self._clock = clock or SystemClock()

    # =========================================================
    # WRITES
    # =========================================================

    def write(self, counts: List[IcmPairCount]) -> WriteSummary:
        """Idempotent bulk upsert of pair counts."""
        summary = WriteSummary()
        if not counts:
            return summary

        existing = self._existing_counts(sorted({c.day for c in counts}))
        pending = []
        for count in counts:
            stored = existing.get(count.key)
            if stored is None:
                summary.inserted += 1
            elif stored != count.message_count:
                summary.updated += 1
            else:
                summary.unchanged += 1
                continue
            pending.append(count)

        now = self._clock.now()
        for start in range(0, len(pending), WRITE_BATCH_SIZE):
            batch = pending[start:start + WRITE_BATCH_SIZE]
            insert_stmt = self._insert().values([
                {
                    "day": c.day,
                    "source_chain_id": c.source_chain_id,
                    "destination_chain_id": c.destination_chain_id,
                    "message_count": c.message_count,
                    "last_updated": now,
                }
                for c in batch
            ])
            excluded = insert_stmt.excluded
            stmt = insert_stmt.on_conflict_do_update(
                index_elements=["day", "source_chain_id", "destination_chain_id"],
                set_={"message_count": excluded.message_count, "last_updated": excluded.last_updated},
                where=IcmMessageCountRow.message_count.is_distinct_from(excluded.message_count),
            )
            self._execute(stmt, "write", {"pairs": len(batch)})

        self._logger.debug(
            f"ICM counts: {summary.inserted} inserted, "
            f"{summary.updated} updated, {summary.unchanged} unchanged"
        )
        return summary

    def prune(self) -> int:
        """Delete days that fell out of the retention window."""
        stmt = delete(IcmMessageCountRow).where(IcmMessageCountRow.day < self._cutoff(None))
        result = self._execute(stmt, "prune")
        if result.rowcount:
            self._logger.info(f"Pruned {result.rowcount} ICM count rows older than {self._history_days} days")
        return result.rowcount

    def _existing_counts(self, days: List[int]) -> Dict[PairKey, int]:
        stmt = select(
            IcmMessageCountRow.day,
            IcmMessageCountRow.source_chain_id,
            IcmMessageCountRow.destination_chain_id,
            IcmMessageCountRow.message_count,
        ).where(IcmMessageCountRow.day.in_(days))
        return {
            (day, source, destination): count
            for day, source, destination, count in self._execute_rows(stmt, "existing_counts")
        }

    # =========================================================
    # READS
    # =========================================================

    def _cutoff(self, days: Optional[int]) -> int:
        days = days or self._history_days
        return day_start(int((self._clock.now() - timedelta(days=days)).timestamp()))

    def daily(self, days: Optional[int] = None) -> List[IcmDay]:
        """Days inside the window, newest first."""
        stmt = (
            select(IcmMessageCountRow)
            .where(IcmMessageCountRow.day >= self._cutoff(days))
            .order_by(
                IcmMessageCountRow.day.desc(),
                IcmMessageCountRow.message_count.desc(),
                IcmMessageCountRow.source_chain_id,
                IcmMessageCountRow.destination_chain_id,
            )
        )
        grouped: Dict[int, IcmDay] = {}
        for row in self._execute_query(stmt):
            grouped.setdefault(row.day, IcmDay(row.day)).pairs.append(IcmPairCount(
                day=row.day,
                source_chain_id=row.source_chain_id,
                destination_chain_id=row.destination_chain_id,
                message_count=row.message_count,
            ))
        return list(grouped.values())

    def latest_day(self) -> Optional[IcmDay]:
        days = self.daily()
        return days[0] if days else None

    def count(self) -> int:
        return self._count()
