"""
Ingestion - ICM Message Counts.

============================================================
FLOW
============================================================
1. Page through GET /icm/messages from UTC midnight
   ``lookback_days`` ago up to now, via the explorer scheduler
   (same host, same budget as the chain sync)
2. Count messages per (UTC day, source chain, destination chain)
3. Upsert the counts (IcmCountWriter) and prune expired days

Every day in the window is recounted from scratch, so re-running
a pass rewrites the same numbers. A pass whose paging failed
writes nothing: a partial recount would understate stored days.
If the page limit cut the listing short, the oldest day is
incomplete and is left out.

============================================================
"""

import functools
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from chain_sources.providers.explorer_api import ExplorerApiClient
from core.clock import ClockProtocol, SystemClock
from database.engine import DatabasePersistenceError, session_scope
from ingestion.paging import collect_pages
from scheduling import RateLimitedScheduler
from storage.repositories.exceptions import RepositoryException
from storage.repositories.icm import (
    DAY_SECONDS,
    DEFAULT_ICM_HISTORY_DAYS,
    IcmCountWriter,
    IcmPairCount,
    day_start,
)
from storage.repositories.metrics import WriteSummary


logger = logging.getLogger(__name__)


@dataclass
class IcmSyncOutcome:
    """What one ICM pass fetched and wrote."""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    window_start: int = 0
    window_end: int = 0
    pages: int = 0
    messages: int = 0
    skipped: int = 0
    days: int = 0
    pairs: int = 0
    counts: WriteSummary = field(default_factory=WriteSummary)
    pruned: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "window_start": self.window_start,
            "window_end": self.window_end,
            "pages": self.pages,
            "messages": self.messages,
            "skipped": self.skipped,
            "days": self.days,
            "pairs": self.pairs,
            "counts": self.counts.to_dict(),
            "pruned": self.pruned,
            "errors": list(self.errors),
        }


def count_pairs(messages: List[Dict[str, Any]]) -> Tuple[List[IcmPairCount], int]:
    """
    Bucket normalized messages by UTC day and chain pair.

    Returns:
        (pair counts, number of messages without route or timestamp)
    """
    counter: Counter = Counter()
    skipped = 0
    for message in messages:
        source = message.get("source_chain_id")
        destination = message.get("destination_chain_id")
        timestamp = message.get("timestamp")
        if not source or not destination or timestamp is None:
            skipped += 1
            continue
        counter[(day_start(timestamp), source, destination)] += 1

    counts = [
        IcmPairCount(day=day, source_chain_id=source, destination_chain_id=destination, message_count=n)
        for (day, source, destination), n in sorted(counter.items())
    ]
    return counts, skipped


class IcmMessageSync:
    """
    Recounts cross-chain messages for the last few whole days.

    ============================================================
    USAGE
    ============================================================
    ```python
    sync = IcmMessageSync(explorer_client, explorer_scheduler, session_factory)
    outcome = await sync.run()
    ```

    ============================================================
    """

    def __init__(
        self,
        client: ExplorerApiClient,
        scheduler: RateLimitedScheduler,
        session_factory: sessionmaker,
        clock: Optional[ClockProtocol] = None,
        lookback_days: int = 1,
        history_days: int = DEFAULT_ICM_HISTORY_DAYS,
        max_pages: Optional[int] = 1000,
        network: str = "mainnet",
    ) -> None:
        self._client = client
        self._scheduler = scheduler
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._lookback_days = lookback_days
        self._history_days = history_days
        self._max_pages = max_pages
        self._network = network

    async def run(self) -> IcmSyncOutcome:
        outcome = IcmSyncOutcome(started_at=self._clock.now())
        outcome.window_end = int(outcome.started_at.timestamp())
        outcome.window_start = day_start(outcome.window_end) - self._lookback_days * DAY_SECONDS

        fetched = await collect_pages(
            self._scheduler,
            functools.partial(
                self._client.fetch_icm_messages_page,
                outcome.window_start,
                outcome.window_end,
                network=self._network,
            ),
            "icm messages",
            self._max_pages,
        )
        outcome.pages = fetched.pages
        outcome.messages = len(fetched.items)
        if not fetched.ok:
            logger.error(f"ICM listing failed after {fetched.pages} pages; counts left unchanged")
            outcome.errors.append(fetched.failure.to_dict())
            outcome.completed_at = self._clock.now()
            return outcome

        counts, outcome.skipped = count_pairs(fetched.items)
        if not fetched.exhausted and counts:
            oldest = counts[0].day
            logger.warning(
                f"ICM listing hit the {self._max_pages} page limit; "
                f"leaving out the incomplete day {oldest}"
            )
            counts = [c for c in counts if c.day != oldest]

        outcome.days = len({c.day for c in counts})
        outcome.pairs = len(counts)
        self._store(counts, outcome)

        outcome.completed_at = self._clock.now()
        logger.info(
            f"ICM pass: {outcome.messages} messages over {outcome.days} days, "
            f"{outcome.pairs} pairs ({outcome.counts.inserted} inserted, "
            f"{outcome.counts.updated} updated, {outcome.counts.unchanged} unchanged), "
            f"{outcome.skipped} skipped, {outcome.pruned} pruned"
        )
        return outcome

    def _store(self, counts: List[IcmPairCount], outcome: IcmSyncOutcome) -> None:
        try:
            with session_scope(self._session_factory) as session:
                writer = IcmCountWriter(session, history_days=self._history_days, clock=self._clock)
                outcome.counts = writer.write(counts)
                outcome.pruned = writer.prune()
        except RepositoryException as e:
            logger.error(f"Failed to store ICM counts: {e}")
            outcome.counts = WriteSummary()
            outcome.errors.append(e.to_dict())
        except DatabasePersistenceError as e:
            logger.error(f"Failed to store ICM counts: {e}")
            outcome.counts = WriteSummary()
            outcome.errors.append({"error_type": type(e).__name__, "message": str(e)})
