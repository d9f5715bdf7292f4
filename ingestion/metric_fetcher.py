"""
Ingestion - Metric Fetcher.

============================================================
FLOW (per chain with a legacy numeric id)
============================================================
1. For each metric type, page through
   GET /chains/{chainId}/metrics/{metric} via the scheduler
2. Validate points (MetricSeriesWriter.normalize_points)
3. Idempotent bulk upsert (MetricSeriesWriter.write)
4. Fold the latest value of every written series back into the
   chain record's live.metric_snapshots (resolve/merge/upsert)

A failed series is recorded and skipped; the batch continues.

============================================================
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from chain_sources.models import (
    ChainDescriptor,
    LiveData,
    MetricPoint,
    MetricType,
    SourceTag,
)
from chain_sources.providers.metrics_api import MetricsApiClient
from database.engine import DatabasePersistenceError, session_scope
from ingestion.paging import PagedResult, collect_pages
from ingestion.reconciler import ChainReconciler, SyncOutcome
from reconciliation.models import ChainRecord
from scheduling import RateLimitedScheduler
from storage.repositories.chains import ChainRecordStore
from storage.repositories.exceptions import RepositoryException
from storage.repositories.metrics import MetricSeriesWriter, WriteSummary


logger = logging.getLogger(__name__)


@dataclass
class MetricsSyncOutcome:
    """What one metrics pass fetched and wrote."""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    chains: int = 0
    series_ok: int = 0
    series_failed: int = 0
    samples: WriteSummary = field(default_factory=WriteSummary)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    snapshots: Optional[SyncOutcome] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "chains": self.chains,
            "series_ok": self.series_ok,
            "series_failed": self.series_failed,
            "samples": self.samples.to_dict(),
            "failures": list(self.failures),
            "snapshots": self.snapshots.to_dict() if self.snapshots else None,
        }


class MetricFetcher:
    """
    Fetches daily series for every known chain.

    ============================================================
    USAGE
    ============================================================
    ```python
    fetcher = MetricFetcher(client, scheduler, session_factory, reconciler)
    outcome = await fetcher.run([MetricType.AVG_TPS, MetricType.TX_COUNT])
    ```

    ============================================================
    """

    def __init__(
        self,
        client: MetricsApiClient,
        scheduler: RateLimitedScheduler,
        session_factory: sessionmaker,
        reconciler: ChainReconciler,
        metric_types: Sequence[MetricType] = tuple(MetricType),
        history_days: int = 30,
        max_pages: Optional[int] = 1,
    ) -> None:
        self._client = client
        self._scheduler = scheduler
        self._session_factory = session_factory
        self._reconciler = reconciler
        self._metric_types = list(metric_types)
        self._history_days = history_days
        self._max_pages = max_pages
        self._stopped = False

    def stop(self) -> None:
        """Stop enqueueing further chains."""
        self._stopped = True

    async def run(self, metric_types: Optional[Sequence[MetricType]] = None) -> MetricsSyncOutcome:
        self._stopped = False
        clock = self._reconciler.clock
        metrics = list(metric_types or self._metric_types)
        outcome = MetricsSyncOutcome(
            started_at=clock.now(),
            snapshots=SyncOutcome(source="metric-snapshots", started_at=clock.now()),
        )

        chains = self._chains_with_metric_id()
        logger.info(f"Fetching {len(metrics)} metrics for {len(chains)} chains")

        for record in chains:
            if self._stopped:
                logger.warning("Metric fetch stopped; remaining chains not processed")
                break
            outcome.chains += 1
            await self._fetch_chain(record, metrics, outcome)

        outcome.completed_at = clock.now()
        outcome.snapshots.completed_at = outcome.completed_at
        logger.info(
            f"Metrics pass: {outcome.series_ok} series ok, {outcome.series_failed} failed, "
            f"{outcome.samples.inserted} inserted, {outcome.samples.updated} updated, "
            f"{outcome.samples.unchanged} unchanged, {outcome.samples.dropped} dropped"
        )
        return outcome

    def _chains_with_metric_id(self) -> List[ChainRecord]:
        with session_scope(self._session_factory) as session:
            records = ChainRecordStore(session).list_all()
        return [r for r in records if r.identifiers.legacy_numeric_id]

    async def _fetch_chain(
        self,
        record: ChainRecord,
        metrics: List[MetricType],
        outcome: MetricsSyncOutcome,
    ) -> None:
        chain_id = record.identifiers.legacy_numeric_id
        fetched: List[PagedResult] = await asyncio.gather(*[
            collect_pages(
                self._scheduler,
                functools.partial(self._client.fetch_metric_page, chain_id, metric),
                f"{metric.value} {chain_id}",
                self._max_pages,
            )
            for metric in metrics
        ])

        snapshots: Dict[str, Dict[str, Any]] = {}
        for metric, pages in zip(metrics, fetched):
            if not pages.ok:
                outcome.series_failed += 1
                outcome.failures.append({
                    "chain": chain_id,
                    "metric": metric.value,
                    **pages.failure.to_dict(),
                })
                continue

            latest = self._store_series(metric, chain_id, pages.items, outcome)
            if latest is not None:
                snapshots[metric.value] = {"value": latest.value, "timestamp": latest.timestamp}

        if snapshots:
            self._refresh_snapshots(record, snapshots, outcome.snapshots)

    def _store_series(
        self,
        metric: MetricType,
        chain_id: str,
        raw_points: List[Any],
        outcome: MetricsSyncOutcome,
    ) -> Optional[MetricPoint]:
        try:
            with session_scope(self._session_factory) as session:
                writer = MetricSeriesWriter(
                    session, history_days=self._history_days, clock=self._reconciler.clock
                )
                samples, dropped = writer.normalize_points(raw_points)
                summary = writer.write(metric, chain_id, samples)
                summary.dropped = dropped
        except (RepositoryException, DatabasePersistenceError) as e:
            outcome.series_failed += 1
            failure = {"chain": chain_id, "metric": metric.value}
            if isinstance(e, RepositoryException):
                failure.update(e.to_dict())
            else:
                failure.update(error_type=type(e).__name__, message=str(e))
            outcome.failures.append(failure)
            logger.error(f"Failed to store {metric.value} for {chain_id}: {e}")
            return None

        outcome.series_ok += 1
        outcome.samples.add(summary)
        return samples[-1] if samples else None

    def _refresh_snapshots(
        self,
        record: ChainRecord,
        snapshots: Dict[str, Dict[str, Any]],
        result: SyncOutcome,
    ) -> None:
        descriptor = ChainDescriptor(
            source_tag=SourceTag.METRICS_API,
            primary_id=None if record.primary_id_provisional else record.primary_id,
            identifiers=record.identifiers,
            live=LiveData(metric_snapshots=snapshots),
        )
        self._reconciler.reconcile_into(descriptor, result)
