"""
Ingestion Package - Sync passes.

- RegistrySync:   registry files -> chain records
- ExplorerSync:   explorer chain list + validators -> chain records
- MetricFetcher:  metrics API series -> metric samples + snapshots
- IcmMessageSync: explorer ICM messages -> daily pair counts
- IngestionService: wires the above with one scheduler per host
"""

from ingestion.reconciler import ChainReconciler, SyncOutcome
from ingestion.paging import PagedResult, collect_pages
from ingestion.registry_sync import RegistrySync
from ingestion.explorer_sync import ExplorerSync
from ingestion.metric_fetcher import MetricFetcher, MetricsSyncOutcome
from ingestion.icm_sync import IcmMessageSync, IcmSyncOutcome
from ingestion.service import IngestionService, SyncReport


__all__ = [
    "ChainReconciler",
    "SyncOutcome",
    "PagedResult",
    "collect_pages",
    "RegistrySync",
    "ExplorerSync",
    "MetricFetcher",
    "MetricsSyncOutcome",
    "IcmMessageSync",
    "IcmSyncOutcome",
    "IngestionService",
    "SyncReport",
]
