"""
Ingestion - Ingestion Service.

============================================================
RESPONSIBILITY
============================================================
Wires sources, schedulers and the reconciler together and runs
sync passes.

- One RateLimitedScheduler per upstream host
- registry, chains, metrics and icm passes are independent
- A full pass runs registry -> chains -> metrics -> icm
- The icm pass shares the explorer scheduler (same host)

============================================================
DESIGN PRINCIPLES
============================================================
- No business logic - coordination only
- Failure isolation between passes: a failed registry pass does
  not stop the chains pass
- Schedulers and clients are owned here and closed in close()

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from chain_sources.exceptions import RegistryLoadError
from chain_sources.models import MetricType
from chain_sources.providers.explorer_api import ExplorerApiClient
from chain_sources.providers.metrics_api import MetricsApiClient
from chain_sources.providers.registry_files import RegistryLoader
from core.clock import ClockProtocol, SystemClock
from core.config import AppConfig
from ingestion.explorer_sync import ExplorerSync
from ingestion.icm_sync import IcmMessageSync, IcmSyncOutcome
from ingestion.metric_fetcher import MetricFetcher, MetricsSyncOutcome
from ingestion.reconciler import ChainReconciler, SyncOutcome
from ingestion.registry_sync import RegistrySync
from scheduling import RateLimitedScheduler, SchedulerConfig


logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Everything one cycle did."""
    mode: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    registry: Optional[SyncOutcome] = None
    chains: Optional[SyncOutcome] = None
    metrics: Optional[MetricsSyncOutcome] = None
    icm: Optional[IcmSyncOutcome] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "registry": self.registry.to_dict() if self.registry else None,
            "chains": self.chains.to_dict() if self.chains else None,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "icm": self.icm.to_dict() if self.icm else None,
            "errors": list(self.errors),
        }


class IngestionService:
    """
    Runs sync passes.

    ============================================================
    USAGE
    ============================================================
    ```python
    service = IngestionService(AppConfig.from_env(), session_factory)
    try:
        report = await service.run_cycle("full")
    finally:
        await service.close()
    ```

    ============================================================
    """

    MODES = ("registry", "chains", "metrics", "icm", "full")

    def __init__(
        self,
        config: AppConfig,
        session_factory: sessionmaker,
        clock: Optional[ClockProtocol] = None,
        explorer_client: Optional[ExplorerApiClient] = None,
        metrics_client: Optional[MetricsApiClient] = None,
        registry_loader: Optional[RegistryLoader] = None,
        explorer_scheduler: Optional[RateLimitedScheduler] = None,
        metrics_scheduler: Optional[RateLimitedScheduler] = None,
    ) -> None:
        self._config = config
        self._clock = clock or SystemClock()
        self._reconciler = ChainReconciler(session_factory, self._clock)

        self._explorer_client = explorer_client or ExplorerApiClient(
            config.explorer.base_url,
            api_key=config.explorer.api_key,
            timeout=config.explorer.timeout_seconds,
            validators_endpoint=config.explorer.validators_endpoint,
            l1_validators_endpoint=config.explorer.l1_validators_endpoint,
            icm_messages_endpoint=config.explorer.icm_messages_endpoint,
        )
        self._metrics_client = metrics_client or MetricsApiClient(
            config.metrics_api.base_url,
            api_key=config.metrics_api.api_key,
            timeout=config.metrics_api.timeout_seconds,
        )
        self._registry_loader = registry_loader or RegistryLoader(
            config.registry.path, config.registry.descriptor_filename
        )

        self._explorer_scheduler = explorer_scheduler or RateLimitedScheduler(
            SchedulerConfig.from_settings(self._explorer_client.name, config.explorer.rate_limit),
            clock=self._clock,
        )
        self._metrics_scheduler = metrics_scheduler or RateLimitedScheduler(
            SchedulerConfig.from_settings(self._metrics_client.name, config.metrics_api.rate_limit),
            clock=self._clock,
        )

        self._registry_sync = RegistrySync(self._registry_loader, self._reconciler)
        self._explorer_sync = ExplorerSync(
            self._explorer_client, self._explorer_scheduler, self._reconciler
        )
        self._metric_fetcher = MetricFetcher(
            self._metrics_client,
            self._metrics_scheduler,
            session_factory,
            self._reconciler,
            metric_types=[MetricType.parse(m) for m in config.metrics.metric_types],
            history_days=config.metrics.history_days,
            max_pages=config.metrics.max_pages,
        )
        self._icm_sync = IcmMessageSync(
            self._explorer_client,
            self._explorer_scheduler,
            session_factory,
            clock=self._clock,
            lookback_days=config.icm.lookback_days,
            history_days=config.icm.history_days,
            max_pages=config.icm.max_pages,
            network=config.icm.network,
        )

        self._run_count = 0

    @property
    def run_count(self) -> int:
        return self._run_count

    # ─────────────────────────────────────────────────────────
    # Passes
    # ─────────────────────────────────────────────────────────

    def run_registry(self) -> SyncOutcome:
        """
        Raises:
            RegistryLoadError: Registry missing or nothing loadable
        """
        return self._registry_sync.run()

    async def run_chains(self) -> SyncOutcome:
        return await self._explorer_sync.run()

    async def run_metrics(self, metric_types: Optional[Sequence[MetricType]] = None) -> MetricsSyncOutcome:
        return await self._metric_fetcher.run(metric_types)

    async def run_icm(self) -> IcmSyncOutcome:
        return await self._icm_sync.run()

    async def run_cycle(
        self,
        mode: str = "full",
        metric_types: Optional[Sequence[MetricType]] = None,
    ) -> SyncReport:
        """
        Run one cycle of the given mode.

        A registry load failure is recorded on the report; in ``full``
        mode the remaining passes still run.
        """
        if mode not in self.MODES:
            raise ValueError(f"Unknown mode: {mode}")

        self._run_count += 1
        report = SyncReport(mode=mode, started_at=self._clock.now())
        logger.info(f"Cycle {self._run_count} ({mode}) starting")

        if mode in ("registry", "full"):
            try:
                report.registry = self.run_registry()
            except RegistryLoadError as e:
                logger.error(f"Registry pass aborted: {e}")
                report.errors.append(e.to_dict())

        if mode in ("chains", "full"):
            report.chains = await self.run_chains()

        if mode in ("metrics", "full"):
            report.metrics = await self.run_metrics(metric_types)

        if mode in ("icm", "full"):
            report.icm = await self.run_icm()

        report.completed_at = self._clock.now()
        logger.info(f"Cycle {self._run_count} ({mode}) finished")
        return report

    def stop(self) -> None:
        """Stop enqueueing further chains in running passes."""
        self._explorer_sync.stop()
        self._metric_fetcher.stop()

    async def close(self) -> None:
        await self._explorer_scheduler.close()
        await self._metrics_scheduler.close()
        await self._explorer_client.close()
        await self._metrics_client.close()
