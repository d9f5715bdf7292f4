"""
Ingestion - Explorer Chain Sync.

============================================================
FLOW
============================================================
1. Page through GET /chains (testnets already filtered out)
2. For each chain with a subnet id, page through its active
   validators; when that endpoint fails or returns nothing, fall
   back to the l1Validators endpoint
3. Reconcile the resulting descriptor

Every HTTP call goes through the explorer's RateLimitedScheduler.
If both validator endpoints fail, the descriptor carries no
validators and the stored set is left alone.

============================================================
"""

import functools
import logging
from typing import Any, Dict, List, Optional

from chain_sources.models import SourceTag
from chain_sources.providers.explorer_api import ExplorerApiClient
from ingestion.paging import collect_pages
from ingestion.reconciler import ChainReconciler, SyncOutcome
from scheduling import RateLimitedScheduler


logger = logging.getLogger(__name__)


class ExplorerSync:
    """One pass over the explorer's chain list."""

    def __init__(
        self,
        client: ExplorerApiClient,
        scheduler: RateLimitedScheduler,
        reconciler: ChainReconciler,
        include_validators: bool = True,
        max_pages: Optional[int] = None,
    ) -> None:
        self._client = client
        self._scheduler = scheduler
        self._reconciler = reconciler
        self._include_validators = include_validators
        self._max_pages = max_pages
        self._stopped = False

    def stop(self) -> None:
        """Stop enqueueing further chains; the chain in progress finishes."""
        self._stopped = True

    async def run(self) -> SyncOutcome:
        self._stopped = False
        clock = self._reconciler.clock
        outcome = SyncOutcome(source="explorer-api", started_at=clock.now())

        chains = await collect_pages(
            self._scheduler, self._client.fetch_chains_page, "chains", self._max_pages
        )
        if not chains.ok:
            outcome.record_error("*", chains.failure.to_dict())
            if not chains.items:
                logger.error(f"Chain list unavailable: {chains.failure.message}")
                outcome.completed_at = clock.now()
                return outcome

        logger.info(f"Fetched {len(chains.items)} chains from the explorer")

        for raw in chains.items:
            if self._stopped:
                logger.warning("Explorer sync stopped; remaining chains not processed")
                break

            validators = None
            subnet_id = raw.get("subnetId")
            if self._include_validators and subnet_id:
                validators = await self._fetch_validators(subnet_id, outcome)

            descriptor = ExplorerApiClient.to_descriptor(raw, validators)
            self._reconciler.reconcile_into(descriptor, outcome)

        outcome.completed_at = clock.now()
        logger.info(
            f"[{SourceTag.METRICS_API.value}] Explorer sync: {outcome.processed} chains, "
            f"{outcome.written} written, {outcome.failed} failed"
        )
        return outcome

    async def _fetch_validators(
        self,
        subnet_id: str,
        outcome: SyncOutcome,
    ) -> Optional[List[Dict[str, Any]]]:
        primary = await collect_pages(
            self._scheduler,
            functools.partial(self._client.fetch_validators_page, subnet_id),
            f"validators {subnet_id}",
        )
        if primary.ok and primary.items:
            return primary.items

        logger.info(f"No validators from primary endpoint for {subnet_id}, trying l1Validators")
        fallback = await collect_pages(
            self._scheduler,
            functools.partial(self._client.fetch_l1_validators_page, subnet_id),
            f"l1Validators {subnet_id}",
        )
        if fallback.ok:
            return fallback.items

        outcome.errors.append({"chain": subnet_id, **fallback.failure.to_dict()})
        logger.warning(f"Validators unavailable for {subnet_id}; keeping stored set")
        return None
