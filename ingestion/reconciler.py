"""
Ingestion - Chain Reconciler.

============================================================
RESPONSIBILITY
============================================================
Runs the resolve -> merge -> upsert cycle for descriptors coming
from any source. Each descriptor gets its own short transaction.

- Unchanged merges are not written
- A failure on one descriptor is logged and counted, the batch
  continues

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from chain_sources.exceptions import ChainSourceError
from chain_sources.models import ChainDescriptor, SourceTag
from core.clock import ClockProtocol, SystemClock
from database.engine import DatabasePersistenceError, session_scope
from reconciliation.merge import MergeEngine
from reconciliation.models import MergeOutcome, ResolutionResult
from reconciliation.resolver import IdentityResolver
from storage.repositories.chains import ChainRecordStore
from storage.repositories.exceptions import RepositoryException


logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    """Counters for one batch of descriptors from one source."""
    source: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    rekeyed: int = 0
    ambiguous: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def written(self) -> int:
        return self.created + self.updated

    def record(self, outcome: MergeOutcome, resolution: ResolutionResult) -> None:
        self.processed += 1
        if resolution.ambiguous:
            self.ambiguous += 1
        if outcome.created:
            self.created += 1
        elif outcome.changed:
            self.updated += 1
        else:
            self.unchanged += 1
        if outcome.rekeyed_from:
            self.rekeyed += 1

    def record_error(self, label: str, error: Dict[str, Any]) -> None:
        self.failed += 1
        self.errors.append({"chain": label, **error})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "rekeyed": self.rekeyed,
            "ambiguous": self.ambiguous,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


class ChainReconciler:
    """
    Folds descriptors into the ChainRecordStore.

    ============================================================
    USAGE
    ============================================================
    ```python
    reconciler = ChainReconciler(session_factory)
    outcome, resolution = reconciler.reconcile(descriptor)
    batch = reconciler.reconcile_all(descriptors, source="l1-registry")
    ```

    ============================================================
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._merge = MergeEngine(self._clock)

    @property
    def clock(self) -> ClockProtocol:
        return self._clock

    def reconcile(self, descriptor: ChainDescriptor) -> Tuple[MergeOutcome, ResolutionResult]:
        """
        Resolve, merge and (when changed) upsert one descriptor.

        Raises:
            ChainSourceError: Descriptor cannot seed a record
            RepositoryException: Store rejected the write
            DatabasePersistenceError: Commit failed
        """
        source_tag: SourceTag = descriptor.source_tag
        with session_scope(self._session_factory) as session:
            store = ChainRecordStore(session)
            resolution = IdentityResolver(store).resolve(descriptor)
            outcome = self._merge.merge(resolution.record, descriptor, source_tag)

            if outcome.changed:
                store.upsert(
                    outcome.record,
                    source_tag,
                    match_primary_id=resolution.record.primary_id if resolution.matched else None,
                )
                logger.debug(
                    f"{'Created' if outcome.created else 'Updated'} {outcome.record.primary_id} "
                    f"from {source_tag.value}"
                )
        return outcome, resolution

    def reconcile_all(self, descriptors: Iterable[ChainDescriptor], source: str) -> SyncOutcome:
        result = SyncOutcome(source=source, started_at=self._clock.now())
        for descriptor in descriptors:
            self.reconcile_into(descriptor, result)
        result.completed_at = self._clock.now()
        logger.info(
            f"[{source}] Reconciled {result.processed} descriptors: "
            f"{result.created} created, {result.updated} updated, "
            f"{result.unchanged} unchanged, {result.failed} failed"
        )
        return result

    def reconcile_into(self, descriptor: ChainDescriptor, result: SyncOutcome) -> bool:
        """Reconcile one descriptor, counting the outcome; False on failure."""
        try:
            outcome, resolution = self.reconcile(descriptor)
        except ChainSourceError as e:
            logger.warning(f"Skipping {descriptor.label}: {e}")
            result.record_error(descriptor.label, e.to_dict())
            return False
        except RepositoryException as e:
            logger.error(f"Failed to store {descriptor.label}: {e}")
            result.record_error(descriptor.label, e.to_dict())
            return False
        except DatabasePersistenceError as e:
            logger.error(f"Failed to store {descriptor.label}: {e}")
            result.record_error(descriptor.label, {"error_type": type(e).__name__, "message": str(e)})
            return False
        result.record(outcome, resolution)
        return True
