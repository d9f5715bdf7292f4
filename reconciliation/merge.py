"""
Merge Engine - Fold one descriptor into one canonical record.

============================================================
FIELD OWNERSHIP
============================================================
- descriptive   registry writes, full overwrite
- live          metrics API writes, field by field (None = not provided)
- identifiers   union; on conflict the stored value wins
- primary_id    a provisional key is re-keyed to the subnet id as
                soon as a descriptor carries it

A new record is seeded with descriptive fields from whichever
source created it; live data is only ever seeded by the metrics API.

============================================================
IDEMPOTENCE
============================================================
Timestamps are stamped only when content changes. Re-merging
identical input returns the existing record with changed=False,
and the caller skips the write.

============================================================
"""

import copy
import logging
from dataclasses import replace
from typing import List, Optional

from chain_sources.exceptions import NormalizationError
from chain_sources.models import (
    ChainDescriptor,
    ChainIdentifiers,
    DescriptiveFields,
    LiveData,
    SourceTag,
)
from core.clock import ClockProtocol, SystemClock
from reconciliation.models import ChainRecord, MergeOutcome, Provenance


logger = logging.getLogger(__name__)


class MergeEngine:
    """Pure merge logic; persistence is ChainRecordStore's job."""

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or SystemClock()

    def merge(
        self,
        existing: Optional[ChainRecord],
        incoming: ChainDescriptor,
        source_tag: SourceTag,
    ) -> MergeOutcome:
        """
        Merge ``incoming`` onto ``existing``.

        Args:
            existing: Record the resolver matched, or None
            incoming: Descriptor from one source
            source_tag: Source performing the sync

        Raises:
            NormalizationError: New record but the descriptor has no identifier
        """
        if existing is None:
            return self._create(incoming, source_tag)

        record = copy.deepcopy(existing)
        conflicts: List[str] = []

        record.identifiers = self._union_identifiers(
            existing.identifiers, incoming.identifiers, existing.primary_id, conflicts
        )

        rekeyed_from = None
        if incoming.primary_id and incoming.primary_id != existing.primary_id:
            if existing.primary_id_provisional:
                record.primary_id = incoming.primary_id
                record.primary_id_provisional = False
                rekeyed_from = existing.primary_id
                logger.info(f"Re-keying {existing.primary_id} -> {incoming.primary_id}")
            else:
                conflicts.append(f"primary_id: kept {existing.primary_id}, got {incoming.primary_id}")
                logger.warning(
                    f"Primary id conflict on {existing.primary_id}: "
                    f"{source_tag.value} reports {incoming.primary_id}, keeping stored value"
                )

        if source_tag == SourceTag.REGISTRY:
            if incoming.descriptive is not None:
                record.descriptive = copy.deepcopy(incoming.descriptive)
            record.provenance.source_tag = SourceTag.REGISTRY
            record.provenance.origin_folder = incoming.origin_folder
        elif incoming.live is not None:
            record.live = self._overlay_live(record.live, incoming.live)

        if record.content_key() == existing.content_key():
            return MergeOutcome(record=existing, changed=False, conflicts=conflicts)

        now = self._clock.now()
        if record.live.content() != existing.live.content():
            record.live.updated_at = now
        if source_tag == SourceTag.REGISTRY or record.provenance.source_tag == source_tag:
            record.provenance.last_synced_at = now

        return MergeOutcome(
            record=record,
            changed=True,
            rekeyed_from=rekeyed_from,
            conflicts=conflicts,
        )

    # ─────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────

    def _create(self, incoming: ChainDescriptor, source_tag: SourceTag) -> MergeOutcome:
        primary_id = incoming.effective_primary_id
        if not primary_id:
            raise NormalizationError(
                message="Descriptor carries no identifier",
                source_name=source_tag.value,
                chain=incoming.label,
            )

        now = self._clock.now()
        live = LiveData()
        if source_tag == SourceTag.METRICS_API and incoming.live is not None:
            live = self._overlay_live(live, incoming.live)
            if live.content() != LiveData().content():
                live.updated_at = now

        record = ChainRecord(
            primary_id=primary_id,
            primary_id_provisional=incoming.is_provisional,
            identifiers=incoming.identifiers,
            descriptive=copy.deepcopy(incoming.descriptive) or DescriptiveFields(),
            live=live,
            provenance=Provenance(
                source_tag=source_tag,
                last_synced_at=now,
                origin_folder=incoming.origin_folder,
            ),
        )
        logger.info(
            f"New record {primary_id} from {source_tag.value}"
            + (" (provisional key)" if record.primary_id_provisional else "")
        )
        return MergeOutcome(record=record, created=True, changed=True)

    @staticmethod
    def _union_identifiers(
        stored: ChainIdentifiers,
        incoming: ChainIdentifiers,
        primary_id: str,
        conflicts: List[str],
    ) -> ChainIdentifiers:
        merged = {}
        for name, stored_value in stored.to_dict().items():
            incoming_value = getattr(incoming, name)
            if stored_value and incoming_value and stored_value != incoming_value:
                conflicts.append(f"{name}: kept {stored_value}, got {incoming_value}")
                logger.warning(
                    f"Identifier conflict on {primary_id}: {name} "
                    f"stored={stored_value} incoming={incoming_value}, keeping stored value"
                )
            merged[name] = stored_value or incoming_value
        return ChainIdentifiers(**merged)

    @staticmethod
    def _overlay_live(current: LiveData, incoming: LiveData) -> LiveData:
        """Apply only the live fields the descriptor actually carries."""
        live = replace(current)
        if incoming.validators is not None:
            live.validators = copy.deepcopy(incoming.validators)
        if incoming.metric_snapshots is not None:
            snapshots = dict(current.metric_snapshots or {})
            snapshots.update(copy.deepcopy(incoming.metric_snapshots))
            live.metric_snapshots = snapshots
        if incoming.status is not None:
            live.status = incoming.status
        return live
