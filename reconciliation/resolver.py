"""
Identity Resolver - Which stored record does a descriptor describe?

============================================================
RULES (strict precedence, first match wins)
============================================================
1. PRIMARY_ID     effective primary id equals a record's primary_id
2. LEGACY_BRIDGE  equal legacy numeric id, and at most one side
                  carries an authoritative (non-provisional) primary id
3. LEDGER_ID      equal ledger id
4. PLATFORM_ID    equal platform id

============================================================
AMBIGUITY
============================================================
Several records under one rule: prefer registry provenance, then
the earliest last_synced_at, then the lowest primary_id. Logged as
a warning and flagged on the result; never raised.

============================================================
"""

import logging
from typing import TYPE_CHECKING, Callable, List, Optional

from chain_sources.models import ChainDescriptor
from reconciliation.models import ChainRecord, MatchRule, ResolutionResult

if TYPE_CHECKING:
    from storage.repositories.chains import ChainRecordStore


logger = logging.getLogger(__name__)


def candidate_sort_key(record: ChainRecord) -> tuple:
    """Deterministic preference among records matched by one rule."""
    return (
        not record.is_registry_sourced,
        record.provenance.last_synced_at,
        record.primary_id,
    )


class IdentityResolver:
    """
    Ranked-rule lookup against the ChainRecordStore.

    Stateless; build one per session.
    """

    def __init__(self, store: "ChainRecordStore") -> None:
        self._store = store

    def resolve(self, descriptor: ChainDescriptor) -> ResolutionResult:
        """
        Find the record this descriptor belongs to.

        Returns:
            ResolutionResult with ``record=None`` when nothing matches
        """
        ids = descriptor.identifiers
        result = ResolutionResult()

        steps = [
            (MatchRule.PRIMARY_ID, descriptor.effective_primary_id,
             self._store.find_by_primary_id, None),
            (MatchRule.LEGACY_BRIDGE, ids.legacy_numeric_id,
             self._store.find_by_legacy_numeric_id, self._bridgeable(descriptor)),
            (MatchRule.LEDGER_ID, ids.ledger_id,
             self._store.find_by_ledger_id, None),
            (MatchRule.PLATFORM_ID, ids.platform_id,
             self._store.find_by_platform_id, None),
        ]

        for rule, key, lookup, keep in steps:
            if not key:
                result.trail.append(f"{rule.value}: no key")
                continue
            candidates = self._lookup(lookup, key, keep)
            result.trail.append(
                f"{rule.value}={key}: {[c.primary_id for c in candidates] or 'no match'}"
            )
            if not candidates:
                continue

            candidates.sort(key=candidate_sort_key)
            result.record = candidates[0]
            result.rule = rule
            result.candidates = [c.primary_id for c in candidates]
            result.ambiguous = len(candidates) > 1
            if result.ambiguous:
                logger.warning(
                    f"Ambiguous {rule.value} match for {descriptor.label}: "
                    f"candidates={result.candidates}, chose {result.record.primary_id}"
                )
            else:
                logger.debug(
                    f"Resolved {descriptor.label} -> {result.record.primary_id} via {rule.value}"
                )
            return result

        logger.debug(f"No existing record for {descriptor.label}")
        return result

    @staticmethod
    def _lookup(
        lookup: Callable[[str], List[ChainRecord]],
        key: str,
        keep: Optional[Callable[[ChainRecord], bool]],
    ) -> List[ChainRecord]:
        found = lookup(key)
        if keep is not None:
            found = [r for r in found if keep(r)]
        return found

    @staticmethod
    def _bridgeable(descriptor: ChainDescriptor) -> Callable[[ChainRecord], bool]:
        """A legacy id links two sides only while one of them lacks a subnet id."""
        def keep(record: ChainRecord) -> bool:
            return record.primary_id_provisional or descriptor.is_provisional
        return keep
