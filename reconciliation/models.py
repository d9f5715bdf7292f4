"""
Reconciliation Data Models.

============================================================
CANONICAL RECORD
============================================================
ChainRecord is the single stored view of one network:

- primary_id + identifiers  (identity)
- descriptive               (registry-owned)
- live                      (metrics-API-owned)
- provenance                (who last wrote owned data, and when)

============================================================
AUDIT TYPES
============================================================
ResolutionResult  - which record a descriptor resolved to, and why
MergeOutcome      - what a merge changed
DuplicateCluster  - records that describe the same network
ResolutionProposal / AuditReport - what the auditor keeps and deletes

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from chain_sources.models import (
    ChainIdentifiers,
    DescriptiveFields,
    LiveData,
    SourceTag,
)


# =============================================================
# CANONICAL RECORD
# =============================================================


@dataclass
class Provenance:
    """Which source last wrote the record's owned data."""
    source_tag: SourceTag
    last_synced_at: datetime
    origin_folder: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_tag": self.source_tag.value,
            "last_synced_at": self.last_synced_at.isoformat(),
            "origin_folder": self.origin_folder,
        }


@dataclass
class ChainRecord:
    """One real-world network."""
    primary_id: str
    provenance: Provenance
    primary_id_provisional: bool = False
    identifiers: ChainIdentifiers = field(default_factory=ChainIdentifiers)
    descriptive: DescriptiveFields = field(default_factory=DescriptiveFields)
    live: LiveData = field(default_factory=LiveData)

    @property
    def is_registry_sourced(self) -> bool:
        return self.provenance.source_tag == SourceTag.REGISTRY

    @property
    def display_name(self) -> str:
        return self.descriptive.name or self.primary_id

    def content_key(self) -> tuple:
        """Everything a merge can change, minus the timestamps."""
        return (
            self.primary_id,
            self.primary_id_provisional,
            self.identifiers,
            self.descriptive,
            self.live.content(),
            self.provenance.source_tag,
            self.provenance.origin_folder,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_id": self.primary_id,
            "primary_id_provisional": self.primary_id_provisional,
            "identifiers": self.identifiers.to_dict(),
            "descriptive": self.descriptive.to_dict(),
            "live": self.live.to_dict(),
            "provenance": self.provenance.to_dict(),
        }


# =============================================================
# RESOLUTION
# =============================================================


class MatchRule(Enum):
    """Identity rules, in precedence order."""
    PRIMARY_ID = "primary_id"
    LEGACY_BRIDGE = "legacy_bridge"
    LEDGER_ID = "ledger_id"
    PLATFORM_ID = "platform_id"


@dataclass
class ResolutionResult:
    """
    Where a descriptor landed.

    ``trail`` lists every rule evaluated, in order, with its candidates.
    """
    record: Optional[ChainRecord] = None
    rule: Optional[MatchRule] = None
    candidates: List[str] = field(default_factory=list)
    ambiguous: bool = False
    trail: List[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.record is not None


@dataclass
class MergeOutcome:
    """What one merge produced."""
    record: ChainRecord
    created: bool = False
    changed: bool = False
    rekeyed_from: Optional[str] = None
    conflicts: List[str] = field(default_factory=list)


# =============================================================
# DUPLICATE AUDIT
# =============================================================


class ClusterReason(Enum):
    IDENTIFIER = "identifier"
    NAME = "name"


@dataclass
class DuplicateCluster:
    """Records that appear to describe the same network."""
    records: List[ChainRecord]
    reason: ClusterReason
    shared_keys: List[str] = field(default_factory=list)

    @property
    def primary_ids(self) -> List[str]:
        return [r.primary_id for r in self.records]


@dataclass
class ResolutionProposal:
    """Keep one record, delete some, flag some for a human."""
    cluster: DuplicateCluster
    keep: ChainRecord
    delete: List[ChainRecord] = field(default_factory=list)
    review: List[ChainRecord] = field(default_factory=list)
    rationale: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.cluster.reason.value,
            "shared_keys": list(self.cluster.shared_keys),
            "keep": self.keep.primary_id,
            "delete": [r.primary_id for r in self.delete],
            "review": [r.primary_id for r in self.review],
            "rationale": self.rationale,
        }


@dataclass
class AuditReport:
    """Outcome of DuplicateAuditor.apply()."""
    dry_run: bool
    proposals: List[ResolutionProposal] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    flagged_for_review: List[str] = field(default_factory=list)

    @property
    def proposed_deletions(self) -> int:
        return sum(len(p.delete) for p in self.proposals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "clusters": len(self.proposals),
            "proposed_deletions": self.proposed_deletions,
            "deleted": list(self.deleted),
            "flagged_for_review": list(self.flagged_for_review),
            "proposals": [p.to_dict() for p in self.proposals],
        }
