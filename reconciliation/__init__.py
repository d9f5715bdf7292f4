"""
Reconciliation Package - One canonical record per network.

Flow per descriptor:

    descriptor -> IdentityResolver.resolve -> MergeEngine.merge
               -> ChainRecordStore.upsert (only when changed)

DuplicateAuditor cleans up after the fact.
"""

from reconciliation.models import (
    AuditReport,
    ChainRecord,
    ClusterReason,
    DuplicateCluster,
    MatchRule,
    MergeOutcome,
    Provenance,
    ResolutionProposal,
    ResolutionResult,
)
from reconciliation.resolver import IdentityResolver
from reconciliation.merge import MergeEngine
from reconciliation.auditor import DuplicateAuditor, normalize_name


__all__ = [
    "AuditReport",
    "ChainRecord",
    "ClusterReason",
    "DuplicateCluster",
    "MatchRule",
    "MergeOutcome",
    "Provenance",
    "ResolutionProposal",
    "ResolutionResult",
    "IdentityResolver",
    "MergeEngine",
    "DuplicateAuditor",
    "normalize_name",
]
