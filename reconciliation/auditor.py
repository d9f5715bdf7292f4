"""
Duplicate Auditor - Find and remove records that describe the same network.

============================================================
RESPONSIBILITY
============================================================
Maintenance pass over the whole ChainRecordStore, run after the
fact when resolution missed a link (historic data, rule changes).

- Clusters records sharing an identifier
- Clusters records with the same normalized name on the same network
- Proposes one keeper per cluster
- Deletes the rest only on an explicit non-dry-run

============================================================
RESOLUTION POLICY
============================================================
1. Exactly one registry record   -> keep it, delete the rest
2. Several registry records      -> keep the most recently synced,
                                    flag the other registry records
                                    for review, delete non-registry
3. No registry record            -> keep the most recently synced,
                                    delete the rest
Ties break on primary_id.

============================================================
"""

import logging
import re
from collections import defaultdict
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

from reconciliation.models import (
    AuditReport,
    ChainRecord,
    ClusterReason,
    DuplicateCluster,
    ResolutionProposal,
)

if TYPE_CHECKING:
    from storage.repositories.chains import ChainRecordStore


logger = logging.getLogger(__name__)


NAME_SUFFIXES = ("l1", "chain", "network", "subnet")

_PUNCTUATION = re.compile(r"[^a-z0-9]+")


def normalize_name(name: Optional[str]) -> str:
    """
    Comparable form of a display name.

    "Dexalot Subnet" / "dexalot-L1" / " DEXALOT " all become "dexalot".
    """
    if not name:
        return ""
    words = _PUNCTUATION.sub(" ", name.lower()).split()
    while len(words) > 1 and words[-1] in NAME_SUFFIXES:
        words.pop()
    return " ".join(words)


def _identifier_keys(record: ChainRecord) -> List[str]:
    ids = record.identifiers
    keys = []
    if ids.legacy_numeric_id:
        keys.append(f"legacy:{ids.legacy_numeric_id}")
    # ledger and platform ids both name the blockchain id
    for value in {ids.ledger_id, ids.platform_id}:
        if value:
            keys.append(f"chain:{value}")
    return keys


def _most_recent_first(records: List[ChainRecord]) -> List[ChainRecord]:
    ordered = sorted(records, key=lambda r: r.primary_id)
    return sorted(ordered, key=lambda r: r.provenance.last_synced_at, reverse=True)


class _UnionFind:
    def __init__(self) -> None:
        self._parent: Dict[str, str] = {}

    def find(self, item: str) -> str:
        self._parent.setdefault(item, item)
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            # lowest id becomes the root so cluster order is stable
            if root_b < root_a:
                root_a, root_b = root_b, root_a
            self._parent[root_b] = root_a


class DuplicateAuditor:
    """
    Clusters, proposes and (optionally) applies deletions.

    ============================================================
    USAGE
    ============================================================
    ```python
    auditor = DuplicateAuditor(ChainRecordStore(session))
    clusters = auditor.find_duplicate_clusters()
    proposals = [auditor.propose_resolution(c) for c in clusters]
    report = auditor.apply(proposals, dry_run=True)
    ```

    ============================================================
    """

    def __init__(self, store: "ChainRecordStore", name_matching: bool = True) -> None:
        self._store = store
        self._name_matching = name_matching

    # ─────────────────────────────────────────────────────────
    # Clustering
    # ─────────────────────────────────────────────────────────

    def find_duplicate_clusters(self) -> List[DuplicateCluster]:
        """Group records that appear to be the same network."""
        records = {r.primary_id: r for r in self._store.list_all()}
        uf = _UnionFind()
        edges: Dict[str, Set[Tuple[ClusterReason, str]]] = defaultdict(set)

        by_key: Dict[str, List[str]] = defaultdict(list)
        for record in records.values():
            for key in _identifier_keys(record):
                by_key[key].append(record.primary_id)
        self._link(by_key, ClusterReason.IDENTIFIER, uf, edges)

        if self._name_matching:
            by_name: Dict[str, List[str]] = defaultdict(list)
            for record in records.values():
                name = normalize_name(record.descriptive.name)
                if name:
                    by_name[f"name:{name}@{record.descriptive.network or '-'}"].append(
                        record.primary_id
                    )
            self._link(by_name, ClusterReason.NAME, uf, edges)

        groups: Dict[str, List[str]] = defaultdict(list)
        for primary_id in sorted(records):
            groups[uf.find(primary_id)].append(primary_id)

        clusters = []
        for root in sorted(groups):
            members = groups[root]
            if len(members) < 2:
                continue
            links = edges[root]
            reason = (
                ClusterReason.IDENTIFIER
                if any(r == ClusterReason.IDENTIFIER for r, _ in links)
                else ClusterReason.NAME
            )
            clusters.append(DuplicateCluster(
                records=[records[m] for m in members],
                reason=reason,
                shared_keys=sorted(key for _, key in links),
            ))

        logger.info(f"Found {len(clusters)} duplicate clusters across {len(records)} records")
        return clusters

    @staticmethod
    def _link(
        groups: Dict[str, List[str]],
        reason: ClusterReason,
        uf: _UnionFind,
        edges: Dict[str, Set[Tuple[ClusterReason, str]]],
    ) -> None:
        for key, ids in groups.items():
            if len(ids) < 2:
                continue
            for other in ids[1:]:
                root_a, root_b = uf.find(ids[0]), uf.find(other)
                uf.union(root_a, root_b)
                merged = edges.pop(root_a, set()) | edges.pop(root_b, set())
                edges[uf.find(ids[0])] = merged
            edges[uf.find(ids[0])].add((reason, key))

    # ─────────────────────────────────────────────────────────
    # Policy
    # ─────────────────────────────────────────────────────────

    def propose_resolution(self, cluster: DuplicateCluster) -> ResolutionProposal:
        registry = [r for r in cluster.records if r.is_registry_sourced]
        others = [r for r in cluster.records if not r.is_registry_sourced]

        if len(registry) == 1:
            keep = registry[0]
            return ResolutionProposal(
                cluster=cluster,
                keep=keep,
                delete=sorted(others, key=lambda r: r.primary_id),
                rationale="single registry record",
            )

        if registry:
            ordered = _most_recent_first(registry)
            return ResolutionProposal(
                cluster=cluster,
                keep=ordered[0],
                delete=sorted(others, key=lambda r: r.primary_id),
                review=ordered[1:],
                rationale=f"{len(registry)} registry records, kept most recently synced",
            )

        ordered = _most_recent_first(cluster.records)
        return ResolutionProposal(
            cluster=cluster,
            keep=ordered[0],
            delete=ordered[1:],
            rationale="no registry record, kept most recently synced",
        )

    # ─────────────────────────────────────────────────────────
    # Apply
    # ─────────────────────────────────────────────────────────

    def apply(self, proposals: List[ResolutionProposal], dry_run: bool = True) -> AuditReport:
        """
        Execute proposals.

        A dry run writes nothing. A live run first folds the deleted
        records' identifiers into the keeper, then deletes them.
        """
        report = AuditReport(dry_run=dry_run, proposals=list(proposals))

        for proposal in proposals:
            doomed = [r.primary_id for r in proposal.delete]
            report.flagged_for_review.extend(r.primary_id for r in proposal.review)
            logger.info(
                f"{'[DRY RUN] ' if dry_run else ''}Cluster {proposal.cluster.primary_ids}: "
                f"keep {proposal.keep.primary_id}, delete {doomed}, "
                f"review {[r.primary_id for r in proposal.review]} ({proposal.rationale})"
            )
            if dry_run or not doomed:
                continue

            for record in proposal.delete:
                self._store.union_identifiers(proposal.keep.primary_id, record.identifiers)
            deleted = self._store.delete_many(doomed)
            if deleted != len(doomed):
                logger.warning(f"Expected to delete {len(doomed)} records, deleted {deleted}")
            report.deleted.extend(doomed)

        if not dry_run:
            logger.warning(f"Deleted {len(report.deleted)} duplicate chain records")
        return report

    def run(self, dry_run: bool = True) -> AuditReport:
        """Cluster, propose and apply in one call."""
        clusters = self.find_duplicate_clusters()
        proposals = [self.propose_resolution(c) for c in clusters]
        return self.apply(proposals, dry_run=dry_run)
