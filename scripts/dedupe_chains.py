"""
Duplicate Chain Cleanup Script.

============================================================
FIND AND REMOVE DUPLICATE CHAIN RECORDS
============================================================

This script:
1. Clusters chain records sharing an identifier (and, unless
   --no-name-matching, records with the same normalized name
   on the same network)
2. Proposes one record to keep per cluster
   (registry wins, else most recently synced)
3. Prints the proposal
4. Without --dry-run: folds identifiers into the kept records
   and deletes the others

USAGE:
    python -m scripts.dedupe_chains --dry-run
    python -m scripts.dedupe_chains --no-name-matching

EXIT CODES:
- 0: Success (including "nothing to do")
- 1: Failure

============================================================
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from core.config import AppConfig
from core.exceptions import ConfigurationError
from core.logging_config import setup_logging
from database.engine import DatabasePersistenceError, initialize_database, session_scope
from reconciliation.auditor import DuplicateAuditor
from reconciliation.models import AuditReport
from storage.repositories.chains import ChainRecordStore
from storage.repositories.exceptions import RepositoryException

logger = logging.getLogger("dedupe_chains")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dedupe_chains",
        description="Find and remove duplicate chain records",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the proposed resolution without writing anything",
    )
    parser.add_argument(
        "--no-name-matching",
        action="store_true",
        help="Only cluster on shared identifiers",
    )
    parser.add_argument("--config", type=str, metavar="PATH", help="YAML configuration file")
    return parser


def print_report(report: AuditReport) -> None:
    print(json.dumps(report.to_dict(), indent=2))


def run(session_factory: sessionmaker, dry_run: bool, name_matching: bool) -> AuditReport:
    """
    Audit the store.

    A dry run reads in a session that is rolled back; a live run
    prints the proposal, then applies it in one transaction.
    """
    if dry_run:
        session = session_factory()
        try:
            auditor = DuplicateAuditor(ChainRecordStore(session), name_matching=name_matching)
            report = auditor.run(dry_run=True)
        finally:
            session.rollback()
            session.close()
        print_report(report)
        return report

    with session_scope(session_factory) as session:
        auditor = DuplicateAuditor(ChainRecordStore(session), name_matching=name_matching)
        proposals = [auditor.propose_resolution(c) for c in auditor.find_duplicate_clusters()]
        print_report(AuditReport(dry_run=True, proposals=proposals))
        report = auditor.apply(proposals, dry_run=False)

    print(
        f"Deleted {len(report.deleted)} records, "
        f"{len(report.flagged_for_review)} flagged for review"
    )
    return report


def main(argv: Optional[List[str]] = None, session_factory: Optional[sessionmaker] = None) -> int:
    args = create_parser().parse_args(argv)

    try:
        if session_factory is None:
            config = AppConfig.from_yaml(args.config) if args.config else AppConfig.from_env()
            setup_logging(config.logging.level, config.logging.format)
            session_factory = initialize_database(config.database.url)

        report = run(session_factory, dry_run=args.dry_run, name_matching=not args.no_name_matching)
    except (ConfigurationError, DatabasePersistenceError, RepositoryException) as e:
        logger.error(f"Duplicate cleanup failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.dry_run:
        logger.info(
            f"[DRY RUN] {len(report.proposals)} clusters, "
            f"{report.proposed_deletions} proposed deletions"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
