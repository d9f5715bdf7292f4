"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All database access MUST go through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. Session Injection: Sessions are injected, not created internally
2. Explicit Methods: No generic 'execute', clear method names
3. Atomic Writes: Every upsert is one INSERT/UPDATE statement
4. Exception Handling: All DB errors wrapped in repository exceptions

============================================================
REPOSITORIES
============================================================
- ChainRecordStore: Canonical per-network records
- MetricSeriesWriter: Daily metric samples per chain
- IcmCountWriter: Daily cross-chain message counts per chain pair

============================================================
USAGE
============================================================

    from database.engine import session_scope
    from storage.repositories import ChainRecordStore

    with session_scope(factory) as session:
        store = ChainRecordStore(session)
        record = store.get("2u9v...")

============================================================
"""

from storage.repositories.exceptions import (
    RepositoryException,
    RecordNotFoundError,
    DuplicateRecordError,
    IntegrityError,
    StoreUnavailableError,
    QueryError,
    ValidationError,
)

from storage.repositories.base import BaseRepository

from storage.repositories.chains import ChainRecordStore
from storage.repositories.icm import IcmCountWriter, IcmDay, IcmPairCount
from storage.repositories.metrics import (
    MetricSeriesWriter,
    NetworkLatest,
    WriteSummary,
)

__all__ = [
    # Exceptions
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "IntegrityError",
    "StoreUnavailableError",
    "QueryError",
    "ValidationError",

    # Base
    "BaseRepository",

    # Repositories
    "ChainRecordStore",
    "IcmCountWriter",
    "IcmDay",
    "IcmPairCount",
    "MetricSeriesWriter",
    "NetworkLatest",
    "WriteSummary",
]
