"""
Database Package Initialization.

Engine, session factory and transaction scope for the
chain_records and metric_samples tables. Every failure
raises; nothing is persisted silently.
"""

from .engine import (
    DEFAULT_DATABASE_URL,
    REQUIRED_TABLES,
    get_database_url,
    create_database_engine,
    create_session_factory,
    session_scope,
    verify_database_connection,
    create_all_tables,
    initialize_database,
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)

__all__ = [
    "DEFAULT_DATABASE_URL",
    "REQUIRED_TABLES",
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "session_scope",
    "verify_database_connection",
    "create_all_tables",
    "initialize_database",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
