"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Provides common functionality for all repositories including:
- Session injection
- Error handling wrappers
- Common query operations
- Dialect-aware INSERT ... ON CONFLICT construction

============================================================
USAGE
============================================================
All domain repositories inherit from BaseRepository.
The session is injected via the constructor; transaction
boundaries belong to the caller (database.engine.session_scope).

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    StoreUnavailableError,
    ValidationError,
)


# Type variable for ORM model
T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for all repositories.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Wraps database errors in repository exceptions
    - Manages logging for all operations
    - Builds upsert statements for the session's dialect

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository[MyModel]):
        def __init__(self, session: Session):
            super().__init__(session, MyModel, "MyRepository")

    ============================================================
    """

    def __init__(
        self,
        session: Session,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy session (injected)
            model_class: The ORM model class this repository manages
            repository_name: Name for logging and error messages
        """
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        """Get the current session."""
        return self._session

    @property
    def model_class(self) -> Type[T]:
        """Get the managed model class."""
        return self._model_class

    @property
    def repository_name(self) -> str:
        """Get the repository name."""
        return self._repository_name

    @property
    def dialect_name(self) -> str:
        return self._session.get_bind().dialect.name

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(
        self,
        error: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> None:
        """
        Handle database errors by wrapping in repository exceptions.

        Args:
            error: The original exception
            operation: Name of the operation that failed
            context: Additional context for logging

        Raises:
            RepositoryException: Always raises appropriate exception
        """
        context = context or {}
        self._logger.error(
            f"Database error in {operation}: {error}",
            extra={"context": context},
            exc_info=True
        )

        if isinstance(error, OperationalError):
            raise StoreUnavailableError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error)
            ) from error

        if isinstance(error, SQLAlchemyIntegrityError):
            error_str = str(error).lower()
            if "duplicate" in error_str or "unique" in error_str:
                raise DuplicateRecordError(
                    repository_name=self._repository_name,
                    constraint_field=context.get("field", "unknown"),
                    value=context.get("value", "unknown")
                ) from error

            raise IntegrityError(
                repository_name=self._repository_name,
                operation=operation,
                constraint_name="unknown",
                message=str(error)
            ) from error

        raise QueryError(
            repository_name=self._repository_name,
            operation=operation,
            original_error=str(error)
        ) from error

    def _insert(self):
        """
        Dialect-specific INSERT construct supporting on_conflict_do_update.

        Raises:
            ValidationError: Dialect has no native upsert
        """
        dialect = self.dialect_name
        if dialect == "postgresql":
            return postgresql.insert(self._model_class)
        if dialect == "sqlite":
            return sqlite.insert(self._model_class)
        raise ValidationError(
            repository_name=self._repository_name,
            dialect=dialect
        )

    def _count(self) -> int:
        """
        Count all entities.

        Returns:
            Total count of entities
        """
        try:
            stmt = select(func.count()).select_from(self._model_class)
            result = self._session.execute(stmt)
            return result.scalar() or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "count")
            raise

    def _execute(self, stmt: Any, operation: str, context: Optional[dict] = None) -> Any:
        """
        Execute a DML statement and return the raw result.

        Args:
            stmt: SQLAlchemy insert/update/delete statement
            operation: Name for error messages

        Returns:
            CursorResult
        """
        try:
            return self._session.execute(stmt)
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation, context)
            raise

    def _execute_query(self, stmt: Any) -> List[T]:
        """
        Execute a select statement and return results.

        Args:
            stmt: SQLAlchemy select statement

        Returns:
            List of entities
        """
        try:
            result = self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")
            raise

    def _execute_rows(self, stmt: Any, operation: str = "query_rows") -> List[Any]:
        """Execute a select returning plain rows (aggregates, projections)."""
        try:
            return list(self._session.execute(stmt).all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
            raise

    def _execute_scalar(self, stmt: Any) -> Optional[T]:
        """
        Execute a select statement and return single result.

        Args:
            stmt: SQLAlchemy select statement

        Returns:
            Single entity or None
        """
        try:
            result = self._session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_scalar")
            raise
