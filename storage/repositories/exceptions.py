"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Every SQLAlchemy error raised inside ChainRecordStore or
MetricSeriesWriter is wrapped in one of these by
BaseRepository._handle_db_error, with the failing operation
and the key involved.

Sync passes catch RepositoryException per chain (or per series),
record ``to_dict()`` on the pass outcome and move on.

============================================================
HIERARCHY
============================================================
RepositoryException
├── RecordNotFoundError      get_or_raise on an unknown primary id
├── DuplicateRecordError     unique key already taken (primary id,
│                            or metric/chain/timestamp)
├── IntegrityError           any other constraint
├── StoreUnavailableError    database unreachable or locked
├── QueryError               everything else SQLAlchemy raises
└── ValidationError          dialect cannot express the upsert

============================================================
"""

from typing import Any, Dict, Optional


class RepositoryException(Exception):
    """Base for storage failures; carries the repository and operation."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "repository": self.repository_name,
            "operation": self.operation,
            "details": dict(self.details),
        }


class RecordNotFoundError(RepositoryException):
    """No chain record under the requested primary id."""

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        id_field: str = "primary_id"
    ) -> None:
        super().__init__(
            message=f"No record with {id_field}={record_id}",
            repository_name=repository_name,
            operation="get",
            details={id_field: str(record_id)}
        )
        self.record_id = record_id
        self.id_field = id_field


class DuplicateRecordError(RepositoryException):
    """A write collided with an existing natural key."""

    def __init__(
        self,
        repository_name: str,
        constraint_field: str,
        value: Any
    ) -> None:
        super().__init__(
            message=f"{constraint_field}={value} is already stored",
            repository_name=repository_name,
            operation="upsert",
            details={"field": constraint_field, "value": str(value)}
        )
        self.constraint_field = constraint_field
        self.value = value


class IntegrityError(RepositoryException):
    """A constraint other than a natural key rejected the write."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        constraint_name: str,
        message: str
    ) -> None:
        super().__init__(
            message=f"Constraint {constraint_name} violated: {message}",
            repository_name=repository_name,
            operation=operation,
            details={"constraint": constraint_name}
        )
        self.constraint_name = constraint_name


class StoreUnavailableError(RepositoryException):
    """The database could not be reached, or was locked, mid-operation."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Store unavailable: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class QueryError(RepositoryException):
    """Any other statement failure."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Statement failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class ValidationError(RepositoryException):
    """The bound database cannot run INSERT ... ON CONFLICT."""

    def __init__(
        self,
        repository_name: str,
        dialect: str
    ) -> None:
        super().__init__(
            message=f"{dialect} does not support INSERT ... ON CONFLICT",
            repository_name=repository_name,
            operation="upsert",
            details={"dialect": dialect}
        )
        self.dialect = dialect
