"""
Chain Source Exceptions - Custom exception hierarchy.

Fetch-side errors expose ``is_transient`` so schedulers can decide
whether a retry is worthwhile. Registry load errors are fatal to a
registry pass; malformed individual descriptors are not.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class ChainSourceError(Exception):
    """Base exception for all chain source errors."""

    is_transient: bool = False

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.chain = chain
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "chain": self.chain,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.chain:
            parts.append(f"[chain={self.chain}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class FetchError(ChainSourceError):
    """
    Error during a request to an upstream API.

    ``status_code`` is None for connection failures and timeouts.
    """

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        chain: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, chain, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    @property
    def is_transient(self) -> bool:
        """5xx responses and transport failures are worth retrying."""
        return self.status_code is None or self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data


class RateLimitError(ChainSourceError):
    """Upstream answered HTTP 429."""

    is_transient = True
    status_code = 429

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        chain: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, chain, original_error, context)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class NormalizationError(ChainSourceError):
    """Upstream payload does not have the expected shape."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        chain: Optional[str] = None,
        raw_data: Optional[Any] = None,
        field_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, chain, original_error, context)
        self.raw_data = raw_data
        self.field_name = field_name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "raw_data": str(self.raw_data)[:500] if self.raw_data else None,
            "field_name": self.field_name,
        })
        return data


class MalformedDescriptorError(NormalizationError):
    """One registry descriptor file could not be parsed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message,
            source_name="l1-registry",
            original_error=original_error,
            context={"path": path} if path else None,
        )
        self.path = path


class RegistryLoadError(ChainSourceError):
    """The registry as a whole is unusable (missing, or nothing loadable)."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        skipped: int = 0,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message,
            source_name="l1-registry",
            original_error=original_error,
            context={"path": path, "skipped": skipped},
        )
        self.path = path
        self.skipped = skipped
