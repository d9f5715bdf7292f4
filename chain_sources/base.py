"""
Base API Client - Shared HTTP plumbing for upstream chain data APIs.

Clients perform exactly ONE HTTP call per public method. Pacing,
retries and budgets are the caller's RateLimitedScheduler's job, so
every failure surfaces here as a typed exception:

- HTTP 429            -> RateLimitError (transient, carries Retry-After)
- HTTP >= 500         -> FetchError (transient)
- other HTTP >= 400   -> FetchError (fatal)
- transport/timeouts  -> FetchError(status_code=None) (transient)
- non-JSON body       -> NormalizationError (fatal)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from chain_sources.exceptions import FetchError, NormalizationError, RateLimitError
from core.logging_config import mask_headers


logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class BaseApiClient(ABC):
    """
    Abstract base class for upstream HTTP JSON APIs.

    Features:
    - Lazily created aiohttp session (or an injected one)
    - Per-request total timeout
    - API key header, masked in logs
    """

    DEFAULT_TIMEOUT = 30.0
    API_KEY_HEADER = "x-api-key"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

        self._requests_made = 0
        self._errors = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this client."""
        pass

    @property
    def base_url(self) -> str:
        return self._base_url

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        headers = {
            "Accept": "application/json",
            "User-Agent": "chain-metrics-aggregator/1.0",
        }
        if self._api_key:
            headers[self.API_KEY_HEADER] = self._api_key
        return headers

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _get_json(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        chain: Optional[str] = None,
    ) -> Any:
        """GET ``path`` and decode the JSON body."""
        session = await self._get_session()
        url = self._url(path)
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        self._requests_made += 1

        logger.debug(
            f"[{self.name}] GET {url} params={clean_params} "
            f"headers={mask_headers(self._get_default_headers())}"
        )

        try:
            async with session.get(url, params=clean_params) as response:
                if response.status == 429:
                    self._errors += 1
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        source_name=self.name,
                        chain=chain,
                        retry_after_seconds=parse_retry_after(response.headers.get("Retry-After")),
                    )

                if response.status >= 400:
                    self._errors += 1
                    body = await response.text()
                    raise FetchError(
                        message=f"HTTP {response.status}",
                        source_name=self.name,
                        chain=chain,
                        status_code=response.status,
                        response_body=body[:500],
                        request_url=url,
                    )

                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    self._errors += 1
                    raise NormalizationError(
                        message="Response body is not valid JSON",
                        source_name=self.name,
                        chain=chain,
                        original_error=e,
                    )

        except asyncio.TimeoutError as e:
            self._errors += 1
            raise FetchError(
                message=f"Timed out after {self._timeout}s",
                source_name=self.name,
                chain=chain,
                request_url=url,
                original_error=e,
            )
        except aiohttp.ClientError as e:
            self._errors += 1
            raise FetchError(
                message=f"Connection error: {e}",
                source_name=self.name,
                chain=chain,
                request_url=url,
                original_error=e,
            )

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseApiClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}(name={self.name}, base_url={self._base_url}, "
            f"requests={self._requests_made}, errors={self._errors})>"
        )
