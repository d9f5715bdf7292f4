"""
Metrics API Client - Per-chain daily time series.

API: METRICS_API_BASE (default https://metrics.avax.network/v2)
Auth: optional ``x-api-key`` header

Endpoint:
- GET /chains/{chainId}/metrics/{metric}?timeInterval=day&pageSize=N
  -> {results: [{timestamp, value}], nextPageToken}

``chainId`` is the numeric EVM chain id. Raw points are returned
untouched; validation happens in MetricSeriesWriter.normalize_points.
"""

import logging
from typing import Optional

from chain_sources.base import BaseApiClient
from chain_sources.exceptions import NormalizationError
from chain_sources.models import MetricType, Page


logger = logging.getLogger(__name__)


class MetricsApiClient(BaseApiClient):
    """Time-series client. One HTTP call per method."""

    API_KEY_HEADER = "x-api-key"

    @property
    def name(self) -> str:
        return "metrics-api"

    async def fetch_metric_page(
        self,
        chain_id: str,
        metric: MetricType,
        page_token: Optional[str] = None,
        time_interval: str = "day",
    ) -> Page:
        """
        One page of a chain's metric series.

        Args:
            chain_id: Numeric EVM chain id
            metric: Which series
            page_token: Continuation token from the previous page

        Returns:
            Page of raw ``{timestamp, value}`` dicts, newest first
        """
        data = await self._get_json(
            f"/chains/{chain_id}/metrics/{metric.value}",
            params={
                "timeInterval": time_interval,
                "pageSize": metric.page_size,
                "pageToken": page_token,
            },
            chain=chain_id,
        )

        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise NormalizationError(
                message=f"Expected 'results' list for {metric.value}",
                source_name=self.name,
                chain=chain_id,
                raw_data=data,
                field_name="results",
            )

        return Page(items=data["results"], next_page_token=data.get("nextPageToken"))
