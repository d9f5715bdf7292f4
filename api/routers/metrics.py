from fastapi import APIRouter, Depends, Query

from api.dependencies import get_metric_reader
from api.schemas import (
    MetricHistoryResponse,
    MetricPointSchema,
    NetworkLatest,
    NetworkLatestResponse,
)
from chain_sources.models import MetricType
from storage.repositories.metrics import MetricSeriesWriter

router = APIRouter(prefix="/metrics", tags=["Network Metrics"])


@router.get("/{metric}/network", response_model=MetricHistoryResponse)
def get_network_history(
    metric: MetricType,
    days: int = Query(30, ge=1, le=365),
    reader: MetricSeriesWriter = Depends(get_metric_reader),
):
    """
    Network-wide daily series: the sum over all chains per day.
    """
    points = reader.network_history(metric, days)
    return MetricHistoryResponse(
        metric=metric.value,
        days=days,
        data=[MetricPointSchema(timestamp=p.timestamp, value=p.value) for p in points],
    )


@router.get("/{metric}/network/latest", response_model=NetworkLatestResponse)
def get_network_latest(
    metric: MetricType,
    reader: MetricSeriesWriter = Depends(get_metric_reader),
):
    latest = reader.network_latest(metric)
    return NetworkLatestResponse(
        metric=metric.value,
        data=NetworkLatest(
            timestamp=latest.timestamp,
            value=latest.value,
            chain_count=latest.chain_count,
        ) if latest else None,
    )
