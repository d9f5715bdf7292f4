from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_chain_store, get_metric_reader
from api.schemas import (
    CategoriesResponse,
    ChainDetail,
    ChainDetailResponse,
    ChainListResponse,
    ChainSummary,
    MetricHistoryResponse,
    MetricLatestResponse,
    MetricPointSchema,
    ValidatorsResponse,
)
from chain_sources.models import MetricType
from reconciliation.models import ChainRecord
from storage.repositories.chains import ChainRecordStore
from storage.repositories.metrics import MetricSeriesWriter

router = APIRouter(prefix="/chains", tags=["Chains"])


def _require_chain(store: ChainRecordStore, primary_id: str) -> ChainRecord:
    record = store.get(primary_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Chain {primary_id} not found")
    return record


@router.get("", response_model=ChainListResponse)
def list_chains(
    category: Optional[str] = Query(None),
    network: Optional[str] = Query(None),
    store: ChainRecordStore = Depends(get_chain_store),
):
    """
    All chains, optionally filtered by category tag and network.
    """
    records = store.list_all(category=category, network=network)
    return ChainListResponse(
        count=len(records),
        data=[ChainSummary.from_record(r) for r in records],
    )


@router.get("/categories", response_model=CategoriesResponse)
def list_categories(store: ChainRecordStore = Depends(get_chain_store)):
    return CategoriesResponse(data=store.categories())


@router.get("/{primary_id}", response_model=ChainDetailResponse)
def get_chain(primary_id: str, store: ChainRecordStore = Depends(get_chain_store)):
    record = _require_chain(store, primary_id)
    return ChainDetailResponse(data=ChainDetail.from_record(record))


@router.get("/{primary_id}/validators", response_model=ValidatorsResponse)
def get_validators(primary_id: str, store: ChainRecordStore = Depends(get_chain_store)):
    record = _require_chain(store, primary_id)
    validators = record.live.validators or []
    return ValidatorsResponse(primary_id=primary_id, count=len(validators), data=validators)


@router.get("/{primary_id}/metrics/{metric}", response_model=MetricHistoryResponse)
def get_chain_metric_history(
    primary_id: str,
    metric: MetricType,
    days: int = Query(30, ge=1, le=365),
    store: ChainRecordStore = Depends(get_chain_store),
    reader: MetricSeriesWriter = Depends(get_metric_reader),
):
    """
    Daily series of one metric for one chain, oldest first.

    Chains without a legacy numeric id have no series.
    """
    record = _require_chain(store, primary_id)
    chain_id = record.identifiers.legacy_numeric_id
    points = reader.history(metric, chain_id, days) if chain_id else []
    return MetricHistoryResponse(
        metric=metric.value,
        primary_id=primary_id,
        days=days,
        data=[MetricPointSchema(timestamp=p.timestamp, value=p.value) for p in points],
    )


@router.get("/{primary_id}/metrics/{metric}/latest", response_model=MetricLatestResponse)
def get_chain_metric_latest(
    primary_id: str,
    metric: MetricType,
    store: ChainRecordStore = Depends(get_chain_store),
    reader: MetricSeriesWriter = Depends(get_metric_reader),
):
    record = _require_chain(store, primary_id)
    chain_id = record.identifiers.legacy_numeric_id
    point = reader.latest(metric, chain_id) if chain_id else None
    return MetricLatestResponse(
        metric=metric.value,
        primary_id=primary_id,
        data=MetricPointSchema(timestamp=point.timestamp, value=point.value) if point else None,
    )
