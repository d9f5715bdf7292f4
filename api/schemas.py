"""
Pydantic schemas for the read API responses.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from reconciliation.models import ChainRecord
from storage.repositories.icm import IcmDay

# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: str
    chains: int = 0

# =======================
# 1. CHAINS
# =======================

class ChainSummary(BaseModel):
    primary_id: str
    name: Optional[str] = None
    network: Optional[str] = None
    categories: List[str] = []
    logo_uri: Optional[str] = None
    legacy_numeric_id: Optional[str] = None
    validator_count: Optional[int] = None
    source_tag: str
    last_synced_at: datetime

    @classmethod
    def from_record(cls, record: ChainRecord) -> "ChainSummary":
        validators = record.live.validators
        return cls(
            primary_id=record.primary_id,
            name=record.descriptive.name,
            network=record.descriptive.network,
            categories=list(record.descriptive.categories),
            logo_uri=record.descriptive.logo_uri,
            legacy_numeric_id=record.identifiers.legacy_numeric_id,
            validator_count=len(validators) if validators is not None else None,
            source_tag=record.provenance.source_tag.value,
            last_synced_at=record.provenance.last_synced_at,
        )

class ChainDetail(BaseModel):
    primary_id: str
    primary_id_provisional: bool
    identifiers: Dict[str, Optional[str]]
    descriptive: Dict[str, Any]
    live: Dict[str, Any]
    provenance: Dict[str, Any]

    @classmethod
    def from_record(cls, record: ChainRecord) -> "ChainDetail":
        data = record.to_dict()
        return cls(**data)

class ChainListResponse(BaseResponse):
    count: int
    data: List[ChainSummary]

class ChainDetailResponse(BaseResponse):
    data: ChainDetail

class CategoriesResponse(BaseResponse):
    data: List[str]

class ValidatorsResponse(BaseResponse):
    primary_id: str
    count: int
    data: List[Dict[str, Any]]

# =======================
# 2. METRICS
# =======================

class MetricPointSchema(BaseModel):
    timestamp: int
    value: float

class MetricHistoryResponse(BaseResponse):
    metric: str
    primary_id: Optional[str] = None
    days: int
    data: List[MetricPointSchema]

class MetricLatestResponse(BaseResponse):
    metric: str
    primary_id: str
    data: Optional[MetricPointSchema] = None

class NetworkLatest(BaseModel):
    timestamp: int
    value: float
    chain_count: int

class NetworkLatestResponse(BaseResponse):
    metric: str
    data: Optional[NetworkLatest] = None

# =======================
# 3. CROSS-CHAIN MESSAGES
# =======================

class IcmPairSchema(BaseModel):
    source_chain: str
    destination_chain: str
    source_chain_id: str
    destination_chain_id: str
    message_count: int

class IcmDaySchema(BaseModel):
    day: int
    date: str
    total_messages: int
    data: List[IcmPairSchema]

    @classmethod
    def from_day(cls, day: IcmDay, names: Dict[str, str]) -> "IcmDaySchema":
        """Chain ids without a stored record are shown as ``Chain <id>``."""
        return cls(
            day=day.day,
            date=datetime.fromtimestamp(day.day, tz=timezone.utc).strftime("%Y-%m-%d"),
            total_messages=day.total_messages,
            data=[
                IcmPairSchema(
                    source_chain=names.get(p.source_chain_id, f"Chain {p.source_chain_id}"),
                    destination_chain=names.get(p.destination_chain_id, f"Chain {p.destination_chain_id}"),
                    source_chain_id=p.source_chain_id,
                    destination_chain_id=p.destination_chain_id,
                    message_count=p.message_count,
                )
                for p in day.pairs
            ],
        )

class IcmDailyResponse(BaseResponse):
    days: int
    count: int
    data: List[IcmDaySchema]

class IcmLatestResponse(BaseResponse):
    data: Optional[IcmDaySchema] = None
