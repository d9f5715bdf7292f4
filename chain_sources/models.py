"""
Chain Source Data Models - Normalized descriptors from every source.

A ChainDescriptor is what a source says about one network at one
moment. It is never stored directly: the reconciliation layer folds
it into a canonical ChainRecord.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceTag(Enum):
    """Where a descriptor came from."""
    REGISTRY = "l1-registry"
    METRICS_API = "metrics-api"


class MetricType(Enum):
    """Per-chain daily time series served by the metrics API."""
    AVG_TPS = "avgTps"
    MAX_TPS = "maxTps"
    TX_COUNT = "txCount"
    CUMULATIVE_TX_COUNT = "cumulativeTxCount"
    GAS_USED = "gasUsed"
    AVG_GAS_PRICE = "avgGasPrice"
    FEES_PAID = "feesPaid"
    ACTIVE_ADDRESSES = "activeAddresses"

    @property
    def page_size(self) -> int:
        """Samples requested per page (the API caps pages at 100)."""
        if self in (MetricType.AVG_TPS, MetricType.CUMULATIVE_TX_COUNT, MetricType.FEES_PAID):
            return 100
        return 30

    @classmethod
    def parse(cls, value: str) -> "MetricType":
        """Accept the API name (``avgTps``) or the enum name (``AVG_TPS``)."""
        for member in cls:
            if value == member.value or value.upper() == member.name:
                return member
        raise ValueError(f"Unknown metric type: {value}")


# =============================================================
# DESCRIPTOR PARTS
# =============================================================


@dataclass(frozen=True)
class ChainIdentifiers:
    """
    Secondary identifiers used for cross-source correlation.

    None of them is unique on its own.
    """
    legacy_numeric_id: Optional[str] = None  # EVM chain id, e.g. "43114"
    ledger_id: Optional[str] = None          # blockchain id from the registry
    platform_id: Optional[str] = None        # platform chain id from the explorer

    def is_empty(self) -> bool:
        return not (self.legacy_numeric_id or self.ledger_id or self.platform_id)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "legacy_numeric_id": self.legacy_numeric_id,
            "ledger_id": self.ledger_id,
            "platform_id": self.platform_id,
        }


def numeric_chain_id(value: Any) -> Optional[str]:
    """Canonical string form of an EVM chain id, or None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text.isdigit():
        return None
    return str(int(text))


def provisional_primary_id(identifiers: ChainIdentifiers) -> Optional[str]:
    """Stand-in primary id for a network whose subnet id is unknown."""
    if identifiers.ledger_id:
        return f"ledger:{identifiers.ledger_id}"
    if identifiers.legacy_numeric_id:
        return f"legacy:{identifiers.legacy_numeric_id}"
    if identifiers.platform_id:
        return f"platform:{identifiers.platform_id}"
    return None


@dataclass
class DescriptiveFields:
    """Human-facing metadata. Owned by the registry."""
    name: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    logo_uri: Optional[str] = None
    socials: List[Dict[str, Any]] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    rpc_urls: List[str] = field(default_factory=list)
    network: Optional[str] = None
    vm_name: Optional[str] = None
    vm_id: Optional[str] = None
    native_token: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "website": self.website,
            "logo_uri": self.logo_uri,
            "socials": list(self.socials),
            "categories": list(self.categories),
            "rpc_urls": list(self.rpc_urls),
            "network": self.network,
            "vm_name": self.vm_name,
            "vm_id": self.vm_id,
            "native_token": dict(self.native_token) if self.native_token else None,
        }


@dataclass
class LiveData:
    """
    Operational data. Owned by the metrics/explorer API.

    On an incoming descriptor a field left as None means "not provided"
    and leaves the stored value alone.
    """
    validators: Optional[List[Dict[str, Any]]] = None
    metric_snapshots: Optional[Dict[str, Dict[str, Any]]] = None
    status: Optional[str] = None
    updated_at: Optional[datetime] = None

    def content(self) -> tuple:
        """Comparable content, without the timestamp."""
        return (self.validators, self.metric_snapshots, self.status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "validators": self.validators,
            "metric_snapshots": self.metric_snapshots,
            "status": self.status,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# =============================================================
# DESCRIPTOR
# =============================================================


@dataclass
class ChainDescriptor:
    """
    What one source reports about one network.

    ``primary_id`` is the subnet id and is only set when the source
    actually knows it.
    """
    source_tag: SourceTag
    identifiers: ChainIdentifiers = field(default_factory=ChainIdentifiers)
    primary_id: Optional[str] = None
    descriptive: Optional[DescriptiveFields] = None
    live: Optional[LiveData] = None
    origin_folder: Optional[str] = None

    @property
    def is_provisional(self) -> bool:
        return not self.primary_id

    @property
    def effective_primary_id(self) -> Optional[str]:
        return self.primary_id or provisional_primary_id(self.identifiers)

    @property
    def label(self) -> str:
        name = self.descriptive.name if self.descriptive else None
        key = self.effective_primary_id or "?"
        return f"{name} ({key})" if name else key


# =============================================================
# TIME SERIES
# =============================================================


@dataclass(frozen=True)
class MetricPoint:
    """One validated sample."""
    timestamp: int
    value: float


@dataclass
class Page:
    """One page of a paginated upstream listing."""
    items: List[Any]
    next_page_token: Optional[str] = None
