"""
Explorer API Client - Chain listing and validator sets.

API: GLACIER_API_BASE (default https://glacier-api.avax.network/v1)
Auth: optional ``x-glacier-api-key`` header for a higher rate limit

Endpoints:
- GET /chains                                  -> {chains[], nextPageToken}
- GET /networks/mainnet/validators?subnetId=   -> {validators[], nextPageToken}
- GET /networks/mainnet/l1Validators?subnetId= -> {validators[], nextPageToken}
- GET /icm/messages?startTime=&endTime=     -> {messages[], nextPageToken}

The l1Validators endpoint reports a different shape (weight instead
of amountStaked, validationId instead of txHash); it is normalized to
the primary validator shape here.
"""

import logging
from typing import Any, Optional

import aiohttp

from chain_sources.base import BaseApiClient
from chain_sources.exceptions import NormalizationError
from chain_sources.models import (
    ChainDescriptor,
    ChainIdentifiers,
    DescriptiveFields,
    LiveData,
    Page,
    SourceTag,
    numeric_chain_id,
)


logger = logging.getLogger(__name__)


VALIDATORS_PAGE_SIZE = 100
ICM_PAGE_SIZE = 100

# Larger timestamps are milliseconds.
MILLISECONDS_THRESHOLD = 1_000_000_000_000


def normalize_validator(raw: dict[str, Any]) -> dict[str, Any]:
    """Validator entry from the primary endpoint."""
    return {
        "node_id": raw.get("nodeId", ""),
        "tx_hash": raw.get("txHash", ""),
        "amount_staked": str(raw.get("amountStaked", "0")),
        "start_timestamp": int(raw.get("startTimestamp") or 0),
        "end_timestamp": int(raw.get("endTimestamp") or 0),
        "validation_status": raw.get("validationStatus", "active"),
        "uptime_performance": float(raw.get("uptimePerformance") or 0),
        "node_version": raw.get("avalancheGoVersion", ""),
    }


def normalize_l1_validator(raw: dict[str, Any]) -> dict[str, Any]:
    """Validator entry from the l1Validators endpoint, in the primary shape."""
    return {
        "node_id": raw.get("nodeId", ""),
        "tx_hash": raw.get("validationId") or raw.get("validationIdHex") or "",
        "amount_staked": str(raw.get("weight", 0)),
        "start_timestamp": int(raw.get("creationTimestamp") or 0),
        "end_timestamp": 0,
        "validation_status": "active",
        "uptime_performance": 100.0,
        "node_version": "",
    }


def normalize_icm_message(raw: dict[str, Any]) -> dict[str, Any]:
    """
    Cross-chain message reduced to its route and send time.

    The send time is taken from the source transaction when present;
    millisecond timestamps are converted to seconds. Missing values
    stay None.
    """
    source_tx = raw.get("sourceTransaction")
    timestamp = source_tx.get("timestamp") if isinstance(source_tx, dict) else None
    if not timestamp:
        timestamp = raw.get("timestamp")
    try:
        timestamp = int(timestamp) if timestamp else None
    except (TypeError, ValueError):
        timestamp = None
    if timestamp is not None and timestamp > MILLISECONDS_THRESHOLD:
        timestamp //= 1000
    return {
        "message_id": raw.get("messageId"),
        "source_chain_id": numeric_chain_id(raw.get("sourceEvmChainId")),
        "destination_chain_id": numeric_chain_id(raw.get("destinationEvmChainId")),
        "timestamp": timestamp,
    }


class ExplorerApiClient(BaseApiClient):
    """
    Chain listing and validator client.

    One HTTP call per method; paging and pacing belong to the caller.
    """

    API_KEY_HEADER = "x-glacier-api-key"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = BaseApiClient.DEFAULT_TIMEOUT,
        validators_endpoint: str = "/networks/mainnet/validators",
        l1_validators_endpoint: str = "/networks/mainnet/l1Validators",
        icm_messages_endpoint: str = "/icm/messages",
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(base_url, api_key=api_key, timeout=timeout, session=session)
        self._validators_endpoint = validators_endpoint
        self._l1_validators_endpoint = l1_validators_endpoint
        self._icm_messages_endpoint = icm_messages_endpoint

    @property
    def name(self) -> str:
        return "explorer-api"

    # ─────────────────────────────────────────────────────────────
    # Chain Listing
    # ─────────────────────────────────────────────────────────────

    async def fetch_chains_page(self, page_token: Optional[str] = None) -> Page:
        """One page of the chain list, testnets removed."""
        data = await self._get_json("/chains", params={"pageToken": page_token})
        chains = self._require_list(data, "chains")
        mainnet = [c for c in chains if isinstance(c, dict) and not c.get("isTestnet")]
        return Page(items=mainnet, next_page_token=data.get("nextPageToken"))

    # ─────────────────────────────────────────────────────────────
    # Validators
    # ─────────────────────────────────────────────────────────────

    async def fetch_validators_page(
        self,
        subnet_id: str,
        page_token: Optional[str] = None,
    ) -> Page:
        """One page of active validators for a subnet."""
        data = await self._get_json(
            self._validators_endpoint,
            params={
                "subnetId": subnet_id,
                "pageSize": VALIDATORS_PAGE_SIZE,
                "validationStatus": "active",
                "pageToken": page_token,
            },
            chain=subnet_id,
        )
        raw = self._require_list(data, "validators", chain=subnet_id)
        return Page(
            items=[normalize_validator(v) for v in raw if isinstance(v, dict)],
            next_page_token=data.get("nextPageToken"),
        )

    async def fetch_l1_validators_page(
        self,
        subnet_id: str,
        page_token: Optional[str] = None,
    ) -> Page:
        """One page from the l1Validators endpoint."""
        data = await self._get_json(
            self._l1_validators_endpoint,
            params={
                "subnetId": subnet_id,
                "pageSize": VALIDATORS_PAGE_SIZE,
                "pageToken": page_token,
            },
            chain=subnet_id,
        )
        if not isinstance(data, dict):
            data = {}
        raw = data.get("validators") or []
        return Page(
            items=[normalize_l1_validator(v) for v in raw if isinstance(v, dict)],
            next_page_token=data.get("nextPageToken"),
        )

    # ─────────────────────────────────────────────────────────────
    # Cross-chain Messages
    # ─────────────────────────────────────────────────────────────

    async def fetch_icm_messages_page(
        self,
        start_time: int,
        end_time: int,
        page_token: Optional[str] = None,
        network: str = "mainnet",
    ) -> Page:
        """
        One page of ICM messages sent in [start_time, end_time].

        The listing runs newest first. The first message older than
        ``start_time`` ends the page and drops the next-page token, so
        paging stops at the window edge. Messages without a timestamp
        are kept.
        """
        data = await self._get_json(
            self._icm_messages_endpoint,
            params={
                "startTime": start_time,
                "endTime": end_time,
                "network": network,
                "pageSize": ICM_PAGE_SIZE,
                "pageToken": page_token,
            },
        )
        raw = self._require_list(data, "messages")
        items = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            message = normalize_icm_message(entry)
            if message["timestamp"] is not None and message["timestamp"] < start_time:
                logger.debug(f"ICM listing crossed {start_time}; stopping at {len(items)} messages")
                return Page(items=items)
            items.append(message)
        return Page(items=items, next_page_token=data.get("nextPageToken"))

    # ─────────────────────────────────────────────────────────────
    # Normalization
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def to_descriptor(
        raw: dict[str, Any],
        validators: Optional[list[dict[str, Any]]] = None,
    ) -> ChainDescriptor:
        """Map one explorer chain entry onto a descriptor."""
        rpc_url = raw.get("rpcUrl")
        token = raw.get("networkToken")
        descriptive = DescriptiveFields(
            name=raw.get("chainName"),
            description=raw.get("description"),
            logo_uri=raw.get("chainLogoUri"),
            rpc_urls=[rpc_url] if rpc_url else [],
            network="mainnet",
            vm_name=raw.get("vmName"),
            vm_id=raw.get("vmId"),
            native_token=dict(token) if isinstance(token, dict) else None,
        )
        live = LiveData(
            validators=validators,
            status=raw.get("status"),
        )
        return ChainDescriptor(
            source_tag=SourceTag.METRICS_API,
            primary_id=raw.get("subnetId") or None,
            identifiers=ChainIdentifiers(
                legacy_numeric_id=numeric_chain_id(raw.get("evmChainId") or raw.get("chainId")),
                platform_id=raw.get("platformChainId") or None,
            ),
            descriptive=descriptive,
            live=live,
        )

    def _require_list(self, data: Any, key: str, chain: Optional[str] = None) -> list:
        if not isinstance(data, dict) or not isinstance(data.get(key), list):
            raise NormalizationError(
                message=f"Expected '{key}' list in response",
                source_name=self.name,
                chain=chain,
                raw_data=data,
                field_name=key,
            )
        return data[key]
