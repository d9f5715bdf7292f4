"""
Ingestion fixtures: routed fake HTTP, fast schedulers, a registry checkout.
"""

import json

import pytest

from chain_sources.exceptions import FetchError
from chain_sources.providers.explorer_api import ExplorerApiClient
from chain_sources.providers.metrics_api import MetricsApiClient
from ingestion.reconciler import ChainReconciler
from scheduling import RateLimitedScheduler, RetryPolicy, SchedulerConfig
from tests.conftest import START


DAY = 86400
NOW = int(START.timestamp())

ALPHA_CHAIN = {
    "chainName": "Alpha (explorer)",
    "subnetId": "SUBNET-A",
    "evmChainId": 43114,
    "platformChainId": "BC-A",
    "status": "OK",
    "isTestnet": False,
}

GAMMA_CHAIN = {
    "chainName": "Gamma",
    "chainId": "777",
    "status": "OK",
}

FUJI_CHAIN = {
    "chainName": "Fuji",
    "subnetId": "SUBNET-F",
    "evmChainId": 43113,
    "isTestnet": True,
}

ALPHA_VALIDATOR = {
    "nodeId": "NodeID-1",
    "txHash": "0xabc",
    "amountStaked": "2000",
    "startTimestamp": 100,
    "endTimestamp": 200,
    "uptimePerformance": 99.0,
    "avalancheGoVersion": "1.11.0",
}


def not_found(path):
    return FetchError("HTTP 404", source_name="fake", status_code=404, request_url=path)


class ExplorerRoutes:
    """Stands in for ``_get_json`` on a real ExplorerApiClient."""

    def __init__(self, chains, validators=None, l1_validators=None, failing=(), icm_pages=None):
        self.chains = chains
        self.icm_pages = icm_pages or [[]]
        self.validators = validators or {}
        self.l1_validators = l1_validators or {}
        self.failing = set(failing)
        self.calls = []

    async def __call__(self, path, params=None, chain=None):
        self.calls.append(path)
        for prefix in self.failing:
            if path.startswith(prefix):
                raise not_found(path)
        if path == "/chains":
            return {"chains": list(self.chains)}
        if path == "/icm/messages":
            index = int(params.get("pageToken") or 0)
            more = index + 1 < len(self.icm_pages)
            return {"messages": list(self.icm_pages[index]), "nextPageToken": str(index + 1) if more else None}
        if path.endswith("/l1Validators"):
            return {"validators": self.l1_validators.get(params["subnetId"], [])}
        if path.endswith("/validators"):
            return {"validators": self.validators.get(params["subnetId"], [])}
        raise not_found(path)


class MetricsRoutes:
    """Same daily series for every chain; ``failing`` metric names answer 404."""

    def __init__(self, series, failing=()):
        self.series = series
        self.failing = set(failing)
        self.calls = []

    async def __call__(self, path, params=None, chain=None):
        self.calls.append(path)
        metric = path.rsplit("/", 1)[-1]
        if metric in self.failing:
            raise not_found(path)
        return {"results": list(self.series.get(metric, [])), "nextPageToken": None}


def daily(values):
    """Newest-first points ending yesterday, as the metrics API returns them."""
    return [
        {"timestamp": NOW - (i + 1) * DAY, "value": value}
        for i, value in enumerate(values)
    ]


def icm_message(source, destination, seconds_ago, millis=False):
    """ICM listing entry sent ``seconds_ago`` before the mock clock's start."""
    sent = NOW - seconds_ago
    return {
        "messageId": f"{source}-{destination}-{seconds_ago}",
        "sourceEvmChainId": source,
        "destinationEvmChainId": destination,
        "sourceTransaction": {"timestamp": sent * 1000 if millis else sent},
    }


def write_registry(root, folder, subnet_id, evm_chain_id, blockchain_id, name="Alpha"):
    path = root / folder
    path.mkdir(parents=True)
    doc = {
        "subnetId": subnet_id,
        "name": name,
        "network": "mainnet",
        "categories": ["DeFi"],
        "chains": [{
            "blockchainId": blockchain_id,
            "name": name,
            "evmChainId": evm_chain_id,
        }],
    }
    (path / "chain.json").write_text(json.dumps(doc), encoding="utf-8")
    return path


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def reconciler(session_factory, clock):
    return ChainReconciler(session_factory, clock=clock)


@pytest.fixture
def make_scheduler(clock):
    def factory(name="fake-host"):
        return RateLimitedScheduler(
            SchedulerConfig(
                name=name,
                max_per_minute=1000,
                min_spacing_seconds=0.0,
                retry=RetryPolicy(max_attempts=2, base_delay_seconds=0.5),
            ),
            clock=clock,
        )
    return factory


@pytest.fixture
def explorer_client():
    return ExplorerApiClient("https://explorer.test/v1")


@pytest.fixture
def metrics_client():
    return MetricsApiClient("https://metrics.test/v2")


@pytest.fixture
def registry_dir(tmp_path):
    root = tmp_path / "registry"
    write_registry(root, "alpha", "SUBNET-A", 43114, "BC-A")
    return root
