"""
Chain Sources Package - Where chain descriptors and metric series come from.

Two independent sources describe the same networks:

- the l1 registry: a directory of chain.json files (descriptive data)
- the explorer/metrics APIs: chain list, validators, daily series (live data)

Quick Start:
    from chain_sources import ExplorerApiClient, RegistryLoader

    registry = RegistryLoader("l1-registry/data").load()
    async with ExplorerApiClient(base_url) as explorer:
        page = await explorer.fetch_chains_page()
        descriptors = [ExplorerApiClient.to_descriptor(c) for c in page.items]

Clients make one HTTP call per method and raise typed errors
(chain_sources.exceptions). Budgets and retries are applied by a
scheduling.RateLimitedScheduler owned by the caller.
"""

from chain_sources.exceptions import (
    ChainSourceError,
    FetchError,
    MalformedDescriptorError,
    NormalizationError,
    RateLimitError,
    RegistryLoadError,
)
from chain_sources.models import (
    ChainDescriptor,
    ChainIdentifiers,
    DescriptiveFields,
    LiveData,
    MetricPoint,
    MetricType,
    Page,
    SourceTag,
)
from chain_sources.providers import (
    ExplorerApiClient,
    MetricsApiClient,
    RegistryLoader,
    RegistryLoadResult,
)


__all__ = [
    # Exceptions
    "ChainSourceError",
    "FetchError",
    "MalformedDescriptorError",
    "NormalizationError",
    "RateLimitError",
    "RegistryLoadError",
    # Models
    "ChainDescriptor",
    "ChainIdentifiers",
    "DescriptiveFields",
    "LiveData",
    "MetricPoint",
    "MetricType",
    "Page",
    "SourceTag",
    # Providers
    "ExplorerApiClient",
    "MetricsApiClient",
    "RegistryLoader",
    "RegistryLoadResult",
]
