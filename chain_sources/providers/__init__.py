"""
Providers package - Chain data source implementations.
"""

from chain_sources.providers.explorer_api import ExplorerApiClient
from chain_sources.providers.metrics_api import MetricsApiClient
from chain_sources.providers.registry_files import RegistryLoader, RegistryLoadResult


__all__ = [
    "ExplorerApiClient",
    "MetricsApiClient",
    "RegistryLoader",
    "RegistryLoadResult",
]
