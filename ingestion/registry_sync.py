"""
Ingestion - Registry Sync.

Loads every chain.json of the registry checkout and reconciles it.
A missing registry (or one with nothing loadable) aborts the pass
with RegistryLoadError; a malformed descriptor is skipped.
"""

import logging

from chain_sources.models import SourceTag
from chain_sources.providers.registry_files import RegistryLoader
from ingestion.reconciler import ChainReconciler, SyncOutcome


logger = logging.getLogger(__name__)


class RegistrySync:
    """One registry pass."""

    def __init__(self, loader: RegistryLoader, reconciler: ChainReconciler) -> None:
        self._loader = loader
        self._reconciler = reconciler

    def run(self) -> SyncOutcome:
        """
        Raises:
            RegistryLoadError: Registry missing or empty
        """
        logger.info(f"Starting registry sync from {self._loader.path}")
        loaded = self._loader.load()

        outcome = self._reconciler.reconcile_all(loaded.descriptors, SourceTag.REGISTRY.value)
        outcome.skipped = len(loaded.skipped)
        for folder, reason in loaded.skipped:
            outcome.errors.append({"chain": folder, "error_type": "Skipped", "message": reason})
        return outcome
