"""
Registry Loader - File-based chain descriptors.

Layout:
    <registry>/
        <network-folder>/chain.json
        .hidden/        (ignored)
        _templates/     (ignored)

chain.json:
    {
      "subnetId": "...", "name": "...", "description": "...",
      "logo": "...", "website": "...", "network": "mainnet",
      "categories": [...], "socials": [{"name": ..., "url": ...}],
      "chains": [{"blockchainId": ..., "name": ..., "evmChainId": ...,
                  "vmName": ..., "vmId": ..., "rpcUrls": [...],
                  "nativeToken": {...}}]
    }

One descriptor per network folder. Identifiers come from the first
chain entry.

Failure policy:
- registry directory missing          -> RegistryLoadError
- no descriptor could be loaded       -> RegistryLoadError
- one unreadable/malformed chain.json -> skipped with a warning
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from chain_sources.exceptions import MalformedDescriptorError, RegistryLoadError
from chain_sources.models import (
    ChainDescriptor,
    ChainIdentifiers,
    DescriptiveFields,
    SourceTag,
    numeric_chain_id,
)


logger = logging.getLogger(__name__)


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


@dataclass
class RegistryLoadResult:
    """Outcome of one registry scan."""
    descriptors: list[ChainDescriptor] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    categories: set[str] = field(default_factory=set)


class RegistryLoader:
    """Reads every network folder of a registry checkout."""

    def __init__(
        self,
        path: Union[str, Path],
        descriptor_filename: str = "chain.json",
    ) -> None:
        self._path = Path(path)
        self._descriptor_filename = descriptor_filename

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> RegistryLoadResult:
        """
        Scan the registry.

        Raises:
            RegistryLoadError: Directory missing or nothing loadable
        """
        if not self._path.is_dir():
            raise RegistryLoadError(
                f"Registry path not found: {self._path}",
                path=str(self._path),
            )

        folders = sorted(
            entry for entry in self._path.iterdir()
            if entry.is_dir() and not entry.name.startswith((".", "_"))
        )
        logger.info(f"Found {len(folders)} chain folders in registry {self._path}")

        result = RegistryLoadResult()
        for folder in folders:
            descriptor_path = folder / self._descriptor_filename
            if not descriptor_path.is_file():
                logger.warning(f"Skipping {folder.name}: {self._descriptor_filename} not found")
                result.skipped.append((folder.name, "missing descriptor"))
                continue

            try:
                data = self._read_json(descriptor_path)
                descriptor = self.parse_descriptor(data, folder.name)
            except MalformedDescriptorError as e:
                logger.warning(f"Skipping {folder.name}: {e.message}")
                result.skipped.append((folder.name, e.message))
                continue

            result.descriptors.append(descriptor)
            result.categories.update(descriptor.descriptive.categories)

        if not result.descriptors:
            raise RegistryLoadError(
                f"No valid descriptors loaded from {self._path}",
                path=str(self._path),
                skipped=len(result.skipped),
            )

        logger.info(
            f"Loaded {len(result.descriptors)} descriptors from registry "
            f"({len(result.skipped)} skipped, {len(result.categories)} categories)"
        )
        return result

    def _read_json(self, path: Path) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise MalformedDescriptorError(
                f"Unreadable descriptor: {e}",
                path=str(path),
                original_error=e,
            )

    @staticmethod
    def parse_descriptor(data: Any, folder_name: str) -> ChainDescriptor:
        """Map one chain.json document onto a descriptor."""
        if not isinstance(data, dict):
            raise MalformedDescriptorError("Descriptor is not a JSON object", path=folder_name)

        chains = data.get("chains")
        if not isinstance(chains, list) or not chains or not isinstance(chains[0], dict):
            raise MalformedDescriptorError("Descriptor has no chains entries", path=folder_name)

        primary = chains[0]
        if len(chains) > 1:
            extra = [c.get("blockchainId") for c in chains[1:] if isinstance(c, dict)]
            logger.warning(
                f"{folder_name}: {len(chains)} chain entries, using the first "
                f"({primary.get('blockchainId')}); ignoring {extra}"
            )

        ledger_id = primary.get("blockchainId") or None
        legacy_id = numeric_chain_id(primary.get("evmChainId"))
        subnet_id = data.get("subnetId") or None
        if not (subnet_id or ledger_id or legacy_id):
            raise MalformedDescriptorError("Descriptor carries no identifier", path=folder_name)

        categories = _as_list(data.get("categories"))
        socials = _as_list(data.get("socials"))
        rpc_urls = _as_list(primary.get("rpcUrls"))
        native_token = primary.get("nativeToken")

        descriptive = DescriptiveFields(
            name=primary.get("name") or data.get("name"),
            description=primary.get("description") or data.get("description"),
            website=data.get("website"),
            logo_uri=data.get("logo"),
            socials=[s for s in socials if isinstance(s, dict)],
            categories=[str(c) for c in categories],
            rpc_urls=[str(u) for u in rpc_urls],
            network=data.get("network"),
            vm_name=primary.get("vmName"),
            vm_id=primary.get("vmId"),
            native_token=dict(native_token) if isinstance(native_token, dict) else None,
        )

        return ChainDescriptor(
            source_tag=SourceTag.REGISTRY,
            primary_id=subnet_id,
            identifiers=ChainIdentifiers(
                legacy_numeric_id=legacy_id,
                ledger_id=ledger_id,
                platform_id=ledger_id,
            ),
            descriptive=descriptive,
            origin_folder=folder_name,
        )


def load_registry(path: Union[str, Path], descriptor_filename: Optional[str] = None) -> RegistryLoadResult:
    """Convenience wrapper around RegistryLoader.load()."""
    loader = RegistryLoader(path, descriptor_filename or "chain.json")
    return loader.load()
