"""
Tests for the file-based registry loader.
"""

import json

import pytest

from chain_sources.exceptions import MalformedDescriptorError, RegistryLoadError
from chain_sources.models import SourceTag
from chain_sources.providers.registry_files import RegistryLoader, load_registry


# ============================================================
# FIXTURES
# ============================================================

def chain_json(subnet_id="SUBNET-A", blockchain_id="BC-A", evm_chain_id=43114, **extra):
    doc = {
        "subnetId": subnet_id,
        "name": "Alpha Network",
        "description": "The alpha L1",
        "logo": "https://example.org/alpha.png",
        "website": "https://alpha.example.org",
        "network": "mainnet",
        "categories": ["DeFi", "Gaming"],
        "socials": [{"name": "x", "url": "https://x.com/alpha"}],
        "chains": [
            {
                "blockchainId": blockchain_id,
                "name": "Alpha C-Chain",
                "evmChainId": evm_chain_id,
                "vmName": "EVM",
                "vmId": "mgj786",
                "rpcUrls": ["https://rpc.alpha.example.org"],
                "nativeToken": {"symbol": "ALP", "decimals": 18},
            }
        ],
    }
    doc.update(extra)
    return doc


def write_folder(root, name, doc=None, raw=None):
    folder = root / name
    folder.mkdir()
    if raw is not None:
        (folder / "chain.json").write_text(raw, encoding="utf-8")
    elif doc is not None:
        (folder / "chain.json").write_text(json.dumps(doc), encoding="utf-8")
    return folder


# ============================================================
# LOADING
# ============================================================

class TestRegistryLoader:

    def test_loads_descriptor_fields(self, tmp_path):
        write_folder(tmp_path, "alpha", chain_json())

        result = RegistryLoader(tmp_path).load()

        assert len(result.descriptors) == 1
        d = result.descriptors[0]
        assert d.source_tag is SourceTag.REGISTRY
        assert d.primary_id == "SUBNET-A"
        assert d.identifiers.ledger_id == "BC-A"
        assert d.identifiers.platform_id == "BC-A"
        assert d.identifiers.legacy_numeric_id == "43114"
        assert d.origin_folder == "alpha"
        assert d.descriptive.name == "Alpha C-Chain"
        assert d.descriptive.logo_uri == "https://example.org/alpha.png"
        assert d.descriptive.categories == ["DeFi", "Gaming"]
        assert d.descriptive.rpc_urls == ["https://rpc.alpha.example.org"]
        assert d.descriptive.native_token == {"symbol": "ALP", "decimals": 18}
        assert result.categories == {"DeFi", "Gaming"}

    def test_hidden_and_underscore_folders_ignored(self, tmp_path):
        write_folder(tmp_path, "alpha", chain_json())
        write_folder(tmp_path, ".git", chain_json(subnet_id="HIDDEN"))
        write_folder(tmp_path, "_template", chain_json(subnet_id="TEMPLATE"))

        result = RegistryLoader(tmp_path).load()

        assert [d.primary_id for d in result.descriptors] == ["SUBNET-A"]
        assert result.skipped == []

    def test_malformed_file_skipped(self, tmp_path):
        write_folder(tmp_path, "alpha", chain_json())
        write_folder(tmp_path, "broken", raw="{not json")
        write_folder(tmp_path, "empty")

        result = RegistryLoader(tmp_path).load()

        assert len(result.descriptors) == 1
        skipped = dict(result.skipped)
        assert set(skipped) == {"broken", "empty"}
        assert skipped["empty"] == "missing descriptor"

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(RegistryLoadError):
            RegistryLoader(tmp_path / "nope").load()

    def test_nothing_loadable_raises(self, tmp_path):
        write_folder(tmp_path, "broken", raw="[]")

        with pytest.raises(RegistryLoadError):
            load_registry(tmp_path)

    def test_multiple_chains_uses_first(self, tmp_path):
        doc = chain_json()
        doc["chains"].append({"blockchainId": "BC-SECOND", "evmChainId": 99})
        write_folder(tmp_path, "alpha", doc)

        d = RegistryLoader(tmp_path).load().descriptors[0]

        assert d.identifiers.ledger_id == "BC-A"
        assert d.identifiers.legacy_numeric_id == "43114"


# ============================================================
# PARSING
# ============================================================

class TestParseDescriptor:

    def test_missing_subnet_id_is_provisional(self):
        d = RegistryLoader.parse_descriptor(chain_json(subnet_id=None), "alpha")

        assert d.is_provisional
        assert d.effective_primary_id == "ledger:BC-A"

    def test_non_numeric_evm_id_dropped(self):
        d = RegistryLoader.parse_descriptor(chain_json(evm_chain_id="n/a"), "alpha")

        assert d.identifiers.legacy_numeric_id is None

    def test_no_chains_rejected(self):
        with pytest.raises(MalformedDescriptorError):
            RegistryLoader.parse_descriptor(chain_json(chains=[]), "alpha")

    def test_no_identifier_rejected(self):
        doc = chain_json(subnet_id=None, blockchain_id=None, evm_chain_id=None)

        with pytest.raises(MalformedDescriptorError):
            RegistryLoader.parse_descriptor(doc, "alpha")

    def test_non_list_fields_tolerated(self):
        d = RegistryLoader.parse_descriptor(chain_json(categories="DeFi", socials=None), "alpha")

        assert d.descriptive.categories == []
        assert d.descriptive.socials == []
