"""
Tests for MergeEngine field ownership, re-keying and idempotence.
"""

from datetime import timedelta

import pytest

from chain_sources.exceptions import NormalizationError
from chain_sources.models import (
    ChainDescriptor,
    ChainIdentifiers,
    DescriptiveFields,
    LiveData,
    SourceTag,
)
from reconciliation.merge import MergeEngine
from tests.conftest import START, api_descriptor, registry_descriptor


VALIDATORS = [{"node_id": "NodeID-1", "amount_staked": "2000"}]


@pytest.fixture
def engine(clock):
    return MergeEngine(clock)


def created(engine, descriptor):
    return engine.merge(None, descriptor, descriptor.source_tag).record


class TestCreate:

    def test_registry_record(self, engine):
        outcome = engine.merge(
            None,
            registry_descriptor("SUBNET-A", legacy="43114", ledger="BC-A", folder="alpha"),
            SourceTag.REGISTRY,
        )

        record = outcome.record
        assert outcome.created and outcome.changed
        assert record.primary_id == "SUBNET-A"
        assert not record.primary_id_provisional
        assert record.is_registry_sourced
        assert record.provenance.origin_folder == "alpha"
        assert record.provenance.last_synced_at == START
        assert record.live.content() == (None, None, None)

    def test_api_record_with_provisional_key(self, engine):
        outcome = engine.merge(
            None,
            api_descriptor(legacy="43114", validators=VALIDATORS, status="OK"),
            SourceTag.METRICS_API,
        )

        record = outcome.record
        assert record.primary_id == "legacy:43114"
        assert record.primary_id_provisional
        assert record.live.validators == VALIDATORS
        assert record.live.updated_at == START

    def test_registry_descriptor_never_seeds_live_data(self, engine):
        descriptor = registry_descriptor("SUBNET-A")
        descriptor.live = LiveData(status="OK")

        record = engine.merge(None, descriptor, SourceTag.REGISTRY).record

        assert record.live.status is None

    def test_no_identifier_rejected(self, engine):
        with pytest.raises(NormalizationError):
            engine.merge(None, ChainDescriptor(source_tag=SourceTag.METRICS_API), SourceTag.METRICS_API)


class TestOwnership:

    def test_api_merge_leaves_descriptive_fields(self, engine, clock):
        existing = created(engine, registry_descriptor(
            "SUBNET-A", ledger="BC-A", name="Alpha", website="https://alpha.example.org",
        ))
        clock.advance(3600)

        incoming = api_descriptor("SUBNET-A", name="alpha (explorer)", validators=VALIDATORS)
        outcome = engine.merge(existing, incoming, SourceTag.METRICS_API)

        record = outcome.record
        assert outcome.changed
        assert record.descriptive.name == "Alpha"
        assert record.descriptive.website == "https://alpha.example.org"
        assert record.live.validators == VALIDATORS
        assert record.live.updated_at == START + timedelta(hours=1)
        # provenance stays with the registry
        assert record.provenance.source_tag is SourceTag.REGISTRY
        assert record.provenance.last_synced_at == START

    def test_registry_merge_leaves_live_fields(self, engine, clock):
        existing = created(engine, api_descriptor(
            "SUBNET-A", validators=VALIDATORS, status="OK", snapshots={"txCount": {"value": 5}},
        ))
        clock.advance(3600)

        outcome = engine.merge(
            existing, registry_descriptor("SUBNET-A", name="Alpha"), SourceTag.REGISTRY
        )

        record = outcome.record
        assert record.live.validators == VALIDATORS
        assert record.live.status == "OK"
        assert record.live.metric_snapshots == {"txCount": {"value": 5}}
        assert record.live.updated_at == START
        assert record.descriptive.name == "Alpha"
        assert record.provenance.source_tag is SourceTag.REGISTRY
        assert record.provenance.last_synced_at == START + timedelta(hours=1)

    def test_partial_live_update_keeps_other_fields(self, engine):
        existing = created(engine, api_descriptor("SUBNET-A", validators=VALIDATORS, status="OK"))

        record = engine.merge(
            existing, api_descriptor("SUBNET-A", status="DEGRADED"), SourceTag.METRICS_API
        ).record

        assert record.live.validators == VALIDATORS
        assert record.live.status == "DEGRADED"

    def test_snapshots_merged_per_metric(self, engine):
        existing = created(engine, api_descriptor(
            "SUBNET-A", snapshots={"txCount": {"value": 5}, "avgTps": {"value": 1.5}},
        ))

        record = engine.merge(
            existing,
            api_descriptor("SUBNET-A", snapshots={"txCount": {"value": 7}}),
            SourceTag.METRICS_API,
        ).record

        assert record.live.metric_snapshots == {
            "txCount": {"value": 7},
            "avgTps": {"value": 1.5},
        }

    def test_existing_record_not_mutated(self, engine):
        existing = created(engine, api_descriptor("SUBNET-A", status="OK"))

        engine.merge(existing, api_descriptor("SUBNET-A", status="DOWN"), SourceTag.METRICS_API)

        assert existing.live.status == "OK"


class TestIdentity:

    def test_rekey_provisional_record(self, engine):
        existing = created(engine, api_descriptor(legacy="43114", validators=VALIDATORS))

        outcome = engine.merge(
            existing,
            registry_descriptor("SUBNET-A", legacy="43114", ledger="BC-A"),
            SourceTag.REGISTRY,
        )

        record = outcome.record
        assert outcome.rekeyed_from == "legacy:43114"
        assert record.primary_id == "SUBNET-A"
        assert not record.primary_id_provisional
        assert record.identifiers == ChainIdentifiers(
            legacy_numeric_id="43114", ledger_id="BC-A", platform_id="BC-A"
        )
        assert record.live.validators == VALIDATORS

    def test_authoritative_primary_id_never_replaced(self, engine):
        existing = created(engine, registry_descriptor("SUBNET-A", legacy="43114"))

        outcome = engine.merge(
            existing, api_descriptor("SUBNET-OTHER", legacy="43114"), SourceTag.METRICS_API
        )

        assert outcome.record.primary_id == "SUBNET-A"
        assert outcome.rekeyed_from is None
        assert any(c.startswith("primary_id") for c in outcome.conflicts)

    def test_identifier_conflict_keeps_stored_value(self, engine):
        existing = created(engine, registry_descriptor("SUBNET-A", legacy="43114", ledger="BC-A"))

        outcome = engine.merge(
            existing,
            api_descriptor("SUBNET-A", legacy="99999", platform="BC-A"),
            SourceTag.METRICS_API,
        )

        assert outcome.record.identifiers.legacy_numeric_id == "43114"
        assert outcome.conflicts == ["legacy_numeric_id: kept 43114, got 99999"]

    def test_missing_identifiers_filled(self, engine):
        existing = created(engine, api_descriptor("SUBNET-A", legacy="43114"))

        record = engine.merge(
            existing, api_descriptor("SUBNET-A", platform="PC-A"), SourceTag.METRICS_API
        ).record

        assert record.identifiers.legacy_numeric_id == "43114"
        assert record.identifiers.platform_id == "PC-A"


class TestIdempotence:

    def test_identical_registry_descriptor_is_noop(self, engine, clock):
        descriptor = registry_descriptor("SUBNET-A", legacy="43114", ledger="BC-A", categories=["DeFi"])
        existing = created(engine, descriptor)
        clock.advance(86400)

        outcome = engine.merge(existing, descriptor, SourceTag.REGISTRY)

        assert not outcome.changed
        assert outcome.record is existing
        assert outcome.record.provenance.last_synced_at == START

    def test_identical_live_data_is_noop(self, engine, clock):
        existing = created(engine, api_descriptor("SUBNET-A", validators=VALIDATORS, status="OK"))
        clock.advance(86400)

        outcome = engine.merge(
            existing,
            api_descriptor("SUBNET-A", validators=list(VALIDATORS), status="OK"),
            SourceTag.METRICS_API,
        )

        assert not outcome.changed
        assert outcome.record.live.updated_at == START

    def test_descriptor_without_live_or_ids_is_noop(self, engine):
        existing = created(engine, api_descriptor("SUBNET-A", status="OK"))
        incoming = ChainDescriptor(
            source_tag=SourceTag.METRICS_API,
            primary_id="SUBNET-A",
            descriptive=DescriptiveFields(name="ignored"),
        )

        assert not engine.merge(existing, incoming, SourceTag.METRICS_API).changed
