"""
Tests for IdentityResolver rule precedence and tie-breaking.

Records are seeded through ChainReconciler so they look exactly
like synced data.
"""

import pytest

from ingestion.reconciler import ChainReconciler
from reconciliation.models import MatchRule
from reconciliation.resolver import IdentityResolver
from storage.repositories.chains import ChainRecordStore
from tests.conftest import api_descriptor, registry_descriptor


@pytest.fixture
def reconciler(session_factory, clock):
    return ChainReconciler(session_factory, clock=clock)


@pytest.fixture
def resolver(session):
    return IdentityResolver(ChainRecordStore(session))


class TestRulePrecedence:

    def test_primary_id_match(self, reconciler, resolver):
        reconciler.reconcile(registry_descriptor("SUBNET-A", legacy="43114", ledger="BC-A"))

        result = resolver.resolve(api_descriptor("SUBNET-A", legacy="43114"))

        assert result.matched
        assert result.rule is MatchRule.PRIMARY_ID
        assert result.record.primary_id == "SUBNET-A"
        assert not result.ambiguous

    def test_provisional_key_matches_by_primary_id(self, reconciler, resolver):
        reconciler.reconcile(api_descriptor(legacy="777"))

        result = resolver.resolve(api_descriptor(legacy="777", status="OK"))

        assert result.rule is MatchRule.PRIMARY_ID
        assert result.record.primary_id == "legacy:777"

    def test_registry_bridges_onto_provisional_api_record(self, reconciler, resolver):
        reconciler.reconcile(api_descriptor(legacy="43114"))

        result = resolver.resolve(registry_descriptor("SUBNET-A", legacy="43114", ledger="BC-A"))

        assert result.rule is MatchRule.LEGACY_BRIDGE
        assert result.record.primary_id == "legacy:43114"
        assert result.record.primary_id_provisional

    def test_provisional_api_descriptor_bridges_onto_registry_record(self, reconciler, resolver):
        reconciler.reconcile(registry_descriptor("SUBNET-A", legacy="43114", ledger="BC-A"))

        result = resolver.resolve(api_descriptor(legacy="43114"))

        assert result.rule is MatchRule.LEGACY_BRIDGE
        assert result.record.primary_id == "SUBNET-A"

    def test_no_bridge_between_two_authoritative_ids(self, reconciler, resolver):
        reconciler.reconcile(registry_descriptor("SUBNET-A", legacy="1", ledger="BC-A"))

        result = resolver.resolve(api_descriptor("SUBNET-B", legacy="1"))

        assert not result.matched
        assert "legacy_bridge=1: no match" in result.trail

    def test_ledger_id_match(self, reconciler, resolver):
        reconciler.reconcile(registry_descriptor("SUBNET-A", ledger="BC-A"))

        result = resolver.resolve(registry_descriptor(ledger="BC-A", name="Renamed"))

        assert result.rule is MatchRule.LEDGER_ID
        assert result.record.primary_id == "SUBNET-A"

    def test_platform_id_match(self, reconciler, resolver):
        reconciler.reconcile(registry_descriptor("SUBNET-A", ledger="BC-A"))

        result = resolver.resolve(api_descriptor(platform="BC-A"))

        assert result.rule is MatchRule.PLATFORM_ID
        assert result.record.primary_id == "SUBNET-A"

    def test_trail_lists_every_rule_until_match(self, resolver):
        result = resolver.resolve(api_descriptor("SUBNET-Z", platform="PC-Z"))

        assert not result.matched
        assert result.trail == [
            "primary_id=SUBNET-Z: no match",
            "legacy_bridge: no key",
            "ledger_id: no key",
            "platform_id=PC-Z: no match",
        ]


class TestAmbiguity:

    def test_earliest_synced_wins_among_api_records(self, reconciler, resolver, clock):
        reconciler.reconcile(api_descriptor("SUBNET-C", legacy="55"))
        clock.advance(60)
        reconciler.reconcile(api_descriptor("SUBNET-B", legacy="55"))

        result = resolver.resolve(api_descriptor(legacy="55"))

        assert result.ambiguous
        assert result.rule is MatchRule.LEGACY_BRIDGE
        assert result.record.primary_id == "SUBNET-C"
        assert result.candidates == ["SUBNET-C", "SUBNET-B"]

    def test_registry_record_preferred(self, reconciler, resolver, clock):
        reconciler.reconcile(api_descriptor("SUBNET-B", legacy="55"))
        clock.advance(60)
        reconciler.reconcile(registry_descriptor("SUBNET-R", legacy="55", ledger="BC-R"))

        result = resolver.resolve(api_descriptor(legacy="55"))

        assert result.ambiguous
        assert result.record.primary_id == "SUBNET-R"

    def test_primary_id_tiebreak(self, reconciler, resolver):
        reconciler.reconcile(api_descriptor("SUBNET-Y", legacy="9"))
        reconciler.reconcile(api_descriptor("SUBNET-X", legacy="9"))

        result = resolver.resolve(api_descriptor(legacy="9"))

        assert result.record.primary_id == "SUBNET-X"
