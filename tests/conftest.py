"""
Shared fixtures: in-memory SQLite database and a mock clock.
"""

from datetime import datetime, timezone

import pytest

from chain_sources.models import (
    ChainDescriptor,
    ChainIdentifiers,
    DescriptiveFields,
    LiveData,
    SourceTag,
)
from core.clock import MockClock
from database.engine import create_all_tables, create_database_engine, create_session_factory


START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return MockClock(START)


@pytest.fixture
def engine():
    engine = create_database_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


def registry_descriptor(
    subnet_id=None,
    legacy=None,
    ledger=None,
    name="Test Chain",
    folder="test-chain",
    **descriptive,
):
    return ChainDescriptor(
        source_tag=SourceTag.REGISTRY,
        primary_id=subnet_id,
        identifiers=ChainIdentifiers(
            legacy_numeric_id=legacy,
            ledger_id=ledger,
            platform_id=ledger,
        ),
        descriptive=DescriptiveFields(name=name, network="mainnet", **descriptive),
        origin_folder=folder,
    )


def api_descriptor(
    subnet_id=None,
    legacy=None,
    platform=None,
    name="Test Chain",
    validators=None,
    snapshots=None,
    status=None,
):
    return ChainDescriptor(
        source_tag=SourceTag.METRICS_API,
        primary_id=subnet_id,
        identifiers=ChainIdentifiers(legacy_numeric_id=legacy, platform_id=platform),
        descriptive=DescriptiveFields(name=name, network="mainnet"),
        live=LiveData(validators=validators, metric_snapshots=snapshots, status=status),
    )
