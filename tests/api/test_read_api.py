"""
Tests for the read API.

============================================================
PURPOSE
============================================================
Routes, filters and error codes against a seeded in-memory
database via FastAPI's TestClient.

============================================================
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from api.app import create_app
from chain_sources.models import MetricPoint, MetricType
from database.engine import session_scope
from ingestion.reconciler import ChainReconciler
from storage.repositories.chains import ChainRecordStore
from storage.repositories.icm import IcmCountWriter, IcmPairCount, day_start
from storage.repositories.metrics import MetricSeriesWriter
from tests.conftest import START, api_descriptor, registry_descriptor


DAY = 86400
NOW = int(START.timestamp())
TODAY = day_start(NOW)

VALIDATORS = [{"node_id": "NodeID-1"}, {"node_id": "NodeID-2"}]


@pytest.fixture
def seeded(session_factory, clock):
    reconciler = ChainReconciler(session_factory, clock=clock)
    reconciler.reconcile(registry_descriptor(
        "SUBNET-A", legacy="43114", ledger="BC-A", name="Alpha", categories=["DeFi"],
    ))
    reconciler.reconcile(api_descriptor("SUBNET-A", validators=VALIDATORS, status="OK"))
    reconciler.reconcile(registry_descriptor(
        "SUBNET-B", legacy="1234", ledger="BC-B", name="Beta", categories=["Gaming"],
    ))
    reconciler.reconcile(api_descriptor(platform="PC-C", name="Gamma"))

    with session_scope(session_factory) as session:
        writer = MetricSeriesWriter(session, clock=clock)
        writer.write(MetricType.TX_COUNT, "43114", [
            MetricPoint(NOW - 40 * DAY, 1.0),
            MetricPoint(NOW - 2 * DAY, 10.0),
            MetricPoint(NOW - DAY, 11.0),
        ])
        writer.write(MetricType.TX_COUNT, "1234", [
            MetricPoint(NOW - 2 * DAY, 5.0),
            MetricPoint(NOW - DAY, 6.0),
        ])
        IcmCountWriter(session, clock=clock).write([
            IcmPairCount(TODAY, "43114", "1234", 7),
            IcmPairCount(TODAY, "1234", "99999", 2),
            IcmPairCount(TODAY - DAY, "43114", "1234", 3),
            IcmPairCount(TODAY - 40 * DAY, "43114", "1234", 1),
        ])


@pytest.fixture
def client(session_factory, clock, seeded):
    return TestClient(create_app(session_factory, clock=clock, history_days=30))


class TestChains:

    def test_list(self, client):
        response = client.get("/api/chains")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 3
        assert [c["primary_id"] for c in body["data"]] == ["SUBNET-A", "SUBNET-B", "platform:PC-C"]
        alpha = body["data"][0]
        assert alpha["name"] == "Alpha"
        assert alpha["validator_count"] == 2
        assert alpha["source_tag"] == "l1-registry"

    def test_filter_by_category(self, client):
        body = client.get("/api/chains", params={"category": "Gaming"}).json()

        assert [c["primary_id"] for c in body["data"]] == ["SUBNET-B"]

    def test_categories(self, client):
        assert client.get("/api/chains/categories").json()["data"] == ["DeFi", "Gaming"]

    def test_detail(self, client):
        body = client.get("/api/chains/SUBNET-A").json()

        data = body["data"]
        assert data["identifiers"] == {
            "legacy_numeric_id": "43114",
            "ledger_id": "BC-A",
            "platform_id": "BC-A",
        }
        assert data["descriptive"]["categories"] == ["DeFi"]
        assert data["live"]["status"] == "OK"
        assert data["provenance"]["source_tag"] == "l1-registry"

    def test_provisional_id_in_path(self, client):
        response = client.get("/api/chains/platform:PC-C")

        assert response.status_code == 200
        assert response.json()["data"]["primary_id_provisional"] is True

    def test_unknown_chain(self, client):
        assert client.get("/api/chains/NOPE").status_code == 404
        assert client.get("/api/chains/NOPE/validators").status_code == 404
        assert client.get("/api/chains/NOPE/metrics/txCount").status_code == 404

    def test_validators(self, client):
        body = client.get("/api/chains/SUBNET-A/validators").json()

        assert body["count"] == 2
        assert body["data"] == VALIDATORS

    def test_validators_empty_when_unknown(self, client):
        body = client.get("/api/chains/SUBNET-B/validators").json()

        assert body["count"] == 0
        assert body["data"] == []


class TestChainMetrics:

    def test_history(self, client):
        body = client.get("/api/chains/SUBNET-A/metrics/txCount").json()

        assert body["metric"] == "txCount"
        assert body["days"] == 30
        assert body["data"] == [
            {"timestamp": NOW - 2 * DAY, "value": 10.0},
            {"timestamp": NOW - DAY, "value": 11.0},
        ]

    def test_history_days(self, client):
        body = client.get("/api/chains/SUBNET-A/metrics/txCount", params={"days": 60}).json()

        assert len(body["data"]) == 3

    def test_latest(self, client):
        body = client.get("/api/chains/SUBNET-A/metrics/txCount/latest").json()

        assert body["data"] == {"timestamp": NOW - DAY, "value": 11.0}

    def test_chain_without_series(self, client):
        body = client.get("/api/chains/platform:PC-C/metrics/txCount/latest").json()

        assert body["data"] is None

    def test_unknown_metric(self, client):
        assert client.get("/api/chains/SUBNET-A/metrics/blockSize").status_code == 422

    def test_days_out_of_range(self, client):
        response = client.get("/api/chains/SUBNET-A/metrics/txCount", params={"days": 0})

        assert response.status_code == 422


class TestNetworkMetrics:

    def test_network_history(self, client):
        body = client.get("/api/metrics/txCount/network").json()

        assert body["primary_id"] is None
        assert body["data"] == [
            {"timestamp": NOW - 2 * DAY, "value": 15.0},
            {"timestamp": NOW - DAY, "value": 17.0},
        ]

    def test_network_latest(self, client):
        body = client.get("/api/metrics/txCount/network/latest").json()

        assert body["data"] == {"timestamp": NOW - DAY, "value": 17.0, "chain_count": 2}

    def test_network_latest_without_data(self, client):
        body = client.get("/api/metrics/avgTps/network/latest").json()

        assert body["data"] is None


class TestIcmCounts:

    def test_daily(self, client):
        body = client.get("/api/icm/daily").json()

        assert body["days"] == 30
        assert body["count"] == 2
        today = body["data"][0]
        assert today["day"] == TODAY
        assert today["date"] == "2026-03-01"
        assert today["total_messages"] == 9
        assert today["data"][0] == {
            "source_chain": "Alpha",
            "destination_chain": "Beta",
            "source_chain_id": "43114",
            "destination_chain_id": "1234",
            "message_count": 7,
        }
        assert today["data"][1]["destination_chain"] == "Chain 99999"
        assert body["data"][1]["date"] == "2026-02-28"

    def test_daily_window(self, client):
        assert client.get("/api/icm/daily?days=60").json()["count"] == 3

    def test_days_out_of_range(self, client):
        assert client.get("/api/icm/daily?days=91").status_code == 422

    def test_latest(self, client):
        body = client.get("/api/icm/latest").json()

        assert body["data"]["day"] == TODAY
        assert [p["message_count"] for p in body["data"]["data"]] == [7, 2]

    def test_latest_without_data(self, session_factory, clock):
        client = TestClient(create_app(session_factory, clock=clock))

        assert client.get("/api/icm/latest").json()["data"] is None


class TestHealth:

    def test_ok(self, client):
        body = client.get("/api/health").json()

        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["chains"] == 3

    def test_degraded(self, client, monkeypatch):
        def broken(self):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        monkeypatch.setattr(ChainRecordStore, "count", broken)

        body = client.get("/api/health").json()

        assert body["status"] == "degraded"
        assert body["database"] == "unavailable"

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"
