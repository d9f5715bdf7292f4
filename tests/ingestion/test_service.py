"""
Tests for IngestionService cycles.
"""

import pytest

from chain_sources.models import MetricType
from core.config import AppConfig
from ingestion.service import IngestionService, SyncReport
from storage.repositories.chains import ChainRecordStore
from tests.ingestion.conftest import (
    ALPHA_CHAIN,
    ALPHA_VALIDATOR,
    GAMMA_CHAIN,
    ExplorerRoutes,
    MetricsRoutes,
    daily,
    icm_message,
)


@pytest.fixture
def service(session_factory, clock, registry_dir, explorer_client, metrics_client, make_scheduler):
    config = AppConfig()
    config.registry.path = registry_dir
    config.metrics.metric_types = ["txCount", "avgTps"]

    explorer_client._get_json = ExplorerRoutes(
        [ALPHA_CHAIN, GAMMA_CHAIN],
        validators={"SUBNET-A": [ALPHA_VALIDATOR]},
    )
    metrics_client._get_json = MetricsRoutes({
        "txCount": daily([300, 200, 100]),
        "avgTps": daily([1.5, 1.25]),
    })

    return IngestionService(
        config,
        session_factory,
        clock=clock,
        explorer_client=explorer_client,
        metrics_client=metrics_client,
        explorer_scheduler=make_scheduler("explorer"),
        metrics_scheduler=make_scheduler("metrics"),
    )


class TestIngestionService:

    @pytest.mark.asyncio
    async def test_full_cycle(self, service, session):
        report = await service.run_cycle("full")

        assert report.ok
        assert report.registry.created == 1
        assert report.chains.created == 1
        assert report.chains.updated == 1
        assert report.metrics.chains == 2
        assert report.metrics.series_ok == 4
        assert report.metrics.samples.inserted == 10
        assert report.icm.ok

        records = {r.primary_id: r for r in ChainRecordStore(session).list_all()}
        assert sorted(records) == ["SUBNET-A", "legacy:777"]
        alpha = records["SUBNET-A"]
        assert alpha.is_registry_sourced
        assert alpha.descriptive.name == "Alpha"
        assert alpha.live.validators[0]["node_id"] == "NodeID-1"
        assert alpha.live.metric_snapshots["txCount"]["value"] == 300.0
        assert alpha.live.metric_snapshots["avgTps"]["value"] == 1.5

    @pytest.mark.asyncio
    async def test_second_cycle_writes_nothing(self, service, clock):
        await service.run_cycle("full")
        clock.advance(60)

        report = await service.run_cycle("full")

        assert report.registry.written == 0
        assert report.chains.written == 0
        assert report.metrics.samples.written == 0
        assert report.metrics.snapshots.written == 0
        assert service.run_count == 2

    @pytest.mark.asyncio
    async def test_metric_selection(self, service):
        await service.run_cycle("registry")

        report = await service.run_cycle("metrics", [MetricType.AVG_TPS])

        assert report.registry is None
        assert report.chains is None
        assert report.metrics.series_ok == 1
        assert report.metrics.samples.inserted == 2

    @pytest.mark.asyncio
    async def test_icm_cycle(self, service):
        service._explorer_client._get_json.icm_pages = [[icm_message(43114, 1234, 60)]]

        report = await service.run_cycle("icm")

        assert report.chains is None
        assert report.metrics is None
        assert report.icm.pairs == 1
        assert report.to_dict()["icm"]["counts"]["inserted"] == 1

    @pytest.mark.asyncio
    async def test_registry_failure_does_not_stop_full_cycle(self, service, tmp_path):
        service._registry_loader._path = tmp_path / "gone"

        report = await service.run_cycle("full")

        assert not report.ok
        assert report.errors[0]["error_type"] == "RegistryLoadError"
        assert report.registry is None
        assert report.chains.created == 2

    @pytest.mark.asyncio
    async def test_unknown_mode(self, service):
        with pytest.raises(ValueError):
            await service.run_cycle("sideways")

    @pytest.mark.asyncio
    async def test_close_closes_schedulers(self, service):
        await service.close()

        with pytest.raises(RuntimeError):
            service._explorer_scheduler.enqueue(lambda: None)

    def test_report_serializes(self, clock):
        report = SyncReport(mode="full", started_at=clock.now())

        data = report.to_dict()

        assert data["mode"] == "full"
        assert data["registry"] is None
        assert data["errors"] == []
