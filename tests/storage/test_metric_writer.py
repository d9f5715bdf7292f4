"""
Tests for MetricSeriesWriter validation, idempotent writes and reads.
"""

import math

import pytest

from chain_sources.models import MetricPoint, MetricType
from storage.repositories.metrics import WRITE_BATCH_SIZE, MetricSeriesWriter
from tests.conftest import START


DAY = 86400
NOW = int(START.timestamp())


def ts(days_ago):
    return NOW - days_ago * DAY


@pytest.fixture
def writer(session, clock):
    return MetricSeriesWriter(session, history_days=30, clock=clock)


class TestNormalizePoints:

    def test_sorted_and_validated(self, writer):
        raw = [
            {"timestamp": ts(1), "value": "12.5"},
            {"timestamp": ts(3), "value": 10},
            {"timestamp": ts(2), "value": 11.0},
        ]

        samples, dropped = writer.normalize_points(raw)

        assert dropped == 0
        assert samples == [
            MetricPoint(ts(3), 10.0),
            MetricPoint(ts(2), 11.0),
            MetricPoint(ts(1), 12.5),
        ]

    def test_malformed_points_dropped(self, writer):
        raw = [
            {"timestamp": ts(1), "value": 1},
            {"timestamp": ts(2), "value": None},
            {"timestamp": ts(3), "value": "n/a"},
            {"timestamp": ts(4), "value": math.nan},
            {"timestamp": ts(5), "value": math.inf},
            {"timestamp": ts(6), "value": True},
            {"timestamp": "yesterday", "value": 1},
            {"timestamp": ts(7) + 0.5, "value": 1},
            "garbage",
        ]

        samples, dropped = writer.normalize_points(raw)

        assert [s.timestamp for s in samples] == [ts(1)]
        assert dropped == 8

    def test_window_and_duplicates(self, writer):
        raw = [
            {"timestamp": ts(31), "value": 1},
            {"timestamp": ts(30), "value": 2},
            {"timestamp": ts(-1), "value": 3},
            {"timestamp": ts(5), "value": 4},
            {"timestamp": ts(5), "value": 5},
        ]

        samples, dropped = writer.normalize_points(raw)

        assert samples == [MetricPoint(ts(30), 2.0), MetricPoint(ts(5), 4.0)]
        assert dropped == 3


class TestWrite:

    def test_insert_then_noop(self, writer):
        samples = [MetricPoint(ts(d), float(d)) for d in range(1, 6)]

        first = writer.write(MetricType.TX_COUNT, "43114", samples)
        second = writer.write(MetricType.TX_COUNT, "43114", samples)

        assert first.to_dict() == {"inserted": 5, "updated": 0, "unchanged": 0, "dropped": 0}
        assert second.to_dict() == {"inserted": 0, "updated": 0, "unchanged": 5, "dropped": 0}
        assert second.written == 0
        assert writer.count() == 5

    def test_value_change_updates(self, writer):
        writer.write("txCount", "43114", [MetricPoint(ts(1), 1.0), MetricPoint(ts(2), 2.0)])

        summary = writer.write(
            "txCount", "43114",
            [MetricPoint(ts(1), 1.0), MetricPoint(ts(2), 20.0), MetricPoint(ts(3), 3.0)],
        )

        assert (summary.inserted, summary.updated, summary.unchanged) == (1, 1, 1)
        assert writer.latest("txCount", "43114") == MetricPoint(ts(1), 1.0)
        assert [p.value for p in writer.history("txCount", "43114")] == [3.0, 20.0, 1.0]

    def test_series_are_keyed_by_metric_and_chain(self, writer):
        writer.write(MetricType.TX_COUNT, "1", [MetricPoint(ts(1), 1.0)])
        writer.write(MetricType.AVG_TPS, "1", [MetricPoint(ts(1), 2.0)])
        writer.write(MetricType.TX_COUNT, "2", [MetricPoint(ts(1), 3.0)])

        assert writer.count() == 3
        assert writer.latest(MetricType.AVG_TPS, "1").value == 2.0

    def test_large_series_batched(self, writer):
        writer = MetricSeriesWriter(writer.session, history_days=365 * 2, clock=writer._clock)
        samples = [MetricPoint(ts(d), float(d)) for d in range(WRITE_BATCH_SIZE + 50)]

        summary = writer.write(MetricType.TX_COUNT, "1", samples)

        assert summary.inserted == WRITE_BATCH_SIZE + 50
        assert writer.count() == WRITE_BATCH_SIZE + 50

    def test_empty_write(self, writer):
        assert writer.write(MetricType.TX_COUNT, "1", []).written == 0


class TestReads:

    def test_history_window(self, writer):
        writer.write(MetricType.TX_COUNT, "1", [MetricPoint(ts(d), float(d)) for d in (1, 5, 20)])

        assert [p.timestamp for p in writer.history(MetricType.TX_COUNT, "1", days=7)] == [ts(5), ts(1)]
        assert len(writer.history(MetricType.TX_COUNT, "1")) == 3

    def test_latest_missing(self, writer):
        assert writer.latest(MetricType.TX_COUNT, "1") is None
        assert writer.network_latest(MetricType.TX_COUNT) is None

    def test_network_aggregates(self, writer):
        writer.write(MetricType.TX_COUNT, "1", [MetricPoint(ts(2), 10.0), MetricPoint(ts(1), 11.0)])
        writer.write(MetricType.TX_COUNT, "2", [MetricPoint(ts(2), 5.0), MetricPoint(ts(1), 6.0)])
        writer.write(MetricType.TX_COUNT, "3", [MetricPoint(ts(2), 1.0)])

        history = writer.network_history(MetricType.TX_COUNT)
        latest = writer.network_latest(MetricType.TX_COUNT)

        assert history == [MetricPoint(ts(2), 16.0), MetricPoint(ts(1), 17.0)]
        assert latest.timestamp == ts(1)
        assert latest.value == 17.0
        assert latest.chain_count == 2
