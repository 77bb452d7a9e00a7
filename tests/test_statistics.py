import math

import pytest

from mqttping.analysis.statistics import (compute_statistics, format_report,
                                          nearest_rank, summarize)
from mqttping.probe.samples import LatencySample, SampleSet
from mqttping.probe.stages import StageSchema

SCHEMA = StageSchema.default()
METRICS = SCHEMA.metric_names()


def sample(probe_id, **stamps):
    return LatencySample.build(probe_id, stamps, SCHEMA)


def test_nearest_rank_convention():
    record = summarize([40, 10, 30, 20])
    assert record.median == 30
    assert record.p95 == 40
    assert record.p99 == 40
    assert record.min == 10
    assert record.max == 40
    assert record.mean == 25
    assert record.std_dev == pytest.approx(math.sqrt(125))
    assert record.count == 4


def test_single_value():
    record = summarize([7])
    assert record.median == record.p95 == record.p99 == 7
    assert record.std_dev == 0


def test_odd_count():
    record = summarize([5, 1, 4, 2, 3])
    assert record.median == 3
    assert record.p95 == 5


def test_percentile_index_for_hundred_values():
    values = list(range(1, 101))
    assert nearest_rank(values, 0.95) == 96
    assert nearest_rank(values, 0.99) == 100


def test_negative_values_are_reported():
    record = summarize([-30, 10, 20])
    assert record.min == -30
    assert record.mean == 0


def test_summarize_rejects_empty():
    with pytest.raises(ValueError):
        summarize([])


def test_empty_sample_set_has_no_metrics():
    assert compute_statistics([], METRICS) == {}
    assert format_report({}) == "No measured samples"


def test_missing_metrics_are_skipped_per_metric():
    samples = [
        sample("a", T1=0, T2=10, T3=20, T4=30),
        sample("b", T1=0, T2=10, T2_5=15, T3=20, T4=30),
    ]
    stats = compute_statistics(samples, METRICS)

    assert stats["RTT_Total"].count == 2
    assert stats["MQTT_to_WebSocket"].count == 2
    assert stats["Frontend_to_MQTT"].count == 2
    assert stats["Django_to_Frontend"].count == 1
    assert stats["WebSocket_Processing"].count == 1
    assert stats["Django_Processing"].count == 1


def test_metric_without_values_is_omitted():
    stats = compute_statistics([sample("a", T1=0, T2=10, T3=20, T4=30)], METRICS)
    assert "WebSocket_Processing" not in stats
    assert "Django_Processing" not in stats
    assert list(stats) == ["RTT_Total", "MQTT_to_WebSocket", "Django_to_Frontend", "Frontend_to_MQTT"]


def test_statistics_exclude_warmup():
    samples = SampleSet(warmup_count=5)
    for i in range(1, 11):
        samples.append(sample(f"p{i}", T1=0, T4=i * 10))

    stats = compute_statistics(samples.measured(), METRICS)

    assert stats["RTT_Total"].count == 5
    assert stats["RTT_Total"].min == 60
    assert stats["RTT_Total"].max == 100
    assert stats["RTT_Total"].median == 80


def test_format_report_lists_metrics():
    stats = compute_statistics([sample("a", T1=0, T2=10, T3=20, T4=30)], METRICS)
    report = format_report(stats)
    lines = report.splitlines()
    assert lines[0].split()[:3] == ["metric", "count", "min"]
    assert lines[1].startswith("RTT_Total")
    assert len(lines) == 5
