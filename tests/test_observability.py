import json

from contractgen.observability import MetricsCollector, ObservabilityManager, percentile


def test_metric_samples_are_bounded():
    metrics = MetricsCollector(max_samples=3)
    for value in range(10):
        metrics.record_stage_latency("LegalReview", float(value))
        metrics.record_risk_score(value * 10)

    assert list(metrics.stage_latency["LegalReview"]) == [7.0, 8.0, 9.0]
    assert list(metrics.risk_scores) == [70, 80, 90]

    summary = metrics.get_summary()
    assert summary["stages"]["LegalReview"]["latency"]["mean"] == 8.0
    assert summary["risk_score"]["count"] == 3


def test_outcome_counters_are_not_sampled():
    metrics = MetricsCollector(max_samples=2)
    for _ in range(5):
        metrics.record_stage_success("Persistence")
    metrics.record_stage_error("Persistence")

    stage = metrics.get_summary()["stages"]["Persistence"]
    assert stage["total_executions"] == 6
    assert stage["error_count"] == 1


def test_percentile():
    assert percentile([], 95) == 0.0
    assert percentile([3.0, 1.0, 2.0], 50) == 2.0
    assert percentile([1.0, 2.0, 3.0], 95) == 3.0


def test_export_metrics_writes_summary(tmp_path):
    manager = ObservabilityManager(trace_dir=str(tmp_path))
    manager.metrics.record_approval_outcome("approved")

    metrics_file = manager.export_metrics()

    exported = json.loads(metrics_file.read_text(encoding="utf-8"))
    assert exported["approval_outcomes"] == {"approved": 1}
    assert "timestamp" in exported


def test_disabled_metrics_export_nothing(tmp_path):
    manager = ObservabilityManager(enable_metrics=False, trace_dir=str(tmp_path))
    assert manager.metrics is None
    assert manager.export_metrics() is None
