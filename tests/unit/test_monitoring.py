"""監視モジュールのユニットテスト."""

from market_mcp.config.schema import AlertThresholds
from market_mcp.monitoring import AlertEvaluator, ConnectorMetrics, MetricsRecorder


def thresholds() -> AlertThresholds:
    return AlertThresholds(responseTimeMs=1000, errorRate=0.1, memoryUsage=0.8)


class TestMetricsRecorder:
    """MetricsRecorder のテスト."""

    def test_record(self) -> None:
        """呼び出しの集計をテスト."""
        recorder = MetricsRecorder()
        recorder.record("github", 100.0, success=True)
        recorder.record("github", 300.0, success=False)
        recorder.record("memory", 5.0, success=True)

        snapshot = recorder.snapshot()
        github = snapshot["github"]
        assert github.calls == 2
        assert github.errors == 1
        assert github.avg_latency_ms == 200.0
        assert github.max_latency_ms == 300.0
        assert github.error_rate == 0.5
        assert snapshot["memory"].error_rate == 0.0

    def test_snapshot_is_copy(self) -> None:
        """スナップショットが記録器の状態から独立していることをテスト."""
        recorder = MetricsRecorder()
        recorder.record("github", 1.0, success=True)
        snapshot = recorder.snapshot()
        recorder.record("github", 1.0, success=True)
        assert snapshot["github"].calls == 1

    def test_reset(self) -> None:
        recorder = MetricsRecorder()
        recorder.record("github", 1.0, success=True)
        recorder.reset()
        assert recorder.snapshot() == {}

    def test_empty_metrics(self) -> None:
        """呼び出しなしの集計値が 0 になることをテスト."""
        metrics = ConnectorMetrics("github")
        assert metrics.avg_latency_ms == 0.0
        assert metrics.error_rate == 0.0


class TestAlertEvaluator:
    """AlertEvaluator のテスト."""

    def test_no_alerts_under_threshold(self) -> None:
        """閾値以下ではアラートが出ないことをテスト."""
        snapshot = {"github": ConnectorMetrics("github", calls=10, errors=1, total_latency_ms=10000)}
        assert AlertEvaluator(thresholds()).evaluate(snapshot, memory_usage=0.8) == []

    def test_warning_and_critical(self) -> None:
        """閾値超過で warning、1.5 倍以上で critical になることをテスト."""
        snapshot = {
            "github": ConnectorMetrics("github", calls=10, errors=0, total_latency_ms=12000),
            "memory": ConnectorMetrics("memory", calls=4, errors=2, total_latency_ms=40),
        }
        alerts = AlertEvaluator(thresholds()).evaluate(snapshot)

        assert [(a.connector, a.metric, a.severity) for a in alerts] == [
            ("github", "response_time_ms", "warning"),
            ("memory", "error_rate", "critical"),
        ]
        assert alerts[0].value == 1200.0
        assert alerts[0].threshold == 1000

    def test_memory_usage(self) -> None:
        """メモリ使用率のアラートをテスト."""
        alerts = AlertEvaluator(thresholds()).evaluate({}, memory_usage=0.9)
        assert len(alerts) == 1
        assert alerts[0].metric == "memory_usage"
        assert alerts[0].connector is None
        assert alerts[0].to_dict()["severity"] == "warning"

    def test_idle_connector_skipped(self) -> None:
        """呼び出しのないコネクターは評価されないことをテスト."""
        snapshot = {"github": ConnectorMetrics("github")}
        assert AlertEvaluator(AlertThresholds(errorRate=0.0)).evaluate(snapshot) == []

    def test_unset_thresholds(self) -> None:
        """閾値が未設定の項目は評価されないことをテスト."""
        snapshot = {"github": ConnectorMetrics("github", calls=1, errors=1, total_latency_ms=1e6)}
        assert AlertEvaluator(AlertThresholds()).evaluate(snapshot, memory_usage=1.0) == []
