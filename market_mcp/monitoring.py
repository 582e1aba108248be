"""コネクター監視.

ツール呼び出しの応答時間とエラー率をコネクター単位で集計し、
設定されたアラート閾値と比較します。
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime

from market_mcp.config.schema import AlertThresholds


CRITICAL_FACTOR = 1.5


@dataclass
class ConnectorMetrics:
    """コネクター単位の集計値."""

    connector: str
    calls: int = 0
    errors: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        return self.total_latency_ms / self.calls if self.calls else 0.0

    @property
    def error_rate(self) -> float:
        return self.errors / self.calls if self.calls else 0.0

    def to_dict(self) -> dict[str, float | int | str]:
        return {
            "connector": self.connector,
            "calls": self.calls,
            "errors": self.errors,
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "max_latency_ms": round(self.max_latency_ms, 2),
            "error_rate": round(self.error_rate, 4),
        }


@dataclass
class Alert:
    """閾値超過アラート.

    Attributes:
        metric: メトリクス名 (response_time_ms / error_rate / memory_usage)
        connector: 対象コネクター (memory_usage の場合は None)
        value: 観測値
        threshold: 閾値
        severity: "warning" または "critical"
    """

    metric: str
    connector: str | None
    value: float
    threshold: float
    severity: str
    raised_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, object]:
        return {
            "metric": self.metric,
            "connector": self.connector,
            "value": self.value,
            "threshold": self.threshold,
            "severity": self.severity,
            "raised_at": self.raised_at.isoformat(),
        }


class MetricsRecorder:
    """コネクター呼び出しメトリクスの記録器 (スレッドセーフ)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: dict[str, ConnectorMetrics] = {}

    def record(self, connector: str, latency_ms: float, success: bool) -> None:
        """1 回の呼び出しを記録.

        Args:
            connector: コネクター名
            latency_ms: 応答時間 (ミリ秒)
            success: 成功したかどうか
        """
        with self._lock:
            metrics = self._metrics.setdefault(connector, ConnectorMetrics(connector))
            metrics.calls += 1
            metrics.total_latency_ms += latency_ms
            metrics.max_latency_ms = max(metrics.max_latency_ms, latency_ms)
            if not success:
                metrics.errors += 1

    def snapshot(self) -> dict[str, ConnectorMetrics]:
        """現在の集計値のコピーを取得."""
        with self._lock:
            return {
                name: ConnectorMetrics(
                    connector=item.connector,
                    calls=item.calls,
                    errors=item.errors,
                    total_latency_ms=item.total_latency_ms,
                    max_latency_ms=item.max_latency_ms,
                )
                for name, item in self._metrics.items()
            }

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()


class AlertEvaluator:
    """アラート閾値の評価器.

    観測値が閾値を上回るとアラートを発行し、閾値の 1.5 倍以上なら critical とします。
    呼び出し実績のないコネクターは評価しません。
    """

    def __init__(
        self,
        thresholds: AlertThresholds,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._thresholds = thresholds
        self._logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _severity(value: float, threshold: float) -> str:
        return "critical" if value >= threshold * CRITICAL_FACTOR else "warning"

    def _check(
        self,
        metric: str,
        connector: str | None,
        value: float,
        threshold: float | None,
    ) -> Alert | None:
        if threshold is None or value <= threshold:
            return None
        alert = Alert(
            metric=metric,
            connector=connector,
            value=value,
            threshold=threshold,
            severity=self._severity(value, threshold),
        )
        self._logger.warning(
            f"Alert [{alert.severity}] {metric}={value:.4g} exceeds {threshold:.4g}"
            + (f" on {connector}" if connector else "")
        )
        return alert

    def evaluate(
        self,
        snapshot: dict[str, ConnectorMetrics],
        memory_usage: float | None = None,
    ) -> list[Alert]:
        """メトリクスを評価.

        Args:
            snapshot: MetricsRecorder.snapshot() の結果
            memory_usage: メモリ使用率 (0-1、オプション)

        Returns:
            発行されたアラートのリスト
        """
        alerts: list[Alert] = []
        for name in sorted(snapshot):
            metrics = snapshot[name]
            if metrics.calls == 0:
                continue
            for alert in (
                self._check(
                    "response_time_ms",
                    name,
                    metrics.avg_latency_ms,
                    self._thresholds.response_time_ms,
                ),
                self._check("error_rate", name, metrics.error_rate, self._thresholds.error_rate),
            ):
                if alert is not None:
                    alerts.append(alert)

        if memory_usage is not None:
            alert = self._check("memory_usage", None, memory_usage, self._thresholds.memory_usage)
            if alert is not None:
                alerts.append(alert)
        return alerts
