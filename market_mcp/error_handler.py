"""エラーハンドラー.

エラーをログに記録し、重大度が閾値以上であれば管理者へ通知します。

使用例:
    ```python
    handler = ErrorHandler(recipients=["ops@example.com"])

    async with handler.guard({"integration": "marketAnalysis"}):
        await router.store(client, "marketAnalysis", "primary", path, content)
    ```
"""

import logging
import uuid
from collections import deque
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from market_mcp.exceptions import MarketMCPError


SEVERITY_LEVELS = {"info": 10, "warning": 20, "error": 30, "critical": 40}
HISTORY_LIMIT = 100


@dataclass
class ErrorRecord:
    """処理済みエラーの記録."""

    error_type: str
    message: str
    severity: str
    context: dict[str, Any] = field(default_factory=dict)
    error_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "error_type": self.error_type,
            "message": self.message,
            "severity": self.severity,
            "context": self.context,
        }


class Notifier(Protocol):
    """管理者通知のインターフェース."""

    def notify(self, record: ErrorRecord, recipients: Sequence[str]) -> None: ...


class LoggingNotifier:
    """ログに通知を書き出すデフォルトの通知器."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(f"{__name__}.notify")

    def notify(self, record: ErrorRecord, recipients: Sequence[str]) -> None:
        for recipient in recipients or ["admins"]:
            self._logger.error(
                f"NOTIFY {recipient}: [{record.severity}] {record.error_type}: "
                f"{record.message} (id={record.error_id})"
            )


def severity_of(error: BaseException) -> str:
    """例外の重大度を取得 (market-mcp 以外の例外は critical)."""
    if isinstance(error, MarketMCPError):
        return error.severity
    return "critical"


class ErrorHandler:
    """ログ記録と管理者通知を行うエラーハンドラー."""

    def __init__(
        self,
        notifiers: Sequence[Notifier] | None = None,
        *,
        recipients: Sequence[str] = (),
        notify_level: str = "error",
        logger: logging.Logger | None = None,
    ) -> None:
        """初期化.

        Args:
            notifiers: 通知器のリスト (省略時は LoggingNotifier)
            recipients: 通知先
            notify_level: 通知する最小の重大度
            logger: ロガー
        """
        if notify_level not in SEVERITY_LEVELS:
            msg = f"Unknown severity: {notify_level}"
            raise ValueError(msg)
        self._notifiers = list(notifiers) if notifiers is not None else [LoggingNotifier()]
        self._recipients = list(recipients)
        self._notify_level = notify_level
        self._logger = logger or logging.getLogger(__name__)
        self.history: deque[ErrorRecord] = deque(maxlen=HISTORY_LIMIT)

    def handle(self, error: BaseException, context: dict[str, Any] | None = None) -> ErrorRecord:
        """エラーを処理.

        Args:
            error: 発生した例外
            context: 付随情報

        Returns:
            ErrorRecord
        """
        record = ErrorRecord(
            error_type=type(error).__name__,
            message=str(error),
            severity=severity_of(error),
            context=dict(context or {}),
        )
        self._logger.error(
            f"Error {record.error_id} [{record.severity}] {record.error_type}: "
            f"{record.message} context={record.context}",
            exc_info=error,
        )
        self.history.append(record)

        if SEVERITY_LEVELS[record.severity] >= SEVERITY_LEVELS[self._notify_level]:
            self._notify(record)
        return record

    def _notify(self, record: ErrorRecord) -> None:
        for notifier in self._notifiers:
            try:
                notifier.notify(record, self._recipients)
            except Exception:
                self._logger.exception(
                    f"Notifier {type(notifier).__name__} failed for {record.error_id}"
                )

    @asynccontextmanager
    async def guard(self, context: dict[str, Any] | None = None) -> AsyncIterator[None]:
        """ブロック内の例外を処理してから再送出."""
        try:
            yield
        except Exception as e:
            self.handle(e, context)
            raise
