"""market-mcp セキュリティモジュール.

コネクター権限によるツール呼び出し制御、監査ログ、
鍵ローテーションスケジュールの評価を提供します。
暗号化そのものは扱いません。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from market_mcp.config.schema import DURATION_PATTERN, Permission, SecurityConfig
from market_mcp.connectors.base import ConnectorSpec
from market_mcp.exceptions import PermissionDeniedError, ToolNotFoundError


_DURATION_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def parse_duration(value: str) -> timedelta:
    """期間文字列を timedelta に変換.

    Args:
        value: 期間文字列 (例: "30d", "12h")

    Returns:
        timedelta

    Raises:
        ValueError: 形式が不正な場合
    """
    match = DURATION_PATTERN.match(value)
    if not match:
        msg = f"Invalid duration: {value!r} (expected e.g. '30d')"
        raise ValueError(msg)
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def split_tool_uri(tool_uri: str) -> tuple[str, str]:
    """ツール URI をコネクター名とツール名に分割.

    Raises:
        ToolNotFoundError: URI が "mcp://<connector>/<tool>" 形式でない場合
    """
    if not tool_uri.startswith("mcp://"):
        raise ToolNotFoundError(tool_uri)
    connector, _, tool = tool_uri[len("mcp://") :].partition("/")
    if not connector or not tool:
        raise ToolNotFoundError(tool_uri)
    return connector, tool


class PermissionPolicy:
    """コネクター権限に基づくツール呼び出しポリシー.

    読み取りツールには read、それ以外 (カタログ外を含む) には write 権限が必要です。
    """

    def __init__(self, specs: Mapping[str, ConnectorSpec]) -> None:
        self._specs = dict(specs)

    def check(self, tool_uri: str) -> None:
        """ツール呼び出しを許可できるか確認.

        Raises:
            ToolNotFoundError: URI が不正、またはコネクターが未宣言の場合
            PermissionDeniedError: 必要な権限がない場合
        """
        connector, tool = split_tool_uri(tool_uri)
        spec = self._specs.get(connector)
        if spec is None:
            raise ToolNotFoundError(tool_uri)
        required = spec.required_permission(tool)
        if required not in spec.permissions:
            raise PermissionDeniedError(tool_uri, required.value)

    def is_allowed(self, tool_uri: str) -> bool:
        try:
            self.check(tool_uri)
        except (ToolNotFoundError, PermissionDeniedError):
            return False
        return True


class AuditLogger:
    """ツール呼び出しの監査ログ.

    すべてのツール呼び出しを記録し、セキュリティ監査を可能にします。
    """

    def __init__(self, logger: logging.Logger | None = None, *, enabled: bool = True) -> None:
        """監査ロガーを初期化.

        Args:
            logger: ロガーインスタンス (オプション)
            enabled: 記録を有効にするか
        """
        self._logger = logger or logging.getLogger(__name__)
        self.enabled = enabled

    def log_tool_call(
        self,
        user_id: str,
        tool_uri: str,
        parameters: dict[str, Any],
        result: Any,
        success: bool,
        error: str | None = None,
    ) -> dict[str, Any] | None:
        """ツール呼び出しをログに記録.

        Args:
            user_id: ユーザー ID
            tool_uri: ツール URI
            parameters: ツールパラメータ
            result: 実行結果
            success: 成功したかどうか
            error: エラーメッセージ (失敗時)

        Returns:
            記録したエントリ (無効時は None)
        """
        if not self.enabled:
            return None
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "user_id": user_id,
            "tool_uri": tool_uri,
            "parameters": parameters,
            "result": str(result)[:200] if result is not None else None,
            "success": success,
            "error": error,
        }
        # WARNING レベルで記録して確実にキャプチャされるようにする
        self._logger.warning(f"AUDIT: {log_entry}")
        return log_entry


class KeyRotationSchedule:
    """鍵ローテーションスケジュール.

    宣言された間隔から次回ローテーション日時と期限超過を判定します。
    """

    def __init__(self, interval: timedelta) -> None:
        if interval <= timedelta(0):
            msg = "Rotation interval must be positive"
            raise ValueError(msg)
        self.interval = interval

    @classmethod
    def from_config(cls, security: SecurityConfig) -> KeyRotationSchedule | None:
        """セキュリティ設定からスケジュールを作成.

        暗号化が無効、または間隔が未設定の場合は None を返します。
        """
        encryption = security.encryption
        if not encryption.enabled or not encryption.key_rotation:
            return None
        return cls(parse_duration(encryption.key_rotation))

    @staticmethod
    def _aware(moment: datetime) -> datetime:
        return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)

    def next_rotation(self, last_rotated: datetime) -> datetime:
        return self._aware(last_rotated) + self.interval

    def is_due(self, last_rotated: datetime, now: datetime | None = None) -> bool:
        current = self._aware(now) if now is not None else datetime.now(UTC)
        return current >= self.next_rotation(last_rotated)


def resolve_credentials(specs: Mapping[str, ConnectorSpec]) -> list[str]:
    """有効なコネクターで未設定の認証情報を列挙.

    Returns:
        "<コネクター名>: <環境変数名> is not set" 形式の警告リスト
    """
    warnings = []
    for name, spec in specs.items():
        if not spec.enabled or spec.builder is None:
            continue
        for variable in spec.builder.missing_credentials(spec.settings):
            warnings.append(f"{name}: {variable} is not set")
    return warnings


__all__ = [
    "AuditLogger",
    "KeyRotationSchedule",
    "Permission",
    "PermissionPolicy",
    "parse_duration",
    "resolve_credentials",
    "split_tool_uri",
]
