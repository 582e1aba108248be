"""セキュリティモジュールのユニットテスト."""

import logging
from datetime import UTC, datetime, timedelta

import pytest

from market_mcp.config.schema import IntegrationConfig, SecurityConfig
from market_mcp.connectors.base import ConnectorSpec
from market_mcp.exceptions import PermissionDeniedError, ToolNotFoundError
from market_mcp.security import (
    AuditLogger,
    KeyRotationSchedule,
    PermissionPolicy,
    parse_duration,
    resolve_credentials,
    split_tool_uri,
)


class TestParseDuration:
    """parse_duration のテスト."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("30d", timedelta(days=30)),
            ("12h", timedelta(hours=12)),
            ("2w", timedelta(weeks=2)),
            ("90s", timedelta(seconds=90)),
            ("15m", timedelta(minutes=15)),
        ],
    )
    def test_valid(self, value: str, expected: timedelta) -> None:
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["30", "d30", "30 days", "", "0d", "00h"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_duration(value)


class TestPermissionPolicy:
    """PermissionPolicy のテスト."""

    def test_split_tool_uri(self) -> None:
        """ツール URI の分割をテスト."""
        assert split_tool_uri("mcp://github/create_issue") == ("github", "create_issue")
        for invalid in ("github/create_issue", "mcp://github", "mcp:///tool"):
            with pytest.raises(ToolNotFoundError):
                split_tool_uri(invalid)

    def test_read_write_granted(self, sample_specs: dict[str, ConnectorSpec]) -> None:
        """read/write 両方を持つコネクターではすべて許可されることをテスト."""
        policy = PermissionPolicy(sample_specs)
        assert policy.is_allowed("mcp://filesystem/read_file")
        assert policy.is_allowed("mcp://filesystem/write_file")

    def test_read_only(self, sample_config_data: dict, tmp_path) -> None:
        """read のみのコネクターで書き込みが拒否されることをテスト."""
        from market_mcp.config.loader import load_config_from_dict
        from market_mcp.connectors.registry import ConnectorRegistry

        sample_config_data["mcpServers"]["filesystem"]["config"]["permissions"] = ["read"]
        specs = ConnectorRegistry().build_all(load_config_from_dict(sample_config_data))
        policy = PermissionPolicy(specs)

        policy.check("mcp://filesystem/list_directory")
        with pytest.raises(PermissionDeniedError) as exc_info:
            policy.check("mcp://filesystem/write_file")
        assert exc_info.value.permission == "write"
        # カタログ外のツールは書き込み扱い
        assert not policy.is_allowed("mcp://filesystem/format_disk")

    def test_unknown_connector(self, sample_specs: dict[str, ConnectorSpec]) -> None:
        """未宣言のコネクターは ToolNotFoundError になることをテスト."""
        with pytest.raises(ToolNotFoundError):
            PermissionPolicy(sample_specs).check("mcp://redis/get")


class TestAuditLogger:
    """AuditLogger のテスト."""

    def test_log_tool_call(self, caplog: pytest.LogCaptureFixture) -> None:
        """監査ログが WARNING で記録されることをテスト."""
        audit = AuditLogger(logging.getLogger("test.audit"))
        with caplog.at_level(logging.WARNING, logger="test.audit"):
            entry = audit.log_tool_call(
                "analyst", "mcp://github/list_issues", {"repo": "x"}, "r" * 500, True
            )
        assert entry is not None
        assert len(entry["result"]) == 200
        assert "AUDIT:" in caplog.text
        assert "mcp://github/list_issues" in caplog.text

    @pytest.mark.parametrize(("result", "expected"), [(0, "0"), ("", ""), ({}, "{}"), (None, None)])
    def test_falsy_result_kept(self, result: object, expected: str | None) -> None:
        """偽値の結果も None にならずに記録されることをテスト."""
        audit = AuditLogger(logging.getLogger("test.audit"))
        entry = audit.log_tool_call("analyst", "mcp://memory/read_graph", {}, result, True)
        assert entry["result"] == expected

    def test_disabled(self, caplog: pytest.LogCaptureFixture) -> None:
        """無効時は記録しないことをテスト."""
        audit = AuditLogger(logging.getLogger("test.audit"), enabled=False)
        with caplog.at_level(logging.WARNING, logger="test.audit"):
            assert audit.log_tool_call("analyst", "mcp://a/b", {}, None, False, "err") is None
        assert "AUDIT" not in caplog.text


class TestKeyRotationSchedule:
    """KeyRotationSchedule のテスト."""

    def test_from_config(self, sample_config: IntegrationConfig) -> None:
        """設定からスケジュールを作成できることをテスト."""
        schedule = KeyRotationSchedule.from_config(sample_config.security)
        assert schedule is not None
        assert schedule.interval == timedelta(days=30)

    def test_disabled_encryption(self) -> None:
        """暗号化が無効なら None になることをテスト."""
        security = SecurityConfig.model_validate(
            {"encryption": {"enabled": False, "keyRotation": "30d"}}
        )
        assert KeyRotationSchedule.from_config(security) is None
        assert KeyRotationSchedule.from_config(SecurityConfig()) is None

    def test_is_due(self) -> None:
        """期限判定をテスト."""
        schedule = KeyRotationSchedule(timedelta(days=30))
        last = datetime(2026, 1, 1, tzinfo=UTC)
        assert schedule.next_rotation(last) == datetime(2026, 1, 31, tzinfo=UTC)
        assert not schedule.is_due(last, now=datetime(2026, 1, 30, tzinfo=UTC))
        assert schedule.is_due(last, now=datetime(2026, 1, 31, tzinfo=UTC))

    def test_naive_datetimes_are_utc(self) -> None:
        """タイムゾーンなしの日時が UTC として扱われることをテスト."""
        schedule = KeyRotationSchedule(timedelta(hours=1))
        assert schedule.next_rotation(datetime(2026, 1, 1)) == datetime(2026, 1, 1, 1, tzinfo=UTC)
        assert schedule.is_due(datetime(2026, 1, 1), now=datetime(2026, 1, 1, 2))

    def test_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            KeyRotationSchedule(timedelta(0))


class TestResolveCredentials:
    """resolve_credentials のテスト."""

    def test_missing_token(
        self, sample_specs: dict[str, ConnectorSpec], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """github トークン未設定が警告されることをテスト."""
        monkeypatch.delenv("GITHUB_PERSONAL_ACCESS_TOKEN", raising=False)
        assert resolve_credentials(sample_specs) == [
            "github: GITHUB_PERSONAL_ACCESS_TOKEN is not set"
        ]

    def test_token_present(
        self, sample_specs: dict[str, ConnectorSpec], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GITHUB_PERSONAL_ACCESS_TOKEN", "ghp_x")
        assert resolve_credentials(sample_specs) == []
