"""統合設定ローダー.

JSON 設定ファイルを読み込み、``${VAR}`` / ``${VAR:-default}`` 形式の
環境変数参照を展開してから検証します。
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from market_mcp.config.schema import IntegrationConfig
from market_mcp.exceptions import ConfigNotFoundError, ConfigValidationError


_logger = logging.getLogger(__name__)

_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.json"


def _substitute(value: Any, missing: list[str], where: str = "") -> Any:
    """環境変数参照を再帰的に展開."""
    if isinstance(value, str):

        def replace(match: re.Match[str]) -> str:
            name, default = match.group(1), match.group(2)
            resolved = os.environ.get(name)
            if resolved is not None:
                return resolved
            if default is not None:
                return default
            missing.append(f"{where or '<root>'}: environment variable '{name}' is not set")
            return match.group(0)

        return _ENV_REFERENCE.sub(replace, value)
    if isinstance(value, dict):
        return {
            key: _substitute(item, missing, f"{where}.{key}" if where else str(key))
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_substitute(item, missing, f"{where}[{idx}]") for idx, item in enumerate(value)]
    return value


def _format_validation_error(error: ValidationError) -> list[str]:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}")
    return problems


def load_config_from_dict(data: dict[str, Any]) -> IntegrationConfig:
    """解析済みの辞書から設定を作成.

    Args:
        data: 設定データの辞書

    Returns:
        IntegrationConfig インスタンス

    Raises:
        ConfigValidationError: 設定が不正な場合
    """
    if not isinstance(data, dict):
        msg = f"top-level JSON value must be an object, got {type(data).__name__}"
        raise ConfigValidationError([msg])

    missing: list[str] = []
    expanded = _substitute(data, missing)
    if missing:
        raise ConfigValidationError(missing)

    try:
        return IntegrationConfig.model_validate(expanded)
    except ValidationError as e:
        raise ConfigValidationError(_format_validation_error(e)) from e


def load_config(path: str | Path) -> IntegrationConfig:
    """JSON ファイルから設定を読み込む.

    Args:
        path: 設定ファイルパス

    Returns:
        IntegrationConfig インスタンス

    Raises:
        ConfigNotFoundError: ファイルが存在しない場合
        ConfigValidationError: JSON または設定内容が不正な場合
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigNotFoundError(str(config_path))

    try:
        data = json.loads(config_path.read_text("utf-8"))
    except json.JSONDecodeError as e:
        msg = f"{config_path}: malformed JSON at line {e.lineno} column {e.colno}: {e.msg}"
        raise ConfigValidationError([msg]) from e

    config = load_config_from_dict(data)
    _logger.info(
        f"Loaded configuration from {config_path}: "
        f"{len(config.mcp_servers)} connectors, {len(config.integrations)} integrations"
    )
    return config


def load_default_config() -> IntegrationConfig:
    """同梱のサンプル設定を読み込む."""
    return load_config(DEFAULT_CONFIG_PATH)


def save_config(config: IntegrationConfig, path: str | Path) -> Path:
    """設定を JSON ファイルに書き込む.

    Args:
        config: 設定
        path: 出力先パス

    Returns:
        書き込んだパス
    """
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(config.to_json_dict(), indent=2, ensure_ascii=False)
    config_path.write_text(text + "\n", "utf-8")
    _logger.debug(f"Saved configuration to {config_path}")
    return config_path
