"""mermaid-checkの設定読み込み."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from mermaid_check.core.file_collector import InputNotFoundError


logger = logging.getLogger(__name__)

# カレントディレクトリで自動的に探す設定ファイル名
DEFAULT_CONFIG_FILENAME = ".mermaid-check.yaml"


class ConfigError(Exception):
    """設定ファイルの内容が不正なエラー."""
    pass


class CheckerConfig(BaseModel):
    """チェック処理の設定."""

    fence_markers: List[str] = Field(
        default_factory=lambda: ["```mermaid"],
        min_length=1,
        description="ブロック開始とみなすフェンス行",
    )
    timeout: float = Field(default=30.0, gt=0, description="1ブロックあたりのチェックのタイムアウト秒数")
    startup_timeout: float = Field(default=60.0, gt=0, description="Nodeワーカー起動のタイムアウト秒数")
    node_path: Optional[str] = Field(default=None, description="Node.js実行ファイルのパス")
    node_modules: Optional[str] = Field(default=None, description="mermaidとjsdomを含むnode_modulesディレクトリ")
    concurrency: int = Field(default=1, ge=1, description="同時にチェックするブロック数の上限")
    output_dir: str = Field(default=".mermaid_temp", description="ブロックファイルの書き出し先")
    keep_temp: bool = Field(default=False, description="ブロックファイルを削除せずに残す")


# 環境変数 → 設定キー
ENV_OVERRIDES = {
    "MERMAID_CHECK_TIMEOUT": "timeout",
    "MERMAID_CHECK_NODE": "node_path",
    "MERMAID_CHECK_NODE_MODULES": "node_modules",
}


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> CheckerConfig:
    """
    設定を読み込む.

    優先順位:
    1. overrides引数（CLIオプション）
    2. 環境変数 MERMAID_CHECK_*
    3. 設定ファイル（config_path、なければカレントディレクトリの.mermaid-check.yaml）
    4. デフォルト値

    Args:
        config_path: 設定ファイルのパス
        overrides: 最優先で適用する設定値（Noneの値は無視）

    Returns:
        CheckerConfig

    Raises:
        InputNotFoundError: 指定された設定ファイルが存在しない場合
        ConfigError: 設定ファイルまたは設定値が不正な場合
    """
    values: Dict[str, Any] = {}

    if config_path is not None:
        if not config_path.is_file():
            raise InputNotFoundError(f"Config file not found: {config_path}")
        values.update(_read_config_file(config_path))
    else:
        default_path = Path.cwd() / DEFAULT_CONFIG_FILENAME
        if default_path.is_file():
            values.update(_read_config_file(default_path))

    for env_name, key in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if env_value is None or env_value == "":
            continue
        if key == "timeout":
            try:
                values[key] = float(env_value)
            except ValueError:
                # 不正な値は無視してファイル/デフォルトの値を使う
                logger.warning("Ignoring invalid %s=%r", env_name, env_value)
                continue
        else:
            values[key] = env_value

    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return CheckerConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _read_config_file(path: Path) -> Dict[str, Any]:
    """YAML設定ファイルを読み込む."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    logger.debug("Loaded config from %s", path)
    # mermaid_check: セクションがあればそれを使う
    section = config.get("mermaid_check", config)
    if not isinstance(section, dict):
        raise ConfigError(f"'mermaid_check' section in {path} must be a mapping")
    return dict(section)
