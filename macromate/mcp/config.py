"""
MCP サーバー設定 — 環境変数・CLI 引数からの設定読み込み

CLI 引数 > 環境変数 > デフォルト値 の優先順位で適用される。

環境変数一覧:
  MACROMATE_HEADED          : ブラウザ表示モード（true/false, デフォルト: true）
  MACROMATE_CHANNEL         : ブラウザチャンネル（デフォルト: chromium）
  MACROMATE_VIEWPORT_WIDTH  : ビューポート幅（デフォルト: 1280）
  MACROMATE_VIEWPORT_HEIGHT : ビューポート高さ（デフォルト: 720）
  MACROMATE_SETTLE_MS       : スクロール後の待機（デフォルト: 200）
  MACROMATE_STEP_DELAY_MS   : ステップ間の待機（デフォルト: 500）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from ..core.replay import ReplayConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_HEADED = "MACROMATE_HEADED"
_ENV_CHANNEL = "MACROMATE_CHANNEL"
_ENV_VIEWPORT_WIDTH = "MACROMATE_VIEWPORT_WIDTH"
_ENV_VIEWPORT_HEIGHT = "MACROMATE_VIEWPORT_HEIGHT"
_ENV_SETTLE_MS = "MACROMATE_SETTLE_MS"
_ENV_STEP_DELAY_MS = "MACROMATE_STEP_DELAY_MS"

# 環境変数名 → 整数フィールド名
_INT_FIELDS = {
    _ENV_VIEWPORT_WIDTH: "viewport_width",
    _ENV_VIEWPORT_HEIGHT: "viewport_height",
    _ENV_SETTLE_MS: "settle_ms",
    _ENV_STEP_DELAY_MS: "step_delay_ms",
}


@dataclass
class ServerConfig:
    """MCP サーバーの実行時設定。

    Attributes:
        headed: ブラウザ表示モード（True=表示, False=ヘッドレス）
        channel: ブラウザチャンネル
        viewport_width: ビューポート幅
        viewport_height: ビューポート高さ
        settle_ms: 再生時のスクロール後待機（ミリ秒）
        step_delay_ms: 再生時のステップ間待機（ミリ秒）
    """

    headed: bool = True
    channel: str = "chromium"
    viewport_width: int = 1280
    viewport_height: int = 720
    settle_ms: int = 200
    step_delay_ms: int = 500

    def replay_config(self) -> ReplayConfig:
        """再生エンジン用の設定を生成する。"""
        return ReplayConfig(settle_ms=self.settle_ms, step_delay_ms=self.step_delay_ms)


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def load_config_from_env() -> ServerConfig:
    """環境変数から ServerConfig を生成する。

    設定されていない、または値が不正な環境変数はデフォルト値を使用する。
    """
    config = ServerConfig()

    if _ENV_HEADED in os.environ:
        config.headed = _parse_bool(os.environ[_ENV_HEADED])

    if _ENV_CHANNEL in os.environ:
        config.channel = os.environ[_ENV_CHANNEL]

    for env_key, attr in _INT_FIELDS.items():
        if env_key not in os.environ:
            continue
        try:
            setattr(config, attr, int(os.environ[env_key]))
        except ValueError:
            logger.warning("%s の値が不正です: %s", env_key, os.environ[env_key])

    logger.info("設定を読み込みました: %s", config)
    return config


def build_cli_parser():
    """CLI 引数パーサーを構築する。

    Returns:
        argparse.ArgumentParser インスタンス
    """
    import argparse

    parser = argparse.ArgumentParser(
        description="macromate MCP Server - record and replay browser macros",
    )
    parser.add_argument(
        "--headless", action="store_true", default=None,
        help="Run browser in headless mode (default: headed)",
    )
    parser.add_argument(
        "--headed", action="store_true", default=None,
        help="Run browser in headed mode (default)",
    )
    parser.add_argument(
        "--channel", type=str, default=None,
        help="Browser channel: chromium / chrome / msedge (default: chromium)",
    )
    parser.add_argument(
        "--viewport", type=str, default=None,
        help="Viewport size as WIDTHxHEIGHT (e.g. 1920x1080)",
    )
    parser.add_argument(
        "--settle-ms", type=int, default=None,
        help="Pause after scrolling to each element (default: 200)",
    )
    parser.add_argument(
        "--step-delay-ms", type=int, default=None,
        help="Pause between replayed steps (default: 500)",
    )
    return parser


def apply_cli_args(config: ServerConfig, args: Any) -> ServerConfig:
    """CLI 引数を ServerConfig に適用する。指定された引数のみ上書きする。"""
    if getattr(args, "headless", None):
        config.headed = False
    elif getattr(args, "headed", None):
        config.headed = True

    channel = getattr(args, "channel", None)
    if channel is not None:
        config.channel = channel

    viewport_str = getattr(args, "viewport", None)
    if viewport_str is not None:
        try:
            w, h = str(viewport_str).split("x")
            config.viewport_width = int(w)
            config.viewport_height = int(h)
        except (ValueError, AttributeError):
            logger.warning("--viewport の形式が不正です: %s (WIDTHxHEIGHT)", viewport_str)

    settle_ms = getattr(args, "settle_ms", None)
    if settle_ms is not None:
        config.settle_ms = settle_ms

    step_delay_ms = getattr(args, "step_delay_ms", None)
    if step_delay_ms is not None:
        config.step_delay_ms = step_delay_ms

    return config
