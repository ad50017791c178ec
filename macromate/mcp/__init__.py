"""
macromate MCP Server パッケージ

外部コントローラーからマクロの記録・再生を操作するための
MCP サーバーを提供する。

使用例:
  python -m macromate.mcp               # デフォルト設定で起動
  python -m macromate.mcp --headless    # ヘッドレスモード
"""

from __future__ import annotations

from .config import ServerConfig, load_config_from_env
from .server import MacroTools, create_server

__all__ = ["MacroTools", "ServerConfig", "create_server", "load_config_from_env"]
