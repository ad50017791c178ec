"""
macromate MCP Server CLI エントリポイント

python -m macromate.mcp で MCP サーバーを起動する。

使用例:
  python -m macromate.mcp                          # デフォルト設定で起動
  python -m macromate.mcp --headless               # ヘッドレスモード
  python -m macromate.mcp --step-delay-ms 200      # ステップ間の待機を短縮

環境変数:
  MACROMATE_HEADED=false                           # ヘッドレスモード
  MACROMATE_VIEWPORT_WIDTH=1920                    # ビューポート幅
"""

from __future__ import annotations

from .config import apply_cli_args, build_cli_parser, load_config_from_env
from .server import create_server

# 環境変数 → CLI 引数の順で設定を構築
_config = load_config_from_env()
_parser = build_cli_parser()
_args = _parser.parse_args()
_config = apply_cli_args(_config, _args)

server = create_server(config=_config)
server.run()
