"""
Server テスト — MCP サーバーのツール定義・ツール処理のテスト

FastMCP サーバーが正しくツールを公開すること、および
ブラウザセッションをモックに差し替えた MacroTools が
記録・保存・再生・キャンセルを MacroController に中継することを検証する。
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from macromate.browser.capture import BINDING_NAME
from macromate.dsl.parser import MacroParser
from macromate.mcp.config import ServerConfig
from macromate.mcp.server import MacroTools, create_server

TOOL_NAMES = [
    "macromate_launch",
    "macromate_start_recording",
    "macromate_stop_recording",
    "macromate_run_macro",
    "macromate_replay_status",
    "macromate_cancel_macro",
    "macromate_close",
]


# ---------------------------------------------------------------------------
# ヘルパー
# ---------------------------------------------------------------------------

def _make_mock_page(element: object = None) -> AsyncMock:
    page = AsyncMock()
    page.on = MagicMock()
    page.remove_listener = MagicMock()
    page.is_closed = MagicMock(return_value=False)
    page.query_selector = AsyncMock(return_value=element)
    return page


def _make_tools(page: AsyncMock) -> tuple[MacroTools, MagicMock]:
    session = MagicMock()
    session.open = AsyncMock(return_value=page)
    session.close = AsyncMock()
    config = ServerConfig(headed=False, settle_ms=0, step_delay_ms=0)
    return MacroTools(config, session=session), session


# ---------------------------------------------------------------------------
# サーバー生成テスト
# ---------------------------------------------------------------------------

class TestCreateServer:
    """create_server() のテスト。"""

    def test_server_has_name(self) -> None:
        server = create_server(ServerConfig())
        assert server.name == "macromate"

    @pytest.mark.asyncio
    async def test_all_tools_registered(self) -> None:
        """全ツールが登録されていること。"""
        server = create_server(ServerConfig())
        tools = await server.list_tools()
        tool_names = [t.name for t in tools]
        for name in TOOL_NAMES:
            assert name in tool_names


# ---------------------------------------------------------------------------
# ツール処理テスト
# ---------------------------------------------------------------------------

class TestMacroTools:
    """MacroTools のテスト。"""

    def test_requires_launch(self) -> None:
        tools, _ = _make_tools(_make_mock_page())
        response = json.loads(asyncio.run(tools.start_recording()))
        assert response["code"] == "NotLaunched"

    def test_launch_opens_url(self) -> None:
        page = _make_mock_page()
        tools, session = _make_tools(page)
        text = asyncio.run(tools.launch("http://localhost:3000/"))

        assert "http://localhost:3000/" in text
        session.open.assert_awaited_once_with("http://localhost:3000/")
        assert tools.controller is not None

    def test_default_session_follows_config(self) -> None:
        """セッション未指定時は設定のブラウザ表示・チャンネル・ビューポートを使うこと。"""
        config = ServerConfig(headed=False, channel="msedge", viewport_width=800, viewport_height=600)
        session = MacroTools(config)._session
        assert session.headed is False
        assert session.channel == "msedge"
        assert session.viewport == (800, 600)

    def test_record_and_save(self, tmp_path: Path) -> None:
        """記録したステップが応答に含まれ、ファイルに保存されること。"""
        page = _make_mock_page()
        tools, _ = _make_tools(page)
        output = tmp_path / "recorded.yaml"

        async def _scenario() -> dict:
            await tools.launch("http://localhost:3000/")
            started = json.loads(await tools.start_recording())
            assert started == {"status": "recording started"}

            name, send = page.expose_function.await_args.args
            assert name == BINDING_NAME
            send(json.dumps({
                "type": "click",
                "target": {"tag": "button", "id": "go", "text": "Go", "ordinal": 1},
                "ancestors": [],
                "counts": {},
            }))
            return json.loads(await tools.stop_recording(str(output), title="保存"))

        response = asyncio.run(_scenario())

        assert response["steps"][0]["selector"] == "#go"
        assert response["savedTo"] == str(output)
        saved = MacroParser().load(output)
        assert saved.title == "保存"
        assert saved.url == "http://localhost:3000/"
        assert len(saved.steps) == 1

    def test_stop_without_start(self) -> None:
        tools, _ = _make_tools(_make_mock_page())

        async def _scenario() -> dict:
            await tools.launch("http://localhost/")
            return json.loads(await tools.stop_recording())

        assert asyncio.run(_scenario())["code"] == "NotRecording"

    def test_run_inline_steps_and_wait(self) -> None:
        element = AsyncMock()
        tools, _ = _make_tools(_make_mock_page(element))
        steps = json.dumps([{"kind": "click", "selector": "#go"}])

        async def _scenario() -> dict:
            await tools.launch("http://localhost/")
            return json.loads(await tools.run_macro(steps_json=steps, wait=True))

        result = asyncio.run(_scenario())

        assert result["status"] == "completed"
        element.click.assert_awaited_once()
        assert tools.finished[0]["status"] == "completed"

    def test_run_from_file(self, macro_yaml: Path) -> None:
        tools, _ = _make_tools(_make_mock_page(AsyncMock()))

        async def _scenario() -> dict:
            await tools.launch("http://localhost/")
            return json.loads(await tools.run_macro(path=str(macro_yaml), wait=True))

        result = asyncio.run(_scenario())
        assert result["status"] == "completed"
        assert result["stepsRun"] == 3

    def test_run_without_wait_then_status(self) -> None:
        tools, _ = _make_tools(_make_mock_page(None))

        async def _scenario() -> tuple[dict, dict]:
            await tools.launch("http://localhost/")
            started = json.loads(await tools.run_macro(
                steps_json='[{"kind": "click", "selector": "#missing"}]',
            ))
            await tools.controller.replay_task
            return started, json.loads(await tools.replay_status())

        started, status = asyncio.run(_scenario())
        assert started == {"status": "macro running"}
        assert status["status"] == "aborted"
        assert status["errorType"] == "ElementNotFoundError"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"steps_json": "[not json"},
            {"path": "/nonexistent/macro.yaml"},
            {"steps_json": '[{"kind": "click"}]'},
        ],
    )
    def test_invalid_macro(self, kwargs: dict) -> None:
        tools, _ = _make_tools(_make_mock_page())

        async def _scenario() -> dict:
            await tools.launch("http://localhost/")
            return json.loads(await tools.run_macro(**kwargs))

        assert asyncio.run(_scenario())["code"] == "InvalidMacro"

    def test_cancel_when_idle(self) -> None:
        tools, _ = _make_tools(_make_mock_page())

        async def _scenario() -> dict:
            await tools.launch("http://localhost/")
            return json.loads(await tools.cancel_macro())

        assert asyncio.run(_scenario())["code"] == "NotRunning"

    def test_close(self) -> None:
        tools, session = _make_tools(_make_mock_page())

        async def _scenario() -> str:
            await tools.launch("http://localhost/")
            return await tools.close()

        assert asyncio.run(_scenario()) == "Browser closed."
        session.close.assert_awaited_once()
        assert tools.controller is None
