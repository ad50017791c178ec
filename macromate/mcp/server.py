"""
macromate MCP Server — マクロの記録・再生を MCP ツールとして公開

FastMCP を使用して、外部コントローラー（AI エージェント等）が
ブラウザ上でマクロを記録・再生できるようにする。各ツールは
MacroController のメッセージに変換して処理する。

ツール一覧:
  - macromate_launch: ブラウザを起動して URL を開く
  - macromate_start_recording / macromate_stop_recording: 記録の開始・終了
  - macromate_run_macro: マクロの再生（ファイルまたは JSON）
  - macromate_replay_status / macromate_cancel_macro: 再生状態の確認・キャンセル
  - macromate_close: ブラウザを終了
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from fastmcp import FastMCP

from ..browser.capture import PageCaptureSource
from ..browser.host import PlaywrightHost
from ..browser.session import BrowserSession
from ..controller import MacroController
from ..core.replay import MacroPlayer
from ..dsl.parser import MacroParser
from ..dsl.schema import MacroDocument
from ..recorder.recorder import EventRecorder
from .config import ServerConfig, load_config_from_env

logger = logging.getLogger(__name__)

_NOT_LAUNCHED = {"error": "ブラウザが起動していません。先に macromate_launch を呼んでください。",
                 "code": "NotLaunched"}


def _to_text(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False)


class MacroTools:
    """MCP ツールの実体。ブラウザセッションとコントローラーを保持する。

    Attributes:
        finished: 再生終了時に通知された結果辞書（新しい順ではなく発生順）
    """

    def __init__(self, config: ServerConfig, session: Optional[BrowserSession] = None) -> None:
        self._config = config
        self._session = session or BrowserSession(
            headed=config.headed,
            channel=config.channel,
            viewport=(config.viewport_width, config.viewport_height),
        )
        self._controller: Optional[MacroController] = None
        self._url: Optional[str] = None
        self._parser = MacroParser()
        self.finished: list[dict[str, Any]] = []

    @property
    def controller(self) -> Optional[MacroController]:
        return self._controller

    async def launch(self, url: str) -> str:
        page = await self._session.open(url)
        self._url = url

        player = MacroPlayer(PlaywrightHost(page), self._config.replay_config())
        self._controller = MacroController(
            EventRecorder(),
            PageCaptureSource(page),
            player,
            on_replay_finished=self._on_replay_finished,
        )
        return f"Browser launched. Navigated to {url}."

    async def start_recording(self) -> str:
        if self._controller is None:
            return _to_text(_NOT_LAUNCHED)
        return _to_text(await self._controller.handle({"action": "startRecording"}))

    async def stop_recording(
        self, output_path: Optional[str] = None, title: str = "Recorded Macro",
    ) -> str:
        if self._controller is None:
            return _to_text(_NOT_LAUNCHED)
        response = await self._controller.handle({"action": "stopRecording"})
        if output_path and "steps" in response:
            document = MacroDocument(title=title, url=self._url, steps=response["steps"])
            self._parser.dump(document, Path(output_path))
            response["savedTo"] = output_path
            logger.info("マクロを保存しました: %s", output_path)
        return _to_text(response)

    async def run_macro(
        self,
        path: Optional[str] = None,
        steps_json: Optional[str] = None,
        wait: bool = False,
    ) -> str:
        if self._controller is None:
            return _to_text(_NOT_LAUNCHED)

        try:
            if path:
                steps = self._parser.load(Path(path)).to_dict()["steps"]
            elif steps_json:
                steps = json.loads(steps_json)
            else:
                return _to_text({"error": "path か steps_json を指定してください。",
                                 "code": "InvalidMacro"})
        except (OSError, ValueError) as exc:
            return _to_text({"error": str(exc), "code": "InvalidMacro"})

        response = await self._controller.handle({"action": "runMacro", "steps": steps})
        task = self._controller.replay_task
        if wait and "error" not in response and task is not None:
            result = await task
            return _to_text(result.to_dict())
        return _to_text(response)

    async def replay_status(self) -> str:
        if self._controller is None:
            return _to_text(_NOT_LAUNCHED)
        return _to_text(await self._controller.handle({"action": "replayStatus"}))

    async def cancel_macro(self) -> str:
        if self._controller is None:
            return _to_text(_NOT_LAUNCHED)
        return _to_text(await self._controller.handle({"action": "cancelMacro"}))

    async def close(self) -> str:
        await self._session.close()
        self._controller = None
        self._url = None
        return "Browser closed."

    def _on_replay_finished(self, result: dict[str, Any]) -> None:
        self.finished.append(result)
        logger.info("再生が終了しました: %s", result.get("status"))


def create_server(config: Optional[ServerConfig] = None) -> FastMCP:
    """macromate MCP サーバーを生成する。

    Args:
        config: サーバー設定。None の場合は環境変数から読み込む。

    Returns:
        設定済みの FastMCP サーバーインスタンス
    """
    if config is None:
        config = load_config_from_env()

    mcp = FastMCP("macromate")
    tools = MacroTools(config)

    @mcp.tool
    async def macromate_launch(url: str) -> str:
        """Launch the browser and open a URL.

        Args:
            url: The URL to open
        """
        return await tools.launch(url)

    @mcp.tool
    async def macromate_start_recording() -> str:
        """Start recording clicks, text entry and selection changes on the page."""
        return await tools.start_recording()

    @mcp.tool
    async def macromate_stop_recording(
        output_path: Optional[str] = None, title: str = "Recorded Macro",
    ) -> str:
        """Stop recording and return the captured steps.

        Args:
            output_path: Optional .yaml / .json file to save the macro to
            title: Macro title used when saving
        """
        return await tools.stop_recording(output_path, title)

    @mcp.tool
    async def macromate_run_macro(
        path: Optional[str] = None,
        steps_json: Optional[str] = None,
        wait: bool = False,
    ) -> str:
        """Replay a macro on the current page.

        Args:
            path: Macro file (.yaml / .json) to replay
            steps_json: Inline JSON list of steps (used when path is omitted)
            wait: Wait for the replay to finish and return its result
        """
        return await tools.run_macro(path, steps_json, wait)

    @mcp.tool
    async def macromate_replay_status() -> str:
        """Return the status of the current or last replay."""
        return await tools.replay_status()

    @mcp.tool
    async def macromate_cancel_macro() -> str:
        """Cancel the running replay."""
        return await tools.cancel_macro()

    @mcp.tool
    async def macromate_close() -> str:
        """Close the browser."""
        return await tools.close()

    return mcp
