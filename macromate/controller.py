"""
MacroController — 外部コントローラーとのメッセージ境界

外部コントローラー（MCP サーバー、ブラウザ拡張のポップアップ等）からの
要求メッセージを受け取り、記録・再生を操作して応答を返す。
要求は 1 件ずつ処理する。

メッセージ一覧（message["action"]）:
  - startRecording → {"status": "recording started"}
  - stopRecording  → {"steps": [...]}
  - runMacro       → {"status": "macro running"}（終了時は on_replay_finished に通知）
  - replayStatus   → 直近の再生状態
  - cancelMacro    → 実行中の再生をキャンセル

エラー時は {"error": メッセージ, "code": 種別} を返す。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from .core.replay import CancelToken, MacroPlayer, ReplayResult
from .dsl.schema import macro_to_list, parse_macro
from .recorder.recorder import (
    AlreadyRecordingError,
    CaptureSource,
    EventRecorder,
    NotRecordingError,
    RecordingSession,
)

logger = logging.getLogger(__name__)


def _error(code: str, message: str) -> dict[str, Any]:
    return {"error": message, "code": code}


class MacroController:
    """記録・再生を操作するメッセージハンドラ。

    使用例::

        controller = MacroController(EventRecorder(), source, player)
        await controller.handle({"action": "startRecording"})
    """

    def __init__(
        self,
        recorder: EventRecorder,
        source: CaptureSource,
        player: MacroPlayer,
        on_replay_finished: Optional[Callable[[dict[str, Any]], None]] = None,
    ) -> None:
        """MacroController を初期化する。

        Args:
            recorder: 記録エンジン
            source: 記録時に使うキャプチャソース
            player: 再生エンジン
            on_replay_finished: 再生終了時に結果辞書を受け取るコールバック
        """
        self._recorder = recorder
        self._source = source
        self._player = player
        self._on_replay_finished = on_replay_finished
        self._session: Optional[RecordingSession] = None
        self._replay_task: Optional[asyncio.Task] = None
        self._cancel: Optional[CancelToken] = None
        self._last_result: Optional[ReplayResult] = None

        self._handlers: dict[str, Callable[[dict[str, Any]], Any]] = {
            "startRecording": self._start_recording,
            "stopRecording": self._stop_recording,
            "runMacro": self._run_macro,
            "replayStatus": self._replay_status,
            "cancelMacro": self._cancel_macro,
        }

    @property
    def replay_task(self) -> Optional[asyncio.Task]:
        """実行中（または直近）の再生タスク。"""
        return self._replay_task

    @property
    def is_replaying(self) -> bool:
        return self._replay_task is not None and not self._replay_task.done()

    async def handle(self, message: dict[str, Any]) -> dict[str, Any]:
        """要求メッセージを処理して応答を返す。"""
        action = message.get("action")
        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            logger.warning("未知のアクションです: %r", action)
            return _error("UnknownAction", f"未知のアクションです: {action!r}")
        return await handler(message)

    # -------------------------------------------------------------------
    # 記録
    # -------------------------------------------------------------------

    async def _start_recording(self, message: dict[str, Any]) -> dict[str, Any]:
        try:
            self._session = await self._recorder.start(self._source)
        except AlreadyRecordingError as exc:
            return _error("AlreadyRecording", str(exc))
        return {"status": "recording started"}

    async def _stop_recording(self, message: dict[str, Any]) -> dict[str, Any]:
        session = self._session
        if session is None:
            return _error("NotRecording", "記録中ではありません。")
        try:
            steps = await self._recorder.stop(session)
        except NotRecordingError as exc:
            return _error("NotRecording", str(exc))
        finally:
            self._session = None
        return {"steps": macro_to_list(steps)}

    # -------------------------------------------------------------------
    # 再生
    # -------------------------------------------------------------------

    async def _run_macro(self, message: dict[str, Any]) -> dict[str, Any]:
        if self.is_replaying:
            return _error("ReplayInProgress", "別のマクロを再生中です。")

        raw_steps = message.get("steps")
        if not isinstance(raw_steps, list):
            return _error("InvalidMacro", "steps はステップのリストである必要があります。")
        try:
            steps = parse_macro(raw_steps)
        except (PydanticValidationError, ValueError) as exc:
            return _error("InvalidMacro", f"マクロの形式が不正です: {exc}")

        self._cancel = CancelToken()
        self._last_result = None
        self._replay_task = asyncio.ensure_future(self._replay(steps, self._cancel))
        return {"status": "macro running"}

    async def _replay(self, steps: list, cancel: CancelToken) -> ReplayResult:
        result = await self._player.run(steps, cancel=cancel)
        self._last_result = result
        if self._on_replay_finished is not None:
            self._on_replay_finished(result.to_dict())
        return result

    async def _replay_status(self, message: dict[str, Any]) -> dict[str, Any]:
        if self.is_replaying:
            session = self._player.session
            index = session.index + 1 if session is not None else 0
            return {"status": "running", "currentStep": index}
        if self._last_result is not None:
            return self._last_result.to_dict()
        return {"status": "idle"}

    async def _cancel_macro(self, message: dict[str, Any]) -> dict[str, Any]:
        if not self.is_replaying or self._cancel is None:
            return _error("NotRunning", "再生中のマクロはありません。")
        self._cancel.cancel()
        return {"status": "cancelling"}
