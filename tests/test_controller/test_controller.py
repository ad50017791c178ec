"""
MacroController テスト — 外部コントローラーとのメッセージ境界のテスト

インメモリドキュメントに接続したコントローラーに要求メッセージを送り、
応答の形式、エラーコード、非同期再生の完了通知を検証する。
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from macromate.controller import MacroController
from macromate.core.replay import MacroPlayer, ReplayConfig
from macromate.dom.document import Document
from macromate.dom.host import DocumentCaptureSource, DocumentHost
from macromate.recorder.recorder import EventRecorder


# ---------------------------------------------------------------------------
# フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def finished() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def controller(
    form_document: Document, fast_config: ReplayConfig, finished: list[dict[str, Any]],
) -> MacroController:
    return MacroController(
        EventRecorder(),
        DocumentCaptureSource(form_document),
        MacroPlayer(DocumentHost(form_document), fast_config),
        on_replay_finished=finished.append,
    )


LONG_WAIT = [{"kind": "wait", "timeoutMs": 60_000}, {"kind": "click", "selector": "#go"}]


class _DetachFailingSource(DocumentCaptureSource):
    """遷移直後のページのように uninstall が失敗するキャプチャソース。"""

    async def uninstall(self) -> None:
        await super().uninstall()
        raise RuntimeError("Execution context was destroyed")


# ---------------------------------------------------------------------------
# ルーティング
# ---------------------------------------------------------------------------

class TestRouting:
    """アクションの振り分けテスト。"""

    def test_unknown_action(self, controller: MacroController) -> None:
        response = asyncio.run(controller.handle({"action": "dance"}))
        assert response["code"] == "UnknownAction"
        assert "error" in response

    def test_missing_action(self, controller: MacroController) -> None:
        response = asyncio.run(controller.handle({}))
        assert response["code"] == "UnknownAction"


# ---------------------------------------------------------------------------
# 記録
# ---------------------------------------------------------------------------

class TestRecordingMessages:
    """startRecording / stopRecording のテスト。"""

    def test_record_click(self, controller: MacroController, form_document: Document) -> None:
        async def _scenario() -> dict[str, Any]:
            started = await controller.handle({"action": "startRecording"})
            assert started == {"status": "recording started"}
            form_document.get_element_by_id("go").click()
            return await controller.handle({"action": "stopRecording"})

        response = asyncio.run(_scenario())

        assert len(response["steps"]) == 1
        assert response["steps"][0]["kind"] == "click"
        assert response["steps"][0]["selector"] == "#go"

    def test_start_twice(self, controller: MacroController) -> None:
        async def _scenario() -> dict[str, Any]:
            await controller.handle({"action": "startRecording"})
            return await controller.handle({"action": "startRecording"})

        assert asyncio.run(_scenario())["code"] == "AlreadyRecording"

    def test_stop_without_start(self, controller: MacroController) -> None:
        response = asyncio.run(controller.handle({"action": "stopRecording"}))
        assert response["code"] == "NotRecording"

    def test_stop_twice(self, controller: MacroController) -> None:
        async def _scenario() -> dict[str, Any]:
            await controller.handle({"action": "startRecording"})
            await controller.handle({"action": "stopRecording"})
            return await controller.handle({"action": "stopRecording"})

        assert asyncio.run(_scenario())["code"] == "NotRecording"

    def test_steps_kept_when_uninstall_fails(
        self, form_document: Document, fast_config: ReplayConfig,
    ) -> None:
        """リスナー解除が失敗しても記録済みのステップが返ること。"""
        controller = MacroController(
            EventRecorder(),
            _DetachFailingSource(form_document),
            MacroPlayer(DocumentHost(form_document), fast_config),
        )

        async def _scenario() -> tuple[dict[str, Any], dict[str, Any]]:
            await controller.handle({"action": "startRecording"})
            form_document.get_element_by_id("go").click()
            first = await controller.handle({"action": "stopRecording"})
            second = await controller.handle({"action": "stopRecording"})
            return first, second

        first, second = asyncio.run(_scenario())
        assert [s["selector"] for s in first["steps"]] == ["#go"]
        assert second["code"] == "NotRecording"


# ---------------------------------------------------------------------------
# 再生
# ---------------------------------------------------------------------------

class TestReplayMessages:
    """runMacro / replayStatus / cancelMacro のテスト。"""

    def test_run_macro_completes_and_notifies(
        self, controller: MacroController, form_document: Document, finished: list,
    ) -> None:
        """runMacro は即座に応答し、再生終了時に結果が通知されること。"""
        async def _scenario() -> tuple[dict, dict]:
            response = await controller.handle({
                "action": "runMacro",
                "steps": [
                    {"kind": "type", "selector": '[name="qty"]', "text": "42"},
                    {"kind": "click", "selector": "#go"},
                ],
            })
            await controller.replay_task
            status = await controller.handle({"action": "replayStatus"})
            return response, status

        response, status = asyncio.run(_scenario())

        assert response == {"status": "macro running"}
        assert status["status"] == "completed"
        assert status["stepsRun"] == 2
        assert len(finished) == 1
        assert finished[0]["status"] == "completed"
        assert form_document.query_selector('[name="qty"]').value == "42"

    def test_aborted_run_reported(self, controller: MacroController, finished: list) -> None:
        async def _scenario() -> None:
            await controller.handle({
                "action": "runMacro",
                "steps": [{"kind": "click", "selector": "#missing"}],
            })
            await controller.replay_task

        asyncio.run(_scenario())

        assert finished[0]["status"] == "aborted"
        assert finished[0]["failedIndex"] == 1
        assert finished[0]["errorType"] == "ElementNotFoundError"

    def test_invalid_steps(self, controller: MacroController) -> None:
        response = asyncio.run(controller.handle({"action": "runMacro", "steps": "nope"}))
        assert response["code"] == "InvalidMacro"

    def test_invalid_step_fields(self, controller: MacroController) -> None:
        response = asyncio.run(controller.handle({
            "action": "runMacro",
            "steps": [{"kind": "click"}],
        }))
        assert response["code"] == "InvalidMacro"
        assert controller.replay_task is None

    def test_status_idle(self, controller: MacroController) -> None:
        assert asyncio.run(controller.handle({"action": "replayStatus"})) == {"status": "idle"}

    def test_second_run_rejected_and_cancel(
        self, controller: MacroController, form_document: Document, finished: list,
    ) -> None:
        """再生中の runMacro は ReplayInProgress、cancelMacro で中断されること。"""
        async def _scenario() -> dict[str, Any]:
            await controller.handle({"action": "runMacro", "steps": LONG_WAIT})
            await asyncio.sleep(0.05)
            responses = {
                "status": await controller.handle({"action": "replayStatus"}),
                "second": await controller.handle({"action": "runMacro", "steps": LONG_WAIT}),
                "cancel": await controller.handle({"action": "cancelMacro"}),
            }
            await asyncio.wait_for(controller.replay_task, timeout=5)
            responses["final"] = await controller.handle({"action": "replayStatus"})
            return responses

        responses = asyncio.run(_scenario())

        assert responses["status"] == {"status": "running", "currentStep": 1}
        assert responses["second"]["code"] == "ReplayInProgress"
        assert responses["cancel"] == {"status": "cancelling"}
        assert responses["final"]["status"] == "aborted"
        assert responses["final"]["errorType"] == "ReplayCancelledError"
        assert len(finished) == 1

    def test_cancel_when_idle(self, controller: MacroController) -> None:
        response = asyncio.run(controller.handle({"action": "cancelMacro"}))
        assert response["code"] == "NotRunning"

    def test_run_again_after_finish(self, controller: MacroController, finished: list) -> None:
        async def _scenario() -> None:
            for _ in range(2):
                await controller.handle({
                    "action": "runMacro",
                    "steps": [{"kind": "click", "selector": "#go"}],
                })
                await controller.replay_task

        asyncio.run(_scenario())
        assert [r["status"] for r in finished] == ["completed", "completed"]
