"""
MacroPlayer — マクロ再生エンジン

記録したステップを 1 つずつ記録順に再生する。要素の検索・スクロール・
ハイライト・クリック・値の設定・通知イベントの発火は ReplayHost
（インメモリドキュメントまたは Playwright ページ）に委譲する。

主な機能:
  - ReplayConfig: 待機時間の設定
  - ReplaySession / ReplayResult: 再生中の状態と最終結果
  - CancelToken: ステップ間と各待機中に確認されるキャンセル要求
  - MacroPlayer: 逐次再生、要素が見つからない時点で残りを中断（fail-fast）

再生は元に戻さない。中断前に適用された操作はドキュメントに残る。
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Sequence

from ..dsl.schema import (
    SECRET_PLACEHOLDER,
    ClickStep,
    SelectStep,
    Step,
    TypeStep,
    WaitStep,
)

logger = logging.getLogger(__name__)

# 再生中に表示するインジケーターの id
RUNNING_INDICATOR_ID = "macromate-running-indicator"


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class ReplayError(Exception):
    """再生を中断させるエラーの基底クラス。

    Attributes:
        step_index: 失敗したステップの番号（1 始まり）
    """

    def __init__(self, step_index: int, message: str) -> None:
        super().__init__(message)
        self.step_index = step_index


class ElementNotFoundError(ReplayError):
    """ステップのセレクタに一致する要素がない場合のエラー。"""

    def __init__(self, step_index: int, selector: str) -> None:
        super().__init__(
            step_index,
            f"ステップ {step_index}: 要素が見つかりません: {selector}",
        )
        self.selector = selector


class StepExecutionError(ReplayError):
    """ステップの操作中に例外が発生した場合のエラー。元の例外は __cause__ に入る。"""

    def __init__(self, step_index: int, cause: BaseException) -> None:
        super().__init__(step_index, f"ステップ {step_index}: {cause}")


class ReplayCancelledError(ReplayError):
    """キャンセル要求により再生を中断した場合のエラー。"""

    def __init__(self, step_index: int) -> None:
        super().__init__(step_index, f"ステップ {step_index} の手前でキャンセルされました")


# ---------------------------------------------------------------------------
# 設定・状態・結果
# ---------------------------------------------------------------------------

@dataclass
class ReplayConfig:
    """再生時の待機設定。

    Attributes:
        settle_ms: スクロール後、操作前の待機（ミリ秒）
        step_delay_ms: ステップ間の待機（ミリ秒）
        default_wait_ms: timeoutMs のない wait ステップの待機（ミリ秒）
        highlight_ms: ハイライト表示時間（ミリ秒）
    """

    settle_ms: int = 200
    step_delay_ms: int = 500
    default_wait_ms: int = 1000
    highlight_ms: int = 1000


class ReplayStatus(enum.Enum):
    """再生セッションの状態。"""

    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class ReplaySession:
    """再生中の状態。再生ごとに生成され、永続化しない。

    Attributes:
        status: 現在の状態
        index: 実行中のステップ位置（0 始まり）
        last_error: 中断理由
    """

    status: ReplayStatus = ReplayStatus.RUNNING
    index: int = 0
    last_error: Optional[ReplayError] = None


@dataclass
class ReplayResult:
    """再生の最終結果。

    Attributes:
        status: COMPLETED または ABORTED
        steps_total: マクロのステップ数
        steps_run: 操作を最後まで終えたステップ数
        failed_index: 失敗したステップの番号（1 始まり、完了時は None）
        error: 中断理由
        duration_ms: 再生時間（ミリ秒）
    """

    status: ReplayStatus
    steps_total: int
    steps_run: int = 0
    failed_index: Optional[int] = None
    error: Optional[ReplayError] = None
    duration_ms: float = 0.0

    @property
    def completed(self) -> bool:
        return self.status is ReplayStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """コントローラーへ返す JSON 互換の辞書に変換する。"""
        data: dict[str, Any] = {
            "status": self.status.value,
            "stepsTotal": self.steps_total,
            "stepsRun": self.steps_run,
            "durationMs": round(self.duration_ms, 1),
        }
        if self.failed_index is not None:
            data["failedIndex"] = self.failed_index
        if self.error is not None:
            data["error"] = str(self.error)
            data["errorType"] = type(self.error).__name__
        return data


class CancelToken:
    """再生のキャンセル要求。"""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


# ---------------------------------------------------------------------------
# 再生先の抽象
# ---------------------------------------------------------------------------

class ReplayHost(Protocol):
    """再生エンジンが必要とする実行環境の機能。

    要素は query() が返したオブジェクトをそのまま各メソッドに渡す。
    emit() はページ側のリスナーが受け取れる通知イベントを発火する。
    """

    async def query(self, selector: str) -> Optional[Any]: ...

    async def scroll_into_view(self, element: Any) -> None: ...

    async def highlight(self, element: Any, duration_ms: int) -> None: ...

    async def click(self, element: Any) -> None: ...

    async def focus(self, element: Any) -> None: ...

    async def set_value(self, element: Any, value: str) -> None: ...

    async def emit(self, element: Any, event_type: str) -> None: ...

    async def show_indicator(self, indicator_id: str, label: str) -> None: ...

    async def hide_indicator(self, indicator_id: str) -> None: ...


# ---------------------------------------------------------------------------
# MacroPlayer 本体
# ---------------------------------------------------------------------------

class MacroPlayer:
    """マクロ再生エンジン。

    使用例::

        player = MacroPlayer(DocumentHost(document))
        result = await player.run(steps)
    """

    def __init__(
        self,
        host: ReplayHost,
        config: Optional[ReplayConfig] = None,
        on_finished: Optional[Callable[[ReplayResult], None]] = None,
    ) -> None:
        """MacroPlayer を初期化する。

        Args:
            host: 再生先の実行環境
            config: 待機設定（省略時は既定値）
            on_finished: 再生終了時に結果を受け取るコールバック
        """
        self._host = host
        self._config = config or ReplayConfig()
        self._on_finished = on_finished
        self.session: Optional[ReplaySession] = None

    @property
    def config(self) -> ReplayConfig:
        return self._config

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    async def run(
        self, steps: Sequence[Step], cancel: Optional[CancelToken] = None,
    ) -> ReplayResult:
        """マクロを再生し、結果を返す。

        ステップは 1 つずつ順に実行し、並行実行はしない。
        要素が見つからない、操作が例外を送出する、またはキャンセルされた
        時点で残りのステップを実行せずに中断する。

        Args:
            steps: 再生するステップ（変更しない）
            cancel: キャンセル要求

        Returns:
            再生結果
        """
        session = ReplaySession()
        self.session = session
        result = ReplayResult(status=ReplayStatus.RUNNING, steps_total=len(steps))
        start_time = time.perf_counter()

        logger.info("マクロを再生します（%d ステップ）", len(steps))
        await self._host.show_indicator(RUNNING_INDICATOR_ID, "Running Macro...")

        try:
            for idx, step in enumerate(steps):
                session.index = idx
                step_number = idx + 1
                logger.info("ステップ %d/%d: %s", step_number, len(steps), step.kind)

                try:
                    if cancel is not None and cancel.cancelled:
                        raise ReplayCancelledError(step_number)
                    await self._execute_step(step_number, step, cancel)
                    result.steps_run += 1
                    if step_number < len(steps):
                        await self._pause(self._config.step_delay_ms, cancel, step_number + 1)
                except ReplayError as exc:
                    self._abort(session, result, exc)
                    break
                except Exception as exc:
                    error = StepExecutionError(step_number, exc)
                    error.__cause__ = exc
                    self._abort(session, result, error)
                    break
            else:
                session.status = ReplayStatus.COMPLETED
                result.status = ReplayStatus.COMPLETED
                logger.info("マクロの再生が完了しました")
        finally:
            await self._host.hide_indicator(RUNNING_INDICATOR_ID)

        result.duration_ms = (time.perf_counter() - start_time) * 1000
        if self._on_finished is not None:
            self._on_finished(result)
        return result

    # -------------------------------------------------------------------
    # ステップ実行
    # -------------------------------------------------------------------

    async def _execute_step(
        self, step_number: int, step: Step, cancel: Optional[CancelToken],
    ) -> None:
        if isinstance(step, WaitStep):
            timeout = step.timeoutMs if step.timeoutMs is not None else self._config.default_wait_ms
            await self._pause(timeout, cancel, step_number)
            return

        if not isinstance(step, (ClickStep, TypeStep, SelectStep)):
            logger.warning("未知のステップ種別のためスキップします: %s", step.kind)
            return

        element = await self._host.query(step.selector)
        if element is None:
            raise ElementNotFoundError(step_number, step.selector)

        await self._host.scroll_into_view(element)
        await self._pause(self._config.settle_ms, cancel, step_number)
        await self._host.highlight(element, self._config.highlight_ms)

        if isinstance(step, ClickStep):
            await self._host.click(element)
        elif isinstance(step, TypeStep):
            if step.isSecret:
                logger.warning(
                    "秘密入力は記録時にマスクされているため、マーカー %s を入力します: %s",
                    SECRET_PLACEHOLDER, step.selector,
                )
            await self._host.focus(element)
            await self._host.set_value(element, step.text)
            await self._host.emit(element, "input")
            await self._host.emit(element, "change")
        else:
            await self._host.set_value(element, step.value)
            await self._host.emit(element, "change")

    async def _pause(
        self, ms: int, cancel: Optional[CancelToken], step_number: int,
    ) -> None:
        """ms ミリ秒待機する。待機中にキャンセルされたら即座に中断する。"""
        if cancel is None:
            await asyncio.sleep(ms / 1000)
            return
        if cancel.cancelled:
            raise ReplayCancelledError(step_number)

        sleeper = asyncio.ensure_future(asyncio.sleep(ms / 1000))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()
        if cancel.cancelled:
            raise ReplayCancelledError(step_number)

    def _abort(self, session: ReplaySession, result: ReplayResult, error: ReplayError) -> None:
        session.status = ReplayStatus.ABORTED
        session.last_error = error
        result.status = ReplayStatus.ABORTED
        result.failed_index = error.step_index
        result.error = error
        logger.error("マクロの再生を中断しました: %s", error)
