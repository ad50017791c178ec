"""
EventRecorder — ユーザー操作の記録エンジン

キャプチャソース（インメモリドキュメントまたはライブページ）から
click / input / change イベントを受け取り、マクロのステップに変換して
記録セッションのバッファに蓄積する。

状態遷移: idle —start()→ recording —stop()→ idle

変換ルール:
  - click: インジケーター以外の要素 → ClickStep（checkbox / radio は change 側で記録）
  - input: 編集可能な入力欄 → TypeStep（同じセレクタの既存 TypeStep を除去してから追加）
  - change: select → SelectStep、checkbox / radio → checked 付き ClickStep
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from ..core.selector import SelectorResolver
from ..dsl.schema import SECRET_PLACEHOLDER, ClickStep, SelectStep, Step, TypeStep

logger = logging.getLogger(__name__)

# 記録中に表示するインジケーターの id（クリックは記録しない）
INDICATOR_ID = "macromate-indicator"

# キャプチャ対象のイベント種別
CAPTURE_EVENT_TYPES = ("click", "input", "change")

# 記録したクリックをハイライトする時間（ミリ秒）
CLICK_FLASH_MS = 1000

# ClickStep に残す表示テキストの最大長
_TEXT_LIMIT = 50

_TOGGLE_TYPES = frozenset({"checkbox", "radio"})

# テキスト入力として扱わない input の type
_NON_TEXT_INPUT_TYPES = frozenset({
    "button", "checkbox", "color", "file", "hidden", "image",
    "radio", "range", "reset", "submit",
})


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class AlreadyRecordingError(RuntimeError):
    """記録中に再度 start() が呼ばれた場合のエラー。"""


class NotRecordingError(RuntimeError):
    """記録中でないセッションに stop() が呼ばれた場合のエラー。"""


# ---------------------------------------------------------------------------
# キャプチャソースとイベント
# ---------------------------------------------------------------------------

@dataclass
class CapturedEvent:
    """キャプチャソースからレコーダーへ渡すイベント。

    Attributes:
        type: イベント種別（click / input / change）
        target: イベント対象の要素（ElementLike に加えて input_type,
            value, checked, text を持つ）
    """

    type: str
    target: Any


class CaptureSource(Protocol):
    """ドキュメント全体にキャプチャフェーズのリスナーを設置する側の機能。"""

    async def install(self, handler: Callable[[CapturedEvent], None]) -> None: ...

    async def uninstall(self) -> None: ...


class RecorderStatus(enum.Enum):
    """記録セッションの状態。"""

    IDLE = "idle"
    RECORDING = "recording"


# ---------------------------------------------------------------------------
# 記録セッション
# ---------------------------------------------------------------------------

class RecordingSession:
    """1 回の記録のバッファと状態を保持するハンドル。

    start() が返し、stop() に渡す。バッファはレコーダーの
    イベントハンドラからのみ変更される。
    """

    def __init__(self, source: CaptureSource, started_at: float) -> None:
        self.status = RecorderStatus.RECORDING
        self.source = source
        self.started_at = started_at
        self._buffer: list[Step] = []

    @property
    def steps(self) -> list[Step]:
        """現在までに記録されたステップのコピー。"""
        return list(self._buffer)

    @property
    def is_recording(self) -> bool:
        return self.status is RecorderStatus.RECORDING

    def append(self, step: Step) -> None:
        self._buffer.append(step)

    def discard_typed(self, selector: str) -> None:
        """同じセレクタの TypeStep を取り除く。"""
        self._buffer = [
            s for s in self._buffer
            if not (isinstance(s, TypeStep) and s.selector == selector)
        ]

    def finish(self) -> list[Step]:
        """状態を idle にしてバッファを引き渡す。"""
        steps = self._buffer
        self._buffer = []
        self.status = RecorderStatus.IDLE
        return steps


# ---------------------------------------------------------------------------
# EventRecorder 本体
# ---------------------------------------------------------------------------

class EventRecorder:
    """ユーザー操作の記録エンジン。

    使用例::

        recorder = EventRecorder()
        session = await recorder.start(DocumentCaptureSource(document))
        ...  # ユーザー操作
        steps = await recorder.stop(session)
    """

    def __init__(
        self,
        resolver: Optional[SelectorResolver] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """EventRecorder を初期化する。

        Args:
            resolver: セレクタリゾルバ（省略時は既定設定）
            clock: 秒単位の単調増加時計（タイムスタンプ算出用）
        """
        self._resolver = resolver or SelectorResolver()
        self._clock = clock
        self._session: Optional[RecordingSession] = None

    @property
    def status(self) -> RecorderStatus:
        if self._session is None:
            return RecorderStatus.IDLE
        return self._session.status

    @property
    def session(self) -> Optional[RecordingSession]:
        """記録中のセッション。idle なら None。"""
        return self._session

    # -------------------------------------------------------------------
    # ライフサイクル
    # -------------------------------------------------------------------

    async def start(self, source: CaptureSource) -> RecordingSession:
        """記録を開始し、セッションのハンドルを返す。

        Raises:
            AlreadyRecordingError: 既に記録中の場合
        """
        if self._session is not None:
            raise AlreadyRecordingError(
                "既に記録中です。先に stop() で記録を終了してください。"
            )

        session = RecordingSession(source, self._clock())
        self._session = session
        try:
            await source.install(self.handle_event)
        except Exception:
            self._session = None
            raise

        logger.info("記録を開始しました")
        return session

    async def stop(self, session: RecordingSession) -> list[Step]:
        """記録を終了し、記録したステップを記録順に返す。

        Raises:
            NotRecordingError: session が記録中のセッションでない場合
        """
        if session is not self._session or not session.is_recording:
            raise NotRecordingError("指定されたセッションは記録中ではありません。")

        self._session = None
        steps = session.finish()
        try:
            await session.source.uninstall()
        except Exception as exc:
            # 記録済みのステップは解除の失敗に関係なく返す
            logger.warning("キャプチャリスナーの解除に失敗しました: %s", exc)
        logger.info("記録を終了しました（%d ステップ）", len(steps))
        return steps

    # -------------------------------------------------------------------
    # イベント変換
    # -------------------------------------------------------------------

    def handle_event(self, event: CapturedEvent) -> None:
        """キャプチャしたイベントをステップに変換してバッファに追加する。"""
        session = self._session
        if session is None or not session.is_recording:
            return

        if event.type == "click":
            self._on_click(session, event.target)
        elif event.type == "input":
            self._on_input(session, event.target)
        elif event.type == "change":
            self._on_change(session, event.target)

    def _on_click(self, session: RecordingSession, target: Any) -> None:
        if _in_indicator(target):
            logger.warning("記録インジケーターへのクリックは記録しません")
            return
        # checkbox / radio は change で記録する
        if target.input_type in _TOGGLE_TYPES:
            return

        step = ClickStep(
            selector=self._resolver.resolve(target),
            tag=target.tag_name,
            text=(target.text or "")[:_TEXT_LIMIT],
            timestamp=self._timestamp(session),
        )
        session.append(step)
        logger.debug("click を記録: %s", step.selector)

    def _on_input(self, session: RecordingSession, target: Any) -> None:
        if not _is_text_field(target):
            return

        selector = self._resolver.resolve(target)
        is_secret = target.input_type == "password"

        # 連続したキー入力は最新の値 1 ステップにまとめる
        session.discard_typed(selector)
        step = TypeStep(
            selector=selector,
            text=SECRET_PLACEHOLDER if is_secret else target.value,
            isSecret=is_secret,
            timestamp=self._timestamp(session),
        )
        session.append(step)
        logger.debug("入力を記録: %s", selector)

    def _on_change(self, session: RecordingSession, target: Any) -> None:
        if target.tag_name == "select":
            step: Step = SelectStep(
                selector=self._resolver.resolve(target),
                value=target.value,
                timestamp=self._timestamp(session),
            )
            logger.debug("選択を記録: %s", step.selector)
        elif target.input_type in _TOGGLE_TYPES:
            step = ClickStep(
                selector=self._resolver.resolve(target),
                tag=target.tag_name,
                checked=bool(target.checked),
                timestamp=self._timestamp(session),
            )
            logger.debug("チェック状態を記録: %s", step.selector)
        else:
            return
        session.append(step)

    def _timestamp(self, session: RecordingSession) -> int:
        elapsed = self._clock() - session.started_at
        return max(0, int(elapsed * 1000))


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def _in_indicator(target: Any) -> bool:
    """記録インジケーター自身またはその内部の要素か。"""
    current = target
    while current is not None:
        if current.id == INDICATOR_ID:
            return True
        current = current.parent_element
    return False


def _is_text_field(target: Any) -> bool:
    if target.tag_name == "textarea":
        return True
    return target.tag_name == "input" and target.input_type not in _NON_TEXT_INPUT_TYPES
