"""
インメモリドキュメント用のキャプチャソースと再生先

Document をレコーダー（DocumentCaptureSource）と再生エンジン
（DocumentHost）に接続する。インジケーターやハイライトは
Document 上の要素・スタイルとして表現する。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from ..core.replay import RUNNING_INDICATOR_ID
from ..recorder.recorder import CAPTURE_EVENT_TYPES, CLICK_FLASH_MS, INDICATOR_ID, CapturedEvent
from .document import Document, Element, Event

logger = logging.getLogger(__name__)

_HIGHLIGHT_STYLE = {
    "outline": "3px solid #6b46c1",
    "background-color": "rgba(107, 70, 193, 0.1)",
}


def _show_badge(document: Document, indicator_id: str, label: str) -> None:
    body = document.body
    if body is None or document.get_element_by_id(indicator_id) is not None:
        return
    badge = document.create_element("div", id=indicator_id)
    badge.tag.string = label
    body.append_child(badge)


def _hide_badge(document: Document, indicator_id: str) -> None:
    badge = document.get_element_by_id(indicator_id)
    if badge is not None:
        badge.remove()


def _apply_highlight(element: Element) -> Callable[[], None]:
    """ハイライト用のスタイルを適用し、元に戻す関数を返す。"""
    original = {key: element.style.get(key) for key in _HIGHLIGHT_STYLE}
    element.style.update(_HIGHLIGHT_STYLE)

    def _restore() -> None:
        for key, value in original.items():
            if value is None:
                element.style.pop(key, None)
            else:
                element.style[key] = value

    return _restore


# ---------------------------------------------------------------------------
# キャプチャソース
# ---------------------------------------------------------------------------

class DocumentCaptureSource:
    """Document 全体にキャプチャフェーズのリスナーを設置する。

    記録中にクリックされた要素は短時間ハイライトする。

    Attributes:
        flashed: 記録中にハイライトした要素（クリック順）
    """

    def __init__(self, document: Document) -> None:
        self._document = document
        self._handler: Optional[Callable[[CapturedEvent], None]] = None
        self._restores: list[Callable[[], None]] = []
        self.flashed: list[Element] = []

    async def install(self, handler: Callable[[CapturedEvent], None]) -> None:
        self._handler = handler
        for event_type in CAPTURE_EVENT_TYPES:
            self._document.add_event_listener(event_type, self._listener, capture=True)
        _show_badge(self._document, INDICATOR_ID, "Recording...")
        logger.debug("キャプチャリスナーを設置しました")

    async def uninstall(self) -> None:
        for event_type in CAPTURE_EVENT_TYPES:
            self._document.remove_event_listener(event_type, self._listener, capture=True)
        _hide_badge(self._document, INDICATOR_ID)
        self._handler = None
        # 残っているハイライトをすべて戻す
        restores, self._restores = self._restores, []
        for restore in reversed(restores):
            restore()

    def _listener(self, event: Event) -> None:
        target = event.target
        if self._handler is None or target is None:
            return
        self._handler(CapturedEvent(type=event.type, target=target))
        if event.type == "click" and not self._in_indicator(target):
            self._flash(target)

    def _in_indicator(self, element: Element) -> bool:
        badge = self._document.get_element_by_id(INDICATOR_ID)
        return badge is not None and badge.contains(element)

    def _flash(self, element: Element) -> None:
        restore = _apply_highlight(element)
        self._restores.append(restore)
        self.flashed.append(element)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # イベントループ外で配送されたクリックは uninstall で戻す
            return
        loop.call_later(CLICK_FLASH_MS / 1000, restore)


# ---------------------------------------------------------------------------
# 再生先
# ---------------------------------------------------------------------------

class DocumentHost:
    """Document に対してステップを再生する ReplayHost。

    Attributes:
        scrolled: scroll_into_view() された要素（呼び出し順）
        highlighted: ハイライトされた要素（呼び出し順）
    """

    def __init__(self, document: Document) -> None:
        self.document = document
        self.scrolled: list[Element] = []
        self.highlighted: list[Element] = []

    async def query(self, selector: str) -> Optional[Element]:
        return self.document.query_selector(selector)

    async def scroll_into_view(self, element: Element) -> None:
        self.scrolled.append(element)

    async def highlight(self, element: Element, duration_ms: int) -> None:
        restore = _apply_highlight(element)
        self.highlighted.append(element)
        asyncio.get_running_loop().call_later(duration_ms / 1000, restore)

    async def click(self, element: Element) -> None:
        element.click()

    async def focus(self, element: Element) -> None:
        element.focus()

    async def set_value(self, element: Element, value: str) -> None:
        element.value = value

    async def emit(self, element: Element, event_type: str) -> None:
        element.dispatch_event(Event(event_type, bubbles=True))

    async def show_indicator(self, indicator_id: str, label: str) -> None:
        _show_badge(self.document, indicator_id, label)

    async def hide_indicator(self, indicator_id: str) -> None:
        _hide_badge(self.document, indicator_id)
