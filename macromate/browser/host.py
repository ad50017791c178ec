"""
PlaywrightHost — Playwright ページに対する再生先

MacroPlayer が必要とする機能（検索・スクロール・ハイライト・クリック・
値の設定・通知イベントの発火）を ElementHandle の操作として実装する。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Page

logger = logging.getLogger(__name__)

_SCROLL_JS = "(el) => el.scrollIntoView({ behavior: 'smooth', block: 'center' })"

_HIGHLIGHT_JS = """
([el, duration]) => {
  const outline = el.style.outline;
  const background = el.style.backgroundColor;
  el.style.outline = '3px solid #6b46c1';
  el.style.backgroundColor = 'rgba(107, 70, 193, 0.1)';
  setTimeout(() => {
    el.style.outline = outline;
    el.style.backgroundColor = background;
  }, duration);
}
"""

_SET_VALUE_JS = "([el, value]) => { el.value = value; }"

_EMIT_JS = "([el, type]) => el.dispatchEvent(new Event(type, { bubbles: true }))"

_SHOW_INDICATOR_JS = """
([id, label]) => {
  if (!document.body || document.getElementById(id)) return;
  const badge = document.createElement('div');
  badge.id = id;
  badge.textContent = label;
  badge.style.cssText =
    'position:fixed;top:20px;right:20px;z-index:999999;padding:12px 20px;' +
    'border-radius:25px;background:#6b46c1;color:#fff;font:bold 14px sans-serif;';
  document.body.appendChild(badge);
}
"""

_HIDE_INDICATOR_JS = "(id) => { const el = document.getElementById(id); if (el) el.remove(); }"


class PlaywrightHost:
    """Playwright の Page に対してステップを再生する ReplayHost。"""

    def __init__(self, page: Page) -> None:
        self._page = page

    async def query(self, selector: str) -> Optional[ElementHandle]:
        return await self._page.query_selector(selector)

    async def scroll_into_view(self, element: ElementHandle) -> None:
        await element.evaluate(_SCROLL_JS)

    async def highlight(self, element: ElementHandle, duration_ms: int) -> None:
        await self._evaluate_cosmetic(_HIGHLIGHT_JS, [element, duration_ms])

    async def click(self, element: ElementHandle) -> None:
        await element.click()

    async def focus(self, element: ElementHandle) -> None:
        await element.focus()

    async def set_value(self, element: ElementHandle, value: str) -> None:
        await self._page.evaluate(_SET_VALUE_JS, [element, value])

    async def emit(self, element: ElementHandle, event_type: str) -> None:
        await self._page.evaluate(_EMIT_JS, [element, event_type])

    async def show_indicator(self, indicator_id: str, label: str) -> None:
        await self._evaluate_cosmetic(_SHOW_INDICATOR_JS, [indicator_id, label])

    async def hide_indicator(self, indicator_id: str) -> None:
        if self._page.is_closed():
            return
        await self._evaluate_cosmetic(_HIDE_INDICATOR_JS, indicator_id)

    async def _evaluate_cosmetic(self, script: str, arg: object) -> None:
        # インジケーター・ハイライトは見た目だけなので失敗しても再生は続ける
        try:
            await self._page.evaluate(script, arg)
        except Exception as exc:
            logger.debug("表示の更新に失敗しました: %s", exc)
