"""
BrowserSession — 記録・再生対象のブラウザページ管理

Playwright を起動して 1 つのページを開き、記録・再生が終わるまで保持する。
CLI（record / run）と MCP サーバーの両方から使用する。

使用例::

    async with BrowserSession(headed=False) as browser:
        page = await browser.open("http://localhost:3000/")
        ...
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    """ブラウザセッションの状態。"""

    IDLE = "idle"
    ACTIVE = "active"
    CLOSED = "closed"


class BrowserSession:
    """Playwright ブラウザと対象ページの管理クラス。

    Attributes:
        headed: True でブラウザウィンドウを表示
        channel: ブラウザチャンネル（chromium / chrome / msedge）
        viewport: ビューポートサイズ（幅, 高さ）
    """

    def __init__(
        self,
        headed: bool = True,
        channel: str = "chromium",
        viewport: tuple[int, int] = (1280, 720),
    ) -> None:
        self.headed = headed
        self.channel = channel
        self.viewport = viewport
        self._state = SessionState.IDLE
        self._playwright: Optional[Any] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None

    async def __aenter__(self) -> BrowserSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def page(self) -> Optional[Page]:
        """開いているページ。未起動・終了後は None。"""
        return self._page if self._state is SessionState.ACTIVE else None

    async def open(self, url: str) -> Page:
        """ブラウザを起動して URL を開き、DOM の構築を待ってページを返す。

        Raises:
            RuntimeError: 既にページを開いている場合
        """
        if self._state is SessionState.ACTIVE:
            raise RuntimeError("既にページを開いています。先に close() を呼んでください。")

        from playwright.async_api import async_playwright

        logger.info("ブラウザを起動します (headed=%s, channel=%s)", self.headed, self.channel)
        self._playwright = await async_playwright().start()
        try:
            options: dict[str, Any] = {"headless": not self.headed}
            if self.channel != "chromium":
                options["channel"] = self.channel
            self._browser = await self._playwright.chromium.launch(**options)

            width, height = self.viewport
            context = await self._browser.new_context(viewport={"width": width, "height": height})
            page = await context.new_page()
            await page.goto(url)
            await page.wait_for_load_state("domcontentloaded")
        except Exception:
            logger.exception("ページを開けませんでした: %s", url)
            await self._shutdown()
            self._state = SessionState.IDLE
            raise

        self._page = page
        self._state = SessionState.ACTIVE
        logger.info("ページを開きました: %s", url)
        return page

    async def wait_closed(self) -> None:
        """ユーザーがページ（ブラウザウィンドウ）を閉じるまで待つ。"""
        page = self.page
        if page is None or page.is_closed():
            return
        await page.wait_for_event("close", timeout=0)

    async def close(self) -> None:
        """ブラウザを終了する。開いていなければ何もしない。"""
        if self._state is not SessionState.ACTIVE:
            return
        await self._shutdown()
        self._state = SessionState.CLOSED
        logger.info("ブラウザを終了しました")

    async def _shutdown(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._page = None
        self._playwright = None

        # ブラウザの終了に失敗しても Playwright のドライバは必ず停止する
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                logger.warning("ブラウザの終了中にエラーが発生しました: %s", exc)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:
                logger.warning("Playwright の停止中にエラーが発生しました: %s", exc)
