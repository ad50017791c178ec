"""
PageCaptureSource — Playwright ページからのイベントキャプチャ

ページに JavaScript を注入して click / input / change をキャプチャフェーズで
受け取り、expose_function 経由で Python 側に送る。受け取った要素情報は
NodeSnapshot に変換し、インメモリの Element と同じ形でレコーダーに渡す。

ページ遷移で注入スクリプトが失われるため、記録中は load のたびに再注入する。
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..recorder.recorder import INDICATOR_ID, CapturedEvent

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

# 注入スクリプトのパス
_INJECTED_JS_PATH = Path(__file__).parent / "injected.js"

# ページ側から呼び出す関数名（injected.js と一致させる）
BINDING_NAME = "__macromate_on_event"


# ---------------------------------------------------------------------------
# 要素スナップショット
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class SnapshotDocument:
    """イベント発生時点のドキュメント情報。

    クラスセレクタの一致件数はページ側で算出済みのものを返す。
    """

    counts: dict[str, int] = field(default_factory=dict)
    body: Optional[NodeSnapshot] = None

    def count_matches(self, selector: str) -> int:
        return self.counts.get(selector, 0)


@dataclass(eq=False)
class NodeSnapshot:
    """ページ側で採取した要素の情報。"""

    tag_name: str
    owner_document: SnapshotDocument
    id: str = ""
    name: str = ""
    class_list: list[str] = field(default_factory=list)
    ordinal: int = 1
    parent_element: Optional[NodeSnapshot] = None
    input_type: str = ""
    value: str = ""
    checked: bool = False
    text: str = ""

    def nth_of_type(self) -> int:
        return self.ordinal


def snapshot_from_payload(data: dict[str, Any]) -> NodeSnapshot:
    """injected.js が送るペイロードから対象要素のスナップショットを組み立てる。

    Args:
        data: {"target": {...}, "ancestors": [...], "counts": {...}}

    Returns:
        祖先を parent_element で辿れる対象要素のスナップショット
    """
    document = SnapshotDocument(counts=dict(data.get("counts") or {}))

    def _node(info: dict[str, Any]) -> NodeSnapshot:
        return NodeSnapshot(
            tag_name=str(info.get("tag", "")).lower(),
            owner_document=document,
            id=info.get("id") or "",
            name=info.get("name") or "",
            class_list=list(info.get("classes") or []),
            ordinal=int(info.get("ordinal") or 1),
        )

    # 祖先は近い順に並んでいるので、遠い側から親子関係を張る
    parent: Optional[NodeSnapshot] = None
    for info in reversed(data.get("ancestors") or []):
        node = _node(info)
        node.parent_element = parent
        parent = node

    target_info = data.get("target") or {}
    target = _node(target_info)
    target.parent_element = parent
    target.input_type = target_info.get("inputType") or ""
    target.value = target_info.get("value") or ""
    target.checked = bool(target_info.get("checked"))
    target.text = target_info.get("text") or ""
    if target_info.get("isBody"):
        document.body = target
    return target


# ---------------------------------------------------------------------------
# PageCaptureSource 本体
# ---------------------------------------------------------------------------

class PageCaptureSource:
    """Playwright の Page を対象とするキャプチャソース。"""

    def __init__(self, page: Page) -> None:
        self._page = page
        self._script = _INJECTED_JS_PATH.read_text(encoding="utf-8")
        self._handler: Optional[Callable[[CapturedEvent], None]] = None
        self._exposed = False

    async def install(self, handler: Callable[[CapturedEvent], None]) -> None:
        """ページにリスナーを設置し、記録インジケーターを表示する。"""
        self._handler = handler
        if not self._exposed:
            # expose_function は同じページに 2 回登録できない
            await self._page.expose_function(BINDING_NAME, self._on_payload)
            self._exposed = True
        self._page.on("load", self._on_load)
        await self._inject()

    async def uninstall(self) -> None:
        """リスナーとインジケーターを取り除く。ページが閉じていれば何もしない。"""
        self._handler = None
        self._page.remove_listener("load", self._on_load)
        if self._page.is_closed():
            return
        try:
            await self._page.evaluate(
                "(id) => window.__macromateCapture && window.__macromateCapture.uninstall(id)",
                INDICATOR_ID,
            )
        except Exception as exc:
            # 遷移中のページではスクリプトも一緒に破棄されている
            logger.debug("リスナー解除をスキップ: %s", exc)

    async def _on_load(self, page: Any = None) -> None:
        await self._inject()

    async def _inject(self) -> None:
        try:
            await self._page.evaluate(self._script)
            await self._page.evaluate(
                "([id, label]) => window.__macromateCapture.showIndicator(id, label)",
                [INDICATOR_ID, "Recording..."],
            )
        except Exception as exc:
            # 遷移中のページには注入できない。次の load で再注入する
            logger.debug("スクリプト注入をスキップ: %s", exc)

    def _on_payload(self, payload_json: str) -> None:
        """ページ側から送信されたイベント情報を処理する。"""
        if self._handler is None:
            return
        try:
            data = json.loads(payload_json)
        except json.JSONDecodeError:
            logger.warning("不正なイベントデータ: %s", payload_json)
            return

        target = snapshot_from_payload(data)
        self._handler(CapturedEvent(type=str(data.get("type", "")), target=target))
