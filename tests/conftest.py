"""
テスト共通フィクスチャ

インメモリドキュメントの生成、ユーザー操作（キー入力・選択）の再現、
タイムスタンプ用の疑似時計など、全テストモジュールで共有する
フィクスチャを提供する。
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from macromate.core.replay import ReplayConfig
from macromate.dom.document import Document, Element, Event


FORM_HTML = """\
<html>
<body>
  <div id="app">
    <h1 class="title">Order</h1>
    <form>
      <input type="text" name="qty">
      <input type="password" name="pw">
      <input type="checkbox" name="agree">
      <select name="choice">
        <option value="opt1">One</option>
        <option value="opt2">Two</option>
      </select>
      <textarea class="note"></textarea>
    </form>
    <button id="go">Go</button>
  </div>
</body>
</html>
"""


class FakeClock:
    """秒単位で手動で進める単調増加時計。"""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def form_html() -> str:
    """レコーダー・再生エンジンのテストで使うフォームの HTML。"""
    return FORM_HTML


@pytest.fixture
def form_document() -> Document:
    """FORM_HTML から生成したドキュメント。"""
    return Document.from_html(FORM_HTML)


@pytest.fixture
def make_document() -> Callable[[str], Document]:
    """HTML 文字列からドキュメントを生成するファクトリ。"""
    return Document.from_html


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fast_config() -> ReplayConfig:
    """待機時間をすべて 0 にした再生設定。"""
    return ReplayConfig(settle_ms=0, step_delay_ms=0, default_wait_ms=0, highlight_ms=0)


@pytest.fixture
def type_text() -> Callable[[Element, str], None]:
    """1 文字ずつ入力して input イベントを発火する操作を再現する。"""

    def _type(element: Element, text: str) -> None:
        element.focus()
        for end in range(1, len(text) + 1):
            element.value = text[:end]
            element.dispatch_event(Event("input", bubbles=True))
        element.dispatch_event(Event("change", bubbles=True))

    return _type


@pytest.fixture
def select_option() -> Callable[[Element, str], None]:
    """select 要素の選択を変更して input / change を発火する操作を再現する。"""

    def _select(element: Element, value: str) -> None:
        element.value = value
        element.dispatch_event(Event("input", bubbles=True))
        element.dispatch_event(Event("change", bubbles=True))

    return _select


@pytest.fixture
def macro_yaml(tmp_path: Path) -> Path:
    """3 ステップのマクロファイル。"""
    path = tmp_path / "macro.yaml"
    path.write_text(
        "title: 注文マクロ\n"
        "url: http://localhost:3000/order\n"
        "steps:\n"
        "  - kind: type\n"
        "    selector: '[name=\"qty\"]'\n"
        "    text: '42'\n"
        "    timestamp: 0\n"
        "  - kind: select\n"
        "    selector: '[name=\"choice\"]'\n"
        "    value: opt2\n"
        "    timestamp: 900\n"
        "  - kind: click\n"
        "    selector: '#go'\n"
        "    tag: button\n"
        "    text: Go\n"
        "    timestamp: 1500\n",
        encoding="utf-8",
    )
    return path
