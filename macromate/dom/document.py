"""
インメモリドキュメント — BeautifulSoup ベースの DOM とイベントモデル

HTML を BeautifulSoup（lxml パーサー）で読み込み、ブラウザの DOM に近い
操作（CSS セレクタ検索、イベント配送、value / checked 状態、フォーカス）を
Python だけで再現する。レコーダーと再生エンジンのテスト、および
静的 HTML に対するオフライン再生で使用する。

主な機能:
  - Document: soupsieve による querySelector / querySelectorAll
  - Element: タグ・属性・フォーム状態・兄弟内の序数
  - Event: capture → target → bubble の 3 フェーズ配送
  - click(): checkbox / radio の切り替えと input / change の発火
"""

from __future__ import annotations

from typing import Callable, Iterator, Optional

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

Listener = Callable[["Event"], None]

# クリックで状態が切り替わる input の type
_TOGGLE_TYPES = ("checkbox", "radio")


class DomSyntaxError(ValueError):
    """CSS セレクタの構文が不正な場合のエラー。"""


# ---------------------------------------------------------------------------
# イベント
# ---------------------------------------------------------------------------

class Event:
    """DOM イベント。

    Attributes:
        type: イベント種別（click, input, change 等）
        bubbles: バブリングするか
        target: 配送先の要素
        current_target: 現在リスナーを実行中のノード
        default_prevented: prevent_default() が呼ばれたか
    """

    CAPTURING_PHASE = 1
    AT_TARGET = 2
    BUBBLING_PHASE = 3

    def __init__(self, type: str, bubbles: bool = True) -> None:
        self.type = type
        self.bubbles = bubbles
        self.target: Optional[Element] = None
        self.current_target: Optional[EventTarget] = None
        self.event_phase = 0
        self.default_prevented = False
        self._propagation_stopped = False

    def stop_propagation(self) -> None:
        self._propagation_stopped = True

    def prevent_default(self) -> None:
        self.default_prevented = True

    def __repr__(self) -> str:
        return f"Event(type={self.type!r}, target={self.target!r})"


class EventTarget:
    """リスナー登録を持つノードの共通部分。"""

    def __init__(self) -> None:
        self._listeners: list[tuple[str, Listener, bool]] = []

    def add_event_listener(self, type: str, listener: Listener, capture: bool = False) -> None:
        """リスナーを登録する。同じ組み合わせの重複登録は無視する。"""
        entry = (type, listener, capture)
        if entry not in self._listeners:
            self._listeners.append(entry)

    def remove_event_listener(self, type: str, listener: Listener, capture: bool = False) -> None:
        """登録済みのリスナーを解除する。未登録なら何もしない。"""
        entry = (type, listener, capture)
        if entry in self._listeners:
            self._listeners.remove(entry)

    def _invoke(self, event: Event, capture: Optional[bool]) -> None:
        # 配送中の登録・解除の影響を受けないようにコピーして回す
        for type_, listener, is_capture in list(self._listeners):
            if type_ != event.type:
                continue
            if capture is not None and is_capture != capture:
                continue
            event.current_target = self
            listener(event)


# ---------------------------------------------------------------------------
# 要素
# ---------------------------------------------------------------------------

class Element(EventTarget):
    """BeautifulSoup の Tag をラップした DOM 要素。

    同じ Tag に対しては Document が常に同じ Element を返すため、
    要素の同一性は `is` で比較できる。
    """

    def __init__(self, tag: Tag, document: Document) -> None:
        super().__init__()
        self._tag = tag
        self._document = document
        self._value: Optional[str] = None
        self._checked: Optional[bool] = None
        self.style: dict[str, str] = {}

    def __repr__(self) -> str:
        ident = f"#{self.id}" if self.id else ""
        return f"<Element {self.tag_name}{ident}>"

    # ----- 構造 -----

    @property
    def tag(self) -> Tag:
        return self._tag

    @property
    def tag_name(self) -> str:
        return self._tag.name.lower()

    @property
    def owner_document(self) -> Document:
        return self._document

    @property
    def parent_element(self) -> Optional[Element]:
        parent = self._tag.parent
        if not isinstance(parent, Tag) or isinstance(parent, BeautifulSoup):
            return None
        return self._document.wrap(parent)

    @property
    def children(self) -> list[Element]:
        return [self._document.wrap(child) for child in self._tag.find_all(recursive=False)]

    def nth_of_type(self) -> int:
        """同じタグ名の兄弟の中での 1 始まりの序数を返す。"""
        return len(self._tag.find_previous_siblings(self._tag.name)) + 1

    def ancestors(self) -> Iterator[Element]:
        """親から html 要素までの祖先を近い順に返す。"""
        current = self.parent_element
        while current is not None:
            yield current
            current = current.parent_element

    def contains(self, other: Element) -> bool:
        return other is self or any(a is self for a in other.ancestors())

    # ----- 属性 -----

    def get_attribute(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def set_attribute(self, name: str, value: str) -> None:
        self._tag[name] = value

    @property
    def id(self) -> str:
        return self.get_attribute("id") or ""

    @property
    def name(self) -> str:
        return self.get_attribute("name") or ""

    @property
    def class_list(self) -> list[str]:
        return (self.get_attribute("class") or "").split()

    @property
    def input_type(self) -> str:
        """input 要素の type（小文字）。input 以外は空文字列。"""
        if self.tag_name != "input":
            return ""
        return (self.get_attribute("type") or "text").strip().lower()

    @property
    def text(self) -> str:
        """空白を詰めた表示テキスト。"""
        return " ".join(self._tag.get_text(" ").split())

    # ----- フォーム状態 -----

    @property
    def value(self) -> str:
        if self._value is not None:
            return self._value
        if self.tag_name == "select":
            selected = self._selected_option()
            return _option_value(selected) if selected is not None else ""
        if self.tag_name == "textarea":
            return self._tag.get_text()
        if self.input_type in _TOGGLE_TYPES:
            return self.get_attribute("value") or "on"
        return self.get_attribute("value") or ""

    @value.setter
    def value(self, new_value: str) -> None:
        new_value = "" if new_value is None else str(new_value)
        if self.tag_name == "select":
            options = [_option_value(o) for o in self._tag.find_all("option")]
            # 一致する option がなければ未選択（空文字列）になる
            self._value = new_value if new_value in options else ""
            return
        self._value = new_value

    @property
    def checked(self) -> bool:
        if self._checked is not None:
            return self._checked
        return self._tag.has_attr("checked")

    @checked.setter
    def checked(self, new_value: bool) -> None:
        new_value = bool(new_value)
        if new_value and self.input_type == "radio" and self.name:
            # 同じ name のラジオは 1 つだけ選択状態になる
            for other in self._radio_group():
                if other is not self:
                    other._checked = False
        self._checked = new_value

    def _radio_group(self) -> list[Element]:
        """同じ name を持つラジオボタン（自身を含む）。"""
        return [
            radio for radio in self._document.query_selector_all('input[type="radio"]')
            if radio.name == self.name
        ]

    def _selected_option(self) -> Optional[Tag]:
        options = self._tag.find_all("option")
        for option in options:
            if option.has_attr("selected"):
                return option
        return options[0] if options else None

    # ----- 操作 -----

    def focus(self) -> None:
        self._document.active_element = self

    def click(self) -> None:
        """ブラウザのアクティベーション動作を再現する。

        checkbox / radio は click 配送前に状態を切り替え、
        キャンセルされなければ input と change を発火する。
        キャンセルされた場合は元の状態に戻す。
        """
        toggle = self.input_type in _TOGGLE_TYPES
        previous = self.checked
        previous_radio: Optional[Element] = None
        if self.input_type == "radio" and self.name:
            previous_radio = next((r for r in self._radio_group() if r.checked), None)
        if toggle:
            if self.input_type == "checkbox":
                self.checked = not previous
            else:
                self.checked = True

        event = Event("click", bubbles=True)
        self.dispatch_event(event)

        if not toggle:
            return
        if event.default_prevented:
            self._checked = previous
            if previous_radio is not None:
                previous_radio._checked = True
            return
        if self.checked != previous:
            self.dispatch_event(Event("input", bubbles=True))
            self.dispatch_event(Event("change", bubbles=True))

    def dispatch_event(self, event: Event) -> bool:
        """イベントを capture → target → bubble の順に配送する。

        Returns:
            prevent_default() が呼ばれなければ True
        """
        event.target = self
        path: list[EventTarget] = [self._document]
        path.extend(reversed(list(self.ancestors())))

        event.event_phase = Event.CAPTURING_PHASE
        for node in path:
            if event._propagation_stopped:
                break
            node._invoke(event, capture=True)

        if not event._propagation_stopped:
            event.event_phase = Event.AT_TARGET
            self._invoke(event, capture=None)

        if event.bubbles:
            event.event_phase = Event.BUBBLING_PHASE
            for node in reversed(path):
                if event._propagation_stopped:
                    break
                node._invoke(event, capture=False)

        event.current_target = None
        event.event_phase = 0
        return not event.default_prevented

    def append_child(self, child: Element) -> Element:
        self._tag.append(child.tag)
        return child

    def remove(self) -> None:
        """要素をツリーから取り除く。"""
        self._tag.extract()


def _option_value(option: Tag) -> str:
    value = option.get("value")
    if value is None:
        return " ".join(option.get_text(" ").split())
    return value


# ---------------------------------------------------------------------------
# ドキュメント
# ---------------------------------------------------------------------------

class Document(EventTarget):
    """インメモリの HTML ドキュメント。

    使用例::

        document = Document.from_html('<button id="go">Go</button>')
        button = document.query_selector("#go")
        button.click()
    """

    def __init__(self, soup: BeautifulSoup) -> None:
        super().__init__()
        self._soup = soup
        self._elements: dict[int, Element] = {}
        self.active_element: Optional[Element] = None

    @classmethod
    def from_html(cls, html: str) -> Document:
        """HTML 文字列からドキュメントを生成する。html / body は自動補完される。"""
        return cls(BeautifulSoup(html, "lxml"))

    def wrap(self, tag: Tag) -> Element:
        """Tag に対応する Element を返す（同じ Tag には同じ Element）。"""
        key = id(tag)
        element = self._elements.get(key)
        if element is None or element.tag is not tag:
            element = Element(tag, self)
            self._elements[key] = element
        return element

    @property
    def document_element(self) -> Optional[Element]:
        html = self._soup.find("html")
        return self.wrap(html) if html is not None else None

    @property
    def body(self) -> Optional[Element]:
        body = self._soup.find("body")
        return self.wrap(body) if body is not None else None

    def query_selector(self, selector: str) -> Optional[Element]:
        """セレクタに最初に一致する要素を返す。なければ None。

        Raises:
            DomSyntaxError: セレクタの構文が不正な場合
        """
        try:
            tag = self._soup.select_one(selector)
        except SelectorSyntaxError as exc:
            raise DomSyntaxError(f"不正なセレクタです: {selector!r}") from exc
        return self.wrap(tag) if tag is not None else None

    def query_selector_all(self, selector: str) -> list[Element]:
        """セレクタに一致する全要素を文書順で返す。

        Raises:
            DomSyntaxError: セレクタの構文が不正な場合
        """
        try:
            tags = self._soup.select(selector)
        except SelectorSyntaxError as exc:
            raise DomSyntaxError(f"不正なセレクタです: {selector!r}") from exc
        return [self.wrap(tag) for tag in tags]

    def count_matches(self, selector: str) -> int:
        return len(self.query_selector_all(selector))

    def get_element_by_id(self, element_id: str) -> Optional[Element]:
        tag = self._soup.find(id=element_id)
        return self.wrap(tag) if tag is not None else None

    def create_element(self, tag_name: str, **attrs: str) -> Element:
        return self.wrap(self._soup.new_tag(tag_name, attrs=attrs))
