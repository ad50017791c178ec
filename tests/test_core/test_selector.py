"""
SelectorResolver テスト — セレクタ合成の単体テスト・プロパティテスト

優先順位（id → name → 一意なクラス → 位置パス）、クラスが一意でない
場合のフォールバックと通知、id を持つ祖先での打ち切り、
および同じ DOM に対する決定性を検証する。
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from macromate.core.selector import SelectorAmbiguity, SelectorResolver, class_selector
from macromate.dom.document import Document


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー: ランダムな DOM
# ---------------------------------------------------------------------------

_tags = st.sampled_from(["div", "span", "section", "ul", "li", "button"])
_attrs = st.fixed_dictionaries({
    "id": st.one_of(st.none(), st.sampled_from(["main", "nav", "x1"])),
    "name": st.one_of(st.none(), st.sampled_from(["q", "email"])),
    "classes": st.lists(st.sampled_from(["a", "b", "btn", "row"]), max_size=2, unique=True),
})


def _render(tag: str, attrs: dict, children: list[str]) -> str:
    parts = [tag]
    if attrs["id"]:
        parts.append(f'id="{attrs["id"]}"')
    if attrs["name"]:
        parts.append(f'name="{attrs["name"]}"')
    if attrs["classes"]:
        parts.append(f'class="{" ".join(attrs["classes"])}"')
    return f"<{' '.join(parts)}>{''.join(children)}</{tag}>"


_leaf = st.builds(_render, _tags, _attrs, st.just([]))
_html_trees = st.lists(
    st.recursive(
        _leaf,
        lambda kids: st.builds(_render, _tags, _attrs, st.lists(kids, max_size=3)),
        max_leaves=12,
    ),
    min_size=1,
    max_size=3,
).map(lambda nodes: "<html><body>" + "".join(nodes) + "</body></html>")


def _resolve_all(html: str) -> list[str]:
    doc = Document.from_html(html)
    resolver = SelectorResolver()
    return [resolver.resolve(el) for el in doc.query_selector_all("body *")]


# ---------------------------------------------------------------------------
# 優先順位
# ---------------------------------------------------------------------------

class TestPriority:
    """属性ごとのセレクタ選択テスト。"""

    def test_id_wins(self) -> None:
        """id と name の両方がある場合は id が使われること。"""
        doc = Document.from_html('<input id="email" name="mail" class="field">')
        assert SelectorResolver().resolve(doc.query_selector("input")) == "#email"

    def test_name_used_without_id(self, form_document: Document) -> None:
        qty = form_document.query_selector("input")
        assert SelectorResolver().resolve(qty) == '[name="qty"]'

    def test_id_not_checked_for_uniqueness(self) -> None:
        """重複した id でも検証せずに採用すること。"""
        doc = Document.from_html('<b id="dup"></b><i id="dup"></i>')
        assert SelectorResolver().resolve(doc.query_selector("i")) == "#dup"

    def test_unique_class_combination(self, form_document: Document) -> None:
        h1 = form_document.query_selector("h1")
        assert SelectorResolver().resolve(h1) == "h1.title"

    def test_multiple_classes_joined(self) -> None:
        doc = Document.from_html('<a class="nav link">x</a><a class="nav">y</a>')
        assert SelectorResolver().resolve(doc.query_selector("a")) == "a.nav.link"

    def test_special_characters_in_id_are_escaped(self) -> None:
        """数字始まりなどの id がエスケープされ、再検索できること。"""
        doc = Document.from_html('<span id="1st.item">x</span>')
        span = doc.query_selector("span")
        selector = SelectorResolver().resolve(span)
        assert selector.startswith("#")
        assert doc.query_selector(selector) is span

    def test_quote_in_name_is_escaped(self) -> None:
        doc = Document.from_html("<input name='say \"hi\"'>")
        field = doc.query_selector("input")
        selector = SelectorResolver().resolve(field)
        assert selector == '[name="say \\"hi\\""]'
        assert doc.query_selector(selector) is field


# ---------------------------------------------------------------------------
# 位置パス
# ---------------------------------------------------------------------------

class TestPositionalPath:
    """クラスが一意でない場合・属性がない場合の位置パステスト。"""

    HTML = (
        "<html><body><div>"
        '<button class="btn">A</button>'
        '<button class="btn">B</button>'
        "</div></body></html>"
    )

    def test_ambiguous_class_falls_back(self) -> None:
        """クラスが 2 件一致する場合は位置パスにフォールバックすること。"""
        doc = Document.from_html(self.HTML)
        first, second = doc.query_selector_all("button")
        resolver = SelectorResolver()
        assert resolver.resolve(first) == "div > button"
        assert resolver.resolve(second) == "div > button:nth-of-type(2)"

    def test_ambiguity_is_reported(self) -> None:
        doc = Document.from_html(self.HTML)
        reports: list[SelectorAmbiguity] = []
        SelectorResolver(on_ambiguous=reports.append).resolve(doc.query_selector("button"))
        assert reports == [SelectorAmbiguity("button.btn", 2, "div > button")]

    def test_unique_class_is_not_reported(self, form_document: Document) -> None:
        reports: list[SelectorAmbiguity] = []
        SelectorResolver(on_ambiguous=reports.append).resolve(form_document.query_selector("h1"))
        assert reports == []

    def test_path_stops_at_ancestor_with_id(self) -> None:
        doc = Document.from_html('<div id="wrap"><ul><li>a</li><li>b</li></ul></div>')
        second = doc.query_selector_all("li")[1]
        selector = SelectorResolver().resolve(second)
        assert selector == "div#wrap > ul > li:nth-of-type(2)"
        assert doc.query_selector(selector) is second

    def test_path_without_attributes(self) -> None:
        doc = Document.from_html("<section><p>a</p><p>b</p><p>c</p></section>")
        third = doc.query_selector_all("p")[2]
        assert SelectorResolver().resolve(third) == "section > p:nth-of-type(3)"

    def test_body_resolves_to_tag_name(self, form_document: Document) -> None:
        assert SelectorResolver().resolve(form_document.body) == "body"

    def test_class_selector_helper(self) -> None:
        assert class_selector("div", ["a", "b"]) == "div.a.b"


# ---------------------------------------------------------------------------
# 決定性（プロパティテスト）
# ---------------------------------------------------------------------------

class TestDeterminism:
    """同じ DOM に対して同じセレクタが返ることのプロパティテスト。"""

    @given(html=_html_trees)
    @settings(max_examples=60, deadline=None)
    def test_same_dom_same_selectors(self, html: str) -> None:
        """同じ HTML から生成した 2 つのドキュメントで結果が一致すること。"""
        assert _resolve_all(html) == _resolve_all(html)

    @given(html=_html_trees)
    @settings(max_examples=60, deadline=None)
    def test_repeated_resolution_is_stable(self, html: str) -> None:
        doc = Document.from_html(html)
        resolver = SelectorResolver()
        for element in doc.query_selector_all("body *"):
            selector = resolver.resolve(element)
            assert selector
            assert resolver.resolve(element) == selector
