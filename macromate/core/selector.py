"""
セレクタリゾルバ — 要素から再特定用の CSS セレクタを合成

記録時に操作対象の要素から CSS セレクタ文字列を生成する。
生成したセレクタは再生時に同じ（または同等の）ドキュメントで
要素を再特定するために使用する。

優先順位（上から順に最初に成立したものを採用）:
  1. id 属性 → "#id"
  2. name 属性 → '[name="..."]'
  3. クラスの組み合わせ → "tag.a.b"（ドキュメント内で 1 件一致の場合のみ）
  4. 位置パス → "div > ul > li:nth-of-type(3)"

id と name は一意性を再検証しない。クラスの組み合わせが複数一致した場合は
SelectorAmbiguity を通知して位置パスにフォールバックする。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import soupsieve

logger = logging.getLogger(__name__)

# 位置パスのセグメント区切り
PATH_SEPARATOR = " > "


# ---------------------------------------------------------------------------
# ノード・ドキュメントの抽象
# ---------------------------------------------------------------------------

class DocumentLike(Protocol):
    """セレクタ合成に必要なドキュメントの機能。"""

    @property
    def body(self) -> Optional[ElementLike]: ...

    def count_matches(self, selector: str) -> int: ...


class ElementLike(Protocol):
    """セレクタ合成に必要な要素の機能。

    インメモリの Element と、ライブページから受け取ったスナップショットの
    両方がこの形を満たす。
    """

    @property
    def tag_name(self) -> str: ...

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def class_list(self) -> list[str]: ...

    @property
    def parent_element(self) -> Optional[ElementLike]: ...

    @property
    def owner_document(self) -> DocumentLike: ...

    def nth_of_type(self) -> int: ...


# ---------------------------------------------------------------------------
# 診断情報
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SelectorAmbiguity:
    """クラスの組み合わせが一意にならなかったことの通知。

    Attributes:
        selector: 一意にならなかったクラスセレクタ
        match_count: ドキュメント内の一致件数
        fallback: 代わりに採用した位置パス
    """

    selector: str
    match_count: int
    fallback: str


# ---------------------------------------------------------------------------
# SelectorResolver 本体
# ---------------------------------------------------------------------------

class SelectorResolver:
    """要素から CSS セレクタ文字列を合成する。

    同じ DOM の同じ要素に対しては常に同じ文字列を返す。
    DOM が変化した後も同じ要素を指し続けることは保証しない。
    """

    def __init__(
        self, on_ambiguous: Optional[Callable[[SelectorAmbiguity], None]] = None,
    ) -> None:
        """SelectorResolver を初期化する。

        Args:
            on_ambiguous: クラスセレクタが一意にならなかった時に呼ばれるコールバック
        """
        self._on_ambiguous = on_ambiguous

    def resolve(self, node: ElementLike) -> str:
        """要素のセレクタを返す。失敗することはない。

        Args:
            node: 対象要素

        Returns:
            CSS セレクタ文字列
        """
        if node.id:
            return "#" + soupsieve.escape(node.id)

        if node.name:
            return f'[name="{_quote(node.name)}"]'

        classes = [c for c in node.class_list if c]
        if classes:
            compound = class_selector(node.tag_name, classes)
            count = node.owner_document.count_matches(compound)
            if count == 1:
                return compound
            fallback = self._positional_path(node)
            self._report(SelectorAmbiguity(compound, count, fallback))
            return fallback

        return self._positional_path(node)

    # -------------------------------------------------------------------
    # 位置パス
    # -------------------------------------------------------------------

    def _positional_path(self, node: ElementLike) -> str:
        """body 直下から対象要素までの位置パスを組み立てる。

        id を持つ祖先に到達した場合はそこを起点として打ち切る。
        """
        body = node.owner_document.body
        segments: list[str] = []
        current: Optional[ElementLike] = node

        while current is not None and current is not body:
            if current.id:
                segments.insert(0, f"{current.tag_name}#{soupsieve.escape(current.id)}")
                break
            segment = current.tag_name
            nth = current.nth_of_type()
            if nth > 1:
                segment += f":nth-of-type({nth})"
            segments.insert(0, segment)
            current = current.parent_element

        if not segments:
            # body 自身
            return node.tag_name
        return PATH_SEPARATOR.join(segments)

    def _report(self, ambiguity: SelectorAmbiguity) -> None:
        logger.warning(
            "クラスセレクタが一意ではありません（%d 件一致）: %s → %s",
            ambiguity.match_count, ambiguity.selector, ambiguity.fallback,
        )
        if self._on_ambiguous is not None:
            self._on_ambiguous(ambiguity)


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def class_selector(tag_name: str, classes: list[str]) -> str:
    """タグ名とクラストークンから "tag.a.b" 形式のセレクタを作る。"""
    return tag_name + "." + ".".join(soupsieve.escape(c) for c in classes)


def _quote(value: str) -> str:
    """属性セレクタのダブルクォート内に置ける形にエスケープする。"""
    return value.replace("\\", "\\\\").replace('"', '\\"')
