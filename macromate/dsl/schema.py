"""
マクロスキーマ定義 — Step / Macro の Pydantic モデル

記録されたユーザー操作（click, type, select, wait）を表現する
不変の Pydantic v2 モデルと、マクロファイル全体のモデルを定義する。

主な機能:
  - kind で判別される 4 種類のステップモデル
  - 未知の kind を保持する UnknownStep（再生時に警告してスキップ）
  - 旧形式（type / tagName / secret / timeout キー）の取り込み
  - JSON 互換の辞書への変換
"""

from __future__ import annotations

from typing import Any, Iterable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# 秘密入力の値の代わりに保存するマーカー
SECRET_PLACEHOLDER = "{{SECRET}}"


# ---------------------------------------------------------------------------
# ステップモデル
# ---------------------------------------------------------------------------

class _StepBase(BaseModel):
    """全ステップ共通の設定。記録後のステップは変更不可。"""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(default=0, ge=0, description="記録開始からの経過ミリ秒")


class ClickStep(_StepBase):
    """要素のクリック（チェックボックス / ラジオの切り替えを含む）。"""

    kind: Literal["click"] = "click"
    selector: str = Field(..., min_length=1, description="対象要素のセレクタ")
    tag: Optional[str] = Field(default=None, description="記録時のタグ名")
    text: str = Field(default="", description="表示テキスト（先頭 50 文字）")
    checked: Optional[bool] = Field(default=None, description="切り替え後のチェック状態")


class TypeStep(_StepBase):
    """テキスト入力。isSecret が True の場合 text は常にマーカー。"""

    kind: Literal["type"] = "type"
    selector: str = Field(..., min_length=1, description="対象要素のセレクタ")
    text: str = Field(default="", description="入力値")
    isSecret: bool = Field(default=False, description="パスワード欄への入力か")

    @model_validator(mode="after")
    def _redact_secret(self) -> TypeStep:
        # 秘密値は構築時点でマーカーに置き換え、元の値を保持しない。
        # isSecret は型変換後の値で判定する
        if self.isSecret and self.text != SECRET_PLACEHOLDER:
            object.__setattr__(self, "text", SECRET_PLACEHOLDER)
        return self


class SelectStep(_StepBase):
    """select 要素の選択値変更。"""

    kind: Literal["select"] = "select"
    selector: str = Field(..., min_length=1, description="対象要素のセレクタ")
    value: str = Field(..., description="選択された値")


class WaitStep(_StepBase):
    """固定時間の待機。"""

    kind: Literal["wait"] = "wait"
    timeoutMs: Optional[int] = Field(default=None, ge=0, description="待機時間（ミリ秒）")


class UnknownStep(_StepBase):
    """未知の kind を持つステップ。追加フィールドはそのまま保持する。"""

    model_config = ConfigDict(frozen=True, extra="allow")

    kind: str
    selector: Optional[str] = None


Step = Union[ClickStep, TypeStep, SelectStep, WaitStep, UnknownStep]
"""マクロを構成するステップの Union 型。"""

STEP_MODELS: dict[str, type[_StepBase]] = {
    "click": ClickStep,
    "type": TypeStep,
    "select": SelectStep,
    "wait": WaitStep,
}

# 旧形式のキー名 → 現行フィールド名
_LEGACY_KEYS = {
    "tagName": "tag",
    "secret": "isSecret",
    "timeout": "timeoutMs",
}


# ---------------------------------------------------------------------------
# 変換ヘルパー
# ---------------------------------------------------------------------------

def parse_step(data: Any) -> Step:
    """辞書（または既存のステップ）をステップモデルに変換する。

    kind キーがなく type キーがある場合は旧形式として扱い、
    キー名を現行形式に読み替える。

    Args:
        data: ステップ辞書またはステップモデル

    Returns:
        対応するステップモデル。kind が未知なら UnknownStep

    Raises:
        ValueError: 辞書でない、または kind が特定できない場合
        pydantic.ValidationError: フィールドが不正な場合
    """
    if isinstance(data, _StepBase):
        return data  # type: ignore[return-value]
    if not isinstance(data, dict):
        raise ValueError(f"ステップは辞書である必要があります: {data!r}")

    if "kind" not in data and "type" in data:
        legacy = {_LEGACY_KEYS.get(k, k): v for k, v in data.items() if k != "type"}
        legacy["kind"] = data["type"]
        data = legacy

    kind = data.get("kind")
    if not isinstance(kind, str) or not kind:
        raise ValueError(f"ステップに kind がありません: {data!r}")

    model = STEP_MODELS.get(kind)
    if model is None:
        return UnknownStep.model_validate(data)
    return model.model_validate(data)  # type: ignore[return-value]


def parse_macro(items: Iterable[Any]) -> list[Step]:
    """ステップ辞書のリストをマクロ（ステップのリスト）に変換する。"""
    return [parse_step(item) for item in items]


def step_to_dict(step: Step) -> dict[str, Any]:
    """ステップを JSON 互換の辞書に変換する（None のフィールドは省略）。"""
    return step.model_dump(mode="json", exclude_none=True)


def macro_to_list(steps: Iterable[Step]) -> list[dict[str, Any]]:
    """マクロを JSON 互換の辞書リストに変換する。"""
    return [step_to_dict(step) for step in steps]


# ---------------------------------------------------------------------------
# マクロファイル
# ---------------------------------------------------------------------------

class MacroDocument(BaseModel):
    """保存・読み込み単位のマクロ。

    Attributes:
        title: マクロ名
        url: 記録を開始したページの URL
        steps: 記録順のステップリスト
    """

    title: str = Field(default="Recorded Macro", description="マクロ名")
    url: Optional[str] = Field(default=None, description="記録開始 URL")
    steps: list[Step] = Field(default_factory=list, description="ステップリスト")

    @field_validator("steps", mode="before")
    @classmethod
    def _parse_steps(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return parse_macro(value)
        return value

    def to_dict(self) -> dict[str, Any]:
        """ファイル書き出し用の辞書に変換する。"""
        data: dict[str, Any] = {"title": self.title}
        if self.url is not None:
            data["url"] = self.url
        data["steps"] = macro_to_list(self.steps)
        return data
