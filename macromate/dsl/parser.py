"""
マクロパーサー — マクロファイルの読み込み・書き出し・検証

ruamel.yaml（.yaml / .yml）と json（.json）でマクロファイルを読み書きし、
Pydantic の MacroDocument モデルとの相互変換を行う。

トップレベルがステップのリストだけのファイルも読み込める。
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .schema import MacroDocument

_JSON_SUFFIXES = (".json",)


# ---------------------------------------------------------------------------
# バリデーションエラー表現
# ---------------------------------------------------------------------------

@dataclass
class MacroValidationError:
    """マクロファイルの検証で検出されたエラー。

    Attributes:
        message: エラーメッセージ
        location: エラー箇所（フィールドパス等）
        line: ファイル内の行番号（取得可能な場合）
    """

    message: str
    location: str = ""
    line: Optional[int] = None


# ---------------------------------------------------------------------------
# MacroParser 本体
# ---------------------------------------------------------------------------

class MacroParser:
    """マクロファイルの読み込み・書き出し・検証を担当するパーサー。"""

    def __init__(self) -> None:
        """ruamel.yaml インスタンスを初期化する。"""
        self._yaml = YAML()
        self._yaml.default_flow_style = False

    # ----- load -----

    def load(self, path: Path) -> MacroDocument:
        """マクロファイルを読み込み、MacroDocument に変換する。

        Args:
            path: 読み込むファイルのパス（.json 以外は YAML として扱う）

        Returns:
            パース済みの MacroDocument

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: 構文エラーまたはスキーマ検証エラーの場合
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"マクロファイルが見つかりません: {path}")

        data = self._read(path)
        if data is None:
            raise ValueError("マクロファイルが空です")

        try:
            return self.from_data(data)
        except PydanticValidationError as e:
            raise ValueError(f"スキーマ検証エラー: {e}") from e

    def from_data(self, data: Any) -> MacroDocument:
        """読み込み済みのデータ（辞書またはステップのリスト）を変換する。

        Raises:
            pydantic.ValidationError: スキーマ違反の場合
            ValueError: ステップの形式が不正な場合
        """
        plain = self._to_plain(data)
        if isinstance(plain, list):
            plain = {"steps": plain}
        if not isinstance(plain, dict):
            raise ValueError(f"マクロの形式が不正です: {type(plain).__name__}")
        return MacroDocument.model_validate(plain)

    # ----- dump -----

    def dump(self, document: MacroDocument, path: Path) -> None:
        """MacroDocument をファイルに書き出す。

        Args:
            document: 書き出すマクロ
            path: 出力先パス（.json なら JSON、それ以外は YAML）
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = document.to_dict()

        with open(path, "w", encoding="utf-8") as f:
            if path.suffix.lower() in _JSON_SUFFIXES:
                json.dump(data, f, ensure_ascii=False, indent=2)
            else:
                self._yaml.dump(data, f)

    # ----- validate -----

    def validate(self, path: Path) -> list[MacroValidationError]:
        """マクロファイルを検証し、違反箇所のリストを返す。

        エラーがない場合は空リストを返す。
        """
        path = Path(path)
        errors: list[MacroValidationError] = []

        if not path.exists():
            errors.append(MacroValidationError(
                message=f"マクロファイルが見つかりません: {path}",
                location="file",
            ))
            return errors

        try:
            data = self._read(path)
        except ValueError as e:
            cause = e.__cause__
            line = None
            mark = getattr(cause, "problem_mark", None)
            if mark is not None:
                line = mark.line + 1
            elif isinstance(cause, json.JSONDecodeError):
                line = cause.lineno
            errors.append(MacroValidationError(message=str(e), location="syntax", line=line))
            return errors

        if data is None:
            errors.append(MacroValidationError(message="マクロファイルが空です", location="file"))
            return errors

        try:
            self.from_data(data)
        except PydanticValidationError as e:
            for err in e.errors():
                loc_parts = [str(part) for part in err.get("loc", [])]
                errors.append(MacroValidationError(
                    message=err.get("msg", "不明なエラー"),
                    location=" -> ".join(loc_parts) if loc_parts else "unknown",
                ))
        except ValueError as e:
            errors.append(MacroValidationError(message=str(e), location="steps"))

        return errors

    # ----- ユーティリティ -----

    def _read(self, path: Path) -> Any:
        """ファイルを読み込む。構文エラーは行番号付きの ValueError にする。"""
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in _JSON_SUFFIXES:
                try:
                    return json.load(f)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        f"JSON 構文エラー (行 {e.lineno}, 列 {e.colno}): {e.msg}"
                    ) from e
            try:
                return self._yaml.load(f)
            except YAMLError as e:
                line_info = ""
                mark = getattr(e, "problem_mark", None)
                if mark is not None:
                    line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
                raise ValueError(f"YAML 構文エラー{line_info}: {e}") from e

    def _to_plain(self, data: object) -> object:
        """ruamel.yaml の CommentedMap/CommentedSeq を通常の dict/list に再帰変換する。"""
        if isinstance(data, dict):
            return {key: self._to_plain(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self._to_plain(item) for item in data]
        return data
