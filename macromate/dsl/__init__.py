# マクロ DSL モジュール
# ステップのスキーマ定義とマクロファイルの読み書きを提供

from .parser import MacroParser, MacroValidationError
from .schema import (
    SECRET_PLACEHOLDER,
    ClickStep,
    MacroDocument,
    SelectStep,
    Step,
    TypeStep,
    UnknownStep,
    WaitStep,
    macro_to_list,
    parse_macro,
    parse_step,
    step_to_dict,
)

__all__ = [
    "SECRET_PLACEHOLDER",
    "ClickStep",
    "MacroDocument",
    "MacroParser",
    "MacroValidationError",
    "SelectStep",
    "Step",
    "TypeStep",
    "UnknownStep",
    "WaitStep",
    "macro_to_list",
    "parse_macro",
    "parse_step",
    "step_to_dict",
]
