"""
macromate — ブラウザ操作のマクロ記録・再生ツール

ユーザーの操作（click / type / select / wait）をステップ列として記録し、
同じ（または同等の）ページに対して再生する。

主な機能:
  - SelectorResolver: 要素から再特定用の CSS セレクタを合成
  - EventRecorder: キャプチャしたイベントをステップに変換
  - MacroPlayer: ステップを逐次再生（要素が見つからなければ中断）
  - MacroController: 外部コントローラーとのメッセージ境界
"""

from __future__ import annotations

from .controller import MacroController
from .core.replay import MacroPlayer, ReplayConfig, ReplayResult, ReplayStatus
from .core.selector import SelectorResolver
from .dsl.parser import MacroParser
from .dsl.schema import MacroDocument
from .recorder.recorder import EventRecorder

__version__ = "0.1.0"

__all__ = [
    "EventRecorder",
    "MacroController",
    "MacroDocument",
    "MacroParser",
    "MacroPlayer",
    "ReplayConfig",
    "ReplayResult",
    "ReplayStatus",
    "SelectorResolver",
    "__version__",
]
