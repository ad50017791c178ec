# コアモジュール
# セレクタリゾルバとマクロ再生エンジンを提供

from .replay import (
    RUNNING_INDICATOR_ID,
    CancelToken,
    ElementNotFoundError,
    MacroPlayer,
    ReplayCancelledError,
    ReplayConfig,
    ReplayError,
    ReplayHost,
    ReplayResult,
    ReplaySession,
    ReplayStatus,
    StepExecutionError,
)
from .selector import SelectorAmbiguity, SelectorResolver

__all__ = [
    "RUNNING_INDICATOR_ID",
    "CancelToken",
    "ElementNotFoundError",
    "MacroPlayer",
    "ReplayCancelledError",
    "ReplayConfig",
    "ReplayError",
    "ReplayHost",
    "ReplayResult",
    "ReplaySession",
    "ReplayStatus",
    "SelectorAmbiguity",
    "SelectorResolver",
    "StepExecutionError",
]
