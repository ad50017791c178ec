"""
recorder パッケージ — ユーザー操作の記録

主な機能:
  - EventRecorder: キャプチャしたイベントをステップに変換する記録エンジン
  - RecordingSession: 1 回の記録のバッファと状態
  - CapturedEvent / CaptureSource: キャプチャソースとの境界
"""

from __future__ import annotations

from .recorder import (
    CAPTURE_EVENT_TYPES,
    INDICATOR_ID,
    AlreadyRecordingError,
    CapturedEvent,
    CaptureSource,
    EventRecorder,
    NotRecordingError,
    RecorderStatus,
    RecordingSession,
)

__all__ = [
    "CAPTURE_EVENT_TYPES",
    "INDICATOR_ID",
    "AlreadyRecordingError",
    "CapturedEvent",
    "CaptureSource",
    "EventRecorder",
    "NotRecordingError",
    "RecorderStatus",
    "RecordingSession",
]
