# ブラウザモジュール
# Playwright によるライブページの記録（キャプチャ）と再生先を提供

from .capture import NodeSnapshot, PageCaptureSource, SnapshotDocument, snapshot_from_payload
from .host import PlaywrightHost
from .session import BrowserSession, SessionState

__all__ = [
    "BrowserSession",
    "NodeSnapshot",
    "PageCaptureSource",
    "PlaywrightHost",
    "SessionState",
    "SnapshotDocument",
    "snapshot_from_payload",
]
