# インメモリ DOM モジュール
# BeautifulSoup ベースのドキュメントと、レコーダー・再生エンジンとの接続を提供

from .document import Document, DomSyntaxError, Element, Event
from .host import DocumentCaptureSource, DocumentHost

__all__ = [
    "Document",
    "DocumentCaptureSource",
    "DocumentHost",
    "DomSyntaxError",
    "Element",
    "Event",
]
