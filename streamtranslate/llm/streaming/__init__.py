"""
Streaming support for chat completion responses.

- SSE line classification
- Delta extraction (chat ``delta.content`` with legacy ``text`` fallback)
- Ordered accumulation with per-delta callbacks
"""

from __future__ import annotations

from .models import RawSSEChunk, SSEEventType, StreamingStats
from .parser import DATA_PREFIX, DONE_SENTINEL, StreamingParser, extract_delta

__all__ = [
    "DATA_PREFIX",
    "DONE_SENTINEL",
    "RawSSEChunk",
    "SSEEventType",
    "StreamingParser",
    "StreamingStats",
    "extract_delta",
]
