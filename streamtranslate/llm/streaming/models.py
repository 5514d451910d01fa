"""
Streaming-specific dataclasses for the SSE line parser.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class SSEEventType(Enum):
    """Classification of a single stream line."""
    DELTA = "delta"
    COMPLETION = "completion"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class RawSSEChunk:
    """One line of server output after classification."""
    event_type: SSEEventType
    raw_data: str
    delta: str = ""
    error: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class AccumulatorState:
    """Mutable state for one streaming call."""
    parts: list[str] = field(default_factory=list)
    delta_count: int = 0

    def append(self, delta: str) -> None:
        self.parts.append(delta)
        self.delta_count += 1

    @property
    def text(self) -> str:
        return "".join(self.parts)


@dataclass(frozen=True)
class StreamingStats:
    """Summary of a finished stream, used for logging."""
    total_lines: int
    delta_lines: int
    skipped_lines: int
    error_lines: int
    completed: bool
    result_length: int
    duration: float
